# Copyright 2024 Michael Maillet, Damien Davison, Sacha Davison
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
Parser for a secrets directory, where every file holds one secret.
"""
import logging
import os
from typing import Dict

logger = logging.getLogger(__name__)


class SecretsDirParser:
    """
    Reads a directory of secret files: the file name is the key and the
    stripped file content is the value.
    """
    @staticmethod
    def parse(secrets_dir: str) -> Dict[str, str]:
        """
        Reads every regular, non-hidden file in the directory.

        Args:
            secrets_dir (str): Directory to read.

        Returns:
            Dict[str, str]: Secret values by file name. A missing directory
            gives no secrets; unreadable files are skipped with a warning.
        """
        if not os.path.isdir(secrets_dir):
            logger.info("Secrets directory %s not found, skipping", secrets_dir)
            return {}

        secrets = {}
        for entry in sorted(os.scandir(secrets_dir), key=lambda e: e.name):
            if entry.name.startswith('.') or not entry.is_file():
                continue
            try:
                with open(entry.path, 'r') as f:
                    secrets[entry.name] = f.read().strip()
            except (OSError, UnicodeDecodeError) as e:
                logger.warning("Could not read secret file %s: %s", entry.path, e)
        return secrets
