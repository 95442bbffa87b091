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
Parsers for the persisted environment file, supporting quotes and comments.
"""
import io
import logging
import os
from typing import Dict
from dotenv import dotenv_values

logger = logging.getLogger(__name__)

ENV_FILE_HEADER = (
    "# Production environment variables\n"
    "# Managed by dcstack; values here are used to resolve ${VAR} placeholders\n"
)


class EnvParser:
    """
    Parser for .env files.
    """
    @staticmethod
    def parse(env_path: str) -> Dict[str, str]:
        """
        Parses an .env file from a path. A missing file gives no variables.

        Args:
            env_path (str): Path to the .env file.

        Returns:
            Dict[str, str]: Dictionary of environment variables.
        """
        if not os.path.exists(env_path):
            logger.debug("Environment file %s does not exist", env_path)
            return {}
        with open(env_path, 'r') as f:
            content = f.read()
        return EnvParser.parse_from_string(content)

    @staticmethod
    def parse_from_string(content: str) -> Dict[str, str]:
        """
        Parses environment variables from a string.
        Handles quotes, comments and blank lines; values are not interpolated.
        Keys without a value are dropped.
        """
        values = dotenv_values(stream=io.StringIO(content), interpolate=False)
        return {key: value for key, value in values.items() if key and value is not None}

    @staticmethod
    def write(env_path: str, values: Dict[str, str]) -> None:
        """
        Rewrites an .env file with the given variables sorted by key.

        Args:
            env_path (str): Path to the .env file.
            values (Dict[str, str]): Variables to write.
        """
        directory = os.path.dirname(env_path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        with open(env_path, 'w') as f:
            f.write(ENV_FILE_HEADER)
            f.write("\n")
            for key in sorted(values):
                f.write(f"{key}={_quote(values[key])}\n")


def _quote(value: str) -> str:
    # Quote only when a plain value would not read back unchanged
    if value == "" or not any(ch in value for ch in ' #"\'\\\n\t'):
        return value
    escaped = value.replace('\\', '\\\\').replace("'", "\\'")
    return f"'{escaped}'"
