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
Secret lifecycle through an external secret-store command.
"""
import logging
from typing import List, Optional
from ..RUNNERS.process_runner import CommandRunner

logger = logging.getLogger(__name__)

ALREADY_EXISTS = "already exists"


class SecretStore:
    """
    Generates and stores secret values with `<tool> gen NAME` and
    `<tool> ins NAME` (value on stdin).

    Both operations are idempotent and never raise: a key the store already
    holds is a no-op, and any other failure is logged as a warning so that
    enrichment can continue. A missing value can be added later by hand.
    """
    def __init__(self, tool: List[str], runner: Optional[CommandRunner] = None):
        """
        :param tool: The secret-store command, as an argument list.
        :param runner: Command runner, a new one by default.
        """
        self.tool = list(tool)
        self.runner = runner or CommandRunner()

    def generate(self, name: str) -> bool:
        """
        Generates and stores a random value for `name`.

        :return: True if the store now holds the key.
        """
        return self._invoke("gen", name)

    def store(self, name: str, value: str) -> bool:
        """
        Stores a plaintext value under `name`.

        :return: True if the store now holds the key.
        """
        return self._invoke("ins", name, value)

    def _invoke(self, verb: str, name: str, value: Optional[str] = None) -> bool:
        command = [*self.tool, verb, name]
        try:
            result = self.runner.run(command, input_text=value)
        except OSError as e:
            logger.warning("Secret store unavailable, could not %s '%s': %s", verb, name, e)
            return False

        if result.returncode == 0:
            logger.info("Secret store: %s '%s'", verb, name)
            return True
        if ALREADY_EXISTS in result.output:
            logger.debug("Secret '%s' already exists in the store", name)
            return True
        logger.warning("Secret store failed to %s '%s' (exit %d): %s",
                       verb, name, result.returncode, result.output.strip())
        return False
