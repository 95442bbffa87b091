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
On-disk storage of stack documents.

Each stack has two files in the stacks directory: `<name>.yml`, the
sanitized document as authored, and `<name>.effective.yml`, the enriched one.
"""
import logging
import os
import re
from typing import List

logger = logging.getLogger(__name__)

ORIGINAL_SUFFIX = ".yml"
EFFECTIVE_SUFFIX = ".effective.yml"

_STACK_NAME = re.compile(r'[A-Za-z0-9][A-Za-z0-9_.-]*')


class StackNotFoundError(LookupError):
    """
    Raised when no document is stored for a stack.
    """
    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Stack '{name}' not found")


def validate_stack_name(name: str) -> str:
    """
    Rejects names that are not usable as a file name and project name.
    """
    if not _STACK_NAME.fullmatch(name) or name.endswith(".effective"):
        raise ValueError(f"Invalid stack name: {name!r}")
    return name


class StackStore:
    """
    Reads and writes stack documents in the stacks directory.
    """
    def __init__(self, stacks_dir: str):
        self.stacks_dir = stacks_dir

    def path(self, name: str, effective: bool = False) -> str:
        suffix = EFFECTIVE_SUFFIX if effective else ORIGINAL_SUFFIX
        return os.path.join(self.stacks_dir, validate_stack_name(name) + suffix)

    def exists(self, name: str) -> bool:
        return os.path.exists(self.path(name))

    def save(self, name: str, original: str, effective: str) -> None:
        """
        Writes both documents of a stack.
        """
        os.makedirs(self.stacks_dir, exist_ok=True)
        for path, content in ((self.path(name), original), (self.path(name, effective=True), effective)):
            with open(path, 'w') as f:
                f.write(content)
        logger.info("Saved stack %s to %s", name, self.stacks_dir)

    def load(self, name: str, effective: bool = False) -> str:
        """
        Reads a stored document.

        :raises StackNotFoundError: If the document does not exist.
        """
        path = self.path(name, effective)
        if not os.path.exists(path):
            raise StackNotFoundError(name)
        with open(path, 'r') as f:
            return f.read()

    def load_declared(self, name: str) -> str:
        """
        Reads the effective document if there is one, else the original.
        """
        if os.path.exists(self.path(name, effective=True)):
            return self.load(name, effective=True)
        return self.load(name)

    def delete(self, name: str) -> bool:
        """
        Removes both documents of a stack.

        :return: True if anything was removed.
        """
        removed = False
        for path in (self.path(name), self.path(name, effective=True)):
            if os.path.exists(path):
                os.remove(path)
                removed = True
        return removed

    def list_names(self) -> List[str]:
        """
        Names of all stored stacks, sorted.
        """
        if not os.path.isdir(self.stacks_dir):
            return []
        names = []
        for filename in os.listdir(self.stacks_dir):
            if filename.endswith(EFFECTIVE_SUFFIX) or not filename.endswith(ORIGINAL_SUFFIX):
                continue
            name = filename[:-len(ORIGINAL_SUFFIX)]
            if _STACK_NAME.fullmatch(name):
                names.append(name)
        return sorted(names)
