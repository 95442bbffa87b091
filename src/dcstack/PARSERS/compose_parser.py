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
Parsers for Docker Compose YAML files.
"""
import yaml
from pydantic import ValidationError
from ..MODELS.compose_document import ComposeDocument


class ComposeParseError(ValueError):
    """
    Raised when a compose document cannot be read.
    """


class ComposeParser:
    """
    Parser for docker-compose.yml files.

    Placeholders are not interpolated here; the document is kept exactly as
    written so it can be stored and enriched before any variable is resolved.
    """
    def parse(self, compose_path: str) -> ComposeDocument:
        """
        Parses a compose file from a path.

        :param compose_path: Path to the compose file.
        :return: Parsed document.
        """
        with open(compose_path, 'r') as f:
            content = f.read()
        return self.parse_from_string(content)

    def parse_from_string(self, content: str) -> ComposeDocument:
        """
        Parses a compose file from a string.

        :param content: YAML content of the compose file.
        :return: Parsed document. Empty content gives an empty document.
        :raises ComposeParseError: If the content is not a valid compose mapping.
        """
        try:
            data = yaml.safe_load(content)
        except yaml.YAMLError as e:
            raise ComposeParseError(f"Invalid YAML: {e}") from e

        if not data:
            data = {}
        if not isinstance(data, dict):
            raise ComposeParseError(f"Compose document must be a mapping, got {type(data).__name__}")

        try:
            return ComposeDocument.model_validate(data)
        except ValidationError as e:
            raise ComposeParseError(f"Invalid compose document: {e}") from e
