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
Deterministic YAML output for compose documents.

Data is first represented as a PyYAML node tree; the tree is then rewritten
so that every mapping is sorted by key and every multi-line string is a
literal block, and only then serialized. Working on nodes rather than on
Python types means the rules apply wherever a value sits in the document.

PyYAML refuses block style for strings it cannot represent that way, such as
a line with trailing spaces; those fall back to a double-quoted scalar.
"""
from typing import Any
import yaml
from ..MODELS.compose_document import ComposeDocument

STR_TAG = 'tag:yaml.org,2002:str'


class CanonicalDumper(yaml.SafeDumper):
    """
    SafeDumper that never emits anchors or aliases.
    """
    def ignore_aliases(self, data):
        return True


def _canonicalize(node: yaml.Node) -> None:
    if isinstance(node, yaml.MappingNode):
        node.value.sort(key=lambda pair: str(pair[0].value))
        for key_node, value_node in node.value:
            _canonicalize(key_node)
            _canonicalize(value_node)
    elif isinstance(node, yaml.SequenceNode):
        for item in node.value:
            _canonicalize(item)
    elif isinstance(node, yaml.ScalarNode):
        if node.tag == STR_TAG and '\n' in node.value:
            node.style = '|'


def dump_document(data: Any) -> str:
    """
    Serializes plain data to canonical YAML: keys sorted at every level,
    multi-line strings as literal blocks, 2-space indentation.

    :param data: Dicts, lists and scalars.
    :return: The YAML text.
    """
    representer = CanonicalDumper(None, default_flow_style=False, sort_keys=False)
    node = representer.represent_data(data)
    _canonicalize(node)
    return yaml.serialize(node, Dumper=CanonicalDumper, indent=2, allow_unicode=True)


def dump_compose(document: ComposeDocument) -> str:
    """
    Serializes a compose document, leaving out unset fields.
    """
    return dump_document(document.to_dict())
