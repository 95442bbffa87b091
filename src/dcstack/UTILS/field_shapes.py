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
Conversions between the shapes compose allows for a field and the single
canonical shape the enrichment passes work on.

Each field family has a `*_to_canonical(value)` function. Fields the passes
write to also have a `*_from_canonical(canonical, original)` function that
writes the canonical value back into the shape of `original`, reusing original value
objects where the rendered value did not change, so an untouched entry keeps
its YAML type (an integer stays an integer, a quoted string stays quoted).

Canonical forms:
    environment  list of "KEY=VALUE" strings (a bare "KEY" has no value)
    labels       dict of str -> str
    sysctls      dict of str -> str
    networks     list of network names
    command      list of argv tokens

Values of a shape compose does not allow are returned unchanged with a
warning instead of raising.
"""
import logging
import shlex
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

logger = logging.getLogger(__name__)


class FieldShape(str, Enum):
    """
    The representation a union-typed field currently uses.
    """
    ABSENT = "absent"
    SCALAR = "scalar"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    UNKNOWN = "unknown"


def shape_of(value: Any) -> FieldShape:
    if value is None:
        return FieldShape.ABSENT
    if isinstance(value, (str, int, float, bool)):
        return FieldShape.SCALAR
    if isinstance(value, (list, tuple)):
        return FieldShape.SEQUENCE
    if isinstance(value, dict):
        return FieldShape.MAPPING
    return FieldShape.UNKNOWN


def scalar_to_string(value: Any) -> str:
    """
    Renders a YAML scalar the way it is written in a compose file.
    """
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def split_entry(entry: str) -> Tuple[str, Optional[str]]:
    """
    Splits "KEY=VALUE" into its parts. A bare "KEY" has a value of None.
    """
    key, sep, value = entry.partition("=")
    return key, (value if sep else None)


def _unsupported(field: str, value: Any) -> None:
    logger.warning("Leaving %s untouched: unsupported value of type %s", field, type(value).__name__)


# Environment

def env_to_canonical(value: Any) -> List[str]:
    """
    Converts an environment field to a list of "KEY=VALUE" strings.

    Args:
        value (Any): The field as written (sequence, mapping or absent).

    Returns:
        List[str]: Entries in document order. A mapping entry with a null
        value becomes a bare "KEY".
    """
    shape = shape_of(value)
    if shape == FieldShape.ABSENT:
        return []
    if shape == FieldShape.SEQUENCE:
        return [scalar_to_string(item) for item in value]
    if shape == FieldShape.MAPPING:
        return [str(key) if item is None else f"{key}={scalar_to_string(item)}"
                for key, item in value.items()]
    _unsupported("environment", value)
    return []


def env_from_canonical(entries: List[str], original: Any) -> Any:
    """
    Writes canonical environment entries back into the shape of `original`.

    Args:
        entries (List[str]): Canonical "KEY=VALUE" entries.
        original (Any): The field value before conversion.

    Returns:
        Any: A mapping if `original` was a mapping, otherwise a sequence.
        `original` itself is returned when its shape is not supported.
    """
    shape = shape_of(original)
    if shape == FieldShape.MAPPING:
        result = {}
        for entry in entries:
            key, value = split_entry(entry)
            if key in original and _same_env_value(original[key], value):
                result[key] = original[key]
            else:
                result[key] = value
        return result
    if shape == FieldShape.SEQUENCE:
        return list(entries)
    if shape == FieldShape.ABSENT:
        return list(entries) if entries else None
    return original


def _same_env_value(original_value: Any, value: Optional[str]) -> bool:
    if original_value is None or value is None:
        return original_value is None and value is None
    return scalar_to_string(original_value) == value


def env_to_dict(value: Any) -> Dict[str, Optional[str]]:
    """
    Returns the environment as a key -> value dict; later duplicates win.
    """
    return dict(split_entry(entry) for entry in env_to_canonical(value))


# Labels and sysctls

def labels_to_canonical(value: Any, field: str = "labels") -> Dict[str, str]:
    """
    Converts a labels (or sysctls) field to a dict of strings.
    """
    shape = shape_of(value)
    if shape == FieldShape.ABSENT:
        return {}
    if shape == FieldShape.MAPPING:
        return {str(key): scalar_to_string(item) for key, item in value.items()}
    if shape == FieldShape.SEQUENCE:
        result = {}
        for item in value:
            key, item_value = split_entry(scalar_to_string(item))
            result[key] = item_value or ""
        return result
    _unsupported(field, value)
    return {}


def labels_from_canonical(labels: Dict[str, str], original: Any) -> Any:
    """
    Writes a canonical labels dict back into the shape of `original`.
    An absent field becomes a mapping.
    """
    shape = shape_of(original)
    if shape == FieldShape.MAPPING:
        return {
            key: original[key] if key in original and scalar_to_string(original[key]) == value else value
            for key, value in labels.items()
        }
    if shape == FieldShape.SEQUENCE:
        written = {}
        for item in original:
            rendered = scalar_to_string(item)
            key, item_value = split_entry(rendered)
            written[key] = (item_value or "", item)
        result = []
        for key, value in labels.items():
            if key in written and written[key][0] == value:
                result.append(written[key][1])
            else:
                result.append(f"{key}={value}")
        return result
    if shape == FieldShape.ABSENT:
        return dict(labels) if labels else None
    return original


def sysctls_to_canonical(value: Any) -> Dict[str, str]:
    return labels_to_canonical(value, field="sysctls")



# Networks

def networks_to_canonical(value: Any) -> List[str]:
    """
    Converts a networks field to a list of network names.

    A sequence may mix plain names and single-key mappings carrying
    per-network settings; both contribute their name.
    """
    shape = shape_of(value)
    if shape == FieldShape.ABSENT:
        return []
    if shape == FieldShape.SCALAR:
        return [scalar_to_string(value)]
    if shape == FieldShape.MAPPING:
        return [str(key) for key in value]
    if shape == FieldShape.SEQUENCE:
        names = []
        for item in value:
            if isinstance(item, dict):
                names.extend(str(key) for key in item)
            elif shape_of(item) == FieldShape.SCALAR:
                names.append(scalar_to_string(item))
            else:
                _unsupported("networks entry", item)
        return names
    _unsupported("networks", value)
    return []


def networks_from_canonical(names: List[str], original: Any) -> Any:
    """
    Writes a list of network names back into the shape of `original`.

    Names already present keep their original entry (including per-network
    settings); new names are added as plain names, or with empty settings
    when the original is a mapping.
    """
    shape = shape_of(original)
    if shape == FieldShape.ABSENT:
        return list(names) if names else None
    if shape == FieldShape.SCALAR:
        if names == [scalar_to_string(original)]:
            return original
        return list(names)
    if shape == FieldShape.MAPPING:
        return {name: original[name] if name in original else {} for name in names}
    if shape == FieldShape.SEQUENCE:
        entries = {}
        for item in original:
            for name in networks_to_canonical([item]):
                entries.setdefault(name, item)
        result = []
        for name in names:
            item = entries.pop(name, name)
            if isinstance(item, dict):
                # A mapping item may name several networks; emit it once
                for other in item:
                    entries.pop(str(other), None)
            if item not in result:
                result.append(item)
        return result
    return original


# Command

def command_to_canonical(value: Any) -> List[str]:
    """
    Converts a command field to argv tokens. A string command is split the
    way a shell would; a string that cannot be split stays one token.
    """
    shape = shape_of(value)
    if shape == FieldShape.ABSENT:
        return []
    if shape == FieldShape.SCALAR:
        text = scalar_to_string(value)
        try:
            return shlex.split(text)
        except ValueError:
            logger.warning("Could not split command %r, keeping it as a single token", text)
            return [text]
    if shape == FieldShape.SEQUENCE:
        return [scalar_to_string(item) for item in value]
    _unsupported("command", value)
    return []
