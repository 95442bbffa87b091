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
Placeholder resolution over whole compose documents.

Two passes exist. `expand_defaults` runs before enrichment and only fills
in what is already known, leaving anything else as written.
`resolve_for_deploy` runs right before a document is handed to the
container engine; it substitutes every placeholder in the document and
refuses to continue if any variable is unknown.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Set
from ..MODELS.compose_document import ComposeDocument
from ..MANAGERS.environment_manager import VariableSources
from ..UTILS.field_shapes import env_from_canonical, env_to_canonical, split_entry
from ..UTILS.string_interpolation import EnvironmentInterpolator, Lookup

logger = logging.getLogger(__name__)

DECLARATION_SECTIONS = ("volumes", "networks", "configs", "secrets")


class UnresolvedVariablesError(ValueError):
    """
    Raised when placeholders remain that no variable source knows.
    """
    def __init__(self, names: Iterable[str]):
        self.names = sorted(set(names))
        super().__init__("undefined variables: " + ", ".join(self.names))


class PlaceholderResolver:
    """
    Applies one lookup to every string of a document, remembering the names
    it could not resolve.
    """
    def __init__(self, lookup: Lookup, keep_unresolved: bool = False):
        self.lookup = lookup
        self.keep_unresolved = keep_unresolved
        self.missing: Set[str] = set()

    def text(self, value: Any) -> Any:
        if not isinstance(value, str):
            return value
        return EnvironmentInterpolator.interpolate(
            value,
            self.lookup,
            missing=self.missing,
            keep_unresolved=self.keep_unresolved,
            escape_values=True,
        )

    def walk(self, value: Any, rename_keys: bool = False) -> Any:
        """
        Resolves every string inside nested lists and dicts. Dict keys are
        only resolved when `rename_keys` is set.
        """
        if isinstance(value, dict):
            return {
                (self.text(key) if rename_keys else key): self.walk(item)
                for key, item in value.items()
            }
        if isinstance(value, list):
            return [self.walk(item) for item in value]
        return self.text(value)

    def environment(self, value: Any) -> Any:
        """
        Resolves environment values; keys are kept as written.
        """
        resolved = []
        for entry in env_to_canonical(value):
            key, item = split_entry(entry)
            resolved.append(key if item is None else f"{key}={self.text(item)}")
        return env_from_canonical(resolved, value)

    def networks(self, value: Any) -> Any:
        if isinstance(value, dict):
            return self.walk(value, rename_keys=True)
        if isinstance(value, list):
            return [self.walk(item, rename_keys=True) for item in value]
        return self.text(value)

    def declarations(self, section: str, value: Dict[str, Any]) -> Dict[str, Any]:
        """
        Resolves a top-level declaration mapping, including its keys.
        """
        result = {}
        for key, item in value.items():
            new_key = self.text(key)
            if new_key in result:
                logger.warning("Duplicate %s entry '%s' after resolving placeholders, keeping the last", section, new_key)
            result[new_key] = self.walk(item)
        return result


def _service_fields(resolver: PlaceholderResolver, service: Dict[str, Any]) -> Dict[str, Any]:
    result = {}
    for field, value in service.items():
        if field == "environment":
            result[field] = resolver.environment(value)
        elif field == "networks":
            result[field] = resolver.networks(value)
        elif field == "labels":
            result[field] = resolver.walk(value, rename_keys=True)
        else:
            result[field] = resolver.walk(value)
    return result


def resolve_for_deploy(document: ComposeDocument, sources: VariableSources) -> ComposeDocument:
    """
    Substitutes every ${VAR} and $VAR placeholder in the document.

    Each variable is looked up in the built-in values first; credentials
    then come from the persisted sources only, anything else from the
    process environment and then the persisted sources. Top-level
    declaration names are resolved too.

    :param document: The enriched document.
    :param sources: Variable sources.
    :return: A new, fully resolved document.
    :raises UnresolvedVariablesError: If any variable is unknown. Nothing
        should be deployed in that case.
    """
    resolver = PlaceholderResolver(sources.deploy_value)
    data = document.to_dict()

    resolved = {}
    for section, value in data.items():
        if section == "services":
            resolved[section] = {
                name: _service_fields(resolver, service) for name, service in value.items()
            }
        elif section in DECLARATION_SECTIONS:
            resolved[section] = resolver.declarations(section, value)
        else:
            resolved[section] = resolver.walk(value)

    if resolver.missing:
        raise UnresolvedVariablesError(resolver.missing)
    return ComposeDocument.model_validate(resolved)


def expand_defaults(document: ComposeDocument, sources: VariableSources) -> ComposeDocument:
    """
    Fills in known values in service volumes and environment values.
    Unknown placeholders, and credentials, are left as written.

    :param document: The document as authored.
    :param sources: Variable sources.
    :return: A new document.
    """
    resolver = PlaceholderResolver(sources.pre_deploy_value, keep_unresolved=True)
    result = document.model_copy(deep=True)
    for service in result.services.values():
        service.volumes = [resolver.walk(volume) for volume in service.volumes]
        if service.environment is not None:
            service.environment = resolver.environment(service.environment)
    return result


def find_references(value: Any) -> List[str]:
    """
    Lists the variable names referenced anywhere inside nested data,
    including dict keys.
    """
    names: List[str] = []

    def visit(item: Any):
        if isinstance(item, dict):
            for key, child in item.items():
                visit(key)
                visit(child)
        elif isinstance(item, list):
            for child in item:
                visit(child)
        elif isinstance(item, str):
            for name in EnvironmentInterpolator.references(item):
                if name not in names:
                    names.append(name)

    visit(value)
    return names


def collect_document_references(document: ComposeDocument) -> List[str]:
    """
    Sorted names of every variable a document references.
    """
    return sorted(find_references(document.to_dict()))


def report_variables(document: ComposeDocument, sources: VariableSources) -> Dict[str, Optional[str]]:
    """
    Maps every referenced variable to the source that would resolve it at
    deploy time, or None when it would stay unresolved.
    """
    return {name: sources.source_of(name) for name in collect_document_references(document)}
