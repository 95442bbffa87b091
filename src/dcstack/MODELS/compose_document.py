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
Models for compose documents as authored by users.

Fields that compose allows in several shapes (environment, labels, networks,
command, sysctls, cpus) are kept exactly as written; the UTILS.field_shapes
module converts them to a canonical form when a pass needs to read them.
Unknown keys are preserved so that a document survives a load/dump cycle.
"""
from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, ConfigDict, field_validator


class ComposeModel(BaseModel):
    """
    Base for every compose model: unknown keys are kept verbatim.
    """
    model_config = ConfigDict(extra="allow")

    def to_dict(self) -> Dict[str, Any]:
        """
        Dumps the model the way it should appear in a compose file.
        Unset and default-valued fields are left out.
        """
        return self.model_dump(exclude_none=True, exclude_defaults=True)


class LoggingConfig(ComposeModel):
    """
    Logging driver and its options for a service.
    """
    driver: Optional[str] = None
    options: Dict[str, Any] = {}


class ServiceConfigRef(ComposeModel):
    """
    Long-syntax reference from a service to a top-level config.
    """
    source: str
    target: Optional[str] = None


class ComposeService(ComposeModel):
    """
    A single service definition.
    """
    image: Optional[str] = None
    container_name: Optional[str] = None
    user: Optional[str] = None
    restart: Optional[str] = None
    volumes: List[Union[str, Dict[str, Any]]] = []
    ports: List[Union[str, Dict[str, Any]]] = []

    # Union-typed fields, see UTILS.field_shapes
    environment: Any = None
    labels: Any = None
    networks: Any = None
    command: Any = None
    sysctls: Any = None
    cpus: Any = None

    configs: List[Union[str, ServiceConfigRef]] = []
    cap_add: List[str] = []
    secrets: List[Union[str, Dict[str, Any]]] = []
    mem_limit: Optional[str] = None
    memswap_limit: Optional[str] = None
    logging: Optional[LoggingConfig] = None

    @field_validator("ports", mode="before")
    @classmethod
    def _ports_as_strings(cls, value):
        if value is None:
            return []
        if not isinstance(value, list):
            return value
        return [str(p) if isinstance(p, (int, float)) else p for p in value]

    @field_validator("volumes", "configs", "cap_add", "secrets", mode="before")
    @classmethod
    def _null_list(cls, value):
        return [] if value is None else value

    @field_validator("mem_limit", "memswap_limit", mode="before")
    @classmethod
    def _memory_as_string(cls, value):
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value


class ComposeVolume(ComposeModel):
    """
    Top-level volume declaration.
    """
    external: Union[bool, Dict[str, Any]] = False
    name: Optional[str] = None
    driver: Optional[str] = None
    driver_opts: Dict[str, Any] = {}


class ComposeNetwork(ComposeModel):
    """
    Top-level network declaration.
    """
    external: Union[bool, Dict[str, Any]] = False
    name: Optional[str] = None
    driver: Optional[str] = None
    driver_opts: Dict[str, Any] = {}


class ComposeConfig(ComposeModel):
    """
    Top-level config declaration, either inline content or a file.
    """
    content: Optional[str] = None
    file: Optional[str] = None
    external: Union[bool, Dict[str, Any]] = False
    name: Optional[str] = None


class ComposeSecret(ComposeModel):
    """
    Top-level secret declaration.
    """
    name: Optional[str] = None
    environment: Optional[str] = None
    file: Optional[str] = None
    external: Union[bool, Dict[str, Any]] = False


class ComposeDocument(ComposeModel):
    """
    The full compose document for one stack.
    """
    services: Dict[str, ComposeService] = {}
    volumes: Dict[str, ComposeVolume] = {}
    networks: Dict[str, ComposeNetwork] = {}
    configs: Dict[str, ComposeConfig] = {}
    secrets: Dict[str, ComposeSecret] = {}

    @field_validator("services", "volumes", "networks", "configs", "secrets", mode="before")
    @classmethod
    def _null_entries(cls, value):
        # `volumes: {data: }` declares a volume with every setting left default
        if value is None:
            return {}
        if isinstance(value, dict):
            return {key: ({} if entry is None else entry) for key, entry in value.items()}
        return value
