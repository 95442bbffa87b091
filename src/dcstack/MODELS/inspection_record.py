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
Models for container inspection records, as returned by `docker inspect`.

Attribute names are snake_case; the engine's own PascalCase keys are used as
aliases so that records load from and dump to the engine's JSON unchanged.
Keys the engine reports that are not modelled here are retained.
"""
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_pascal

PROJECT_LABEL = "com.docker.compose.project"
SERVICE_LABEL = "com.docker.compose.service"
ONEOFF_LABEL = "com.docker.compose.oneoff"


class InspectModel(BaseModel):
    """
    Base for inspection models.
    """
    model_config = ConfigDict(alias_generator=to_pascal, populate_by_name=True, extra="allow")

    @model_validator(mode="before")
    @classmethod
    def _drop_nulls(cls, data):
        # The engine reports empty collections as null; fall back to field defaults
        if isinstance(data, dict):
            return {key: value for key, value in data.items() if value is not None}
        return data

    def to_dict(self) -> Dict[str, Any]:
        """
        Dumps the record with the engine's key names.
        """
        return self.model_dump(by_alias=True, mode="json")


class ContainerState(InspectModel):
    status: str = ""
    running: bool = False
    paused: bool = False
    restarting: bool = False
    oom_killed: bool = Field(default=False, alias="OOMKilled")
    dead: bool = False
    pid: int = 0
    exit_code: int = 0
    error: str = ""
    started_at: str = ""
    finished_at: str = ""


class RestartPolicy(InspectModel):
    name: str = "no"
    maximum_retry_count: int = 0


class LogConfig(InspectModel):
    type: str = "json-file"
    config: Dict[str, str] = {}


class PortBinding(InspectModel):
    host_ip: str = "0.0.0.0"
    host_port: str = ""


class HostConfig(InspectModel):
    binds: List[str] = []
    network_mode: str = "default"
    port_bindings: Dict[str, Optional[List[PortBinding]]] = {}
    restart_policy: RestartPolicy = Field(default_factory=RestartPolicy)
    log_config: LogConfig = Field(default_factory=LogConfig)
    memory: int = 0
    nano_cpus: int = 0
    ipc_mode: str = "private"
    shm_size: int = 67108864
    runtime: str = "runc"
    cap_add: List[str] = []
    sysctls: Dict[str, str] = {}


class MountPoint(InspectModel):
    type: str = ""
    name: str = ""
    source: str = ""
    destination: str = ""
    driver: str = ""
    mode: str = ""
    rw: bool = Field(default=True, alias="RW")
    propagation: str = ""


class ContainerConfig(InspectModel):
    hostname: str = ""
    user: str = ""
    exposed_ports: Dict[str, Dict[str, Any]] = {}
    env: List[str] = []
    cmd: Optional[List[str]] = None
    image: str = ""
    labels: Dict[str, str] = {}


class EndpointSettings(InspectModel):
    network_id: str = Field(default="", alias="NetworkID")
    endpoint_id: str = Field(default="", alias="EndpointID")
    gateway: str = ""
    ip_address: str = Field(default="", alias="IPAddress")
    ip_prefix_len: int = Field(default=0, alias="IPPrefixLen")
    mac_address: str = ""
    aliases: Optional[List[str]] = None


class NetworkSettings(InspectModel):
    ports: Dict[str, Optional[List[PortBinding]]] = {}
    networks: Dict[str, EndpointSettings] = {}
    ip_address: str = Field(default="", alias="IPAddress")


class GraphDriver(InspectModel):
    name: str = "overlay2"
    data: Dict[str, str] = {}


class InspectionRecord(InspectModel):
    """
    Snapshot of a single container's configuration and state.
    """
    id: str = ""
    created: str = ""
    path: str = ""
    args: List[str] = []
    state: ContainerState = Field(default_factory=ContainerState)
    image: str = ""
    name: str = ""
    restart_count: int = 0
    driver: str = "overlay2"
    platform: str = "linux"
    host_config: HostConfig = Field(default_factory=HostConfig)
    graph_driver: GraphDriver = Field(default_factory=GraphDriver)
    mounts: List[MountPoint] = []
    config: ContainerConfig = Field(default_factory=ContainerConfig)
    network_settings: NetworkSettings = Field(default_factory=NetworkSettings)

    @property
    def container_name(self) -> str:
        return self.name.lstrip("/")

    @property
    def project(self) -> Optional[str]:
        return self.config.labels.get(PROJECT_LABEL)

    @property
    def service(self) -> Optional[str]:
        return self.config.labels.get(SERVICE_LABEL)
