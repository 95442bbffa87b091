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
Builds simulated inspection records for services that have no container yet.

A simulated record has the same structure as a real `docker inspect`
record. Everything that only exists once a container has been created
(id, timestamps, pid, addresses) is left at its zero value and the state is
"created", not running.
"""
import re
from typing import Any, Dict, List, Tuple
from ..MODELS.compose_document import ComposeService
from ..MODELS.inspection_record import (
    ContainerConfig,
    ContainerState,
    EndpointSettings,
    GraphDriver,
    HostConfig,
    InspectionRecord,
    LogConfig,
    MountPoint,
    NetworkSettings,
    ONEOFF_LABEL,
    PortBinding,
    PROJECT_LABEL,
    RestartPolicy,
    SERVICE_LABEL,
)
from ..MANAGERS.volume_manager import is_named_volume
from ..UTILS.field_shapes import (
    command_to_canonical,
    env_to_canonical,
    labels_to_canonical,
    networks_to_canonical,
    sysctls_to_canonical,
)
from ..UTILS.port_finder import split_port_mapping

_MEMORY = re.compile(r'^\s*(\d+(?:\.\d+)?)\s*([bkmg]?)b?\s*$', re.IGNORECASE)
_MEMORY_UNITS = {"": 1, "b": 1, "k": 1024, "m": 1024 ** 2, "g": 1024 ** 3}


def parse_memory(value: Any) -> int:
    """
    Converts a compose memory size ("256m", "1g", 1048576) to bytes.
    Anything unreadable, such as an unresolved placeholder, gives 0.
    """
    if value is None:
        return 0
    match = _MEMORY.match(str(value))
    if not match:
        return 0
    return int(float(match.group(1)) * _MEMORY_UNITS[match.group(2).lower()])


def parse_nano_cpus(value: Any) -> int:
    try:
        return int(float(value) * 1e9)
    except (TypeError, ValueError):
        return 0


def _expand_range(text: str) -> List[str]:
    if '-' not in text:
        return [text]
    start, _, end = text.partition('-')
    if not (start.isdigit() and end.isdigit()) or int(end) < int(start):
        return [text]
    return [str(port) for port in range(int(start), int(end) + 1)]


class InspectionRecordBuilder:
    """
    Turns a service definition into a simulated inspection record.
    """
    def __init__(self, stack_name: str):
        """
        :param stack_name: Compose project the record belongs to.
        """
        self.stack_name = stack_name

    def build(self, service_name: str, service: ComposeService) -> InspectionRecord:
        """
        Creates the record.

        :param service_name: Key of the service in its document.
        :param service: The service definition.
        :return: A record in the "created" state.
        """
        container_name = service.container_name or service_name
        exposed, bindings = self._ports(service.ports)
        mounts, binds = self._mounts(service.volumes)

        labels = {
            PROJECT_LABEL: self.stack_name,
            SERVICE_LABEL: service_name,
            ONEOFF_LABEL: "False",
        }
        labels.update(labels_to_canonical(service.labels))

        command = command_to_canonical(service.command)
        logging_config = service.logging

        host_config = HostConfig(
            binds=binds,
            port_bindings=bindings,
            restart_policy=self._restart_policy(service.restart),
            log_config=LogConfig(
                type=(logging_config.driver if logging_config and logging_config.driver else "json-file"),
                config={key: str(value) for key, value in (logging_config.options if logging_config else {}).items()},
            ),
            memory=parse_memory(service.mem_limit),
            nano_cpus=parse_nano_cpus(service.cpus),
            cap_add=list(service.cap_add),
            sysctls=sysctls_to_canonical(service.sysctls),
        )

        config = ContainerConfig(
            hostname=container_name,
            user=service.user or "",
            exposed_ports=exposed,
            env=env_to_canonical(service.environment),
            cmd=command or None,
            image=service.image or "",
            labels=labels,
        )

        network_names = networks_to_canonical(service.networks) or [f"{self.stack_name}_default"]
        network_settings = NetworkSettings(
            ports=bindings,
            networks={
                name: EndpointSettings(aliases=[container_name, service_name])
                for name in network_names
            },
        )

        return InspectionRecord(
            id="",
            created="",
            path=command[0] if command else "",
            args=command[1:],
            state=ContainerState(status="created", running=False),
            image=service.image or "",
            name="/" + container_name,
            host_config=host_config,
            graph_driver=GraphDriver(
                name="overlay2",
                data={"LowerDir": "", "MergedDir": "", "UpperDir": "", "WorkDir": ""},
            ),
            mounts=mounts,
            config=config,
            network_settings=network_settings,
        )

    @staticmethod
    def _restart_policy(restart: Any) -> RestartPolicy:
        if not restart:
            return RestartPolicy(name="no")
        name, _, retries = str(restart).partition(':')
        return RestartPolicy(name=name, maximum_retry_count=int(retries) if retries.isdigit() else 0)

    @staticmethod
    def _ports(ports: List[Any]) -> Tuple[Dict[str, Dict[str, Any]], Dict[str, List[PortBinding]]]:
        exposed: Dict[str, Dict[str, Any]] = {}
        bindings: Dict[str, List[PortBinding]] = {}
        for mapping in ports:
            host_ip, host_port, target, protocol = split_port_mapping(mapping)
            targets = _expand_range(target)
            hosts = _expand_range(host_port) if host_port else []
            for index, container_port in enumerate(targets):
                key = f"{container_port}/{protocol}"
                exposed[key] = {}
                if not hosts:
                    continue
                published = hosts[index] if len(hosts) == len(targets) else hosts[0]
                bindings.setdefault(key, []).append(
                    PortBinding(host_ip=host_ip or "0.0.0.0", host_port=published)
                )
        return exposed, bindings

    @staticmethod
    def _mounts(volumes: List[Any]) -> Tuple[List[MountPoint], List[str]]:
        mounts = []
        binds = []
        for volume in volumes:
            if isinstance(volume, dict):
                source = str(volume.get("source") or "")
                target = str(volume.get("target") or "")
                read_only = bool(volume.get("read_only"))
                named = volume.get("type", "volume") == "volume"
                mode = ""
            else:
                binds.append(str(volume))
                parts = str(volume).split(':')
                if len(parts) == 1:
                    source, target, mode = "", parts[0], ""
                else:
                    source, target = parts[0], parts[1]
                    mode = parts[2] if len(parts) > 2 else ""
                read_only = "ro" in mode.split(',')
                named = not source or is_named_volume(source)

            if named:
                mounts.append(MountPoint(
                    type="volume",
                    name=source,
                    source="",
                    destination=target,
                    driver="local",
                    mode=mode,
                    rw=not read_only,
                    propagation="",
                ))
            else:
                mounts.append(MountPoint(
                    type="bind",
                    source=source,
                    destination=target,
                    mode=mode,
                    rw=not read_only,
                    propagation="rprivate",
                ))
        return mounts, binds
