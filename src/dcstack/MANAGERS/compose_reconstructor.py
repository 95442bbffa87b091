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
Reconstruction of a compose document from inspection records, for stacks
that only exist as containers.
"""
import logging
from typing import List, Tuple
from ..ENRICHMENT.sanitize_pass import sanitize_entry
from ..ENRICHMENT.secrets_pass import SecretDeclarationPass
from ..MODELS.compose_document import ComposeDocument, ComposeService
from ..MODELS.inspection_record import InspectionRecord
from ..UTILS.yaml_emitter import dump_compose

logger = logging.getLogger(__name__)

IGNORED_ENV_PREFIXES = ("PATH=", "HOSTNAME=", "HOME=")
IGNORED_LABEL_PREFIXES = ("com.docker.compose.", "org.opencontainers.image", "traefik")
DEFAULT_RESTART = "unless-stopped"

DISCLAIMER = (
    "# This compose file was reconstructed from running and stopped containers.\n"
    "# Some settings may be incomplete or differ from the original configuration.\n"
    "# Review and adjust it before using it in production.\n"
)


class ComposeReconstructor:
    """
    Builds a compose document from the containers of a stack.

    Credentials in container environments are replaced by placeholder
    references; nothing is written to the secret store.
    """
    def reconstruct(self, records: List[InspectionRecord]) -> ComposeDocument:
        """
        :param records: Inspection records of the stack's containers.
        :return: The reconstructed document, with secrets declared.
        """
        document = ComposeDocument()
        for record in records:
            service_name, service = self._service(record)
            if not service_name:
                continue
            document.services[service_name] = service
        return SecretDeclarationPass()(document)

    def render(self, records: List[InspectionRecord]) -> str:
        """
        Reconstructs and serializes the document behind a disclaimer.
        """
        return DISCLAIMER + dump_compose(self.reconstruct(records))

    def _service(self, record: InspectionRecord) -> Tuple[str, ComposeService]:
        container_name = record.container_name
        service_name = record.service or container_name
        service = ComposeService(image=record.config.image or record.image or None)

        if container_name != service_name:
            service.container_name = container_name

        restart = record.host_config.restart_policy.name
        if restart and restart != DEFAULT_RESTART:
            service.restart = restart

        if record.config.cmd:
            service.command = list(record.config.cmd)

        environment = [
            sanitize_entry(entry)
            for entry in record.config.env
            if not entry.startswith(IGNORED_ENV_PREFIXES)
        ]
        if environment:
            service.environment = environment

        for container_port, bindings in sorted(record.host_config.port_bindings.items()):
            for binding in bindings or []:
                if binding.host_port:
                    service.ports.append(f"{binding.host_port}:{container_port}")

        for mount in record.mounts:
            if mount.type == "bind":
                service.volumes.append(f"{mount.source}:{mount.destination}")
            elif mount.type == "volume" and mount.name:
                service.volumes.append(f"{mount.name}:{mount.destination}")

        networks = sorted(record.network_settings.networks)
        if networks:
            service.networks = networks

        labels = {
            key: value
            for key, value in record.config.labels.items()
            if not key.startswith(IGNORED_LABEL_PREFIXES)
        }
        if labels:
            service.labels = labels

        logger.debug("Reconstructed service %s from container %s", service_name, container_name)
        return service_name, service
