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
Passes for shared network membership and for declaring referenced
networks and volumes.
"""
import logging
from ..MODELS.compose_document import ComposeDocument, ComposeNetwork, ComposeVolume
from ..MANAGERS.volume_manager import named_volume_of
from ..UTILS.field_shapes import networks_from_canonical, networks_to_canonical
from .base_pass import EnrichmentPass

logger = logging.getLogger(__name__)

# Compose creates this network itself
IMPLICIT_NETWORK = "default"


class NetworkMembershipPass(EnrichmentPass):
    """
    Attaches every service to the shared network, keeping whatever shape
    the service's `networks` field already has.
    """
    name = "network-membership"

    def __init__(self, network: str = "homelab"):
        self.network = network

    def transform(self, document: ComposeDocument) -> None:
        for service_name, service in document.services.items():
            if (service.model_extra or {}).get("network_mode"):
                # compose rejects network_mode together with networks
                logger.debug("Service %s sets network_mode, not attaching %s", service_name, self.network)
                continue
            names = networks_to_canonical(service.networks)
            if self.network in names:
                continue
            service.networks = networks_from_canonical(names + [self.network], service.networks)


class ResourceBackfillPass(EnrichmentPass):
    """
    Declares every network and named volume that services use but the
    document does not declare. Such declarations are external: the
    resource is created or reused, its driver is not managed here.
    """
    name = "resource-backfill"

    def transform(self, document: ComposeDocument) -> None:
        for service in document.services.values():
            for network in networks_to_canonical(service.networks):
                if network == IMPLICIT_NETWORK or network in document.networks:
                    continue
                document.networks[network] = ComposeNetwork(external=True)
                logger.debug("Declared external network %s", network)

            for volume in service.volumes:
                name = named_volume_of(volume)
                if not name or name in document.volumes:
                    continue
                document.volumes[name] = ComposeVolume(external=True)
                logger.debug("Declared external volume %s", name)
