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
The ordered enrichment pipeline.
"""
import logging
from typing import List, Optional
from ..MODELS.compose_document import ComposeDocument
from ..MODELS.engine_config import EngineConfig
from ..MANAGERS.secret_manager import SecretStore
from .base_pass import EnrichmentPass
from .defaults_pass import ContainerNamingPass, ResourceDefaultsPass
from .network_pass import NetworkMembershipPass, ResourceBackfillPass
from .proxy_pass import ProxyLabelPass
from .sanitize_pass import PasswordSanitizationPass
from .secrets_pass import SecretDeclarationPass

logger = logging.getLogger(__name__)


class EnrichmentPipeline:
    """
    Runs the enrichment passes in their fixed order:

    1. secret detection and declaration
    2. container naming
    3. resource defaults
    4. shared network membership
    5. declarations for undeclared networks and volumes
    6. password sanitization
    7. reverse-proxy labels

    The pipeline only produces a new document. Storing and deploying it is
    up to the caller, so running it is a dry run apart from the secret
    store calls made by passes 1 and 6.
    """
    def __init__(self, config: EngineConfig, secret_store: Optional[SecretStore] = None):
        """
        Initializes the pipeline.

        :param config: Engine configuration, for the shared network and
            resource defaults.
        :param secret_store: Secret store for generated and extracted
            secrets. Without one, secrets are only declared and replaced.
        """
        self.passes: List[EnrichmentPass] = [
            SecretDeclarationPass(secret_store),
            ContainerNamingPass(),
            ResourceDefaultsPass(config.default_mem_limit, config.default_cpus),
            NetworkMembershipPass(config.shared_network),
            ResourceBackfillPass(),
            PasswordSanitizationPass(secret_store),
            ProxyLabelPass(),
        ]

    def run(self, document: ComposeDocument) -> ComposeDocument:
        """
        Applies every pass in order.

        :param document: The document to enrich; it is not modified.
        :return: The enriched document.
        """
        for enrichment_pass in self.passes:
            logger.debug("Running enrichment pass %s", enrichment_pass.name)
            document = enrichment_pass(document)
        return document
