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
Detection and declaration of secrets referenced through /run/secrets paths.
"""
import logging
import re
from typing import List, Optional
from ..MODELS.compose_document import ComposeDocument, ComposeSecret
from ..MANAGERS.secret_manager import SecretStore
from ..UTILS.field_shapes import env_to_canonical, split_entry
from .base_pass import EnrichmentPass

logger = logging.getLogger(__name__)

# /run/secrets/NAME or /run/secrets/${NAME}
_SECRET_REFERENCE = re.compile(r'/run/secrets/(?:\$\{([^}/\s]+)\}|([^/\s$]+))')


def find_secret_reference(value: Optional[str]) -> Optional[str]:
    """
    Returns the secret name if the value is exactly a secrets path.
    """
    if not value:
        return None
    match = _SECRET_REFERENCE.fullmatch(value)
    if not match:
        return None
    return match.group(1) or match.group(2)


def _service_secret_name(entry) -> str:
    if isinstance(entry, dict):
        return str(entry.get("source", ""))
    return str(entry)


class SecretDeclarationPass(EnrichmentPass):
    """
    Makes every secret an environment value points at a declared secret.

    The secret is added to the service's `secrets` list and declared at the
    top level with `name` and `environment` set to the secret name. Every
    required secret sourced from an environment variable is generated in the
    secret store, which leaves existing values alone; without a store the
    pass only declares.
    """
    name = "secrets"

    def __init__(self, store: Optional[SecretStore] = None):
        self.store = store

    def transform(self, document: ComposeDocument) -> None:
        required: List[str] = []
        for service_name, service in document.services.items():
            referenced = []
            for entry in env_to_canonical(service.environment):
                secret_name = find_secret_reference(split_entry(entry)[1])
                if secret_name and secret_name not in referenced:
                    referenced.append(secret_name)

            declared = {_service_secret_name(entry) for entry in service.secrets}
            for secret_name in referenced:
                if secret_name not in declared:
                    service.secrets.append(secret_name)
                    logger.debug("Added secret '%s' to service '%s'", secret_name, service_name)
                if secret_name not in required:
                    required.append(secret_name)

        for secret_name in sorted(required):
            declaration = document.secrets.get(secret_name)
            if declaration is None:
                document.secrets[secret_name] = ComposeSecret(name=secret_name, environment=secret_name)
                logger.info("Declared top-level secret '%s'", secret_name)
                source = secret_name
            else:
                # file and external secrets get their value elsewhere
                source = declaration.environment
            if source and self.store is not None:
                self.store.generate(source)
