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
Removal of plaintext credentials from service environments.
"""
import logging
from typing import Optional
from ..MODELS.compose_document import ComposeDocument
from ..MANAGERS.secret_manager import SecretStore
from ..UTILS.field_shapes import env_from_canonical, env_to_canonical, split_entry
from ..UTILS.sensitivity import SECRETS_PATH, is_sensitive_key, mask_value, normalize_env_key
from ..UTILS.string_interpolation import EnvironmentInterpolator
from .base_pass import EnrichmentPass

logger = logging.getLogger(__name__)


def sanitize_entry(entry: str, store: Optional[SecretStore] = None) -> str:
    """
    Rewrites one "KEY=VALUE" environment entry if it holds a credential.

    The value is handed to the secret store under the normalized key and
    replaced by a ${NORMALIZED_KEY} reference. Entries that are not
    credentials, have no value, or already reference a variable or a secrets
    path are returned unchanged.

    Args:
        entry (str): The environment entry.
        store (Optional[SecretStore]): Where plaintext values go. Without a
            store the value is only replaced.

    Returns:
        str: The entry to keep in the document.
    """
    key, value = split_entry(entry)
    if value is None or not is_sensitive_key(key, value):
        return entry
    if value.startswith("${") or value.startswith(SECRETS_PATH) or EnvironmentInterpolator.is_reference(value):
        return entry

    normalized = normalize_env_key(key)
    if value and store is not None:
        store.store(normalized, value)
        logger.info("Moved value of %s to the secret store as %s", key, normalized)
        logger.debug("Stored value for %s: %s", normalized, mask_value(value))
    return f"{key}=${{{normalized}}}"


class PasswordSanitizationPass(EnrichmentPass):
    """
    Replaces credentials in service environments with placeholder
    references, storing the plaintext values in the secret store.
    """
    name = "sanitize"

    def __init__(self, store: Optional[SecretStore] = None):
        self.store = store

    def transform(self, document: ComposeDocument) -> None:
        for service in document.services.values():
            entries = env_to_canonical(service.environment)
            sanitized = [sanitize_entry(entry, self.store) for entry in entries]
            if sanitized != entries:
                service.environment = env_from_canonical(sanitized, service.environment)
