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
Managers for the variable sources placeholders are resolved against.

Precedence, lowest to highest: built-in defaults, the persisted environment
file, the secrets directory, the process environment. The deploy-time lookup
puts the built-ins above everything and never reads credentials from the
process environment.
"""
import logging
import os
from typing import Dict, Mapping, Optional
from ..MODELS.compose_document import ComposeDocument
from ..MODELS.engine_config import EngineConfig
from ..PARSERS.env_parser import EnvParser
from ..PARSERS.secrets_parser import SecretsDirParser
from ..UTILS.sensitivity import is_sensitive_key

logger = logging.getLogger(__name__)

DEFAULT_DOCKER_SOCKET = "/var/run/docker.sock"


class CredentialConflictError(RuntimeError):
    """
    Raised when the environment file and the secrets directory hold
    different values for the same key.
    """
    def __init__(self, key: str):
        self.key = key
        super().__init__(
            f"Credential conflict: '{key}' has different values in the environment file "
            f"and the secrets directory"
        )


def docker_socket_path(environ: Mapping[str, str]) -> str:
    return environ.get("DOCKER_SOCK") or DEFAULT_DOCKER_SOCKET


def builtin_variables(environ: Mapping[str, str]) -> Dict[str, str]:
    """
    Variables the engine always knows: the docker socket and the current
    user and group ids.
    """
    socket_path = docker_socket_path(environ)
    return {
        "DOCKER_SOCK": socket_path,
        "DOCKER_SOCKET": socket_path,
        "USER_ID": str(os.geteuid()),
        "USER_GID": str(os.getegid()),
    }


def merge_persisted(env_file: Dict[str, str], secrets: Dict[str, str]) -> Dict[str, str]:
    """
    Merges the environment file with the secrets directory.

    Keys are compared case-insensitively. The same value in both places is
    only worth a warning; different values mean the credential store is
    inconsistent and nothing can be trusted.

    :raises CredentialConflictError: On a conflicting value.
    """
    merged = dict(env_file)
    by_folded_key = {key.upper(): key for key in env_file}
    for key, value in secrets.items():
        existing = by_folded_key.get(key.upper())
        if existing is not None:
            if env_file[existing] != value:
                raise CredentialConflictError(key)
            logger.warning("'%s' is defined in both the environment file and the secrets directory", key)
        merged[key] = value
    return merged


class VariableSources:
    """
    Layered variable sources for placeholder resolution.
    """
    def __init__(self,
                 env_file: Optional[Dict[str, str]] = None,
                 secrets: Optional[Dict[str, str]] = None,
                 environ: Optional[Mapping[str, str]] = None,
                 builtins: Optional[Dict[str, str]] = None):
        """
        :param env_file: Values from the persisted environment file.
        :param secrets: Values from the secrets directory.
        :param environ: The process environment, os.environ by default.
        :param builtins: Built-in values, derived from `environ` by default.
        :raises CredentialConflictError: If env_file and secrets disagree.
        """
        self.environ = dict(os.environ if environ is None else environ)
        self.builtins = builtin_variables(self.environ) if builtins is None else dict(builtins)
        self.env_file = dict(env_file or {})
        self.persisted = merge_persisted(self.env_file, secrets or {})

    @classmethod
    def load(cls, config: EngineConfig, environ: Optional[Mapping[str, str]] = None) -> "VariableSources":
        """
        Reads the environment file and secrets directory named by the config.
        """
        return cls(
            env_file=EnvParser.parse(config.env_path),
            secrets=SecretsDirParser.parse(config.secrets_dir),
            environ=environ,
        )

    def pre_deploy_value(self, name: str) -> Optional[str]:
        """
        Lookup used when expanding defaults before enrichment.
        Credentials are left for the deploy-time lookup so that no
        plaintext value reaches a stored document.
        """
        if is_sensitive_key(name):
            return None
        value = self.environ.get(name)
        if value:
            return value
        if name in self.persisted:
            return self.persisted[name]
        return self.builtins.get(name)

    def deploy_value(self, name: str) -> Optional[str]:
        """
        Lookup used right before the document is handed to the container
        engine.
        """
        if name in self.builtins:
            return self.builtins[name]
        if is_sensitive_key(name):
            return self.persisted.get(name)
        value = self.environ.get(name)
        if value:
            return value
        return self.persisted.get(name)

    def source_of(self, name: str) -> Optional[str]:
        """
        Names the source `deploy_value` would take the variable from:
        "builtin", "environment", "env-file" or "secrets-dir"; None if unknown.
        """
        if name in self.builtins:
            return "builtin"
        if not is_sensitive_key(name) and self.environ.get(name):
            return "environment"
        if name in self.persisted:
            return "env-file" if name in self.env_file else "secrets-dir"
        return None

    def secret_environment(self, document: ComposeDocument) -> Dict[str, str]:
        """
        Values for secrets declared with `environment: NAME`, to be passed
        to the compose process environment.
        """
        env = {}
        for secret in document.secrets.values():
            name = secret.environment
            if name and name in self.persisted:
                env[name] = self.persisted[name]
        return env
