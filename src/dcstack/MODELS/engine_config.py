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
Engine-wide configuration: paths, external tools and enrichment defaults.
"""
import os
import shlex
from typing import List, Mapping, Optional
from pydantic import BaseModel, field_validator

DEFAULT_STACKS_DIRS = ("/containers", "/stacks")
DEFAULT_SECRETS_DIR = "/run/secrets"
DEFAULT_SECRET_TOOL = "dcsecret"


def default_stacks_dir() -> str:
    """
    Returns the first existing well-known stacks directory, falling back
    to ~/.local/containers.
    """
    for candidate in DEFAULT_STACKS_DIRS:
        if os.path.isdir(candidate):
            return candidate
    return os.path.join(os.path.expanduser("~"), ".local", "containers")


class EngineConfig(BaseModel):
    """
    Configuration built once at process start and passed to every component.
    """
    stacks_dir: str
    env_path: str
    secrets_dir: str = DEFAULT_SECRETS_DIR
    secret_tool: List[str] = [DEFAULT_SECRET_TOOL]
    docker_binary: str = "docker"
    shared_network: str = "homelab"
    default_mem_limit: str = "256m"
    default_cpus: float = 0.5

    @field_validator("secret_tool", mode="before")
    @classmethod
    def _split_tool(cls, value):
        if isinstance(value, str):
            return shlex.split(value)
        return value

    @classmethod
    def from_environment(cls, environ: Optional[Mapping[str, str]] = None, **overrides) -> "EngineConfig":
        """
        Builds the configuration from DCSTACK_* environment variables.
        Keyword overrides that are not None win over the environment.

        :param environ: Environment to read, defaults to os.environ.
        :return: The configuration.
        """
        environ = os.environ if environ is None else environ
        values = {
            "stacks_dir": environ.get("DCSTACK_STACKS_DIR"),
            "env_path": environ.get("DCSTACK_ENV_PATH"),
            "secrets_dir": environ.get("DCSTACK_SECRETS_DIR"),
            "secret_tool": environ.get("DCSTACK_SECRET_TOOL"),
            "docker_binary": environ.get("DCSTACK_DOCKER"),
            "shared_network": environ.get("DCSTACK_NETWORK"),
        }
        values.update({key: value for key, value in overrides.items() if value is not None})
        values = {key: value for key, value in values.items() if value}

        values.setdefault("stacks_dir", default_stacks_dir())
        values.setdefault("env_path", os.path.join(values["stacks_dir"], "prod.env"))
        return cls(**values)
