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
Volume management for stacks, creating declared named volumes ahead of deployment.
"""
import logging
from typing import Any, Dict, List
from ..MODELS.compose_document import ComposeVolume
from ..RUNNERS.docker_cli import DockerCLI
from ..RUNNERS.process_runner import CommandFailedError

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_DRIVER = "local"
BIND_PREFIXES = ("/", ".", "~")


def is_named_volume(source: Any) -> bool:
    """
    Checks whether a mount source names a volume rather than a host path.
    Sources that are still unresolved placeholders are not counted.

    :param source: The mount source.
    :return: True for a named volume.
    """
    if not isinstance(source, str) or not source:
        return False
    return not source.startswith(BIND_PREFIXES) and not source.startswith("$")


def mount_source(volume: Any) -> str:
    """
    Returns the source of a short ("src:dst[:mode]") or long syntax mount.
    An anonymous volume ("/data") has no source.
    """
    if isinstance(volume, dict):
        return str(volume.get("source") or "")
    parts = str(volume).split(":")
    return parts[0] if len(parts) > 1 else ""


def named_volume_of(volume: Any) -> str:
    """
    Returns the volume name a mount refers to, or "" for bind mounts.
    """
    if isinstance(volume, dict) and volume.get("type") not in (None, "volume"):
        return ""
    source = mount_source(volume)
    return source if is_named_volume(source) else ""


class VolumeManager:
    """
    Makes sure the named volumes a stack declares exist before it is brought up.
    """
    def __init__(self, docker: DockerCLI):
        """
        Initializes the volume manager.

        :param docker: Docker command wrapper.
        """
        self.docker = docker

    def ensure_volumes(self, volumes: Dict[str, ComposeVolume]) -> List[str]:
        """
        Creates every non-external volume that does not exist yet, using the
        declared `name` when it overrides the key.

        :param volumes: Top-level volume declarations.
        :return: Names of the volumes that were created.
        """
        created = []
        for key in sorted(volumes):
            volume = volumes[key]
            if volume.external:
                logger.debug("Skipping external volume %s", key)
                continue

            name = volume.name or key
            if self.docker.resource_exists("volume", name):
                logger.info("Volume already exists: %s", name)
                continue

            driver = volume.driver or DEFAULT_VOLUME_DRIVER
            try:
                if self.docker.create_resource("volume", name, driver, volume.driver_opts):
                    logger.info("Created volume %s (driver: %s)", name, driver)
                    created.append(name)
                else:
                    logger.info("Volume already exists: %s", name)
            except (CommandFailedError, OSError) as e:
                logger.warning("Failed to create volume %s: %s", name, e)
        return created
