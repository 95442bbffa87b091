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
Network management for stacks, creating declared networks ahead of deployment.
"""
import logging
from typing import Dict, List
from ..MODELS.compose_document import ComposeNetwork
from ..RUNNERS.docker_cli import DockerCLI
from ..RUNNERS.process_runner import CommandFailedError

logger = logging.getLogger(__name__)

DEFAULT_NETWORK_DRIVER = "bridge"


class NetworkManager:
    """
    Makes sure the networks a stack declares exist before it is brought up.
    """
    def __init__(self, docker: DockerCLI):
        """
        Initializes the network manager.

        :param docker: Docker command wrapper.
        """
        self.docker = docker

    def ensure_networks(self, networks: Dict[str, ComposeNetwork]) -> List[str]:
        """
        Creates every non-external network that does not exist yet.
        Failures are logged; compose reports them again when it runs.

        :param networks: Top-level network declarations.
        :return: Names of the networks that were created.
        """
        created = []
        for key in sorted(networks):
            network = networks[key]
            if network.external:
                logger.debug("Skipping external network %s", key)
                continue

            name = network.name or key
            if self.docker.resource_exists("network", name):
                logger.info("Network already exists: %s", name)
                continue

            driver = network.driver or DEFAULT_NETWORK_DRIVER
            try:
                if self.docker.create_resource("network", name, driver, network.driver_opts):
                    logger.info("Created network %s (driver: %s)", name, driver)
                    created.append(name)
                else:
                    logger.info("Network already exists: %s", name)
            except (CommandFailedError, OSError) as e:
                logger.warning("Failed to create network %s: %s", name, e)
        return created
