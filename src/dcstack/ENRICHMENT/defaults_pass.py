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
Passes that fill in per-service defaults.
"""
from typing import Any
from ..MODELS.compose_document import ComposeDocument
from .base_pass import EnrichmentPass


def _is_blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


class ContainerNamingPass(EnrichmentPass):
    """
    Names every container after its service unless a name is set, so that
    containers can be looked up by name later.
    """
    name = "container-names"

    def transform(self, document: ComposeDocument) -> None:
        for service_name, service in document.services.items():
            if _is_blank(service.container_name):
                service.container_name = service_name


class ResourceDefaultsPass(EnrichmentPass):
    """
    Gives every service a memory and CPU limit.
    Values that are already set, as a string or a number, are kept.
    """
    name = "resource-defaults"

    def __init__(self, mem_limit: str = "256m", cpus: float = 0.5):
        self.mem_limit = mem_limit
        self.cpus = cpus

    def transform(self, document: ComposeDocument) -> None:
        for service in document.services.values():
            if _is_blank(service.mem_limit):
                service.mem_limit = self.mem_limit
            if _is_blank(service.cpus):
                service.cpus = self.cpus
