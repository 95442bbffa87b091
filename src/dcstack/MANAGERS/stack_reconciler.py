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
Reconciliation of live containers with stored stack documents.
"""
import logging
from typing import Dict, List, Optional
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_fixed
from ..BUILDERS.inspection_builder import InspectionRecordBuilder
from ..MODELS.inspection_record import InspectionRecord
from ..MODELS.stack import Stack
from ..PARSERS.compose_parser import ComposeParseError, ComposeParser
from ..RUNNERS.docker_cli import ContainerVanishedError, DockerCLI
from ..RUNNERS.process_runner import CommandFailedError
from .stack_store import StackStore

logger = logging.getLogger(__name__)

UNGROUPED_PROJECT = "none"


class StackReconciler:
    """
    Lists every stack: the ones with containers, as the engine reports
    them, and the stored ones without any container, as simulated records.
    """
    def __init__(self, docker: DockerCLI, store: StackStore, parser: Optional[ComposeParser] = None):
        """
        :param docker: Docker command wrapper.
        :param store: Stored stack documents.
        :param parser: Compose parser, a new one by default.
        """
        self.docker = docker
        self.store = store
        self.parser = parser or ComposeParser()

    def list_stacks(self) -> List[Stack]:
        """
        Builds the list of stacks, sorted by name.

        Containers are grouped by their compose project label and each group
        is inspected in one call. A stored document whose stack has no
        container at all gives one record per service: the real record of a
        container with the service's container name if there is one, a
        simulated record otherwise.
        """
        live = self.collect_live()
        stacks = {name: Stack(name=name, containers=records) for name, records in live.items()}

        by_name: Dict[str, InspectionRecord] = {}
        for records in live.values():
            for record in records:
                by_name.setdefault(record.container_name, record)

        for name in self.store.list_names():
            if name in stacks:
                continue
            stacks[name] = self.declared_stack(name, by_name)

        return [stacks[name] for name in sorted(stacks)]

    def declared_stack(self, name: str, containers_by_name: Dict[str, InspectionRecord]) -> Stack:
        """
        Builds a stack from its stored document.
        """
        try:
            document = self.parser.parse_from_string(self.store.load_declared(name))
        except ComposeParseError as e:
            logger.warning("Could not read stored stack %s: %s", name, e)
            return Stack(name=name)

        builder = InspectionRecordBuilder(name)
        records = []
        for service_name, service in document.services.items():
            container_name = service.container_name or service_name
            real = containers_by_name.get(container_name)
            records.append(real if real is not None else builder.build(service_name, service))
        return Stack(name=name, containers=records)

    @retry(
        retry=retry_if_exception_type(ContainerVanishedError),
        stop=stop_after_attempt(3),
        wait=wait_fixed(0.5),
        reraise=True,
    )
    def collect_live(self) -> Dict[str, List[InspectionRecord]]:
        """
        Inspection records of every container, grouped by compose project.
        Containers without a project label are grouped under "none"; a group
        that fails to inspect is logged and left empty.
        """
        # A container removed between `ps` and `inspect` invalidates the
        # whole listing, so it is taken again
        groups: Dict[str, List[str]] = {}
        for container in self.docker.list_containers():
            groups.setdefault(container.project or UNGROUPED_PROJECT, []).append(container.id)

        live = {}
        for project, container_ids in groups.items():
            try:
                live[project] = self.docker.inspect(container_ids)
            except CommandFailedError as e:
                logger.warning("Failed to inspect containers of stack %s: %s", project, e)
                live[project] = []
        return live
