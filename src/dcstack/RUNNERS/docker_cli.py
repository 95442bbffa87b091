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
Thin wrapper around the docker command line.
"""
import json
import logging
import re
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator
from ..MODELS.inspection_record import InspectionRecord, PROJECT_LABEL
from ..MODELS.stack import ComposeAction
from .process_runner import CommandFailedError, CommandRunner, OutputSink

logger = logging.getLogger(__name__)

ALREADY_EXISTS = "already exists"
NO_SUCH_OBJECT = ("No such object", "No such container")

# `docker ps` joins labels with commas; a comma only starts a new label
# when it is followed by "key="
_LABEL_SEPARATOR = re.compile(r',(?=[^,=]+=)')

COMPOSE_ACTION_ARGS = {
    ComposeAction.UP: ["up", "-d", "--wait", "--remove-orphans"],
    ComposeAction.DOWN: ["down", "--wait", "--remove-orphans"],
    ComposeAction.STOP: ["stop"],
    ComposeAction.START: ["start"],
    ComposeAction.CREATE: ["create"],
    ComposeAction.RM: ["rm", "-f"],
}


class ContainerVanishedError(RuntimeError):
    """
    Raised when a listed container no longer exists at inspection time.
    """


def parse_label_string(labels: str) -> Dict[str, str]:
    """
    Parses the comma-joined label list printed by `docker ps`.
    """
    result = {}
    if not labels:
        return result
    for item in _LABEL_SEPARATOR.split(labels):
        key, _, value = item.partition('=')
        if key:
            result[key] = value
    return result


class ContainerSummary(BaseModel):
    """
    One line of `docker ps --format json`.
    """
    model_config = ConfigDict(populate_by_name=True, extra="allow")

    id: str = Field(alias="ID")
    names: str = Field(default="", alias="Names")
    image: str = Field(default="", alias="Image")
    state: str = Field(default="", alias="State")
    labels: Dict[str, str] = Field(default_factory=dict, alias="Labels")

    @field_validator("labels", mode="before")
    @classmethod
    def _split_labels(cls, value):
        if value is None:
            return {}
        if isinstance(value, str):
            return parse_label_string(value)
        return value

    @property
    def project(self) -> Optional[str]:
        return self.labels.get(PROJECT_LABEL)


class DockerCLI:
    """
    Runs docker commands through a CommandRunner.
    """
    def __init__(self, runner: CommandRunner, binary: str = "docker"):
        self.runner = runner
        self.binary = binary

    def list_containers(self) -> List[ContainerSummary]:
        """
        Lists every container, running or stopped.
        """
        result = self.runner.run(
            [self.binary, "ps", "-a", "--no-trunc", "--format", "json"], check=True
        )
        containers = []
        for line in result.stdout.splitlines():
            line = line.strip()
            if not line:
                continue
            data = json.loads(line)
            # Older clients print a single JSON array
            items = data if isinstance(data, list) else [data]
            containers.extend(ContainerSummary.model_validate(item) for item in items)
        return containers

    def inspect(self, container_ids: List[str]) -> List[InspectionRecord]:
        """
        Inspects several containers in one call.

        :raises ContainerVanishedError: If a container disappeared after listing.
        :raises CommandFailedError: For any other failure.
        """
        if not container_ids:
            return []
        command = [self.binary, "inspect", *container_ids]
        result = self.runner.run(command)
        if result.returncode != 0:
            if any(marker in result.output for marker in NO_SUCH_OBJECT):
                raise ContainerVanishedError(result.output.strip())
            raise CommandFailedError(command, result.returncode, result.output)
        return [InspectionRecord.model_validate(item) for item in json.loads(result.stdout or "[]")]

    def compose_command(self, stack_name: str, action: ComposeAction) -> List[str]:
        """
        Builds the compose command line; the document is read from stdin.
        """
        return [self.binary, "compose", "-f", "-", "-p", stack_name, *COMPOSE_ACTION_ARGS[action]]

    def compose(self,
                stack_name: str,
                action: ComposeAction,
                document: str,
                env: Optional[Dict[str, str]] = None,
                sink: Optional[OutputSink] = None) -> None:
        """
        Runs a compose action, piping the document on stdin and streaming
        the output.
        """
        if action == ComposeAction.NONE:
            return
        self.runner.stream(self.compose_command(stack_name, action), input_text=document, env=env, sink=sink)

    def resource_exists(self, kind: str, name: str) -> bool:
        """
        Checks whether a network or volume exists.
        """
        return self.runner.run([self.binary, kind, "inspect", name]).returncode == 0

    def create_resource(self, kind: str, name: str, driver: str, options: Dict[str, Any]) -> bool:
        """
        Creates a network or volume.

        :return: True if it was created, False if it already existed.
        :raises CommandFailedError: If creation failed for another reason.
        """
        command = [self.binary, kind, "create", "--driver", driver]
        for key, value in options.items():
            command.extend(["-o", f"{key}={value}"])
        command.append(name)

        result = self.runner.run(command)
        if result.returncode == 0:
            return True
        if ALREADY_EXISTS in result.output:
            return False
        raise CommandFailedError(command, result.returncode, result.output)
