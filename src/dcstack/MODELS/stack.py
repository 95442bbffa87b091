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
Models for stacks and the actions that can be applied to them.
"""
from enum import Enum
from typing import Any, Dict, List
from pydantic import BaseModel
from .inspection_record import InspectionRecord


class ComposeAction(str, Enum):
    """
    Lifecycle actions forwarded to the container engine.
    NONE only stores the documents.
    """
    NONE = "none"
    CREATE = "create"
    RM = "rm"
    START = "start"
    STOP = "stop"
    UP = "up"
    DOWN = "down"

    @property
    def persists_documents(self) -> bool:
        return self in (ComposeAction.NONE, ComposeAction.UP, ComposeAction.CREATE)


class Stack(BaseModel):
    """
    A named deployment unit and the containers (real or simulated) behind it.
    Built fresh for every listing, never stored.
    """
    name: str
    containers: List[InspectionRecord] = []

    @property
    def is_deployed(self) -> bool:
        return any(record.id for record in self.containers)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "deployed": self.is_deployed,
            "containers": [record.to_dict() for record in self.containers],
        }
