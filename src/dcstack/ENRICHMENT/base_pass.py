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
Base class for enrichment passes.
"""
from ..MODELS.compose_document import ComposeDocument


class EnrichmentPass:
    """
    A single transformation of a compose document.

    Calling a pass returns a new document; the input is never modified.
    Subclasses implement `transform`, which may change the copy it is given
    in place. Every pass must be idempotent.
    """
    name = "pass"

    def __call__(self, document: ComposeDocument) -> ComposeDocument:
        result = document.model_copy(deep=True)
        self.transform(result)
        return result

    def transform(self, document: ComposeDocument) -> None:
        raise NotImplementedError

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name}>"
