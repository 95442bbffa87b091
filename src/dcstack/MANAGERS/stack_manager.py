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
Stack operations: enrichment, storage and deployment of compose documents.
"""
import logging
from typing import Dict, List, Mapping, NamedTuple, Optional
from ..ENRICHMENT.pipeline import EnrichmentPipeline
from ..ENRICHMENT.placeholders import expand_defaults, report_variables, resolve_for_deploy
from ..ENRICHMENT.sanitize_pass import PasswordSanitizationPass
from ..MODELS.compose_document import ComposeDocument
from ..MODELS.engine_config import EngineConfig
from ..MODELS.stack import ComposeAction, Stack
from ..PARSERS.compose_parser import ComposeParser
from ..PARSERS.env_parser import EnvParser
from ..RUNNERS.docker_cli import DockerCLI
from ..RUNNERS.process_runner import CommandRunner, OutputSink
from ..UTILS.field_shapes import env_to_dict, labels_to_canonical
from ..UTILS.port_finder import lowest_privileged_port
from ..UTILS.sensitivity import is_sensitive_key
from ..UTILS.yaml_emitter import dump_compose
from .compose_reconstructor import ComposeReconstructor
from .environment_manager import VariableSources
from .network_manager import NetworkManager
from .secret_manager import SecretStore
from .stack_reconciler import StackReconciler
from .stack_store import StackNotFoundError, StackStore, validate_stack_name
from .volume_manager import VolumeManager

logger = logging.getLogger(__name__)


class StackDocuments(NamedTuple):
    """
    The two stored forms of a stack.
    """
    original: ComposeDocument
    original_text: str
    effective: ComposeDocument
    effective_text: str


class StackManager:
    """
    Entry point for everything done to a stack.
    """
    def __init__(self,
                 config: EngineConfig,
                 runner: Optional[CommandRunner] = None,
                 sources: Optional[VariableSources] = None,
                 environ: Optional[Mapping[str, str]] = None):
        """
        Initializes the manager and its collaborators.

        :param config: Engine configuration.
        :param runner: Runner for docker and secret-store commands.
        :param sources: Variable sources; loaded from the config on first
            use by default.
        :param environ: Process environment used when loading sources.
        """
        self.config = config
        self.runner = runner or CommandRunner()
        self.docker = DockerCLI(self.runner, config.docker_binary)
        self.secret_store = SecretStore(config.secret_tool, self.runner)
        self.store = StackStore(config.stacks_dir)
        self.parser = ComposeParser()
        self.sanitizer = PasswordSanitizationPass(self.secret_store)
        self.pipeline = EnrichmentPipeline(config, self.secret_store)
        self.network_manager = NetworkManager(self.docker)
        self.volume_manager = VolumeManager(self.docker)
        self.reconciler = StackReconciler(self.docker, self.store, self.parser)
        self._sources = sources
        self._environ = environ

    @property
    def sources(self) -> VariableSources:
        """
        Variable sources, read once.

        :raises CredentialConflictError: If the environment file and the
            secrets directory disagree.
        """
        if self._sources is None:
            self._sources = VariableSources.load(self.config, self._environ)
        return self._sources

    def prepare(self, content: str) -> StackDocuments:
        """
        Turns authored YAML into the original (sanitized) and effective
        (enriched) documents.

        :param content: The compose YAML.
        :return: Both documents and their canonical text.
        """
        document = self.parser.parse_from_string(content)
        original = self.sanitizer(document)
        effective = self.pipeline.run(expand_defaults(original, self.sources))
        return StackDocuments(original, dump_compose(original), effective, dump_compose(effective))

    def apply(self,
              name: str,
              content: Optional[str] = None,
              action: ComposeAction = ComposeAction.NONE,
              dry_run: bool = False,
              sink: Optional[OutputSink] = None) -> StackDocuments:
        """
        Enriches a stack and optionally stores and deploys it.

        Without content the stored original document is used. In a dry run
        nothing is written or deployed. Otherwise placeholders are resolved
        first, so an unknown variable stops the action before anything
        changes; the documents are then stored (for none, up and create)
        and the action is handed to compose.

        :param name: Stack name, also the compose project name.
        :param content: Compose YAML, or None for the stored document.
        :param action: What to do with the stack.
        :param dry_run: Only compute the documents.
        :param sink: Receives compose output lines.
        :return: The stack's documents.
        :raises UnresolvedVariablesError: If placeholders remain.
        :raises StackNotFoundError: If there is no content and no stored stack.
        :raises CommandFailedError: If compose fails.
        """
        validate_stack_name(name)
        if content is None:
            content = self.store.load(name)

        documents = self.prepare(content)
        if dry_run:
            return documents

        deployable = None
        if action != ComposeAction.NONE:
            deployable = resolve_for_deploy(documents.effective, self.sources)

        if action.persists_documents:
            self.store.save(name, documents.original_text, documents.effective_text)

        if deployable is not None:
            if action == ComposeAction.UP:
                self.network_manager.ensure_networks(deployable.networks)
                self.volume_manager.ensure_volumes(deployable.volumes)
            logger.info("Running compose %s for stack %s", action.value, name)
            self.docker.compose(
                name,
                action,
                dump_compose(deployable),
                env=self.sources.secret_environment(deployable),
                sink=sink,
            )
        return documents

    def list_stacks(self) -> List[Stack]:
        return self.reconciler.list_stacks()

    def show(self, name: str, effective: bool = False) -> str:
        return self.store.load(name, effective)

    def delete(self, name: str) -> bool:
        return self.store.delete(name)

    def export(self, name: str) -> str:
        """
        Reconstructs a compose document from a stack's containers.

        :raises StackNotFoundError: If the stack has no containers.
        """
        records = self.reconciler.collect_live().get(name)
        if not records:
            raise StackNotFoundError(name)
        return ComposeReconstructor().render(records)

    def declared_document(self, name: str) -> ComposeDocument:
        return self.parser.parse_from_string(self.store.load_declared(name))

    def variables(self, name: str) -> Dict[str, Optional[str]]:
        """
        Reports every variable the stack references and where its value
        would come from at deploy time (None if nowhere).
        """
        return report_variables(self.declared_document(name), self.sources)

    def register_variables(self, name: str) -> List[str]:
        """
        Adds every unresolved, non-credential variable of a stack to the
        environment file with an empty value, to be filled in by hand.

        :return: The names that were added.
        """
        missing = [
            variable for variable, source in self.variables(name).items()
            if source is None and not is_sensitive_key(variable)
        ]
        if missing:
            values = EnvParser.parse(self.config.env_path)
            for variable in missing:
                values.setdefault(variable, "")
            EnvParser.write(self.config.env_path, values)
            logger.info("Added %d variable(s) to %s", len(missing), self.config.env_path)
            self._sources = None
        return missing

    def privileged_ports(self, name: str) -> Dict[str, int]:
        """
        Lowest port below 1024 used by each service of a stack; services
        without one are left out.
        """
        document = self.declared_document(name)
        result = {}
        for service_name, service in document.services.items():
            contents = []
            for ref in service.configs:
                source = ref if isinstance(ref, str) else ref.source
                config = document.configs.get(source)
                if config is not None and config.content:
                    contents.append(config.content)
            port = lowest_privileged_port(
                service.ports,
                env_to_dict(service.environment),
                labels_to_canonical(service.labels),
                contents,
            )
            if port:
                result[service_name] = port
        return result
