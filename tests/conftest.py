import pytest
from dcstack.MANAGERS.environment_manager import VariableSources
from dcstack.MODELS.engine_config import EngineConfig
from dcstack.RUNNERS.process_runner import CommandFailedError, CommandResult

BUILTINS = {
    "DOCKER_SOCK": "/var/run/docker.sock",
    "DOCKER_SOCKET": "/var/run/docker.sock",
    "USER_ID": "1000",
    "USER_GID": "1000",
}


class FakeRunner:
    """
    Stands in for CommandRunner: records every command and answers with
    canned results picked by command prefix.
    """
    def __init__(self):
        self.calls = []
        self.streamed = []
        self.responses = []

    def respond(self, prefix, returncode=0, stdout="", stderr=""):
        self.responses.append((list(prefix), CommandResult(returncode, stdout, stderr)))

    def _match(self, command):
        for prefix, result in reversed(self.responses):
            if list(command[:len(prefix)]) == prefix:
                return result
        return CommandResult(0, "", "")

    def run(self, command, input_text=None, env=None, check=False):
        self.calls.append((list(command), input_text, env))
        result = self._match(command)
        if check and result.returncode != 0:
            raise CommandFailedError(command, result.returncode, result.output)
        return result

    def stream(self, command, input_text=None, env=None, sink=None):
        self.calls.append((list(command), input_text, env))
        self.streamed.append((list(command), input_text, env))
        result = self._match(command)
        if sink is not None:
            for line in result.stdout.splitlines(keepends=True):
                sink(line, "stdout")
        if result.returncode != 0:
            raise CommandFailedError(command, result.returncode, result.output)
        return 0

    @property
    def commands(self):
        return [call[0] for call in self.calls]


@pytest.fixture
def fake_runner():
    return FakeRunner()


@pytest.fixture
def engine_config(tmp_path):
    return EngineConfig(
        stacks_dir=str(tmp_path / "stacks"),
        env_path=str(tmp_path / "prod.env"),
        secrets_dir=str(tmp_path / "secrets"),
        secret_tool=["secretctl"],
    )


@pytest.fixture
def make_sources():
    def factory(env_file=None, secrets=None, environ=None):
        return VariableSources(env_file=env_file, secrets=secrets, environ=environ or {}, builtins=BUILTINS)
    return factory
