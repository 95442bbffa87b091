import os
import sys
import pytest
from dcstack.MANAGERS.stack_manager import StackManager
from dcstack.MANAGERS.stack_store import StackStore
from dcstack.MODELS.stack import ComposeAction
from dcstack.RUNNERS.process_runner import CommandRunner

COMPOSE = """
services:
  db:
    image: postgres:16
    environment:
      POSTGRES_PASSWORD: s3cr3t-value
      POSTGRES_USER: app
  api:
    image: api
    environment:
      - API_TOKEN=tok-123456
      - JWT_SECRET=jwt-abcdef
"""

PLAINTEXTS = ("s3cr3t-value", "tok-123456", "jwt-abcdef")


def test_command_injection_attempt(tmp_path):
    """
    Arguments are passed to the process as-is; shell operators in them are
    never interpreted.
    """
    injected_file = tmp_path / "injected.txt"
    command = [sys.executable, "-c", "import sys; print(sys.argv[1:])", ";", "touch", str(injected_file)]
    result = CommandRunner().run(command)
    assert result.returncode == 0
    assert not injected_file.exists(), "Command injection successful! Security vulnerability found."


def test_no_plaintext_in_stored_documents(engine_config, fake_runner, make_sources):
    """
    Credentials go to the secret store; neither stored document holds them.
    """
    manager = StackManager(engine_config, fake_runner, sources=make_sources())
    manager.apply("backend", COMPOSE, ComposeAction.NONE)

    for filename in os.listdir(engine_config.stacks_dir):
        with open(os.path.join(engine_config.stacks_dir, filename)) as f:
            content = f.read()
        for secret in PLAINTEXTS:
            assert secret not in content, f"{secret} leaked into {filename}"

    stored = {call[0][2]: call[1] for call in fake_runner.calls if call[0][1] == "ins"}
    assert stored == {
        "POSTGRES_PASSWORD": "s3cr3t-value",
        "API_TOKEN": "tok-123456",
        "JWT_SECRET": "jwt-abcdef",
    }


def test_secret_values_never_on_command_line(engine_config, fake_runner, make_sources):
    manager = StackManager(engine_config, fake_runner, sources=make_sources())
    manager.apply("backend", COMPOSE, dry_run=True)
    for command in fake_runner.commands:
        for secret in PLAINTEXTS:
            assert secret not in " ".join(command)


def test_credentials_from_shell_are_not_deployed(engine_config, fake_runner, make_sources):
    """
    A credential exported in the calling shell must not be picked up at
    deploy time; only persisted values count.
    """
    sources = make_sources(
        env_file={"POSTGRES_PASSWORD": "stored", "API_TOKEN": "stored", "JWT_SECRET": "stored"},
        environ={"POSTGRES_PASSWORD": "from-shell"},
    )
    manager = StackManager(engine_config, fake_runner, sources=sources)
    manager.apply("backend", COMPOSE, ComposeAction.UP)
    document = fake_runner.streamed[-1][1]
    assert "from-shell" not in document
    assert "POSTGRES_PASSWORD: stored" in document


@pytest.mark.parametrize("name", ["../outside", "/etc/passwd", "a/../../b", "..", "x\n"])
def test_stack_name_path_traversal(tmp_path, name):
    """
    Stack names become file names; anything that could leave the stacks
    directory is rejected.
    """
    store = StackStore(str(tmp_path / "stacks"))
    with pytest.raises(ValueError):
        store.save(name, "services: {}\n", "services: {}\n")
    assert not (tmp_path / "outside.yml").exists()
