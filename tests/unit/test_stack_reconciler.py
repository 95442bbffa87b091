"""
Unit tests for stack listing and reconciliation.
"""
import json
import pytest
from conftest import FakeRunner
from dcstack.MANAGERS.stack_reconciler import StackReconciler
from dcstack.MANAGERS.stack_store import StackStore
from dcstack.RUNNERS.docker_cli import ContainerVanishedError, DockerCLI
from dcstack.RUNNERS.process_runner import CommandResult

BLOG = """
services:
  app:
    image: ghost:5
    ports: ["2368:2368"]
  db:
    image: mysql:8
    container_name: blog-db
"""


def ps_line(container_id, name, project=None):
    labels = f"com.docker.compose.project={project},com.docker.compose.service={name}" if project else ""
    return json.dumps({"ID": container_id, "Names": name, "Image": "img", "State": "running", "Labels": labels})


def inspect_json(container_id, name, project=None):
    labels = {"com.docker.compose.project": project, "com.docker.compose.service": name} if project else {}
    return json.dumps([{
        "Id": container_id,
        "Name": "/" + name,
        "State": {"Status": "running", "Running": True},
        "Config": {"Image": "img", "Labels": labels},
    }])


@pytest.fixture
def docker_host(fake_runner):
    fake_runner.respond(["docker", "ps"], stdout="\n".join([
        ps_line("aaa", "web", "media"),
        ps_line("bbb", "blog-db"),
    ]))
    fake_runner.respond(["docker", "inspect", "aaa"], stdout=inspect_json("aaa", "web", "media"))
    fake_runner.respond(["docker", "inspect", "bbb"], stdout=inspect_json("bbb", "blog-db"))
    return fake_runner


def test_live_and_stored_stacks(docker_host, tmp_path):
    store = StackStore(str(tmp_path))
    store.save("blog", BLOG, BLOG)
    store.save("media", "services: {web: {image: nginx}}\n", "services: {web: {image: nginx}}\n")

    stacks = StackReconciler(DockerCLI(docker_host), store).list_stacks()
    assert [stack.name for stack in stacks] == ["blog", "media", "none"]

    blog, media, ungrouped = stacks
    assert [record.id for record in media.containers] == ["aaa"]
    assert media.is_deployed
    assert [record.container_name for record in ungrouped.containers] == ["blog-db"]

    app, db = blog.containers
    assert app.id == ""
    assert app.state.status == "created"
    assert app.project == "blog"
    # a container with the service's name is reported as it is
    assert db.id == "bbb"


def test_undeployed_stack_is_simulated(fake_runner, tmp_path):
    store = StackStore(str(tmp_path))
    store.save("blog", BLOG, BLOG)

    stacks = StackReconciler(DockerCLI(fake_runner), store).list_stacks()
    assert len(stacks) == 1
    records = stacks[0].containers
    assert [record.container_name for record in records] == ["app", "blog-db"]
    assert all(record.state.running is False for record in records)
    assert not stacks[0].is_deployed
    assert records[0].host_config.port_bindings["2368/tcp"][0].host_port == "2368"


def test_unreadable_document(fake_runner, tmp_path):
    (tmp_path / "broken.yml").write_text("services: [\n")
    stacks = StackReconciler(DockerCLI(fake_runner), StackStore(str(tmp_path))).list_stacks()
    assert stacks[0].name == "broken"
    assert stacks[0].containers == []


def test_failed_inspection_leaves_group_empty(docker_host, tmp_path):
    docker_host.respond(["docker", "inspect", "aaa"], returncode=1, stderr="permission denied")
    live = StackReconciler(DockerCLI(docker_host), StackStore(str(tmp_path))).collect_live()
    assert live["media"] == []
    assert len(live["none"]) == 1


class FlakyRunner(FakeRunner):
    """Reports a vanished container on the first inspection."""
    def __init__(self, failures):
        super().__init__()
        self.failures = failures

    def run(self, command, input_text=None, env=None, check=False):
        if command[1] == "inspect" and self.failures:
            self.failures -= 1
            self.calls.append((list(command), input_text, env))
            return CommandResult(1, "", "Error: No such object: aaa")
        return super().run(command, input_text, env, check)


def test_vanished_container_retries_listing(tmp_path):
    runner = FlakyRunner(failures=1)
    runner.respond(["docker", "ps"], stdout=ps_line("aaa", "web", "media"))
    runner.respond(["docker", "inspect"], stdout=inspect_json("aaa", "web", "media"))

    live = StackReconciler(DockerCLI(runner), StackStore(str(tmp_path))).collect_live()
    assert [record.id for record in live["media"]] == ["aaa"]
    assert [command[1] for command in runner.commands] == ["ps", "inspect", "ps", "inspect"]


def test_vanished_container_gives_up(tmp_path):
    runner = FlakyRunner(failures=5)
    runner.respond(["docker", "ps"], stdout=ps_line("aaa", "web", "media"))
    with pytest.raises(ContainerVanishedError):
        StackReconciler(DockerCLI(runner), StackStore(str(tmp_path))).collect_live()
