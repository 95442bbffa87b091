import json
import pytest
from dcstack.MODELS.stack import ComposeAction
from dcstack.RUNNERS.docker_cli import ContainerVanishedError, DockerCLI, parse_label_string
from dcstack.RUNNERS.process_runner import CommandFailedError

INSPECT_OUTPUT = json.dumps([{
    "Id": "abc123",
    "Name": "/web",
    "State": {"Status": "running", "Running": True, "OOMKilled": False, "Pid": 42},
    "Image": "sha256:deadbeef",
    "HostConfig": {
        "PortBindings": {"80/tcp": [{"HostIp": "", "HostPort": "8080"}]},
        "RestartPolicy": {"Name": "unless-stopped", "MaximumRetryCount": 0},
        "Binds": None,
        "Devices": [],
    },
    "Config": {
        "Image": "nginx:latest",
        "Env": ["PATH=/usr/bin", "MODE=prod"],
        "Labels": {"com.docker.compose.project": "media", "com.docker.compose.service": "web"},
        "Cmd": None,
    },
    "NetworkSettings": {"Networks": {"homelab": {"NetworkID": "n1", "IPAddress": "172.18.0.2", "Aliases": ["web"]}}},
}])


def test_parse_label_string():
    labels = parse_label_string("a=1,b=x,y,c=")
    assert labels == {"a": "1", "b": "x,y", "c": ""}
    assert parse_label_string("") == {}


def test_list_containers(fake_runner):
    lines = [
        {"ID": "abc", "Names": "web", "Image": "nginx", "State": "running",
         "Labels": "com.docker.compose.project=media,com.docker.compose.service=web"},
        {"ID": "def", "Names": "adhoc", "Image": "busybox", "State": "exited", "Labels": ""},
    ]
    fake_runner.respond(["docker", "ps"], stdout="\n".join(json.dumps(line) for line in lines) + "\n")
    containers = DockerCLI(fake_runner).list_containers()
    assert [c.id for c in containers] == ["abc", "def"]
    assert containers[0].project == "media"
    assert containers[1].project is None
    assert fake_runner.commands[0] == ["docker", "ps", "-a", "--no-trunc", "--format", "json"]


def test_inspect(fake_runner):
    fake_runner.respond(["docker", "inspect"], stdout=INSPECT_OUTPUT)
    records = DockerCLI(fake_runner).inspect(["abc123"])

    record = records[0]
    assert record.container_name == "web"
    assert record.project == "media"
    assert record.service == "web"
    assert record.state.running is True
    assert record.host_config.port_bindings["80/tcp"][0].host_port == "8080"
    assert record.host_config.binds == []
    assert record.network_settings.networks["homelab"].ip_address == "172.18.0.2"
    # unmodelled keys survive
    assert record.to_dict()["HostConfig"]["Devices"] == []


def test_inspect_nothing(fake_runner):
    assert DockerCLI(fake_runner).inspect([]) == []
    assert fake_runner.calls == []


def test_inspect_vanished(fake_runner):
    fake_runner.respond(["docker", "inspect"], returncode=1, stderr="Error: No such object: abc123")
    with pytest.raises(ContainerVanishedError):
        DockerCLI(fake_runner).inspect(["abc123"])


def test_inspect_other_failure(fake_runner):
    fake_runner.respond(["docker", "inspect"], returncode=1, stderr="permission denied")
    with pytest.raises(CommandFailedError):
        DockerCLI(fake_runner).inspect(["abc123"])


def test_compose_pipes_document(fake_runner):
    docker = DockerCLI(fake_runner, binary="podman")
    docker.compose("media", ComposeAction.UP, "services: {}\n", env={"TOKEN": "t"})
    command, input_text, env = fake_runner.streamed[0]
    assert command == ["podman", "compose", "-f", "-", "-p", "media", "up", "-d", "--wait", "--remove-orphans"]
    assert input_text == "services: {}\n"
    assert env == {"TOKEN": "t"}


def test_compose_none_does_nothing(fake_runner):
    DockerCLI(fake_runner).compose("media", ComposeAction.NONE, "")
    assert fake_runner.calls == []


def test_create_resource(fake_runner):
    docker = DockerCLI(fake_runner)
    assert docker.create_resource("network", "homelab", "bridge", {"com.docker.network.bridge.name": "br0"}) is True
    assert fake_runner.commands[-1] == [
        "docker", "network", "create", "--driver", "bridge",
        "-o", "com.docker.network.bridge.name=br0", "homelab",
    ]

    fake_runner.respond(["docker", "network", "create"], returncode=1, stderr="network with name homelab already exists")
    assert docker.create_resource("network", "homelab", "bridge", {}) is False

    fake_runner.respond(["docker", "network", "create"], returncode=1, stderr="daemon unreachable")
    with pytest.raises(CommandFailedError):
        docker.create_resource("network", "homelab", "bridge", {})
