import yaml
from dcstack.MANAGERS.compose_reconstructor import DISCLAIMER, ComposeReconstructor
from dcstack.MODELS.inspection_record import InspectionRecord

RECORD = {
    "Id": "abc",
    "Name": "/media-web",
    "Image": "sha256:1234",
    "State": {"Status": "running", "Running": True},
    "HostConfig": {
        "RestartPolicy": {"Name": "unless-stopped"},
        "PortBindings": {"80/tcp": [{"HostIp": "", "HostPort": "8080"}], "443/tcp": None},
    },
    "Mounts": [
        {"Type": "bind", "Source": "/srv/web", "Destination": "/usr/share/nginx/html"},
        {"Type": "volume", "Name": "cache", "Destination": "/cache"},
        {"Type": "volume", "Name": "", "Destination": "/anon"},
    ],
    "Config": {
        "Image": "nginx:latest",
        "Env": [
            "PATH=/usr/local/bin",
            "HOME=/root",
            "MODE=prod",
            "ADMIN_PASSWORD=hunter2",
            "TOKEN_FILE=/run/secrets/WEB_TOKEN",
        ],
        "Cmd": ["nginx", "-g", "daemon off;"],
        "Labels": {
            "com.docker.compose.project": "media",
            "com.docker.compose.service": "web",
            "traefik.enable": "true",
            "owner": "ops",
        },
    },
    "NetworkSettings": {"Networks": {"media_default": {}, "homelab": {}}},
}


def test_reconstruct_service():
    document = ComposeReconstructor().reconstruct([InspectionRecord.model_validate(RECORD)])
    web = document.services["web"]

    assert web.image == "nginx:latest"
    assert web.container_name == "media-web"
    assert web.restart is None
    assert web.command == ["nginx", "-g", "daemon off;"]
    assert web.environment == [
        "MODE=prod",
        "ADMIN_PASSWORD=${ADMIN_PASSWORD}",
        "TOKEN_FILE=/run/secrets/WEB_TOKEN",
    ]
    assert web.ports == ["8080:80/tcp"]
    assert web.volumes == ["/srv/web:/usr/share/nginx/html", "cache:/cache"]
    assert web.networks == ["homelab", "media_default"]
    assert web.labels == {"owner": "ops"}
    assert web.secrets == ["WEB_TOKEN"]
    assert document.secrets["WEB_TOKEN"].environment == "WEB_TOKEN"


def test_render_has_disclaimer_and_no_plaintext():
    text = ComposeReconstructor().render([InspectionRecord.model_validate(RECORD)])
    assert text.startswith(DISCLAIMER)
    assert "hunter2" not in text
    assert yaml.safe_load(text)["services"]["web"]["image"] == "nginx:latest"


def test_container_without_compose_labels():
    record = InspectionRecord.model_validate({
        "Name": "/adhoc",
        "HostConfig": {"RestartPolicy": {"Name": "always"}},
        "Config": {"Image": "busybox"},
    })
    document = ComposeReconstructor().reconstruct([record])
    assert list(document.services) == ["adhoc"]
    assert document.services["adhoc"].container_name is None
    assert document.services["adhoc"].restart == "always"
