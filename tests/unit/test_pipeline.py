"""
Unit tests for the full enrichment pipeline.
"""
from dcstack.ENRICHMENT.pipeline import EnrichmentPipeline
from dcstack.MANAGERS.secret_manager import SecretStore
from dcstack.PARSERS.compose_parser import ComposeParser
from dcstack.UTILS.yaml_emitter import dump_compose

CONTENT = """
services:
  web:
    image: nginx
    ports: ["8080:80"]
    environment:
      ADMIN_PASSWORD: changeme
      TOKEN_FILE: /run/secrets/WEB_TOKEN
    volumes:
      - static:/usr/share/nginx/html
  worker:
    image: worker
    network_mode: host
"""


def test_pipeline_enriches_every_service(engine_config, fake_runner):
    pipeline = EnrichmentPipeline(engine_config, SecretStore(engine_config.secret_tool, fake_runner))
    document = ComposeParser().parse_from_string(CONTENT)
    result = pipeline.run(document)

    web = result.services["web"]
    assert web.container_name == "web"
    assert web.mem_limit == "256m"
    assert web.cpus == 0.5
    assert web.networks == ["homelab"]
    assert web.secrets == ["WEB_TOKEN"]
    assert web.environment["ADMIN_PASSWORD"] == "${ADMIN_PASSWORD}"
    assert web.labels["traefik.http.services.web.loadbalancer.server.port"] == "80"

    worker = result.services["worker"]
    assert worker.networks is None
    assert worker.labels is None

    assert result.networks["homelab"].external is True
    assert result.volumes["static"].external is True
    assert result.secrets["WEB_TOKEN"].environment == "WEB_TOKEN"

    assert fake_runner.commands == [
        ["secretctl", "gen", "WEB_TOKEN"],
        ["secretctl", "ins", "ADMIN_PASSWORD"],
    ]
    # the input document is left alone
    assert document.services["web"].environment["ADMIN_PASSWORD"] == "changeme"


def test_pipeline_is_idempotent(engine_config, fake_runner):
    pipeline = EnrichmentPipeline(engine_config, SecretStore(engine_config.secret_tool, fake_runner))
    once = pipeline.run(ComposeParser().parse_from_string(CONTENT))
    calls = len(fake_runner.calls)
    twice = pipeline.run(once)

    assert dump_compose(twice) == dump_compose(once)
    # only the idempotent generate is repeated
    assert fake_runner.commands[calls:] == [["secretctl", "gen", "WEB_TOKEN"]]


def test_pipeline_without_store(engine_config):
    result = EnrichmentPipeline(engine_config).run(ComposeParser().parse_from_string(CONTENT))
    assert result.services["web"].environment["ADMIN_PASSWORD"] == "${ADMIN_PASSWORD}"


def test_custom_network_and_defaults(engine_config):
    config = engine_config.model_copy(update={"shared_network": "proxy", "default_mem_limit": "1g"})
    result = EnrichmentPipeline(config).run(ComposeParser().parse_from_string(CONTENT))
    assert result.services["web"].networks == ["proxy"]
    assert result.services["web"].mem_limit == "1g"
    assert "proxy" in result.networks
