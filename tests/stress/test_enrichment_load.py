import time
from dcstack.ENRICHMENT.pipeline import EnrichmentPipeline
from dcstack.MODELS.compose_document import ComposeDocument, ComposeService
from dcstack.UTILS.yaml_emitter import dump_compose


def test_stress_enrichment(engine_config):
    """
    Stress test by enriching a document with 500 services.
    """
    services = {}
    for i in range(500):
        services[f"service_{i}"] = ComposeService(
            image="dummy",
            ports=[f"{9000 + i}:80"],
            environment={"DB_PASSWORD": f"pw{i}", "TOKEN_FILE": "/run/secrets/SHARED_TOKEN"},
            volumes=[f"data_{i}:/data"],
            networks=[f"net_{i % 10}"],
        )
    document = ComposeDocument(services=services)

    start_time = time.time()
    result = EnrichmentPipeline(engine_config).run(document)
    end_time = time.time()
    print(f"Enriched 500 services in {end_time - start_time:.2f}s")

    assert len(result.services) == 500
    assert list(result.secrets) == ["SHARED_TOKEN"]
    assert len(result.volumes) == 500
    assert len(result.networks) == 11
    text = dump_compose(result)
    assert "pw1" not in text
