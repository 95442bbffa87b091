import pytest
from dcstack.MODELS.compose_document import ComposeDocument, ComposeService
from dcstack.MODELS.inspection_record import InspectionRecord
from dcstack.MODELS.stack import ComposeAction, Stack


@pytest.mark.parametrize("action, persists", [
    (ComposeAction.NONE, True),
    (ComposeAction.UP, True),
    (ComposeAction.CREATE, True),
    (ComposeAction.DOWN, False),
    (ComposeAction.STOP, False),
    (ComposeAction.START, False),
    (ComposeAction.RM, False),
])
def test_persists_documents(action, persists):
    assert action.persists_documents is persists


def test_stack_deployment_state():
    simulated = InspectionRecord(name="/web")
    real = InspectionRecord(id="abc", name="/db")
    assert not Stack(name="s", containers=[simulated]).is_deployed
    assert Stack(name="s", containers=[simulated, real]).is_deployed
    assert Stack(name="s").to_dict() == {"name": "s", "deployed": False, "containers": []}


def test_inspection_record_uses_engine_keys():
    record = InspectionRecord.model_validate({
        "Id": "abc",
        "Name": "/web",
        "State": {"Status": "exited", "OOMKilled": True, "ExitCode": 137},
        "Mounts": None,
        "Config": {"Labels": None, "Env": ["A=1"]},
    })
    assert record.state.oom_killed is True
    assert record.state.exit_code == 137
    assert record.mounts == []
    assert record.config.labels == {}

    data = record.to_dict()
    assert data["State"]["OOMKilled"] is True
    assert data["HostConfig"]["RestartPolicy"]["Name"] == "no"
    assert data["HostConfig"]["ShmSize"] == 67108864
    assert data["Config"]["Env"] == ["A=1"]


def test_service_coercions():
    service = ComposeService.model_validate({
        "ports": [80, "443:443"],
        "mem_limit": 1073741824,
        "volumes": None,
        "deploy": {"replicas": 2},
    })
    assert service.ports == ["80", "443:443"]
    assert service.mem_limit == "1073741824"
    assert service.volumes == []
    assert service.to_dict() == {
        "ports": ["80", "443:443"],
        "mem_limit": "1073741824",
        "deploy": {"replicas": 2},
    }


def test_null_declarations():
    document = ComposeDocument.model_validate({"services": None, "volumes": {"data": None}})
    assert document.services == {}
    assert document.volumes["data"].external is False
