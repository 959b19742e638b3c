import json
from pathlib import Path

import pytest

from swagger_mock.errors import DuplicateScenarioError, ScenarioNotFoundError, ScenarioValidationError
from swagger_mock.registry import EndpointRegistry
from swagger_mock.router import RuntimeRouter
from swagger_mock.scenarios import ScenarioManager, validate_scenario_request


def _config(path: str = "/pet/status", method: str = "GET", mock_file: str = "success-200.json", delay: int = 0):
    return {"path": path, "method": method, "selectedMockFile": mock_file, "delayMillisecond": delay}


async def _manager(root: Path) -> ScenarioManager:
    router = RuntimeRouter(root)
    await router.start()
    registry = EndpointRegistry(router)
    await registry.create_endpoint("/pet/status", "GET")
    await registry.create_endpoint("/pet/{id}", "DELETE")
    (root / "pet" / "status" / "GET" / "not-found-404.json").write_text(
        json.dumps({"header": [], "body": {"error": "gone"}}), encoding="utf-8"
    )
    return ScenarioManager(router)


def _status(root: Path, *parts: str) -> dict:
    return json.loads(root.joinpath(*parts, "status.json").read_text(encoding="utf-8"))


@pytest.mark.asyncio
async def test_create_saves_applies_and_activates(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)

    scenario, result = await manager.create(
        "outage",
        [_config(mock_file="not-found-404.json", delay=250), _config("/pet/{id}", "DELETE")],
    )

    assert scenario.metadata.version == 1
    assert result.successes == ["GET /pet/status", "DELETE /pet/{id}"]
    assert result.failures == []
    assert _status(tmp_path, "pet", "status", "GET") == {"selected": "not-found-404.json", "delayMillisecond": 250}
    stored = json.loads((tmp_path / "scenario" / "outage.json").read_text(encoding="utf-8"))
    assert stored["endpointConfigurations"][0]["selectedMockFile"] == "not-found-404.json"
    assert await manager.tracker.get_active() == "outage"

    reply = await manager._router.handle("GET", "/pet/status")
    assert reply.status_code == 404


@pytest.mark.asyncio
async def test_unknown_endpoint_is_reported_not_raised(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)

    _, result = await manager.create(
        "partial",
        [_config(), _config("/missing", "GET"), _config(mock_file="absent-200.json", method="GET", path="/pet/{id}")],
    )

    assert result.successes == ["GET /pet/status"]
    assert [failure["endpoint"] for failure in result.failures] == ["GET /missing", "GET /pet/{id}"]
    assert "No mock endpoint for GET /missing" in result.failures[0]["error"]
    assert await manager.tracker.get_active() == "partial"


@pytest.mark.asyncio
async def test_duplicate_name_is_rejected(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)
    await manager.create("happy", [_config()])

    with pytest.raises(DuplicateScenarioError, match='Scenario with name "happy" already exists'):
        await manager.create("happy", [_config(delay=10)])


@pytest.mark.asyncio
async def test_update_bumps_version_and_reapplies(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)
    created, _ = await manager.create("flaky", [_config()])
    await manager.create("other", [_config(delay=5)])

    updated, _ = await manager.update("flaky", [_config(mock_file="not-found-404.json")])

    assert updated.metadata.version == 2
    assert updated.metadata.created_at == created.metadata.created_at
    assert updated.metadata.last_modified >= created.metadata.last_modified
    assert _status(tmp_path, "pet", "status", "GET")["selected"] == "not-found-404.json"
    assert await manager.tracker.get_active() == "flaky"


@pytest.mark.asyncio
async def test_update_and_get_of_missing_scenario(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)

    with pytest.raises(ScenarioNotFoundError, match='Scenario "ghost" not found'):
        await manager.update("ghost", [_config()])
    with pytest.raises(ScenarioNotFoundError):
        await manager.get("../../etc/passwd")


@pytest.mark.asyncio
async def test_delete_clears_active_reference(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)
    await manager.create("keep", [_config()])
    await manager.create("drop", [_config()])

    await manager.delete("keep")
    assert await manager.tracker.get_active() == "drop"

    await manager.delete("drop")
    saved, active = await manager.list_scenarios()

    assert saved == []
    assert active is None
    with pytest.raises(ScenarioNotFoundError):
        await manager.delete("drop")


@pytest.mark.asyncio
async def test_list_skips_bookkeeping_and_broken_files(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)
    await manager.create("alpha", [_config()])
    await manager.create("beta", [_config()])
    (tmp_path / "scenario" / "broken.json").write_text("{not json", encoding="utf-8")

    saved, active = await manager.list_scenarios()

    assert [item.name for item in saved] == ["alpha", "beta"]
    assert active == "beta"


@pytest.mark.asyncio
async def test_invalid_request_raises_with_every_detail(tmp_path: Path) -> None:
    manager = await _manager(tmp_path)

    with pytest.raises(ScenarioValidationError) as excinfo:
        await manager.create("bad name!", [_config(delay=60001), _config(delay=60001)])

    fields = [item["field"] for item in excinfo.value.details]
    assert fields == [
        "name",
        "endpointConfigurations[0].delayMillisecond",
        "endpointConfigurations[1].delayMillisecond",
        "endpointConfigurations[1]",
    ]
    assert not (tmp_path / "scenario").exists()


def test_validation_messages() -> None:
    assert validate_scenario_request("ok", [], max_delay_ms=100) == [
        {
            "field": "endpointConfigurations",
            "message": "Scenario must contain at least one endpoint configuration",
        }
    ]
    assert validate_scenario_request(None, None, max_delay_ms=100) == [
        {"field": "name", "message": "Scenario name is required"},
        {"field": "endpointConfigurations", "message": "Required"},
    ]
    details = validate_scenario_request(
        "a" * 51,
        [{"path": "pets", "method": "FETCH", "selectedMockFile": "x.txt", "delayMillisecond": True}],
        max_delay_ms=100,
    )
    assert [item["field"] for item in details] == [
        "name",
        "endpointConfigurations[0].path",
        "endpointConfigurations[0].method",
        "endpointConfigurations[0].selectedMockFile",
        "endpointConfigurations[0].delayMillisecond",
    ]
    assert validate_scenario_request("x", [_config(method="HEAD")], max_delay_ms=100) == []
