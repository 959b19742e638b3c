"""Saved scenarios: named sets of mock selections applied to many endpoints at once."""

from __future__ import annotations

import asyncio
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import structlog
from pydantic import ValidationError

from .errors import (
    DuplicateScenarioError,
    ScenarioNotFoundError,
    ScenarioValidationError,
    StorageError,
    SwaggerMockError,
)
from .locks import KeyedLocks
from .logging_utils import LOGGER_NAME
from .models import (
    HTTP_METHODS,
    ActiveScenarioReference,
    EndpointConfiguration,
    Scenario,
    ScenarioApplicationResult,
    ScenarioMetadata,
)
from .router import RuntimeRouter
from .storage import FileStore

LOGGER = structlog.get_logger(LOGGER_NAME)

SCENARIO_DIRECTORY = "scenario"
ACTIVE_FILE = "_active.json"
_SCENARIO_NAME = re.compile(r"^[A-Za-z0-9-]{1,50}$")


def is_scenario_name(name: Any) -> bool:
    return isinstance(name, str) and bool(_SCENARIO_NAME.match(name))


def validate_scenario_request(
    name: Any,
    configurations: Any,
    *,
    max_delay_ms: int,
    check_name: bool = True,
) -> list[dict[str, str]]:
    """Every rule a create/update request breaks, in a stable order."""

    details: list[dict[str, str]] = []

    if check_name:
        if name is None:
            details.append({"field": "name", "message": "Scenario name is required"})
        elif not is_scenario_name(name):
            details.append(
                {
                    "field": "name",
                    "message": "Scenario name must be 1-50 characters of letters, numbers and hyphens",
                }
            )

    if configurations is None:
        details.append({"field": "endpointConfigurations", "message": "Required"})
        return details
    if not isinstance(configurations, list):
        details.append({"field": "endpointConfigurations", "message": "endpointConfigurations must be a list"})
        return details
    if not configurations:
        details.append(
            {
                "field": "endpointConfigurations",
                "message": "Scenario must contain at least one endpoint configuration",
            }
        )
        return details

    seen: set[tuple[str, str]] = set()
    for index, entry in enumerate(configurations):
        field = f"endpointConfigurations[{index}]"
        if not isinstance(entry, dict):
            details.append({"field": field, "message": "Endpoint configuration must be an object"})
            continue

        path, method = entry.get("path"), entry.get("method")
        if not isinstance(path, str) or not path.startswith("/"):
            details.append({"field": f"{field}.path", "message": "Path must be a string starting with /"})
        if not isinstance(method, str) or method not in HTTP_METHODS:
            expected = " | ".join(HTTP_METHODS)
            details.append({"field": f"{field}.method", "message": f"Method must be one of {expected}"})

        selected = entry.get("selectedMockFile")
        if not isinstance(selected, str) or not selected.endswith(".json"):
            details.append(
                {"field": f"{field}.selectedMockFile", "message": "selectedMockFile must name a .json file"}
            )

        delay = entry.get("delayMillisecond", 0)
        if isinstance(delay, bool) or not isinstance(delay, int) or not 0 <= delay <= max_delay_ms:
            details.append(
                {
                    "field": f"{field}.delayMillisecond",
                    "message": f"Delay must be an integer between 0 and {max_delay_ms} milliseconds",
                }
            )

        if isinstance(path, str) and isinstance(method, str):
            key = (path, method)
            if key in seen:
                details.append(
                    {"field": field, "message": f"Duplicate endpoint configuration: {method} {path}"}
                )
            seen.add(key)

    return details


class ScenarioRepository:
    """One JSON file per scenario; files starting with ``_`` are bookkeeping."""

    def __init__(self, store: FileStore, directory: Path) -> None:
        self._store = store
        self.directory = directory

    def path_for(self, name: str) -> Path:
        return self.directory / f"{name}.json"

    async def exists(self, name: str) -> bool:
        return is_scenario_name(name) and await self._store.path_exists(self.path_for(name))

    async def save(self, scenario: Scenario) -> None:
        if await self.exists(scenario.name):
            raise DuplicateScenarioError(scenario.name)
        await self._store.write_json(self.path_for(scenario.name), scenario.as_serializable())

    async def update(self, scenario: Scenario) -> None:
        if not await self.exists(scenario.name):
            raise ScenarioNotFoundError(scenario.name)
        await self._store.write_json(self.path_for(scenario.name), scenario.as_serializable())

    async def find(self, name: str) -> Scenario | None:
        if not is_scenario_name(name):
            return None
        path = self.path_for(name)
        try:
            data = await self._store.read_json(path)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as exc:
            raise StorageError("read", path, exc) from exc
        try:
            return Scenario.model_validate(data)
        except ValidationError as exc:
            raise StorageError("read", path, exc) from exc

    async def find_all(self) -> list[Scenario]:
        scenarios: list[Scenario] = []
        for entry in await self._store.list_dir(self.directory):
            if not entry.endswith(".json") or entry.startswith("_"):
                continue
            try:
                scenario = await self.find(entry[: -len(".json")])
            except StorageError as exc:
                LOGGER.warning("scenario_unreadable", file=str(exc.target), cause=exc.cause)
                continue
            if scenario is not None:
                scenarios.append(scenario)
        return scenarios

    async def delete(self, name: str) -> None:
        if not await self.exists(name):
            raise ScenarioNotFoundError(name)
        await self._store.remove_file(self.path_for(name))


class ActiveScenarioTracker:
    """Remembers which scenario was applied last, in ``_active.json``."""

    def __init__(self, store: FileStore, directory: Path) -> None:
        self._store = store
        self._path = directory / ACTIVE_FILE

    async def reference(self) -> ActiveScenarioReference:
        try:
            return ActiveScenarioReference.model_validate(await self._store.read_json(self._path))
        except (OSError, ValueError, ValidationError):
            return ActiveScenarioReference()

    async def get_active(self) -> str | None:
        return (await self.reference()).active_scenario

    async def set_active(self, name: str | None) -> None:
        await self._store.write_json(self._path, ActiveScenarioReference(active_scenario=name).as_serializable())

    async def clear_active(self) -> None:
        await self.set_active(None)


class ScenarioApplicator:
    """Pushes every selection of a scenario through the router's status update."""

    def __init__(self, router: RuntimeRouter) -> None:
        self._router = router

    async def apply(self, scenario: Scenario) -> ScenarioApplicationResult:
        outcomes = await asyncio.gather(
            *(self._apply_one(config) for config in scenario.endpoint_configurations)
        )
        result = ScenarioApplicationResult()
        for config, error in zip(scenario.endpoint_configurations, outcomes):
            if error is None:
                result.successes.append(config.label)
            else:
                result.failures.append({"endpoint": config.label, "error": error})
        return result

    async def _apply_one(self, config: EndpointConfiguration) -> str | None:
        try:
            await self._router.update_status(
                config.path,
                config.method,
                mock_file=config.selected_mock_file,
                delay_ms=config.delay_millisecond,
            )
        except SwaggerMockError as exc:
            return str(exc)
        return None


class ScenarioManager:
    """Create, update, delete, list and fetch scenarios.

    Creating or updating a scenario applies it and makes it the active one.
    Endpoints that cannot take their selection are reported in the
    application result instead of failing the whole operation.
    """

    def __init__(self, router: RuntimeRouter, *, directory: Path | None = None) -> None:
        self._router = router
        self.directory = directory or router.mock_root / SCENARIO_DIRECTORY
        self.repository = ScenarioRepository(router.store, self.directory)
        self.tracker = ActiveScenarioTracker(router.store, self.directory)
        self._applicator = ScenarioApplicator(router)
        self._locks = KeyedLocks()
        self._logger = LOGGER.bind(scenario_dir=str(self.directory))

    def _validate(self, name: Any, configurations: Any, *, check_name: bool) -> list[EndpointConfiguration]:
        details = validate_scenario_request(
            name,
            configurations,
            max_delay_ms=self._router.max_delay_ms,
            check_name=check_name,
        )
        if details:
            raise ScenarioValidationError(details)
        return [EndpointConfiguration.model_validate(entry) for entry in configurations]

    async def create(self, name: Any, configurations: Any) -> tuple[Scenario, ScenarioApplicationResult]:
        parsed = self._validate(name, configurations, check_name=True)
        async with self._locks.hold(name):
            scenario = Scenario(name=name, endpoint_configurations=parsed)
            await self.repository.save(scenario)
            result = await self._activate(scenario)
        self._logger.info("scenario_created", name=name, endpoints=len(parsed))
        return scenario, result

    async def update(self, name: str, configurations: Any) -> tuple[Scenario, ScenarioApplicationResult]:
        parsed = self._validate(name, configurations, check_name=False)
        async with self._locks.hold(name):
            existing = await self.repository.find(name)
            if existing is None:
                raise ScenarioNotFoundError(name)
            scenario = existing.model_copy(
                update={
                    "endpoint_configurations": parsed,
                    "metadata": ScenarioMetadata(
                        created_at=existing.metadata.created_at,
                        last_modified=datetime.now(timezone.utc),
                        version=existing.metadata.version + 1,
                    ),
                }
            )
            await self.repository.update(scenario)
            result = await self._activate(scenario)
        self._logger.info("scenario_updated", name=name, version=scenario.metadata.version)
        return scenario, result

    async def delete(self, name: str) -> None:
        async with self._locks.hold(name):
            await self.repository.delete(name)
            if await self.tracker.get_active() == name:
                await self.tracker.clear_active()
        self._logger.info("scenario_deleted", name=name)

    async def get(self, name: str) -> Scenario:
        scenario = await self.repository.find(name)
        if scenario is None:
            raise ScenarioNotFoundError(name)
        return scenario

    async def list_scenarios(self) -> tuple[list[Scenario], str | None]:
        return await self.repository.find_all(), await self.tracker.get_active()

    async def active(self) -> ActiveScenarioReference:
        return await self.tracker.reference()

    async def _activate(self, scenario: Scenario) -> ScenarioApplicationResult:
        result = await self._applicator.apply(scenario)
        for failure in result.failures:
            self._logger.warning("scenario_endpoint_failed", name=scenario.name, **failure)
        await self.tracker.set_active(scenario.name)
        return result
