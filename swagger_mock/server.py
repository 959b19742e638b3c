"""HTTP surface: management API under ``/_mock`` plus the catch-all mock route."""

from __future__ import annotations

import threading
import time
from contextlib import asynccontextmanager
from typing import Any

import structlog
import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field, ValidationError

from .config import MANAGEMENT_PREFIX, MockSettings, load_settings
from .errors import (
    DuplicateEndpointError,
    EndpointNotFoundError,
    EndpointValidationError,
    DuplicateScenarioError,
    MockFileNotFoundError,
    RouterNotRunningError,
    ScenarioNotFoundError,
    ScenarioValidationError,
    StorageError,
    SwaggerMockError,
)
from .logging_utils import LOGGER_NAME
from .models import HTTP_METHODS
from .registry import EndpointRegistry
from .router import RuntimeRouter
from .scenarios import ScenarioManager

LOGGER = structlog.get_logger(LOGGER_NAME)

# Managed by the ASGI server, never copied from mock files
_SKIPPED_HEADERS = {"content-length", "transfer-encoding", "connection"}


class SetDelayRequest(BaseModel):
    path: str
    method: str
    delay_millisecond: int = Field(alias="delayMillisecond", ge=0)


def create_app(settings: MockSettings | None = None, router: RuntimeRouter | None = None) -> FastAPI:
    """Build the FastAPI application serving mocks from ``settings.mock_root``."""

    settings = settings or load_settings()
    router = router or RuntimeRouter(
        settings.mock_root,
        event_limit=settings.event_limit,
        max_delay_ms=settings.max_delay_ms,
    )
    registry = EndpointRegistry(router, base_url=settings.base_url)
    scenarios = ScenarioManager(router)
    logger = LOGGER.bind(mock_root=str(settings.mock_root))

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await router.start()
        for line in _console_summary(settings, router):
            print(line)
        yield
        await router.stop()

    app = FastAPI(
        title="swagger-mock",
        description="File-backed mock server generated from OpenAPI/Swagger specifications",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.router = router
    app.state.registry = registry
    app.state.scenarios = scenarios

    @app.post(f"{MANAGEMENT_PREFIX}/endpoints")
    async def create_endpoint(request: Request):
        """Create a new endpoint with default response files."""
        body = await _json_body(request)
        try:
            result = await registry.create_endpoint(body.get("path"), body.get("method"))
        except EndpointValidationError as exc:
            return JSONResponse(status_code=400, content={"error": "Validation failed", "details": exc.details})
        except DuplicateEndpointError as exc:
            return JSONResponse(
                status_code=409,
                content={"error": "Endpoint already exists", "existingEndpoint": exc.as_payload()},
            )
        except StorageError as exc:
            return JSONResponse(
                status_code=500,
                content={"error": "Failed to create endpoint files", "detail": exc.cause},
            )
        return JSONResponse(
            status_code=201,
            content={
                "success": True,
                "message": "Endpoint created successfully",
                "endpoint": result.as_serializable(),
            },
        )

    @app.get(f"{MANAGEMENT_PREFIX}/endpoints")
    async def list_endpoints():
        """All registered endpoints with their current selection."""
        endpoints = []
        for endpoint in router.list_endpoints():
            status = await router.read_status(endpoint)
            endpoints.append(
                {
                    "path": endpoint.path,
                    "method": endpoint.method,
                    "currentMock": status.selected,
                    "availableMocks": await router.available_mocks(endpoint),
                    "delayMillisecond": status.delay_millisecond,
                    "requestCount": endpoint.request_count,
                }
            )
        return JSONResponse(content=endpoints)

    @app.post(f"{MANAGEMENT_PREFIX}/update")
    async def update_status(request: Request):
        """Select a mock file and/or delay for an endpoint."""
        body = await _json_body(request)
        api_path, method = body.get("path"), body.get("method")
        if not api_path or not method:
            return JSONResponse(status_code=400, content={"error": "Missing required parameters: path and method"})
        delay = body.get("delayMillisecond")
        if delay is not None and (isinstance(delay, bool) or not isinstance(delay, int)):
            return JSONResponse(status_code=400, content={"error": "delayMillisecond must be an integer"})
        return await _apply_status(router, str(api_path), str(method), body.get("mockFile"), delay)

    @app.post(f"{MANAGEMENT_PREFIX}/set-delay")
    async def set_delay(request: Request):
        """Change only the simulated latency of an endpoint."""
        try:
            payload = SetDelayRequest.model_validate(await _json_body(request))
        except ValidationError as exc:
            return JSONResponse(
                status_code=400,
                content={
                    "error": "Invalid request data",
                    "details": exc.errors(include_url=False, include_context=False, include_input=False),
                },
            )
        response = await _apply_status(router, payload.path, payload.method, None, payload.delay_millisecond)
        if response.status_code == 200:
            return JSONResponse(
                content={"success": True, "message": f"Delay set to {payload.delay_millisecond}ms"}
            )
        return response

    @app.get(f"{MANAGEMENT_PREFIX}/status")
    async def get_status(path: str | None = None, method: str | None = None):
        """Current selection and delay of one endpoint."""
        if not path or not method:
            return JSONResponse(status_code=400, content={"error": "Missing method or path parameter"})
        try:
            endpoint, status = await router.get_status(path, method)
        except EndpointNotFoundError:
            return JSONResponse(status_code=404, content={"error": "Endpoint not found", "path": path, "method": method})
        return JSONResponse(
            content={
                "path": endpoint.path,
                "method": endpoint.method,
                "currentMock": status.selected,
                "delayMillisecond": status.delay_millisecond,
            }
        )

    @app.get(f"{MANAGEMENT_PREFIX}/events")
    async def recent_events():
        """Most recent requests first."""
        events = router.recent_events()
        return JSONResponse(
            content={"total": len(events), "events": [event.model_dump(mode="json") for event in events]}
        )

    @app.get(f"{MANAGEMENT_PREFIX}/stats")
    async def stats():
        return JSONResponse(content=router.stats())

    @app.get(f"{MANAGEMENT_PREFIX}/scenarios")
    async def list_scenarios():
        saved, active = await scenarios.list_scenarios()
        return JSONResponse(
            content={"scenarios": [item.as_serializable() for item in saved], "activeScenario": active}
        )

    @app.post(f"{MANAGEMENT_PREFIX}/scenarios")
    async def create_scenario(request: Request):
        """Save a scenario, apply it and make it the active one."""
        body = await _json_body(request)
        try:
            scenario, result = await scenarios.create(body.get("name"), body.get("endpointConfigurations"))
        except SwaggerMockError as exc:
            return _scenario_error(exc)
        return JSONResponse(
            status_code=201,
            content={
                "scenario": scenario.as_serializable(),
                "message": f"Scenario '{scenario.name}' created successfully",
                "application": result.model_dump(mode="json"),
            },
        )

    @app.get(f"{MANAGEMENT_PREFIX}/scenarios/active")
    async def active_scenario():
        reference = await scenarios.active()
        return JSONResponse(content=reference.as_serializable())

    @app.get(f"{MANAGEMENT_PREFIX}/scenarios/{{name}}")
    async def get_scenario(name: str):
        try:
            scenario = await scenarios.get(name)
        except SwaggerMockError as exc:
            return _scenario_error(exc)
        return JSONResponse(content={"scenario": scenario.as_serializable()})

    @app.put(f"{MANAGEMENT_PREFIX}/scenarios/{{name}}")
    async def update_scenario(name: str, request: Request):
        """Replace the endpoint selections of a scenario and re-apply it."""
        body = await _json_body(request)
        try:
            scenario, result = await scenarios.update(name, body.get("endpointConfigurations"))
        except SwaggerMockError as exc:
            return _scenario_error(exc)
        return JSONResponse(
            content={
                "scenario": scenario.as_serializable(),
                "message": f"Scenario '{name}' updated successfully",
                "application": result.model_dump(mode="json"),
            }
        )

    @app.delete(f"{MANAGEMENT_PREFIX}/scenarios/{{name}}")
    async def delete_scenario(name: str):
        try:
            await scenarios.delete(name)
        except SwaggerMockError as exc:
            return _scenario_error(exc)
        return JSONResponse(content={"success": True, "message": f"Scenario '{name}' deleted successfully"})

    @app.api_route("/{path:path}", methods=list(HTTP_METHODS))
    async def serve_mock(request: Request, path: str):
        """Answer any other request from the mock tree."""
        try:
            reply = await router.handle(request.method, f"/{path}")
        except EndpointNotFoundError:
            return JSONResponse(status_code=404, content={"error": "API endpoint not found"})
        except MockFileNotFoundError as exc:
            return JSONResponse(
                status_code=404,
                content={"error": "Mock file not found", "file": str(exc.file), "availableFiles": exc.available},
            )
        except RouterNotRunningError as exc:
            return JSONResponse(status_code=503, content={"error": str(exc)})
        except Exception as exc:
            logger.exception("request_failed", method=request.method, path=f"/{path}")
            return JSONResponse(status_code=500, content={"error": "Mock server error", "detail": str(exc)})

        headers = {key: value for key, value in reply.headers.items() if key.lower() not in _SKIPPED_HEADERS}
        return JSONResponse(status_code=reply.status_code, content=reply.body, headers=headers)

    return app


async def _json_body(request: Request) -> dict[str, Any]:
    try:
        body = await request.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


async def _apply_status(
    router: RuntimeRouter,
    api_path: str,
    method: str,
    mock_file: str | None,
    delay: int | None,
) -> JSONResponse:
    try:
        status = await router.update_status(api_path, method, mock_file=mock_file, delay_ms=delay)
    except EndpointNotFoundError:
        return JSONResponse(status_code=404, content={"error": "Endpoint not found", "path": api_path, "method": method})
    except MockFileNotFoundError as exc:
        return JSONResponse(status_code=400, content={"error": "Mock file not found", "file": str(exc.file)})
    except EndpointValidationError as exc:
        return JSONResponse(status_code=400, content={"error": exc.details[0]["message"], "details": exc.details})
    except StorageError as exc:
        return JSONResponse(status_code=500, content={"error": "Failed to update mock status", "detail": exc.cause})
    return JSONResponse(
        content={
            "success": True,
            "message": "Mock status updated successfully",
            "status": status.as_serializable(),
        }
    )


def _scenario_error(exc: SwaggerMockError) -> JSONResponse:
    if isinstance(exc, ScenarioValidationError):
        return JSONResponse(status_code=400, content={"error": str(exc), "details": exc.details})
    if isinstance(exc, DuplicateScenarioError):
        return JSONResponse(status_code=409, content={"error": str(exc)})
    if isinstance(exc, ScenarioNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})
    if isinstance(exc, StorageError):
        return JSONResponse(status_code=500, content={"error": "Failed to store scenario", "detail": exc.cause})
    raise exc


def _console_summary(settings: MockSettings, router: RuntimeRouter) -> list[str]:
    header = f"[swagger-mock] serving {settings.mock_root} on {settings.base_url}"
    route_lines = ["    endpoints:"]
    described = [f"{endpoint.method} {endpoint.path}" for endpoint in router.list_endpoints()]
    if described:
        route_lines.extend(f"      - {description}" for description in described)
    else:
        route_lines.append("      (no endpoints yet, POST /_mock/endpoints to add one)")
    return [header, *route_lines]


class MockServerRunner:
    """Runs the mock application on uvicorn in a background thread."""

    def __init__(self, settings: MockSettings) -> None:
        self._settings = settings
        self._server: uvicorn.Server | None = None
        self._thread: threading.Thread | None = None
        self._logger = LOGGER.bind(host=settings.host, port=settings.port)

    def start(self) -> None:
        config = uvicorn.Config(
            create_app(self._settings),
            host=self._settings.host,
            port=self._settings.port,
            log_level=self._settings.log_level.lower(),
        )
        self._server = uvicorn.Server(config)
        self._logger.info("server_starting")
        self._thread = threading.Thread(target=self._server.run, daemon=True)
        self._thread.start()

    def wait_until_ready(self, timeout: float = 5.0) -> bool:
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if self._server is not None and self._server.started:
                self._logger.info("server_started")
                return True
            time.sleep(0.02)
        return False

    def stop(self) -> None:
        if not self._server:
            return
        self._logger.info("server_stopping")
        self._server.should_exit = True
        if self._thread:
            self._thread.join(timeout=5)
        self._logger.info("server_stopped")

    def __enter__(self) -> "MockServerRunner":
        self.start()
        self.wait_until_ready()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.stop()


def serve(settings: MockSettings) -> None:
    """Run the mock server in the foreground until interrupted."""

    uvicorn.run(
        create_app(settings),
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )
