"""Runtime resolution of inbound requests to mock response files."""

from __future__ import annotations

import asyncio
import re
import time
from collections import deque
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable

import structlog
from pydantic import ValidationError

from .errors import (
    EndpointNotFoundError,
    EndpointValidationError,
    MockFileNotFoundError,
    RouterNotRunningError,
)
from .layout import (
    STATUS_FILE,
    is_param_segment,
    is_template_part,
    path_segments,
    route_from_directory,
    sanitize,
    status_path,
)
from .locks import KeyedLocks
from .logging_utils import LOGGER_NAME
from .materializer import FileMaterializer
from .models import HTTP_METHODS, EndpointStatus, RequestEvent, RuntimeEndpoint
from .storage import FileStore

LOGGER = structlog.get_logger(LOGGER_NAME)

_STATUS_FROM_FILENAME = re.compile(r"-(\d{3})\.json$")
DEFAULT_STATUS_CODE = 200
DEFAULT_MAX_DELAY_MS = 60000


class RouterState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    ERROR = "error"


@dataclass
class MockReply:
    """What the HTTP layer sends back for a matched request."""

    status_code: int
    body: Any
    headers: dict[str, str] = field(default_factory=dict)
    mock_file: str = ""
    delay_ms: int = 0


def status_code_for(mock_file: str) -> int:
    """``not-found-404.json`` -> 404; files without a numeric suffix answer 200."""

    match = _STATUS_FROM_FILENAME.search(mock_file)
    if match and 100 <= int(match.group(1)) <= 599:
        return int(match.group(1))
    return DEFAULT_STATUS_CODE


def is_mock_file(name: str) -> bool:
    return name.endswith(".json") and name != STATUS_FILE and not name.startswith(".")


class RuntimeRouter:
    """Matches requests against registered endpoints and serves their selected mock.

    ``status.json`` is re-read for every request so selections and delays
    written by the management API (or by hand) apply immediately.
    """

    def __init__(
        self,
        mock_root: Path,
        store: FileStore | None = None,
        *,
        event_limit: int = 100,
        max_delay_ms: int = DEFAULT_MAX_DELAY_MS,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.mock_root = mock_root
        self._store = store or FileStore(mock_root)
        self._materializer = FileMaterializer(self._store)
        self._sleep = sleep
        self._max_delay_ms = max_delay_ms
        self._endpoints: dict[str, RuntimeEndpoint] = {}
        self._last_good: dict[str, EndpointStatus] = {}
        self._status_locks = KeyedLocks()
        self._events: deque[RequestEvent] = deque(maxlen=event_limit or None)
        self._unmatched = 0
        self.state = RouterState.STOPPED
        self._logger = LOGGER.bind(mock_root=str(mock_root))

    @property
    def store(self) -> FileStore:
        return self._store

    @property
    def max_delay_ms(self) -> int:
        return self._max_delay_ms

    # lifecycle

    async def start(self) -> None:
        if self.state == RouterState.RUNNING:
            return
        self.state = RouterState.STARTING
        self._logger.info("router_starting")
        try:
            await self._store.ensure_dir(self.mock_root)
            await self._scan(self.mock_root)
        except Exception:
            self.state = RouterState.ERROR
            self._logger.exception("router_failed")
            raise
        self.state = RouterState.RUNNING
        self._logger.info("router_running", endpoints=len(self._endpoints))

    async def stop(self) -> None:
        self.state = RouterState.STOPPED
        self._logger.info("router_stopped")

    async def _scan(self, directory: Path) -> None:
        for entry in await self._store.list_dir(directory):
            if not is_template_part(entry):
                continue
            child = directory / entry
            if not await self._store.is_dir(child):
                continue
            if entry in HTTP_METHODS:
                files = await self._store.list_dir(child)
                if any(is_mock_file(name) for name in files):
                    api_path, method = route_from_directory(self.mock_root, child)
                    self.register(api_path, method, child)
            await self._scan(child)

    # registry

    def register(self, path: str, method: str, directory: Path) -> RuntimeEndpoint:
        endpoint = RuntimeEndpoint(path=path, method=method, directory=directory)
        existing = self._endpoints.get(endpoint.key)
        if existing is not None:
            return existing
        self._endpoints[endpoint.key] = endpoint
        self._logger.debug("endpoint_registered", method=endpoint.method, path=path)
        return endpoint

    def find(self, path: str, method: str) -> RuntimeEndpoint | None:
        return self._endpoints.get(f"{method.upper()}:{path}")

    def list_endpoints(self) -> list[RuntimeEndpoint]:
        return list(self._endpoints.values())

    def match(self, method: str, request_path: str) -> RuntimeEndpoint | None:
        method = method.upper()
        request_parts = path_segments(request_path)
        candidates = sorted(self._endpoints.values(), key=lambda item: item.is_parameterized)
        for endpoint in candidates:
            if endpoint.method != method or len(endpoint.segments) != len(request_parts):
                continue
            if all(_segment_matches(tpl, part) for tpl, part in zip(endpoint.segments, request_parts)):
                return endpoint
        return None

    # request handling

    async def handle(self, method: str, request_path: str) -> MockReply:
        if self.state != RouterState.RUNNING:
            raise RouterNotRunningError(f"Router is {self.state.value}")

        started = time.perf_counter()
        endpoint = self.match(method, request_path)
        if endpoint is None:
            self._unmatched += 1
            self._record(method, request_path, 404, started, None)
            self._logger.warning("request_unmatched", method=method.upper(), path=request_path)
            raise EndpointNotFoundError(method.upper(), request_path)

        status = await self.read_status(endpoint)
        if status.delay_millisecond > 0:
            self._logger.info("response_delayed", path=endpoint.path, delay_ms=status.delay_millisecond)
            await self._sleep(status.delay_millisecond / 1000)

        try:
            reply = await self._load_reply(endpoint, status)
        except MockFileNotFoundError:
            self._record(method, request_path, 404, started, endpoint)
            raise

        endpoint.request_count += 1
        self._record(method, request_path, reply.status_code, started, endpoint)
        self._logger.info(
            "request_served",
            method=endpoint.method,
            path=request_path,
            template=endpoint.path,
            mock_file=reply.mock_file,
            status=reply.status_code,
            delay_ms=reply.delay_ms,
        )
        return reply

    async def _load_reply(self, endpoint: RuntimeEndpoint, status: EndpointStatus) -> MockReply:
        target = endpoint.directory / status.selected
        if Path(status.selected).name != status.selected:
            raise MockFileNotFoundError(target, await self.available_mocks(endpoint))
        try:
            content = await self._store.read_json(target)
        except FileNotFoundError as exc:
            raise MockFileNotFoundError(target, await self.available_mocks(endpoint)) from exc

        headers: dict[str, str] = {}
        body = None
        if isinstance(content, dict):
            for entry in content.get("header") or []:
                if isinstance(entry, dict) and entry.get("key") and entry.get("value"):
                    headers[str(entry["key"])] = str(entry["value"])
            body = content.get("body")
        return MockReply(
            status_code=status_code_for(status.selected),
            body=body,
            headers=headers,
            mock_file=status.selected,
            delay_ms=status.delay_millisecond,
        )

    def _record(
        self,
        method: str,
        path: str,
        status: int,
        started: float,
        endpoint: RuntimeEndpoint | None,
    ) -> None:
        self._events.append(
            RequestEvent(
                method=method.upper(),
                path=path,
                status=status,
                duration_ms=round((time.perf_counter() - started) * 1000, 2),
                endpoint=endpoint.key if endpoint else None,
            )
        )

    # status descriptors

    async def available_mocks(self, endpoint: RuntimeEndpoint) -> list[str]:
        return [name for name in await self._store.list_dir(endpoint.directory) if is_mock_file(name)]

    async def read_status(self, endpoint: RuntimeEndpoint) -> EndpointStatus:
        """Current status, falling back to the last good read when the file is missing or mid-write."""

        try:
            data = await self._store.read_json(status_path(endpoint.directory))
            status = EndpointStatus.model_validate(data)
            if not status.selected.endswith(".json"):
                raise ValueError(f"selected file {status.selected!r} is not a JSON mock")
        except (OSError, ValueError, ValidationError) as exc:
            fallback = self._last_good.get(endpoint.key) or await self._default_status(endpoint)
            self._logger.debug(
                "status_fallback",
                path=endpoint.path,
                method=endpoint.method,
                selected=fallback.selected,
                reason=str(exc),
            )
            return fallback
        self._last_good[endpoint.key] = status
        return status

    async def get_status(self, path: str, method: str) -> tuple[RuntimeEndpoint, EndpointStatus]:
        endpoint = self.find(path, method)
        if endpoint is None:
            raise EndpointNotFoundError(method.upper(), path)
        return endpoint, await self.read_status(endpoint)

    async def _default_status(self, endpoint: RuntimeEndpoint) -> EndpointStatus:
        available = await self.available_mocks(endpoint)
        successful = [name for name in available if 200 <= status_code_for(name) < 300 and _STATUS_FROM_FILENAME.search(name)]
        selected = (successful or available or ["success-200.json"])[0]
        return EndpointStatus(selected=selected, delay_millisecond=0)

    async def update_status(
        self,
        path: str,
        method: str,
        *,
        mock_file: str | None = None,
        delay_ms: int | None = None,
    ) -> EndpointStatus:
        """Change the selected mock and/or delay of an endpoint and persist ``status.json``."""

        endpoint = self.find(path, method)
        if endpoint is None:
            raise EndpointNotFoundError(method.upper(), path)
        if delay_ms is not None and not 0 <= delay_ms <= self._max_delay_ms:
            raise EndpointValidationError(
                [
                    {
                        "field": "delayMillisecond",
                        "message": f"Delay must be between 0 and {self._max_delay_ms} milliseconds",
                    }
                ]
            )

        async with self._status_locks.hold(endpoint.key):
            if mock_file is not None:
                available = await self.available_mocks(endpoint)
                if mock_file not in available:
                    raise MockFileNotFoundError(endpoint.directory / mock_file, available)
            current = await self.read_status(endpoint)
            updates: dict[str, Any] = {}
            if mock_file is not None:
                updates["selected"] = mock_file
            if delay_ms is not None:
                updates["delay_millisecond"] = delay_ms
            status = current.model_copy(update=updates)
            await self._materializer.write_status(endpoint.directory, status)
            self._last_good[endpoint.key] = status

        self._logger.info(
            "status_updated",
            path=endpoint.path,
            method=endpoint.method,
            selected=status.selected,
            delay_ms=status.delay_millisecond,
        )
        return status

    # introspection

    def recent_events(self) -> list[RequestEvent]:
        return list(reversed(self._events))

    def stats(self) -> dict[str, Any]:
        served = sum(endpoint.request_count for endpoint in self._endpoints.values())
        return {
            "state": self.state.value,
            "endpoints": len(self._endpoints),
            "served_requests": served,
            "unmatched_requests": self._unmatched,
        }


def _segment_matches(template: str, part: str) -> bool:
    if is_param_segment(template):
        return True
    return template == part or template == sanitize(part)
