"""Exceptions raised by the synthesis pipeline, the endpoint registry and the router."""

from __future__ import annotations

from pathlib import Path
from typing import Any


class SwaggerMockError(RuntimeError):
    """Base class for every error surfaced by swagger-mock."""


class SpecParseError(SwaggerMockError):
    """Raised when an input document cannot be parsed into a specification."""


class ReservedPathError(SwaggerMockError):
    """Raised when a path collides with the management API prefix."""


class EndpointValidationError(SwaggerMockError):
    """Raised when a create-endpoint request breaks one or more rules.

    ``details`` lists every violation as ``{"field": ..., "message": ...}``.
    """

    def __init__(self, details: list[dict[str, str]]) -> None:
        self.details = details
        super().__init__("; ".join(f"{item['field']}: {item['message']}" for item in details))


class DuplicateEndpointError(SwaggerMockError):
    """Raised when the endpoint directory for (path, method) already exists."""

    def __init__(self, path: str, method: str, directory: Path) -> None:
        self.path = path
        self.method = method
        self.directory = directory
        super().__init__(f"Endpoint {method} {path} already exists at {directory}")

    def as_payload(self) -> dict[str, Any]:
        return {"path": self.path, "method": self.method, "mockDirectory": str(self.directory)}


class StorageError(SwaggerMockError):
    """Raised when the underlying file system refuses a read or write."""

    def __init__(self, action: str, target: Path, cause: BaseException) -> None:
        self.action = action
        self.target = target
        self.cause = str(cause)
        super().__init__(f"{action} {target} failed: {cause}")


class RouterNotRunningError(SwaggerMockError):
    """Raised when a request reaches a router that is not in the running state."""


class EndpointNotFoundError(SwaggerMockError):
    """Raised when no registered endpoint matches an inbound request."""

    def __init__(self, method: str, path: str) -> None:
        self.method = method
        self.path = path
        super().__init__(f"No mock endpoint for {method} {path}")


class MockFileNotFoundError(SwaggerMockError):
    """Raised when the selected mock file of an endpoint is missing on disk."""

    def __init__(self, file: Path, available: list[str]) -> None:
        self.file = file
        self.available = available
        super().__init__(f"Mock file not found: {file}")


class ScenarioValidationError(SwaggerMockError):
    """Raised when a scenario request breaks one or more rules.

    ``details`` uses the same ``{"field": ..., "message": ...}`` shape as
    :class:`EndpointValidationError`; the first message is the summary.
    """

    def __init__(self, details: list[dict[str, str]]) -> None:
        self.details = details
        super().__init__(details[0]["message"] if details else "Invalid scenario")


class DuplicateScenarioError(SwaggerMockError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Scenario with name "{name}" already exists')


class ScenarioNotFoundError(SwaggerMockError):
    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f'Scenario "{name}" not found')
