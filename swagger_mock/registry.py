"""Interactive creation of single mock endpoints."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import structlog

from .config import MANAGEMENT_PREFIX
from .errors import DuplicateEndpointError, EndpointValidationError, StorageError
from .layout import example_url, map_to_directory, route_from_directory
from .locks import KeyedLocks
from .logging_utils import LOGGER_NAME
from .materializer import FileMaterializer, MockResponse
from .models import CREATABLE_METHODS, CreateEndpointResult
from .router import RuntimeRouter

LOGGER = structlog.get_logger(LOGGER_NAME)

MAX_PATH_LENGTH = 500
_ALLOWED_PATH = re.compile(r"^/[a-z0-9\-/{}]*$", re.IGNORECASE)
_RESERVED_CHARS = re.compile(r'[:"|*?<>]')

ENDPOINT_TEMPLATE: tuple[MockResponse, ...] = (
    MockResponse("200", "success", {"status": "success", "message": "Mock response"}),
    MockResponse("default", "unexpected error", {"status": "error", "message": "Unexpected error"}),
)


def validate_endpoint_request(path: Any, method: Any) -> list[dict[str, str]]:
    """Every rule the (path, method) pair breaks, in a stable order."""

    details: list[dict[str, str]] = []

    if path is None:
        details.append({"field": "path", "message": "Required"})
    elif not isinstance(path, str):
        details.append({"field": "path", "message": "Path must be a string"})
    else:
        if not path:
            details.append({"field": "path", "message": "Path is required"})
        if len(path) > MAX_PATH_LENGTH:
            details.append({"field": "path", "message": f"Path is too long (max {MAX_PATH_LENGTH} characters)"})
        if not _ALLOWED_PATH.match(path):
            details.append(
                {
                    "field": "path",
                    "message": "Path must start with / and can only contain letters, numbers, hyphens, "
                    "slashes, and {braces} for parameters",
                }
            )
        if _RESERVED_CHARS.search(path):
            details.append(
                {
                    "field": "path",
                    "message": 'Path contains invalid file system characters. Remove: : | < > " * ?',
                }
            )
        if path.startswith(f"{MANAGEMENT_PREFIX}/"):
            details.append(
                {
                    "field": "path",
                    "message": "Cannot create endpoints with reserved /_mock prefix (used for management API)",
                }
            )

    if method is None:
        details.append({"field": "method", "message": "Required"})
    elif not isinstance(method, str) or method not in CREATABLE_METHODS:
        expected = " | ".join(f"'{item}'" for item in CREATABLE_METHODS)
        details.append({"field": "method", "message": f"Invalid enum value. Expected {expected}"})

    return details


class EndpointRegistry:
    """Validates, duplicate-checks and creates one endpoint's mock files.

    The check-and-create sequence for one endpoint directory runs under a
    lock keyed by that directory, and the directory itself is created
    exclusively, so concurrent duplicates cannot both succeed.
    """

    def __init__(self, router: RuntimeRouter, *, base_url: str = "http://localhost:3001") -> None:
        self._router = router
        self._root = router.mock_root
        self._store = router.store
        self._materializer = FileMaterializer(self._store)
        self._base_url = base_url
        self._locks = KeyedLocks()

    async def create_endpoint(self, path: Any, method: Any) -> CreateEndpointResult:
        details = validate_endpoint_request(path, method)
        if details:
            raise EndpointValidationError(details)

        directory = map_to_directory(self._root, path, method)
        # keyed by directory: differently cased paths share one endpoint directory
        async with self._locks.hold(str(directory)):
            try:
                await self._store.create_dir_exclusive(directory)
            except FileExistsError:
                existing = self._existing_path(directory, method)
                LOGGER.warning(
                    "endpoint_duplicate", path=path, existing=existing, method=method, directory=str(directory)
                )
                raise DuplicateEndpointError(existing, method, directory) from None

            try:
                files = await self._materializer.materialize(directory, ENDPOINT_TEMPLATE, with_status=True)
            except StorageError:
                LOGGER.exception("endpoint_create_failed", path=path, method=method, directory=str(directory))
                # a half-written endpoint would block every retry with a 409
                try:
                    await self._store.remove_tree(directory)
                except StorageError as cleanup_exc:
                    LOGGER.warning("endpoint_cleanup_failed", directory=str(directory), cause=cleanup_exc.cause)
                raise

            route_path, _ = route_from_directory(self._root, directory)
            self._router.register(route_path, method, directory)

        LOGGER.info("endpoint_created", path=path, method=method, directory=str(directory), files=files)
        return CreateEndpointResult(
            path=path,
            method=method,
            files_created=files,
            available_at=example_url(self._base_url, path),
            mock_directory=str(directory),
        )

    def _existing_path(self, directory: Path, method: str) -> str:
        # the path the directory was registered under, not the casing just requested
        route_path, _ = route_from_directory(self._root, directory)
        endpoint = self._router.find(route_path, method)
        return endpoint.path if endpoint is not None else route_path
