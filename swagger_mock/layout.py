"""Mapping between API routes and the on-disk mock directory layout.

``/pets/{petId}`` + ``get`` lives in ``<root>/pets/{petId}/GET``; response files
and ``status.json`` sit inside that directory.
"""

from __future__ import annotations

import re
from pathlib import Path

from .config import MANAGEMENT_PREFIX
from .errors import ReservedPathError

MAX_SEGMENT_LENGTH = 100
STATUS_FILE = "status.json"
EXAMPLE_PARAM_VALUE = "123"

_PARAM_SEGMENT = re.compile(r"^\{[^{}/]+\}$")
_PARAM_ANYWHERE = re.compile(r"\{[^{}/]+\}")
_WHITESPACE = re.compile(r"\s+")
_ILLEGAL = re.compile(r"[^a-z0-9\-_]")
_DASH_RUNS = re.compile(r"-+")
# Directory names the router will treat as route segments
_TEMPLATE_PART = re.compile(r"^[a-zA-Z0-9_\-{}]+$")


def sanitize(name: str) -> str:
    """File-system safe form of a path segment or response description."""

    value = _WHITESPACE.sub("-", name.lower())
    value = _ILLEGAL.sub("-", value)
    value = _DASH_RUNS.sub("-", value)
    value = value.strip("-")[:MAX_SEGMENT_LENGTH]
    # truncation can expose a trailing dash, which would break idempotence
    return value.rstrip("-")


def is_param_segment(segment: str) -> bool:
    return bool(_PARAM_SEGMENT.match(segment))


def is_reserved(api_path: str) -> bool:
    return api_path == MANAGEMENT_PREFIX or api_path.startswith(f"{MANAGEMENT_PREFIX}/")


def path_segments(api_path: str) -> list[str]:
    return [segment for segment in api_path.strip("/").split("/") if segment]


def map_to_directory(output_root: Path, api_path: str, method: str) -> Path:
    """Deterministic endpoint directory for (path, method)."""

    if is_reserved(api_path):
        raise ReservedPathError(f"{api_path} is reserved for the management API")
    safe_parts = [segment if is_param_segment(segment) else sanitize(segment) for segment in path_segments(api_path)]
    return output_root.joinpath(*[part for part in safe_parts if part], method.upper())


def status_path(directory: Path) -> Path:
    return directory / STATUS_FILE


def is_template_part(name: str) -> bool:
    return bool(_TEMPLATE_PART.match(name))


def route_from_directory(output_root: Path, directory: Path) -> tuple[str, str]:
    """Inverse of :func:`map_to_directory` for directories found on disk."""

    parts = directory.relative_to(output_root).parts
    method = parts[-1].upper()
    return "/" + "/".join(parts[:-1]), method


def example_url(base_url: str, api_path: str) -> str:
    """URL an operator can call, with every ``{param}`` filled with a sample value."""

    return base_url.rstrip("/") + _PARAM_ANYWHERE.sub(EXAMPLE_PARAM_VALUE, api_path)


def response_filename(description: str | None, status_code: str) -> str:
    label = sanitize(description) if description else ""
    return f"{label or 'response'}-{status_code}.json"
