"""Writes response files and status descriptors for endpoint directories."""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterable

import structlog

from .logging_utils import LOGGER_NAME
from .layout import response_filename, status_path
from .models import EndpointStatus, MockResponseFile
from .storage import FileStore
from .synthesizer import DEFAULT_RESPONSES, synthesize

LOGGER = structlog.get_logger(LOGGER_NAME)


@dataclass(frozen=True)
class MockResponse:
    """A response ready to be written: status code, description and synthesized body."""

    status_code: str
    description: str | None
    body: Any

    @property
    def filename(self) -> str:
        return response_filename(self.description, self.status_code)


def default_responses() -> list[MockResponse]:
    return [
        MockResponse(item.status_code, item.description, synthesize(item.body_schema))
        for item in DEFAULT_RESPONSES
    ]


class FileMaterializer:
    """Turns synthesized responses into ``<description>-<status>.json`` files."""

    def __init__(self, store: FileStore) -> None:
        self._store = store

    async def materialize(
        self,
        directory: Path,
        responses: Iterable[MockResponse] | None,
        *,
        with_status: bool = False,
    ) -> list[str]:
        """Write every response (defaults when none are given) and return the filenames."""

        items = list(responses or [])
        if not items:
            items = default_responses()

        await self._store.ensure_dir(directory)
        created: list[str] = []
        for response in items:
            filename = response.filename
            payload = MockResponseFile(body=response.body).model_dump(mode="json")
            await self._store.write_json(directory / filename, payload)
            LOGGER.debug("mock_file_written", directory=str(directory), file=filename)
            created.append(filename)

        if with_status:
            status = EndpointStatus(selected=created[0], delay_millisecond=0)
            await self.write_status(directory, status)
            created.append(status_path(directory).name)
        return created

    async def write_status(self, directory: Path, status: EndpointStatus) -> None:
        await self._store.write_json(status_path(directory), status.as_serializable())
