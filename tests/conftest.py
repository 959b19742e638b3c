"""Test bootstrap for swagger-mock."""

from __future__ import annotations

import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]

project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

import pytest

from swagger_mock.errors import StorageError
from swagger_mock.storage import FileStore


class FlakyStore(FileStore):
    """FileStore whose next ``failures`` JSON writes fail like a full disk."""

    def __init__(self, root: Path, failures: int = 1) -> None:
        super().__init__(root)
        self.failures = failures

    async def write_json(self, path: Path, payload) -> None:
        if self.failures > 0:
            self.failures -= 1
            raise StorageError("write", path, OSError(28, "No space left on device"))
        await super().write_json(path, payload)


@pytest.fixture
def flaky_store():
    return FlakyStore
