"""Async file-system access for mock artifacts.

Blocking ``pathlib`` calls run on the default executor so the event loop that
serves mock requests is never blocked by disk I/O.
"""

from __future__ import annotations

import asyncio
import json
import os
import shutil
import tempfile
from functools import partial
from pathlib import Path
from typing import Any, Callable, TypeVar

from .errors import StorageError

T = TypeVar("T")


class FileStore:
    """Reads and writes the mock tree under one root directory."""

    def __init__(self, root: Path) -> None:
        self.root = root

    async def _run(self, func: Callable[..., T], *args: Any) -> T:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, partial(func, *args))

    async def read_text(self, path: Path) -> str:
        return await self._run(path.read_text, "utf-8")

    async def read_json(self, path: Path) -> Any:
        """Parse a JSON file; ``FileNotFoundError`` and ``ValueError`` propagate."""

        return json.loads(await self.read_text(path))

    async def write_json(self, path: Path, payload: Any) -> None:
        """Write ``payload`` atomically: temp file in the same directory, then rename."""

        try:
            await self._run(_atomic_write_json, path, payload)
        except OSError as exc:
            raise StorageError("write", path, exc) from exc

    async def ensure_dir(self, path: Path) -> None:
        try:
            await self._run(partial(path.mkdir, parents=True, exist_ok=True))
        except OSError as exc:
            raise StorageError("mkdir", path, exc) from exc

    async def create_dir_exclusive(self, path: Path) -> None:
        """Create ``path`` (and parents); ``FileExistsError`` if it is already there."""

        try:
            await self._run(partial(path.parent.mkdir, parents=True, exist_ok=True))
            await self._run(partial(path.mkdir, exist_ok=False))
        except FileExistsError:
            raise
        except OSError as exc:
            raise StorageError("mkdir", path, exc) from exc

    async def remove_file(self, path: Path) -> None:
        try:
            await self._run(path.unlink)
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError("remove", path, exc) from exc

    async def remove_tree(self, path: Path) -> None:
        try:
            await self._run(partial(shutil.rmtree, path, ignore_errors=False))
        except FileNotFoundError:
            return
        except OSError as exc:
            raise StorageError("remove", path, exc) from exc

    async def path_exists(self, path: Path) -> bool:
        return await self._run(path.exists)

    async def is_dir(self, path: Path) -> bool:
        return await self._run(path.is_dir)

    async def list_dir(self, path: Path) -> list[str]:
        """Sorted entry names of ``path``; empty when the directory is missing."""

        return await self._run(_list_dir, path)


def _atomic_write_json(path: Path, payload: Any) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as fp:
            json.dump(payload, fp, indent=2, ensure_ascii=False)
            fp.write("\n")
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _list_dir(path: Path) -> list[str]:
    try:
        return sorted(entry.name for entry in path.iterdir())
    except FileNotFoundError:
        return []
