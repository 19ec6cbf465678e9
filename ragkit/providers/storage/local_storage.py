"""Local-disk file storage for uploaded documents."""

from __future__ import annotations

import asyncio
from pathlib import Path

import structlog

from ragkit.interfaces.job_queue import IFileStorage

logger = structlog.get_logger(logger_name=__name__)


class LocalFileStorage(IFileStorage):
    """Reads uploaded files from a directory; storage keys are relative paths."""

    def __init__(self, root: str | Path = "./data/uploads") -> None:
        self._root = Path(root).resolve()

    async def read(self, storage_key: str) -> bytes:
        path = self._resolve(storage_key)
        if not path.is_file():
            raise FileNotFoundError(f"No file stored under '{storage_key}'")
        data = await asyncio.to_thread(path.read_bytes)
        logger.debug("file_read", storage_key=storage_key, size=len(data))
        return data

    async def write(self, storage_key: str, data: bytes) -> None:
        """Store *data* under *storage_key*, creating parent directories."""
        path = self._resolve(storage_key)
        path.parent.mkdir(parents=True, exist_ok=True)
        await asyncio.to_thread(path.write_bytes, data)
        logger.debug("file_written", storage_key=storage_key, size=len(data))

    def _resolve(self, storage_key: str) -> Path:
        path = (self._root / storage_key).resolve()
        if not path.is_relative_to(self._root):
            raise FileNotFoundError(f"Storage key escapes the storage root: '{storage_key}'")
        return path
