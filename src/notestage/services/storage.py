"""Blob storage for uploaded media."""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Protocol
from urllib.parse import urljoin

logger = logging.getLogger(__name__)


class Disk(Protocol):
    """Minimal blob storage contract used by the media pipeline."""

    async def put(self, key: str, data: bytes) -> None: ...

    def get_url(self, key: str) -> str: ...


class LocalDisk:
    """Store blobs as files under a root directory and serve them from a base URL.

    Keys are relative POSIX paths (``note-media/<uuid>.webp``); they must not
    escape the root directory.
    """

    def __init__(self, root: str | Path, base_url: str) -> None:
        self.root = Path(root).resolve()
        self.base_url = base_url if base_url.endswith("/") else f"{base_url}/"

    def _path_for(self, key: str) -> Path:
        path = (self.root / key).resolve()
        if self.root not in path.parents:
            raise ValueError(f"Storage key escapes the storage root: {key}")
        return path

    def _write(self, path: Path, data: bytes) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_bytes(data)
        tmp.replace(path)

    async def put(self, key: str, data: bytes) -> None:
        """Write ``data`` under ``key``, replacing any previous blob."""
        path = self._path_for(key)
        await asyncio.to_thread(self._write, path, data)
        logger.debug("Stored %d bytes at %s", len(data), key)

    def get_url(self, key: str) -> str:
        """Return the public URL of a stored blob."""
        return urljoin(self.base_url, key)

    def exists(self, key: str) -> bool:
        """Return True if a blob is stored under ``key``."""
        return self._path_for(key).is_file()
