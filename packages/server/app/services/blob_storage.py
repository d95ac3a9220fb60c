"""
Blob storage for organization avatars.
"""

from __future__ import annotations

import asyncio
from pathlib import Path, PurePosixPath
from typing import Protocol

import structlog

log = structlog.get_logger()


class BlobStorage(Protocol):
    async def write(self, path: str, content_type: str, data: bytes) -> str:
        """Store ``data`` at ``path`` and return its public URL."""
        ...


class LocalBlobStorage:
    """Filesystem-backed storage served under ``<base_url>/files/``."""

    def __init__(self, root: str | Path, base_url: str) -> None:
        self._root = Path(root)
        self._base_url = base_url.rstrip("/")

    def _resolve(self, path: str) -> Path:
        relative = PurePosixPath(path)
        if relative.is_absolute() or ".." in relative.parts:
            raise ValueError(f"Refusing to write outside storage root: {path}")
        return self._root.joinpath(*relative.parts)

    async def write(self, path: str, content_type: str, data: bytes) -> str:
        target = self._resolve(path)

        def _write() -> None:
            target.parent.mkdir(parents=True, exist_ok=True)
            target.write_bytes(data)

        await asyncio.to_thread(_write)
        log.info("blob.written", path=path, content_type=content_type, size=len(data))
        return f"{self._base_url}/files/{path}"
