"""
Durable object storage for raw audio payloads.

Objects are addressed by slash-separated keys such as
``audio/<owner>/recording-<ms>-<suffix>.wav``. The local implementation maps keys
onto files under a root directory and keeps each object's content type in
a small JSON sidecar.
"""

import asyncio
import json
import logging
import os
import uuid
from abc import ABC, abstractmethod
from datetime import UTC, datetime
from pathlib import Path

logger = logging.getLogger(__name__)

_META_SUFFIX = ".meta.json"


class ObjectStorage(ABC):
    """Interface for an object store keyed by path."""

    @abstractmethod
    async def write(self, path: str, data: bytes, content_type: str) -> str:
        """Store *data* under *path* and return the stored key."""

    @abstractmethod
    async def read(self, path: str) -> bytes:
        """Return the bytes stored under *path*.

        Raises:
            FileNotFoundError: If no object exists at *path*.
        """

    @abstractmethod
    async def delete(self, path: str) -> bool:
        """Remove the object at *path*. Returns False if it did not exist."""

    @abstractmethod
    async def content_type(self, path: str) -> str:
        """Return the content type recorded for *path*."""


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed object storage rooted at *root_dir*.

    Args:
        root_dir: Directory under which all objects live.
    """

    def __init__(self, root_dir: str | Path) -> None:
        self._root = Path(root_dir).resolve()

    @property
    def root(self) -> Path:
        return self._root

    def _resolve(self, path: str) -> Path:
        """Map a key onto the filesystem, refusing keys that escape the root."""
        target = (self._root / path.lstrip("/")).resolve()
        if not target.is_relative_to(self._root) or target == self._root:
            raise ValueError(f"Invalid object path: {path!r}")
        return target

    def _write_sync(self, target: Path, data: bytes, content_type: str) -> None:
        target.parent.mkdir(parents=True, exist_ok=True)
        # Write to a temp name first so readers never see a partial object
        temp = target.with_name(f"{target.name}.{uuid.uuid4().hex}.part")
        temp.write_bytes(data)
        os.replace(temp, target)
        meta = {
            "content_type": content_type,
            "size": len(data),
            "stored_at": datetime.now(UTC).isoformat(),
        }
        target.with_name(target.name + _META_SUFFIX).write_text(json.dumps(meta), encoding="utf-8")

    async def write(self, path: str, data: bytes, content_type: str) -> str:
        target = self._resolve(path)
        await asyncio.to_thread(self._write_sync, target, data, content_type)
        logger.info("Stored %d bytes at %s", len(data), path)
        return path

    async def read(self, path: str) -> bytes:
        target = self._resolve(path)
        return await asyncio.to_thread(target.read_bytes)

    def _delete_sync(self, target: Path) -> bool:
        existed = target.is_file()
        target.unlink(missing_ok=True)
        target.with_name(target.name + _META_SUFFIX).unlink(missing_ok=True)
        return existed

    async def delete(self, path: str) -> bool:
        target = self._resolve(path)
        return await asyncio.to_thread(self._delete_sync, target)

    async def content_type(self, path: str) -> str:
        target = self._resolve(path)
        meta_path = target.with_name(target.name + _META_SUFFIX)
        try:
            meta = json.loads(await asyncio.to_thread(meta_path.read_text, encoding="utf-8"))
            return meta.get("content_type") or "application/octet-stream"
        except (OSError, ValueError):
            return "application/octet-stream"

    def local_path(self, path: str) -> Path:
        """Filesystem path of an object (for streaming responses)."""
        return self._resolve(path)
