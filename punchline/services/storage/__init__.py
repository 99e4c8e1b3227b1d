"""
Storage module - Analysis-record persistence and audio object storage.
"""

from .object_store import LocalObjectStorage, ObjectStorage

__all__ = ["LocalObjectStorage", "ObjectStorage", "create_object_storage"]


def create_object_storage(root_dir: str | None = None) -> ObjectStorage:
    """Return the configured object storage backend."""
    from punchline.core.config import get_settings

    return LocalObjectStorage(root_dir or get_settings().storage_dir)
