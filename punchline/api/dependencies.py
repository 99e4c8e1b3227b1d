"""FastAPI dependency injection configuration.

Providers are built lazily on first use and cached for the process.
Tests replace them through ``app.dependency_overrides``.
"""

from functools import lru_cache
from typing import Annotated

from fastapi import Depends, Query

from punchline.core.exceptions import InvalidOwner
from punchline.core.utils import normalize_owner_id
from punchline.services.pipeline import AudioIngestPipeline, create_pipeline
from punchline.services.storage import ObjectStorage, create_object_storage


@lru_cache
def get_storage() -> ObjectStorage:
    """Returns the configured object storage."""
    return create_object_storage()


@lru_cache
def get_pipeline() -> AudioIngestPipeline:
    """Returns the ingest pipeline wired to the configured providers."""
    return create_pipeline(storage=get_storage())


def get_owner_id(user_id: str = Query(..., alias="userId", min_length=1)) -> str:
    """The caller's owner id, normalized the same way ingest stores it."""
    owner_id = normalize_owner_id(user_id)
    if not owner_id:
        raise InvalidOwner()
    return owner_id


StorageDep = Annotated[ObjectStorage, Depends(get_storage)]
PipelineDep = Annotated[AudioIngestPipeline, Depends(get_pipeline)]
OwnerDep = Annotated[str, Depends(get_owner_id)]
