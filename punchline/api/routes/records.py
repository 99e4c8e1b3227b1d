"""
Analysis-record REST endpoints.

Owner-scoped listing, lookup, audio playback, rename/duration patches and
deletion. Every endpoint takes the caller's ``userId``; records owned by
someone else are reported as not found. All endpoints delegate to
``AnalysisRepository``.
"""

import logging

from fastapi import APIRouter, Query
from fastapi.responses import FileResponse, Response

from punchline.api.dependencies import OwnerDep, StorageDep
from punchline.core.exceptions import PunchlineError
from punchline.core.models import (
    DeleteRecordResponse,
    ProcessedEmotions,
    RecordResponse,
    RecordUpdate,
)
from punchline.services.storage.database import get_session
from punchline.services.storage.models_db import AnalysisRecord
from punchline.services.storage.object_store import LocalObjectStorage
from punchline.services.storage.repository import AnalysisRepository

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/records", tags=["records"])


def _to_response(record: AnalysisRecord) -> RecordResponse:
    """Convert an ORM AnalysisRecord to its API response model."""
    return RecordResponse(
        id=record.id,
        owner_id=record.owner_id,
        name=record.name,
        transcription=record.transcription,
        emotions=ProcessedEmotions.model_validate(record.emotions or {}),
        audio_path=record.audio_path,
        mime_type=record.mime_type,
        duration_seconds=record.duration_seconds,
        created_at=record.created_at,
    )


@router.get("", response_model=list[RecordResponse])
async def list_records(
    user_id: OwnerDep,
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
):
    """List the caller's records, newest first."""
    async with get_session() as session:
        repo = AnalysisRepository(session)
        records = await repo.list_records(owner_id=user_id, limit=limit, offset=offset)
    return [_to_response(r) for r in records]


@router.get("/{record_id}", response_model=RecordResponse)
async def get_record(record_id: str, user_id: OwnerDep):
    """Get a single record."""
    async with get_session() as session:
        repo = AnalysisRepository(session)
        record = await repo.get_record(record_id, owner_id=user_id)
    return _to_response(record)


@router.get("/{record_id}/audio")
async def get_record_audio(
    record_id: str,
    storage: StorageDep,
    user_id: OwnerDep,
):
    """Serve the stored audio for a record."""
    async with get_session() as session:
        repo = AnalysisRepository(session)
        record = await repo.get_record(record_id, owner_id=user_id)

    not_found = PunchlineError(
        detail=f"Audio not found for record {record_id}",
        code="AUDIO_NOT_FOUND",
        status_code=404,
    )
    if isinstance(storage, LocalObjectStorage):
        audio_path = storage.local_path(record.audio_path)
        if not audio_path.is_file():
            raise not_found
        return FileResponse(
            path=audio_path,
            media_type=record.mime_type,
            filename=f"{record.name}{audio_path.suffix}",
        )

    try:
        data = await storage.read(record.audio_path)
    except FileNotFoundError:
        raise not_found from None
    return Response(content=data, media_type=record.mime_type)


@router.patch("/{record_id}", response_model=RecordResponse)
async def update_record(
    record_id: str,
    body: RecordUpdate,
    user_id: OwnerDep,
):
    """Rename a record and/or set its duration."""
    async with get_session() as session:
        repo = AnalysisRepository(session)
        record = await repo.update_record(
            record_id,
            owner_id=user_id,
            name=body.name,
            duration_seconds=body.duration_seconds,
        )
    return _to_response(record)


@router.delete("/{record_id}", response_model=DeleteRecordResponse)
async def delete_record(
    record_id: str,
    storage: StorageDep,
    user_id: OwnerDep,
):
    """Delete a record and its stored audio."""
    async with get_session() as session:
        repo = AnalysisRepository(session)
        record = await repo.delete_record(record_id, owner_id=user_id)

    # Best-effort object cleanup; the record is already gone
    audio_deleted = False
    try:
        audio_deleted = await storage.delete(record.audio_path)
    except Exception:
        logger.warning("Could not delete audio %s", record.audio_path, exc_info=True)

    return DeleteRecordResponse(record_id=record_id, audio_deleted=audio_deleted)
