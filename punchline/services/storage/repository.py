"""
Data-access layer for analysis records.

``AnalysisRepository`` receives an ``AsyncSession`` and provides all
data-access methods.  It calls ``flush()`` rather than ``commit()`` so
that transaction boundaries are controlled by the caller (typically
:func:`get_session`).

Records are append-only: the only in-place writes are the ``name`` and
``duration_seconds`` patches, which overwrite those fields idempotently.
"""

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from punchline.core.exceptions import RecordNotFound
from punchline.core.models import ProcessedEmotions
from punchline.services.storage.models_db import AnalysisRecord

logger = logging.getLogger(__name__)


class AnalysisRepository:
    """Owner-scoped CRUD for ``AnalysisRecord`` rows.

    Args:
        session: An active SQLAlchemy ``AsyncSession``.
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def create_record(
        self,
        owner_id: str,
        transcription: str,
        emotions: ProcessedEmotions,
        audio_path: str,
        name: str = "Recording",
        mime_type: str = "audio/wav",
        duration_seconds: float | None = None,
    ) -> AnalysisRecord:
        """Append a new analysis record and return it (with its ID)."""
        record = AnalysisRecord(
            owner_id=owner_id,
            name=name,
            transcription=transcription,
            emotions=emotions.model_dump(mode="json"),
            audio_path=audio_path,
            mime_type=mime_type,
            duration_seconds=duration_seconds,
        )
        self._session.add(record)
        await self._session.flush()
        logger.debug("Created %r", record)
        return record

    async def get_record(self, record_id: str, owner_id: str | None = None) -> AnalysisRecord:
        """Return a record by ID or raise :class:`RecordNotFound`.

        When *owner_id* is given, a record belonging to someone else is
        reported as not found.
        """
        stmt = select(AnalysisRecord).where(AnalysisRecord.id == record_id)
        if owner_id is not None:
            stmt = stmt.where(AnalysisRecord.owner_id == owner_id)
        result = await self._session.execute(stmt)
        record = result.scalar_one_or_none()
        if record is None:
            raise RecordNotFound(record_id)
        return record

    async def list_records(
        self,
        owner_id: str,
        limit: int = 50,
        offset: int = 0,
    ) -> list[AnalysisRecord]:
        """Return an owner's records, newest first."""
        stmt = (
            select(AnalysisRecord)
            .where(AnalysisRecord.owner_id == owner_id)
            .order_by(AnalysisRecord.created_at.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._session.execute(stmt)
        return list(result.scalars().all())

    async def update_record(
        self,
        record_id: str,
        owner_id: str | None = None,
        name: str | None = None,
        duration_seconds: float | None = None,
    ) -> AnalysisRecord:
        """Patch the display name and/or duration; other fields are immutable."""
        record = await self.get_record(record_id, owner_id=owner_id)
        if name is not None:
            record.name = name
        if duration_seconds is not None:
            record.duration_seconds = duration_seconds
        await self._session.flush()
        return record

    async def delete_record(self, record_id: str, owner_id: str | None = None) -> AnalysisRecord:
        """Delete a record and return the removed row (for audio cleanup)."""
        record = await self.get_record(record_id, owner_id=owner_id)
        await self._session.delete(record)
        await self._session.flush()
        return record
