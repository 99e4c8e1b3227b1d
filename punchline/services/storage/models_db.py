"""
SQLAlchemy ORM models for the Punchline schema.

Tables: ``analysis_records``.
"""

import uuid
from datetime import UTC, datetime

from sqlalchemy import Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.types import JSON

from punchline.services.storage.database import Base


def _new_id() -> str:
    return uuid.uuid4().hex


class AnalysisRecord(Base):
    """One ingested recording: transcription, emotions and audio reference."""

    __tablename__ = "analysis_records"
    __table_args__ = (Index("ix_analysis_records_owner_created", "owner_id", "created_at"),)

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_id)
    owner_id: Mapped[str] = mapped_column(String(128), index=True)
    name: Mapped[str] = mapped_column(String(255), default="Recording")
    transcription: Mapped[str] = mapped_column(Text, default="")
    emotions: Mapped[dict] = mapped_column(JSON, default=dict)
    audio_path: Mapped[str] = mapped_column(String(512))
    mime_type: Mapped[str] = mapped_column(String(50), default="audio/wav")
    duration_seconds: Mapped[float | None] = mapped_column(nullable=True)
    created_at: Mapped[datetime] = mapped_column(default=lambda: datetime.now(UTC))

    def __repr__(self) -> str:
        return f"<AnalysisRecord id={self.id} owner={self.owner_id!r}>"
