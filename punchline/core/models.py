"""
Pydantic v2 request / response models used across the API layer.

Models that cross the ingest boundary serialize with camelCase aliases
(``topEmotions``, ``recordId``) so browser clients read them unchanged;
Python code constructs them with snake_case field names.
"""

from datetime import UTC, datetime
from enum import StrEnum

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Base model emitting camelCase JSON and accepting either spelling."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


class ProviderStatus(BaseModel):
    """Configuration state of one external AI provider."""

    configured: bool
    model: str = ""


class ProvidersResponse(BaseModel):
    """GET /health/providers response."""

    transcription: ProviderStatus
    emotion: ProviderStatus


# ---------------------------------------------------------------------------
# Emotions
# ---------------------------------------------------------------------------


class EmotionScore(BaseModel):
    """One named emotion with its averaged score."""

    name: str
    score: float


class ProcessedEmotions(CamelModel):
    """Ranked emotion summary for one recording (highest score first)."""

    top_emotions: list[EmotionScore] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def empty(cls) -> "ProcessedEmotions":
        """Return a summary with no emotions, stamped now."""
        return cls(top_emotions=[])


class EmotionJobStatus(StrEnum):
    """Lifecycle states reported by the emotion-inference service."""

    queued = "queued"
    processing = "processing"
    completed = "completed"
    failed = "failed"


class EmotionJob(BaseModel):
    """Snapshot of an external emotion job. Never persisted."""

    job_id: str
    status: EmotionJobStatus
    message: str = ""


# ---------------------------------------------------------------------------
# Analysis records
# ---------------------------------------------------------------------------


class IngestResponse(CamelModel):
    """POST /ingest success envelope."""

    success: bool = True
    record_id: str
    transcription: str
    emotions: ProcessedEmotions


class RecordResponse(CamelModel):
    """Standard analysis-record representation returned by the API."""

    id: str
    owner_id: str
    name: str
    transcription: str
    emotions: ProcessedEmotions
    audio_path: str
    mime_type: str
    duration_seconds: float | None = None
    created_at: datetime


class RecordUpdate(CamelModel):
    """PATCH /records/{id} body. Only provided fields are written."""

    name: str | None = Field(default=None, min_length=1, max_length=255)
    duration_seconds: float | None = Field(default=None, ge=0)


class DeleteRecordResponse(CamelModel):
    """DELETE /records/{id} response."""

    record_id: str
    audio_deleted: bool


# ---------------------------------------------------------------------------
# Error
# ---------------------------------------------------------------------------


class ErrorResponse(BaseModel):
    """Standard error envelope returned by the API."""

    error: str
    details: str | None = None
    code: str
    timestamp: str
