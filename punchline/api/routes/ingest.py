"""
Ingest endpoint.

Accepts one multipart submission (``audio`` file + ``userId`` field) and
runs the ingest pipeline. Fatal pipeline errors propagate to the error
handlers; emotion-analysis failures never reach this layer.
"""

import logging

from fastapi import APIRouter, File, Form, UploadFile

from punchline.api.dependencies import PipelineDep
from punchline.core.config import get_settings
from punchline.core.exceptions import InvalidUpload, PunchlineError
from punchline.core.models import IngestResponse, ProcessedEmotions
from punchline.core.utils import normalize_owner_id

logger = logging.getLogger(__name__)

router = APIRouter(tags=["ingest"])


@router.post("/ingest", response_model=IngestResponse)
async def ingest_audio(
    pipeline: PipelineDep,
    audio: UploadFile | None = File(None),
    user_id: str | None = Form(None, alias="userId"),
):
    """Store, transcribe and emotion-analyze one uploaded recording."""
    owner_id = normalize_owner_id(user_id)
    if audio is None or not owner_id:
        raise InvalidUpload("Both an 'audio' file and a 'userId' field are required")

    max_bytes = get_settings().max_upload_bytes
    too_large = PunchlineError(
        detail=f"Audio exceeds the {max_bytes}-byte upload limit",
        code="UPLOAD_TOO_LARGE",
        status_code=413,
    )
    if audio.size is not None and audio.size > max_bytes:
        raise too_large

    # Read one byte past the limit so an unknown-size upload is never fully buffered
    audio_bytes = await audio.read(max_bytes + 1)
    if not audio_bytes:
        raise InvalidUpload("Uploaded audio is empty")
    if len(audio_bytes) > max_bytes:
        raise too_large

    logger.info(
        "Ingest request from %s: %s (%d bytes)", owner_id, audio.filename, len(audio_bytes)
    )
    record = await pipeline.ingest(
        owner_id=owner_id,
        audio_bytes=audio_bytes,
        filename=audio.filename,
    )
    return IngestResponse(
        record_id=record.id,
        transcription=record.transcription,
        emotions=ProcessedEmotions.model_validate(record.emotions),
    )
