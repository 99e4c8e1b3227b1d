"""Audio ingest pipeline: store, transcribe, analyze emotions, persist.

One ``ingest()`` call runs as a single asyncio task:

1. Write the raw audio to object storage (fatal on failure).
2. Transcribe a scratch copy of the audio (fatal on failure).
3. Emotion analysis (submit -> poll -> aggregate) runs alongside step 2 as
   a best-effort branch. It reports through an ``EmotionOutcome`` value
   and never raises; on any failure the record gets empty emotions.
4. Persist one ``AnalysisRecord`` and return it.

The scratch copy is removed on every exit path. An audio object whose
transcription failed stays in storage without a record.

Usage::

    pipeline = create_pipeline()
    record = await pipeline.ingest(owner_id="u-1", audio_bytes=blob.data)
"""

import asyncio
import contextlib
import logging
import tempfile
import uuid
from collections.abc import Callable
from dataclasses import dataclass, field
from pathlib import Path

from punchline.core.config import get_settings
from punchline.core.exceptions import (
    EmotionAnalysisError,
    StorageWriteFailed,
    TranscriptionFailed,
)
from punchline.core.models import ProcessedEmotions
from punchline.core.utils import now_ms, owner_segment
from punchline.services.audio.processor import (
    AUDIO_EXTENSION,
    AUDIO_MIME_TYPE,
    probe_duration_seconds,
)
from punchline.services.emotion.aggregator import aggregate
from punchline.services.emotion.base import BaseEmotionClient
from punchline.services.storage.database import get_session
from punchline.services.storage.models_db import AnalysisRecord
from punchline.services.storage.object_store import ObjectStorage
from punchline.services.storage.repository import AnalysisRepository
from punchline.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


@dataclass
class EmotionOutcome:
    """Result of the best-effort emotion branch.

    ``emotions`` is always usable; ``error`` records why it is empty when
    analysis failed, and ``skipped`` marks an unconfigured provider.
    """

    emotions: ProcessedEmotions = field(default_factory=ProcessedEmotions.empty)
    error: Exception | None = None
    skipped: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None and not self.skipped


def audio_object_path(owner_id: str, timestamp_ms: int | None = None) -> str:
    """Per-owner storage key.

    The owner segment is unique per owner id and the random suffix keeps
    two uploads in the same millisecond apart.
    """
    ts = timestamp_ms if timestamp_ms is not None else now_ms()
    suffix = uuid.uuid4().hex[:8]
    return f"audio/{owner_segment(owner_id)}/recording-{ts}-{suffix}{AUDIO_EXTENSION}"


class AudioIngestPipeline:
    """Orchestrates one end-to-end ingest per call.

    Args:
        storage: Object storage for raw audio.
        stt: Speech-to-text provider (fatal step).
        emotion_client: Emotion provider (best-effort); None disables it.
        session_factory: Async context manager yielding a DB session.
        scratch_dir: Directory for the transient scratch copy
            (None = system temp directory).
        top_n: Number of emotions kept per record.
    """

    def __init__(
        self,
        storage: ObjectStorage,
        stt: BaseSTT,
        emotion_client: BaseEmotionClient | None = None,
        session_factory: Callable = get_session,
        scratch_dir: str | Path | None = None,
        top_n: int = 3,
    ) -> None:
        self._storage = storage
        self._stt = stt
        self._emotion_client = emotion_client
        self._session_factory = session_factory
        self._scratch_dir = Path(scratch_dir) if scratch_dir else None
        self._top_n = top_n

    async def ingest(
        self,
        owner_id: str,
        audio_bytes: bytes,
        filename: str | None = None,
    ) -> AnalysisRecord:
        """Run the full pipeline for one uploaded recording.

        Args:
            owner_id: Stable identifier of the caller.
            audio_bytes: The complete audio payload.
            filename: Optional client filename, used for the display name.

        Returns:
            The persisted ``AnalysisRecord``.

        Raises:
            StorageWriteFailed: The audio could not be stored.
            TranscriptionFailed: The audio could not be transcribed.
        """
        audio_path = await self._store_audio(owner_id, audio_bytes)

        scratch = await asyncio.to_thread(self._stage, audio_bytes)
        try:
            emotion_task = asyncio.create_task(self.analyze_emotions(audio_bytes))
            try:
                transcription = await self._transcribe(scratch)
                duration = await asyncio.to_thread(probe_duration_seconds, scratch)
                outcome = await emotion_task
            except BaseException:
                emotion_task.cancel()
                with contextlib.suppress(asyncio.CancelledError):
                    await emotion_task
                raise
        finally:
            scratch.unlink(missing_ok=True)

        record = await self._persist(
            owner_id=owner_id,
            transcription=transcription,
            emotions=outcome.emotions,
            audio_path=audio_path,
            name=Path(filename).stem if filename else Path(audio_path).stem,
            duration=duration,
        )
        logger.info(
            "Ingested record %s for %s (emotions=%s)",
            record.id,
            owner_id,
            "ok" if outcome.ok else "empty",
        )
        return record

    async def analyze_emotions(self, audio_bytes: bytes) -> EmotionOutcome:
        """Best-effort emotion analysis. Never raises ``Exception``."""
        client = self._emotion_client
        if client is None or not client.configured:
            logger.warning("Emotion provider not configured; skipping emotion analysis")
            return EmotionOutcome(skipped=True)

        try:
            job_id = await client.submit(audio_bytes)
            predictions = await client.await_result(job_id)
        except EmotionAnalysisError as exc:
            logger.warning("Emotion analysis failed (%s): %s", exc.code, exc.detail)
            return EmotionOutcome(error=exc)
        except Exception as exc:
            logger.exception("Unexpected emotion analysis error")
            return EmotionOutcome(error=exc)

        emotions = aggregate(predictions, top_n=self._top_n)
        return EmotionOutcome(emotions=emotions)

    async def aclose(self) -> None:
        """Release provider connections."""
        if self._emotion_client is not None:
            await self._emotion_client.aclose()

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    async def _store_audio(self, owner_id: str, audio_bytes: bytes) -> str:
        path = audio_object_path(owner_id)
        try:
            return await self._storage.write(path, audio_bytes, AUDIO_MIME_TYPE)
        except Exception as exc:
            logger.error("Storing audio at %s failed: %s", path, exc)
            raise StorageWriteFailed(path, exc) from exc

    def _stage(self, audio_bytes: bytes) -> Path:
        """Write the scratch copy used by transcription and duration probing."""
        if self._scratch_dir is not None:
            self._scratch_dir.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            prefix="ingest-",
            suffix=AUDIO_EXTENSION,
            dir=self._scratch_dir,
            delete=False,
        ) as handle:
            handle.write(audio_bytes)
        return Path(handle.name)

    async def _transcribe(self, scratch: Path) -> str:
        try:
            return await self._stt.transcribe(scratch)
        except TranscriptionFailed:
            raise
        except Exception as exc:
            raise TranscriptionFailed(exc) from exc

    async def _persist(
        self,
        owner_id: str,
        transcription: str,
        emotions: ProcessedEmotions,
        audio_path: str,
        name: str,
        duration: float | None,
    ) -> AnalysisRecord:
        async with self._session_factory() as session:
            repo = AnalysisRepository(session)
            return await repo.create_record(
                owner_id=owner_id,
                transcription=transcription,
                emotions=emotions,
                audio_path=audio_path,
                name=name,
                mime_type=AUDIO_MIME_TYPE,
                duration_seconds=duration,
            )


def create_pipeline(storage: ObjectStorage | None = None) -> AudioIngestPipeline:
    """Build a pipeline wired to the configured providers."""
    from punchline.services.emotion import create_emotion_client
    from punchline.services.storage import create_object_storage
    from punchline.services.transcription import create_stt

    settings = get_settings()
    return AudioIngestPipeline(
        storage=storage or create_object_storage(),
        stt=create_stt(),
        emotion_client=create_emotion_client(),
        scratch_dir=settings.scratch_dir or None,
        top_n=settings.emotion_top_n,
    )

