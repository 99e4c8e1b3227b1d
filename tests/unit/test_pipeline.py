"""Unit tests for the audio ingest pipeline.

Providers are mocked; storage and the database are real (temporary
directory + in-memory SQLite).
"""

import asyncio
import re
from pathlib import Path
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import func, select

from punchline.core.exceptions import (
    JobTimedOut,
    StorageWriteFailed,
    SubmissionFailed,
    TranscriptionFailed,
)
from punchline.services.pipeline import AudioIngestPipeline, audio_object_path
from punchline.services.storage.models_db import AnalysisRecord
from punchline.services.storage.object_store import ObjectStorage

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def scratch_dir(tmp_path):
    return tmp_path / "scratch"


@pytest.fixture
def pipeline(object_storage, mock_stt, mock_emotion_client, session_factory, scratch_dir):
    return AudioIngestPipeline(
        storage=object_storage,
        stt=mock_stt,
        emotion_client=mock_emotion_client,
        session_factory=session_factory,
        scratch_dir=scratch_dir,
    )


async def _count_records(session_factory) -> int:
    async with session_factory() as session:
        return (await session.execute(select(func.count(AnalysisRecord.id)))).scalar_one()


def _stored_objects(storage) -> list[Path]:
    return [p for p in storage.root.rglob("*.wav") if p.is_file()]


# ---------------------------------------------------------------------------
# Happy path
# ---------------------------------------------------------------------------


class TestIngest:
    """End-to-end ingest with mocked providers."""

    async def test_persists_record(self, pipeline, object_storage, sample_wav_bytes) -> None:
        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        assert len(record.id) == 32
        assert record.owner_id == "user-1"
        assert record.transcription == "I finally finished the draft today."
        assert record.audio_path.startswith("audio/user-1-")
        assert "/recording-" in record.audio_path
        assert record.audio_path.endswith(".wav")
        assert record.mime_type == "audio/wav"
        assert record.duration_seconds == pytest.approx(1.0, abs=0.01)

        top = record.emotions["top_emotions"]
        assert [e["name"] for e in top] == ["Joy", "Calmness", "Anger"]
        assert top[0]["score"] == pytest.approx(0.6)
        assert top[1]["score"] == pytest.approx(0.15)
        assert top[2]["score"] == pytest.approx(0.1)

        stored = await object_storage.read(record.audio_path)
        assert stored == sample_wav_bytes

    async def test_transcribes_scratch_copy_then_removes_it(
        self, pipeline, mock_stt, scratch_dir, sample_wav_bytes
    ) -> None:
        seen = {}

        async def transcribe(path, **kwargs):
            seen["path"] = Path(path)
            seen["bytes"] = Path(path).read_bytes()
            return "hello"

        mock_stt.transcribe.side_effect = transcribe
        await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        assert seen["bytes"] == sample_wav_bytes
        assert seen["path"].parent == scratch_dir
        assert not seen["path"].exists()
        assert list(scratch_dir.iterdir()) == []

    async def test_emotion_job_gets_same_audio(
        self, pipeline, mock_emotion_client, sample_wav_bytes
    ) -> None:
        await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        mock_emotion_client.submit.assert_awaited_once_with(sample_wav_bytes)
        mock_emotion_client.await_result.assert_awaited_once_with("job-123")

    async def test_name_from_filename(self, pipeline, sample_wav_bytes) -> None:
        record = await pipeline.ingest(
            owner_id="user-1", audio_bytes=sample_wav_bytes, filename="morning walk.wav"
        )
        assert record.name == "morning walk"

    async def test_name_defaults_to_object_stem(self, pipeline, sample_wav_bytes) -> None:
        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        assert record.name == Path(record.audio_path).stem

    async def test_emotions_run_concurrently_with_transcription(
        self, pipeline, mock_stt, mock_emotion_client, sample_wav_bytes
    ) -> None:
        submitted = asyncio.Event()

        async def transcribe(path, **kwargs):
            await asyncio.wait_for(submitted.wait(), timeout=2.0)
            return "overlap"

        async def submit(audio_bytes, **kwargs):
            submitted.set()
            return "job-123"

        mock_stt.transcribe.side_effect = transcribe
        mock_emotion_client.submit.side_effect = submit

        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        assert record.transcription == "overlap"

    async def test_lookalike_owners_get_separate_objects(
        self, pipeline, object_storage, sample_wav_bytes
    ) -> None:
        with patch("punchline.services.pipeline.now_ms", return_value=1700000000000):
            first = await pipeline.ingest(owner_id="alice_x", audio_bytes=sample_wav_bytes)
            second = await pipeline.ingest(owner_id="alice/x", audio_bytes=b"RIFF other")

        assert first.audio_path != second.audio_path
        assert await object_storage.read(first.audio_path) == sample_wav_bytes
        assert await object_storage.read(second.audio_path) == b"RIFF other"

    async def test_same_millisecond_uploads_kept_apart(
        self, pipeline, object_storage, sample_wav_bytes
    ) -> None:
        with patch("punchline.services.pipeline.now_ms", return_value=1700000000000):
            records = [
                await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
                for _ in range(2)
            ]

        assert records[0].audio_path != records[1].audio_path
        assert len(_stored_objects(object_storage)) == 2

    async def test_undecodable_audio_has_no_duration(self, pipeline) -> None:
        record = await pipeline.ingest(owner_id="user-1", audio_bytes=b"not really audio")
        assert record.duration_seconds is None


# ---------------------------------------------------------------------------
# Fatal failures
# ---------------------------------------------------------------------------


class TestFatalFailures:
    """Storage and transcription failures abort the ingest."""

    async def test_transcription_failure(
        self,
        pipeline,
        mock_stt,
        mock_emotion_client,
        object_storage,
        session_factory,
        scratch_dir,
        sample_wav_bytes,
    ) -> None:
        mock_stt.transcribe.side_effect = TranscriptionFailed(RuntimeError("503"))

        with pytest.raises(TranscriptionFailed):
            await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        # Audio stays in storage, but no record is written
        assert len(_stored_objects(object_storage)) == 1
        assert await _count_records(session_factory) == 0
        assert list(scratch_dir.iterdir()) == []

    async def test_unexpected_stt_error_wrapped(self, pipeline, mock_stt, sample_wav_bytes) -> None:
        mock_stt.transcribe.side_effect = ConnectionError("reset")
        with pytest.raises(TranscriptionFailed) as exc_info:
            await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        assert isinstance(exc_info.value.cause, ConnectionError)

    async def test_transcription_failure_cancels_emotion_branch(
        self, pipeline, mock_stt, mock_emotion_client, sample_wav_bytes
    ) -> None:
        polling = asyncio.Event()
        cancelled = asyncio.Event()

        async def slow_result(job_id):
            polling.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return []

        async def failing_transcribe(path, **kwargs):
            await asyncio.wait_for(polling.wait(), timeout=2.0)
            raise TranscriptionFailed()

        mock_emotion_client.await_result.side_effect = slow_result
        mock_stt.transcribe.side_effect = failing_transcribe

        with pytest.raises(TranscriptionFailed):
            await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        assert cancelled.is_set()

    async def test_duration_probe_failure_cancels_emotion_branch(
        self, pipeline, mock_stt, mock_emotion_client, session_factory, sample_wav_bytes
    ) -> None:
        polling = asyncio.Event()
        cancelled = asyncio.Event()

        async def slow_result(job_id):
            polling.set()
            try:
                await asyncio.sleep(30)
            except asyncio.CancelledError:
                cancelled.set()
                raise
            return []

        async def transcribe(path, **kwargs):
            await asyncio.wait_for(polling.wait(), timeout=2.0)
            return "done"

        mock_emotion_client.await_result.side_effect = slow_result
        mock_stt.transcribe.side_effect = transcribe

        with patch(
            "punchline.services.pipeline.probe_duration_seconds",
            side_effect=RuntimeError("probe crashed"),
        ):
            with pytest.raises(RuntimeError):
                await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        assert cancelled.is_set()
        assert await _count_records(session_factory) == 0

    async def test_storage_failure(
        self, mock_stt, mock_emotion_client, session_factory, sample_wav_bytes
    ) -> None:
        storage = AsyncMock(spec=ObjectStorage)
        storage.write.side_effect = OSError("disk full")
        pipeline = AudioIngestPipeline(
            storage=storage,
            stt=mock_stt,
            emotion_client=mock_emotion_client,
            session_factory=session_factory,
        )

        with pytest.raises(StorageWriteFailed) as exc_info:
            await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        assert exc_info.value.code == "STORAGE_WRITE_FAILED"
        mock_stt.transcribe.assert_not_awaited()
        mock_emotion_client.submit.assert_not_awaited()
        assert await _count_records(session_factory) == 0


# ---------------------------------------------------------------------------
# Best-effort emotions
# ---------------------------------------------------------------------------


class TestEmotionDegradation:
    """Emotion failures never fail the ingest; emotions are just empty."""

    @pytest.mark.parametrize(
        "error",
        [
            SubmissionFailed("HTTP 401"),
            JobTimedOut("job-123", 10),
            RuntimeError("boom"),
        ],
    )
    async def test_failure_yields_empty_emotions(
        self, pipeline, mock_emotion_client, session_factory, sample_wav_bytes, error
    ) -> None:
        mock_emotion_client.await_result.side_effect = error

        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        assert record.transcription == "I finally finished the draft today."
        assert record.emotions["top_emotions"] == []
        assert record.emotions["timestamp"]
        assert await _count_records(session_factory) == 1

    async def test_submission_failure_still_persists_record(
        self, pipeline, mock_emotion_client, session_factory, sample_wav_bytes
    ) -> None:
        mock_emotion_client.submit.side_effect = SubmissionFailed("HTTP 401")

        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)

        assert record.transcription == "I finally finished the draft today."
        assert record.emotions["top_emotions"] == []
        mock_emotion_client.await_result.assert_not_awaited()
        assert await _count_records(session_factory) == 1

    async def test_malformed_predictions_yield_empty_emotions(
        self, pipeline, mock_emotion_client, sample_wav_bytes
    ) -> None:
        mock_emotion_client.await_result.return_value = {"unexpected": True}
        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        assert record.emotions["top_emotions"] == []

    async def test_unconfigured_provider_skipped(
        self, pipeline, mock_emotion_client, sample_wav_bytes
    ) -> None:
        mock_emotion_client.configured = False
        record = await pipeline.ingest(owner_id="user-1", audio_bytes=sample_wav_bytes)
        mock_emotion_client.submit.assert_not_awaited()
        assert record.emotions["top_emotions"] == []

    async def test_no_emotion_client(
        self, object_storage, mock_stt, session_factory, sample_wav_bytes
    ) -> None:
        pipeline = AudioIngestPipeline(
            storage=object_storage, stt=mock_stt, session_factory=session_factory
        )
        outcome = await pipeline.analyze_emotions(sample_wav_bytes)
        assert outcome.skipped
        assert not outcome.ok
        assert outcome.emotions.top_emotions == []

    async def test_analyze_emotions_reports_error(self, pipeline, mock_emotion_client) -> None:
        error = SubmissionFailed("HTTP 500")
        mock_emotion_client.submit.side_effect = error
        outcome = await pipeline.analyze_emotions(b"audio")
        assert outcome.error is error
        assert outcome.emotions.top_emotions == []


# ---------------------------------------------------------------------------
# Storage keys
# ---------------------------------------------------------------------------


class TestAudioObjectPath:
    def test_owner_scoped(self) -> None:
        path = audio_object_path("user-1", 1700000000123)
        assert re.fullmatch(r"audio/user-1-[0-9a-f]{12}/recording-1700000000123-[0-9a-f]{8}\.wav", path)

    def test_lookalike_owners_differ(self) -> None:
        first = audio_object_path("alice/x", 1).split("/")[1]
        second = audio_object_path("alice_x", 1).split("/")[1]
        assert first != second

    def test_same_owner_same_millisecond_differ(self) -> None:
        assert audio_object_path("user-1", 1) != audio_object_path("user-1", 1)

    def test_unsafe_owner_sanitized(self) -> None:
        path = audio_object_path("../../etc", 1)
        assert ".." not in path
        assert path.startswith("audio/")
        assert path.count("/") == 2
