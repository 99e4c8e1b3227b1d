"""Shared pytest fixtures for the Punchline test suite.

Provides mock providers, sample audio, and database/storage fixtures used
across unit and integration tests.
"""

import io
import math
from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest
import soundfile as sf

from punchline.core.models import EmotionScore, ProcessedEmotions

# ---------------------------------------------------------------------------
# Provider Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_stt():
    """Create a mock STT provider returning a fixed transcription.

    Returns:
        AsyncMock: A mock implementing the BaseSTT interface.
    """
    from punchline.services.transcription.base import BaseSTT

    stt = AsyncMock(spec=BaseSTT)
    stt.configured = True
    stt.transcribe.return_value = "I finally finished the draft today."
    return stt


@pytest.fixture
def mock_emotion_client():
    """Create a mock emotion client whose job completes with two segments.

    Returns:
        AsyncMock: A mock implementing the BaseEmotionClient interface.
    """
    from punchline.services.emotion.base import BaseEmotionClient

    client = AsyncMock(spec=BaseEmotionClient)
    client.configured = True
    client.submit.return_value = "job-123"
    client.await_result.return_value = [
        {
            "results": [
                {"emotions": [{"name": "Joy", "score": 0.8}, {"name": "Calmness", "score": 0.3}]},
                {"emotions": [{"name": "Joy", "score": 0.4}, {"name": "Anger", "score": 0.2}]},
            ]
        }
    ]
    return client


@pytest.fixture
def sample_emotions():
    """A populated ProcessedEmotions value."""
    return ProcessedEmotions(
        top_emotions=[
            EmotionScore(name="Joy", score=0.6),
            EmotionScore(name="Calmness", score=0.15),
        ],
        timestamp=datetime(2026, 1, 1, tzinfo=UTC),
    )


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sine_samples():
    """1 second of a 440Hz sine wave at 16kHz as float32 samples."""
    sample_rate = 16000
    t = np.arange(sample_rate, dtype=np.float32) / sample_rate
    return (0.5 * np.sin(2 * math.pi * 440.0 * t)).astype(np.float32)


@pytest.fixture
def sample_wav_bytes(sine_samples):
    """The sine wave encoded as a 16-bit PCM WAV file."""
    buf = io.BytesIO()
    sf.write(buf, sine_samples, 16000, format="WAV", subtype="PCM_16")
    return buf.getvalue()


class FakeStream:
    """Stand-in for ``sounddevice.InputStream``; ``feed()`` delivers blocks."""

    def __init__(self, blocks=None, fail_on_start=False, **kwargs):
        self.kwargs = kwargs
        self.callback = kwargs.get("callback")
        self.blocks = blocks or []
        self.fail_on_start = fail_on_start
        self.started = False
        self.stopped = False
        self.closed = False

    def start(self):
        if self.fail_on_start:
            raise OSError("Permission denied")
        self.started = True

    def feed(self):
        for block in self.blocks:
            self.callback(block, len(block), None, None)

    def stop(self):
        self.stopped = True

    def close(self):
        self.closed = True


@pytest.fixture
def stream_factory(sine_samples):
    """Factory producing FakeStreams that deliver the sine wave in 4 blocks.

    The created streams are collected on ``factory.streams``.
    """
    blocks = [block.reshape(-1, 1) for block in np.array_split(sine_samples, 4)]
    factory = MagicMock()
    factory.streams = []

    def _create(**kwargs):
        stream = FakeStream(blocks=blocks, **kwargs)
        factory.streams.append(stream)
        return stream

    factory.side_effect = _create
    return factory


# ---------------------------------------------------------------------------
# Database / Storage Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def db_engine():
    """Create an in-memory SQLite async engine with tables, dispose after test."""
    from sqlalchemy.ext.asyncio import create_async_engine

    from punchline.services.storage.database import init_db

    engine = create_async_engine("sqlite+aiosqlite:///:memory:", echo=False)
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
async def db_session(db_engine):
    """Yield an AsyncSession bound to the test engine; rolls back after test."""
    from sqlalchemy.ext.asyncio import async_sessionmaker

    factory = async_sessionmaker(db_engine, expire_on_commit=False)
    async with factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def repository(db_session):
    """Return an AnalysisRepository bound to the test session."""
    from punchline.services.storage.repository import AnalysisRepository

    return AnalysisRepository(db_session)


@pytest.fixture
def session_factory(db_engine):
    """A ``get_session``-style context manager bound to the test engine."""
    from contextlib import asynccontextmanager

    from sqlalchemy.ext.asyncio import async_sessionmaker

    factory = async_sessionmaker(db_engine, expire_on_commit=False)

    @asynccontextmanager
    async def _session():
        async with factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    return _session


@pytest.fixture
def object_storage(tmp_path):
    """LocalObjectStorage rooted in a temporary directory."""
    from punchline.services.storage.object_store import LocalObjectStorage

    return LocalObjectStorage(tmp_path / "objects")


@pytest.fixture
def fake_stream_cls():
    """The FakeStream class, for tests that build their own stream factory."""
    return FakeStream
