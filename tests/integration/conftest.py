"""Integration test fixtures for Punchline.

Provides an async HTTP client wired to an in-memory SQLite database, a
temporary object store, and an ingest pipeline whose external providers
are mocked.
"""

import pytest
from httpx import ASGITransport, AsyncClient

from punchline.api.app import create_app
from punchline.api.dependencies import get_pipeline, get_storage
from punchline.services.pipeline import AudioIngestPipeline
from punchline.services.storage import database


@pytest.fixture
def pipeline(object_storage, mock_stt, mock_emotion_client, tmp_path):
    """Pipeline with real storage + DB and mocked STT / emotion providers."""
    return AudioIngestPipeline(
        storage=object_storage,
        stt=mock_stt,
        emotion_client=mock_emotion_client,
        scratch_dir=tmp_path / "scratch",
    )


@pytest.fixture
def app(pipeline, object_storage):
    """Create a fresh FastAPI application with provider overrides."""
    application = create_app()
    application.dependency_overrides[get_pipeline] = lambda: pipeline
    application.dependency_overrides[get_storage] = lambda: object_storage
    return application


@pytest.fixture
async def async_client(app, db_engine):
    """AsyncClient backed by the in-memory test engine.

    Injects the test engine into the database module so that all routes
    use the same in-memory SQLite with tables already created.
    """
    database._engine = db_engine
    database._session_factory = None
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    database.reset_engine()


@pytest.fixture
def upload(sample_wav_bytes):
    """Build multipart ingest form parts."""

    def _build(user_id: str | None = "user-1", audio: bytes | None = sample_wav_bytes):
        files = {"audio": ("entry.wav", audio, "audio/wav")} if audio is not None else None
        data = {"userId": user_id} if user_id is not None else None
        return {"files": files, "data": data}

    return _build
