"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, and the health endpoints. The module-level ``app`` instance
allows ``uvicorn punchline.api.app:app --reload``.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from punchline.api.dependencies import get_pipeline
from punchline.api.middleware.error_handler import register_error_handlers
from punchline.api.routes import ingest, records
from punchline.core.config import get_settings, setup_logging
from punchline.core.models import HealthResponse, ProviderStatus, ProvidersResponse
from punchline.services.storage.database import close_db, init_db


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application startup and shutdown lifecycle.

    Startup: configure logging and create database tables if needed.
    Shutdown: close provider connections, then dispose the DB engine.
    """
    setup_logging()
    await init_db()
    yield
    if get_pipeline.cache_info().currsize:
        await get_pipeline().aclose()
    await close_db()


def create_app() -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Returns:
        FastAPI: The configured application, ready for ``uvicorn``.
    """

    app = FastAPI(
        title="Punchline",
        description="Audio journaling backend: stores recordings, transcribes "
        "them, and attaches the dominant vocal emotions.",
        version="0.1.0",
        lifespan=lifespan,
    )

    # -- CORS --
    settings = get_settings()
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Health checks (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(UTC))

    @app.get("/health/providers", response_model=ProvidersResponse, tags=["system"])
    async def providers() -> ProvidersResponse:
        current = get_settings()
        return ProvidersResponse(
            transcription=ProviderStatus(
                configured=bool(current.openai_api_key),
                model=current.transcription_model,
            ),
            emotion=ProviderStatus(
                configured=bool(current.hume_api_key),
                model=current.hume_model,
            ),
        )

    # -- REST routes --
    app.include_router(ingest.router, prefix="/api/v1")
    app.include_router(records.router, prefix="/api/v1")

    return app


app = create_app()
