"""
OpenAI speech-to-text provider.

Uses the OpenAI Python SDK (``openai.AsyncOpenAI``) audio transcription
endpoint with the plain-text response format. SDK-level retries are
disabled: a failed transcription is fatal to the ingest and is surfaced
to the caller instead of being retried.
"""

import logging
from pathlib import Path

from openai import AsyncOpenAI

from punchline.core.config import get_settings
from punchline.core.exceptions import TranscriptionFailed
from punchline.services.transcription.base import BaseSTT

logger = logging.getLogger(__name__)


class OpenAIWhisperSTT(BaseSTT):
    """Speech-to-text provider backed by the OpenAI transcription API.

    Args:
        api_key: OpenAI API key (falls back to settings).
        model: Transcription model name (default ``whisper-1``).
        timeout: Per-request timeout in seconds.
    """

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout: float | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.openai_api_key
        self._model = model or settings.transcription_model
        self._timeout = timeout or settings.transcription_timeout
        self._client: AsyncOpenAI | None = None

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def model(self) -> str:
        return self._model

    def _get_client(self) -> AsyncOpenAI:
        """Return the SDK client, creating it on first use."""
        if self._client is None:
            self._client = AsyncOpenAI(
                api_key=self._api_key,
                max_retries=0,
                timeout=self._timeout,
            )
        return self._client

    async def transcribe(self, audio: bytes | str | Path, **kwargs) -> str:
        """Transcribe audio bytes or an audio file.

        Args:
            audio: Raw bytes (sent as ``recording.wav``) or a file path.
            **kwargs: Optional keys: filename, content_type, language.

        Returns:
            The transcription as plain text (stripped).
        """
        if not self.configured:
            raise TranscriptionFailed(RuntimeError("OpenAI API key is not configured"))

        if isinstance(audio, (bytes, bytearray)):
            file = (
                kwargs.get("filename", "recording.wav"),
                bytes(audio),
                kwargs.get("content_type", "audio/wav"),
            )
        else:
            file = Path(audio)

        request: dict = {"file": file, "model": self._model, "response_format": "text"}
        if kwargs.get("language"):
            request["language"] = kwargs["language"]

        try:
            response = await self._get_client().audio.transcriptions.create(**request)
        except Exception as exc:
            logger.error("OpenAI transcription error: %s", exc)
            raise TranscriptionFailed(exc) from exc

        # The text response format yields a bare string; older SDKs wrap it
        text = response if isinstance(response, str) else getattr(response, "text", "")
        text = (text or "").strip()
        logger.info("Transcription complete (%d chars)", len(text))
        return text
