"""
Abstract base class for Speech-to-Text providers.

All STT implementations must implement this interface, enabling
provider-agnostic transcription in the ingest pipeline.
"""

from abc import ABC, abstractmethod
from pathlib import Path


class BaseSTT(ABC):
    """Interface that every STT provider must implement."""

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether the provider has the credentials it needs."""

    @abstractmethod
    async def transcribe(self, audio: bytes | str | Path, **kwargs) -> str:
        """Transcribe a complete audio recording to plain text.

        Args:
            audio: Raw audio bytes, or a path to an audio file.
            **kwargs: Provider-specific options (language, prompt, etc.).

        Returns:
            Best-effort transcription text.

        Raises:
            TranscriptionFailed: On any provider failure.
        """
