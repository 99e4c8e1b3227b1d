"""
Abstract base class for speech-emotion inference providers.

Providers are job-based: audio is submitted once, then the job is polled
until it reaches a terminal state and its predictions can be collected.
"""

from abc import ABC, abstractmethod


class BaseEmotionClient(ABC):
    """Interface that every emotion-inference provider must implement."""

    @property
    @abstractmethod
    def configured(self) -> bool:
        """Whether the provider has the credentials it needs."""

    @abstractmethod
    async def submit(self, audio_bytes: bytes, **kwargs) -> str:
        """Submit audio for analysis.

        Returns:
            The provider's job identifier.

        Raises:
            SubmissionFailed: If the provider rejects the request.
        """

    @abstractmethod
    async def await_result(self, job_id: str) -> list:
        """Wait for a submitted job and return its raw predictions.

        Returns:
            A list of result sets, each with a ``results`` list of segments.

        Raises:
            JobTimedOut: If the job is not completed within the poll budget.
            JobFailed: If the provider reports the job as failed.
        """

    async def aclose(self) -> None:
        """Release network resources (no-op by default)."""
