"""
Hume batch-job emotion provider.

Uses ``httpx.AsyncClient`` against the Hume batch jobs API. A job moves
through ``Submitted -> Polling -> Completed | Failed | TimedOut``; the
poll loop is a bounded ``tenacity`` retry with a fixed interval so a slow
job can never hang the surrounding request.
"""

import asyncio
import json
import logging
from collections.abc import Awaitable, Callable, Mapping

import httpx
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_fixed,
)

from punchline.core.config import get_settings
from punchline.core.exceptions import JobFailed, JobTimedOut, SubmissionFailed
from punchline.core.models import EmotionJob, EmotionJobStatus
from punchline.services.emotion.base import BaseEmotionClient

logger = logging.getLogger(__name__)

_STATUS_MAP = {
    "QUEUED": EmotionJobStatus.queued,
    "IN_PROGRESS": EmotionJobStatus.processing,
    "PROCESSING": EmotionJobStatus.processing,
    "COMPLETED": EmotionJobStatus.completed,
    "FAILED": EmotionJobStatus.failed,
}


class _JobPending(Exception):
    """Internal signal: the job has not reached a terminal state yet."""

    def __init__(self, job: EmotionJob) -> None:
        self.job = job
        super().__init__(f"job {job.job_id} is {job.status}")


# Errors that count as "try again on the next poll"
_TRANSIENT = (_JobPending, httpx.HTTPError, ValueError)


def to_result_sets(payload) -> list:
    """Flatten Hume's nested predictions into ``[{"results": [segments]}]``.

    Entries already in result-set form pass through unchanged, as does
    anything unrecognised (the aggregator rejects bad shapes itself).
    """
    if not isinstance(payload, list):
        return payload

    result_sets = []
    for entry in payload:
        results = entry.get("results") if isinstance(entry, Mapping) else None
        if not isinstance(results, Mapping):
            result_sets.append(entry)
            continue

        segments: list = []
        for file_prediction in results.get("predictions") or []:
            models = file_prediction.get("models") if isinstance(file_prediction, Mapping) else None
            if not isinstance(models, Mapping):
                continue
            for model_output in models.values():
                if not isinstance(model_output, Mapping):
                    continue
                for group in model_output.get("grouped_predictions") or []:
                    if isinstance(group, Mapping):
                        segments.extend(group.get("predictions") or [])
        result_sets.append({"results": segments})
    return result_sets


class HumeEmotionClient(BaseEmotionClient):
    """Emotion-inference client for the Hume batch jobs API.

    Args:
        api_key: Hume API key (falls back to settings).
        base_url: Jobs endpoint, e.g. ``https://api.hume.ai/v0/batch/jobs``.
        model: Model selector sent with each job (``prosody`` = speech).
        poll_interval: Seconds to wait before each status poll.
        max_attempts: Number of status polls before giving up.
        sleep: Awaitable sleep function; tests inject a fake.
        client: Optional pre-built ``httpx.AsyncClient``.
    """

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        model: str | None = None,
        poll_interval: float | None = None,
        max_attempts: int | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        settings = get_settings()
        self._api_key = api_key if api_key is not None else settings.hume_api_key
        self._base_url = (base_url or settings.hume_base_url).rstrip("/")
        self._model = model or settings.hume_model
        self._poll_interval = (
            poll_interval if poll_interval is not None else settings.emotion_poll_interval
        )
        self._max_attempts = max_attempts or settings.emotion_poll_attempts
        self._sleep = sleep
        self._client = client or httpx.AsyncClient(timeout=30.0)

    @property
    def configured(self) -> bool:
        return bool(self._api_key)

    @property
    def _headers(self) -> dict[str, str]:
        return {"X-Hume-Api-Key": self._api_key}

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    async def submit(
        self,
        audio_bytes: bytes,
        filename: str = "recording.wav",
        content_type: str = "audio/wav",
    ) -> str:
        """Upload audio and start a speech-emotion job.

        Raises:
            SubmissionFailed: Missing credentials, transport error, non-2xx
                response, or a response without a job id.
        """
        if not self.configured:
            raise SubmissionFailed("Hume API key is not configured")

        try:
            response = await self._client.post(
                self._base_url,
                headers=self._headers,
                files={"file": (filename, audio_bytes, content_type)},
                data={"json": json.dumps({"models": {self._model: {}}})},
            )
            response.raise_for_status()
            job_id = response.json().get("job_id")
        except httpx.HTTPStatusError as exc:
            raise SubmissionFailed(f"HTTP {exc.response.status_code}", cause=exc) from exc
        except httpx.HTTPError as exc:
            raise SubmissionFailed("could not reach the emotion service", cause=exc) from exc
        except (ValueError, AttributeError) as exc:
            raise SubmissionFailed("unreadable submission response", cause=exc) from exc

        if not job_id:
            raise SubmissionFailed("response did not include a job id")

        logger.info("Emotion job %s submitted (model=%s)", job_id, self._model)
        return str(job_id)

    # ------------------------------------------------------------------
    # Status / predictions
    # ------------------------------------------------------------------

    async def get_job(self, job_id: str) -> EmotionJob:
        """Fetch the current status of a job.

        Raises:
            httpx.HTTPError: On transport or HTTP status errors.
            ValueError: If the body is not JSON or the status is unknown.
        """
        response = await self._client.get(f"{self._base_url}/{job_id}", headers=self._headers)
        response.raise_for_status()
        payload = response.json()
        if not isinstance(payload, Mapping):
            raise ValueError("Job status response is not an object")

        state = payload.get("state") if isinstance(payload.get("state"), Mapping) else payload
        raw_status = str(state.get("status", "")).upper()
        if raw_status not in _STATUS_MAP:
            raise ValueError(f"Unknown job status: {raw_status!r}")
        return EmotionJob(
            job_id=job_id,
            status=_STATUS_MAP[raw_status],
            message=str(state.get("message") or ""),
        )

    async def get_predictions(self, job_id: str) -> list:
        """Download the predictions of a completed job as result sets."""
        response = await self._client.get(
            f"{self._base_url}/{job_id}/predictions", headers=self._headers
        )
        response.raise_for_status()
        return to_result_sets(response.json())

    def _log_poll(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        attempt = retry_state.attempt_number
        if isinstance(exc, _JobPending):
            logger.info(
                "Poll %d/%d: emotion job %s still %s",
                attempt,
                self._max_attempts,
                exc.job.job_id,
                exc.job.status,
            )
        else:
            logger.warning(
                "Poll %d/%d: checking emotion job failed: %s", attempt, self._max_attempts, exc
            )

    async def await_result(self, job_id: str) -> list:
        """Poll until the job completes, then return its predictions.

        The poll interval elapses before every poll. Transient errors
        (network blips, unreadable bodies) are logged and retried until
        the attempt budget runs out.

        Raises:
            JobFailed: The service reported the job as failed.
            JobTimedOut: No ``completed`` status within ``max_attempts`` polls.
        """
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._max_attempts),
            wait=wait_fixed(self._poll_interval),
            retry=retry_if_exception_type(_TRANSIENT),
            before_sleep=self._log_poll,
            sleep=self._sleep,
            reraise=True,
        )

        await self._sleep(self._poll_interval)
        try:
            async for attempt in retrying:
                with attempt:
                    job = await self.get_job(job_id)
                    if job.status == EmotionJobStatus.completed:
                        predictions = await self.get_predictions(job_id)
                        logger.info(
                            "Emotion job %s completed after %d polls",
                            job_id,
                            attempt.retry_state.attempt_number,
                        )
                        return predictions
                    if job.status == EmotionJobStatus.failed:
                        raise JobFailed(job_id, job.message)
                    raise _JobPending(job)
        except _TRANSIENT as exc:
            logger.warning("Emotion job %s gave up after %d polls: %s", job_id, self._max_attempts, exc)
            raise JobTimedOut(job_id, self._max_attempts) from exc
        # Unreachable: the retry loop either returns or raises
        raise JobTimedOut(job_id, self._max_attempts)

    async def analyze(self, audio_bytes: bytes, **kwargs) -> list:
        """Submit audio and wait for its predictions."""
        job_id = await self.submit(audio_bytes, **kwargs)
        return await self.await_result(job_id)

    async def aclose(self) -> None:
        await self._client.aclose()
