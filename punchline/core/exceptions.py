"""
Punchline exception hierarchy.

All application-specific exceptions inherit from PunchlineError,
enabling centralized error handling in the API middleware layer.
Emotion-analysis errors share the ``EmotionAnalysisError`` base so the
ingest pipeline can contain them in one place.
"""

from datetime import UTC, datetime


class PunchlineError(Exception):
    """Base exception for all Punchline errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "PUNCHLINE_ERROR",
        status_code: int = 500,
        cause: BaseException | None = None,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.cause = cause
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)

    @property
    def details(self) -> str | None:
        """Human-readable description of the underlying cause, if any."""
        if self.cause is None:
            return None
        return str(self.cause) or type(self.cause).__name__


# ---------------------------------------------------------------------------
# Client capture
# ---------------------------------------------------------------------------


class DeviceUnavailable(PunchlineError):
    """Raised when no microphone can be opened (missing device or denied)."""

    def __init__(self, cause: BaseException | None = None) -> None:
        super().__init__(
            detail="No audio input device is available",
            code="DEVICE_UNAVAILABLE",
            status_code=503,
            cause=cause,
        )


class AlreadyRecording(PunchlineError):
    """Raised when trying to start a capture while one is already active."""

    def __init__(self) -> None:
        super().__init__(
            detail="A recording is already active",
            code="ALREADY_RECORDING",
            status_code=409,
        )


# ---------------------------------------------------------------------------
# Fatal ingest errors
# ---------------------------------------------------------------------------


class StorageWriteFailed(PunchlineError):
    """Raised when the audio payload cannot be written to object storage."""

    def __init__(self, path: str, cause: BaseException | None = None) -> None:
        self.path = path
        super().__init__(
            detail=f"Failed to store audio at {path}",
            code="STORAGE_WRITE_FAILED",
            status_code=502,
            cause=cause,
        )


class TranscriptionFailed(PunchlineError):
    """Raised when speech-to-text processing fails."""

    def __init__(self, cause: BaseException | None = None) -> None:
        super().__init__(
            detail="Transcription failed",
            code="TRANSCRIPTION_FAILED",
            status_code=502,
            cause=cause,
        )


# ---------------------------------------------------------------------------
# Non-fatal emotion analysis errors
# ---------------------------------------------------------------------------


class EmotionAnalysisError(PunchlineError):
    """Base for emotion-analysis failures. Never leaves the ingest pipeline."""

    def __init__(
        self,
        detail: str = "Emotion analysis failed",
        code: str = "EMOTION_ANALYSIS_FAILED",
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(detail=detail, code=code, status_code=502, cause=cause)


class SubmissionFailed(EmotionAnalysisError):
    """Raised when the emotion service rejects a job submission."""

    def __init__(self, reason: str, cause: BaseException | None = None) -> None:
        super().__init__(
            detail=f"Emotion job submission failed: {reason}",
            code="SUBMISSION_FAILED",
            cause=cause,
        )


class JobFailed(EmotionAnalysisError):
    """Raised when the emotion service reports a job as failed."""

    def __init__(self, job_id: str, reason: str = "") -> None:
        self.job_id = job_id
        message = f"Emotion job {job_id} failed"
        if reason:
            message = f"{message}: {reason}"
        super().__init__(detail=message, code="JOB_FAILED")


class JobTimedOut(EmotionAnalysisError):
    """Raised when a job is not completed within the poll-attempt budget."""

    def __init__(self, job_id: str, attempts: int) -> None:
        self.job_id = job_id
        self.attempts = attempts
        super().__init__(
            detail=f"Emotion job {job_id} not completed after {attempts} polls",
            code="JOB_TIMED_OUT",
        )


class AggregationFailed(EmotionAnalysisError):
    """Raised internally when emotion predictions have an unexpected shape."""

    def __init__(self, reason: str) -> None:
        super().__init__(detail=f"Cannot aggregate emotions: {reason}", code="AGGREGATION_FAILED")


# ---------------------------------------------------------------------------
# API lookups
# ---------------------------------------------------------------------------


class RecordNotFound(PunchlineError):
    """Raised when an analysis record ID does not exist for the caller."""

    def __init__(self, record_id: str) -> None:
        super().__init__(
            detail=f"Record not found: {record_id}",
            code="RECORD_NOT_FOUND",
            status_code=404,
        )


class InvalidUpload(PunchlineError):
    """Raised when an ingest request is missing required parts."""

    def __init__(self, detail: str = "Missing required parameters") -> None:
        super().__init__(detail=detail, code="INVALID_UPLOAD", status_code=400)


class InvalidOwner(PunchlineError):
    """Raised when a record request carries a blank ``userId``."""

    def __init__(self) -> None:
        super().__init__(
            detail="'userId' must not be blank", code="INVALID_USER_ID", status_code=400
        )
