"""
Synchronous HTTP client for the Punchline backend API.

Uses ``httpx.Client`` (sync) so capture scripts can upload without an
event loop.
"""

import logging

import httpx

from punchline.services.audio.recorder import AudioBlob

logger = logging.getLogger(__name__)


class APIError(Exception):
    """User-friendly API error with categorized message.

    Categories: "connection", "timeout", "http", "network", "unknown".
    ``code`` carries the server's error code for "http" failures.
    """

    def __init__(
        self,
        message: str,
        category: str = "unknown",
        status_code: int | None = None,
        code: str | None = None,
    ) -> None:
        self.message = message
        self.category = category
        self.status_code = status_code
        self.code = code
        super().__init__(message)


class PunchlineClient:
    """Thin synchronous wrapper around httpx for calling the FastAPI backend.

    All methods return parsed JSON or raise ``APIError``.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        timeout: float = 300.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client = httpx.Client(base_url=self._base_url, timeout=timeout, transport=transport)

    def __enter__(self) -> "PunchlineClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        """Execute an HTTP request, mapping failures to ``APIError``."""
        try:
            resp = self._client.request(method, path, **kwargs)
            resp.raise_for_status()
            return resp
        except httpx.ConnectError:
            raise APIError(
                "Backend server is not running. "
                "Start it with: `uvicorn punchline.api.app:app --reload --port 8000`",
                category="connection",
            ) from None
        except httpx.TimeoutException:
            raise APIError(
                "Request timed out. The server may be overloaded.",
                category="timeout",
            ) from None
        except httpx.HTTPStatusError as exc:
            code = None
            try:
                body = exc.response.json()
                message = body.get("error") or exc.response.text
                code = body.get("code")
            except (ValueError, AttributeError):
                message = exc.response.text or str(exc)
            raise APIError(
                str(message),
                category="http",
                status_code=exc.response.status_code,
                code=code,
            ) from None
        except httpx.HTTPError as exc:
            raise APIError(f"Network error: {exc}", category="network") from None

    # -- health --

    def health_check(self) -> dict:
        return self._request("GET", "/health").json()

    def providers(self) -> dict:
        return self._request("GET", "/health/providers").json()

    # -- ingest --

    def ingest(
        self,
        audio: AudioBlob | bytes,
        owner_id: str,
        filename: str = "recording.wav",
    ) -> dict:
        """Upload one recording; returns ``{success, recordId, transcription, emotions}``."""
        if isinstance(audio, AudioBlob):
            data, mime_type = audio.data, audio.mime_type
        else:
            data, mime_type = audio, "audio/wav"
        logger.info("Uploading %d bytes for %s", len(data), owner_id)
        return self._request(
            "POST",
            "/api/v1/ingest",
            files={"audio": (filename, data, mime_type)},
            data={"userId": owner_id},
        ).json()

    # -- records --

    def list_records(self, owner_id: str, limit: int = 50, offset: int = 0) -> list[dict]:
        params = {"userId": owner_id, "limit": limit, "offset": offset}
        return self._request("GET", "/api/v1/records", params=params).json()

    def get_record(self, record_id: str, owner_id: str) -> dict:
        return self._request(
            "GET", f"/api/v1/records/{record_id}", params={"userId": owner_id}
        ).json()

    def download_audio(self, record_id: str, owner_id: str) -> bytes:
        return self._request(
            "GET", f"/api/v1/records/{record_id}/audio", params={"userId": owner_id}
        ).content

    def rename_record(self, record_id: str, owner_id: str, name: str) -> dict:
        return self._request(
            "PATCH",
            f"/api/v1/records/{record_id}",
            params={"userId": owner_id},
            json={"name": name},
        ).json()

    def delete_record(self, record_id: str, owner_id: str) -> dict:
        return self._request(
            "DELETE", f"/api/v1/records/{record_id}", params={"userId": owner_id}
        ).json()
