"""Shared utility functions for Punchline."""

import hashlib
import re
import time

_UNSAFE_SEGMENT = re.compile(r"[^\w\-.@]+")


def format_duration(seconds: float) -> str:
    """Format a duration as ``m:ss`` (e.g. 75 -> ``1:15``)."""
    total = max(int(seconds), 0)
    mins, secs = divmod(total, 60)
    return f"{mins}:{secs:02d}"


def safe_segment(value: str, max_len: int = 128) -> str:
    """Reduce an arbitrary string to a single safe storage path segment."""
    cleaned = _UNSAFE_SEGMENT.sub("_", value.strip()).strip("._")
    return cleaned[:max_len] or "_"


def owner_segment(owner_id: str) -> str:
    """Storage path segment for an owner, distinct for distinct owner ids.

    The readable part is lossy, so a digest of the exact id is appended.
    """
    digest = hashlib.sha256(owner_id.encode("utf-8")).hexdigest()[:12]
    return f"{safe_segment(owner_id, max_len=64)}-{digest}"


def normalize_owner_id(value: str | None) -> str:
    """Canonical form of a caller-supplied owner id (surrounding whitespace dropped)."""
    return (value or "").strip()


def now_ms() -> int:
    """Current wall-clock time in integer milliseconds."""
    return time.time_ns() // 1_000_000
