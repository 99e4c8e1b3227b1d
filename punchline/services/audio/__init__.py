"""
Audio module - Capture, encoding and analysis utilities.
"""

from .processor import AUDIO_MIME_TYPE, AudioProcessor, probe_duration_seconds
from .recorder import AudioBlob, CaptureState, RecordingSession

__all__ = [
    "AUDIO_MIME_TYPE",
    "AudioBlob",
    "AudioProcessor",
    "CaptureState",
    "RecordingSession",
    "probe_duration_seconds",
]
