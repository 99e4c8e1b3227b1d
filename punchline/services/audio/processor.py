"""Audio processing utilities for captured and uploaded audio.

Encodes captured float samples into the fixed WAV container, computes
frequency-bin levels for waveform visualization, detects silence, and
probes the duration of stored audio files.
"""

import io
import logging
from pathlib import Path

import numpy as np
import soundfile as sf
from pydub import AudioSegment

logger = logging.getLogger(__name__)

AUDIO_MIME_TYPE = "audio/wav"
AUDIO_EXTENSION = ".wav"


class AudioProcessor:
    """Handles conversion and analysis of mono float32 audio.

    Provides utilities for encoding WAV blobs, computing visualization
    levels, and detecting silence via RMS energy.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        fft_size: int = 256,
    ) -> None:
        """Initialize the audio processor.

        Args:
            sample_rate: Audio sample rate in Hz (default: 16 kHz).
            fft_size: Window length for frequency levels; yields
                ``fft_size // 2`` bins.
        """
        self.sample_rate = sample_rate
        self.fft_size = fft_size
        self._window = np.blackman(fft_size).astype(np.float32)

    def encode_wav(self, samples: np.ndarray) -> bytes:
        """Encode float32 samples as a 16-bit PCM WAV file in memory.

        Raises:
            ValueError: If *samples* is empty.
        """
        if samples.size == 0:
            raise ValueError("Cannot encode empty audio to WAV")
        buffer = io.BytesIO()
        sf.write(buffer, samples, self.sample_rate, format="WAV", subtype="PCM_16")
        return buffer.getvalue()

    def frequency_levels(
        self,
        samples: np.ndarray,
        min_db: float = -100.0,
        max_db: float = -30.0,
    ) -> list[int]:
        """Return byte-scaled (0-255) magnitude levels per frequency bin.

        Uses the most recent ``fft_size`` samples (zero-padded if shorter),
        a Blackman window, and maps decibels in ``[min_db, max_db]`` onto
        ``[0, 255]``.
        """
        bins = self.fft_size // 2
        if samples.size == 0:
            return [0] * bins

        frame = np.asarray(samples, dtype=np.float32).reshape(-1)[-self.fft_size :]
        if frame.size < self.fft_size:
            frame = np.pad(frame, (self.fft_size - frame.size, 0))

        spectrum = np.abs(np.fft.rfft(frame * self._window))[:bins] / self.fft_size
        decibels = 20.0 * np.log10(spectrum + 1e-12)
        scaled = (decibels - min_db) / (max_db - min_db) * 255.0
        return np.clip(scaled, 0, 255).astype(np.uint8).tolist()

    def duration_seconds(self, samples: np.ndarray) -> float:
        """Duration of a sample buffer in seconds."""
        return len(samples) / float(self.sample_rate)

    def is_silent(self, audio: np.ndarray, threshold: float = 0.01) -> bool:
        """Check if an audio segment is silence based on RMS energy.

        Args:
            audio: Float32 numpy array of audio samples.
            threshold: RMS energy below this value is considered silence.

        Returns:
            True if the audio is silence.
        """
        if len(audio) == 0:
            return True
        # RMS (Root Mean Square) measures signal energy; low RMS = silence
        rms = np.sqrt(np.mean(audio**2))
        return float(rms) < threshold


def probe_duration_seconds(file_path: str | Path) -> float | None:
    """Return the duration of an audio file in seconds using pydub.

    Returns:
        Duration rounded to milliseconds, or None if the file cannot be decoded.
    """
    try:
        audio = AudioSegment.from_file(str(file_path))
        return round(len(audio) / 1000.0, 3)
    except Exception:
        logger.warning("Could not decode audio duration for %s", file_path)
        return None
