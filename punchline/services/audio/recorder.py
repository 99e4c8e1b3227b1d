"""Microphone capture for one recording at a time.

``RecordingSession`` owns every capture handle (input stream, elapsed-time
ticker, level sampler) and releases them synchronously in ``stop()``.
Captured audio is returned as an immutable WAV ``AudioBlob``.

Usage::

    session = RecordingSession(on_levels=draw_waveform)
    session.start()
    ...
    blob = session.stop()
"""

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import StrEnum

import numpy as np

from punchline.core.exceptions import AlreadyRecording, DeviceUnavailable
from punchline.services.audio.processor import AUDIO_MIME_TYPE, AudioProcessor

logger = logging.getLogger(__name__)


class CaptureState(StrEnum):
    """States of a capture session."""

    idle = "idle"
    recording = "recording"


@dataclass(frozen=True)
class AudioBlob:
    """A finished capture: encoded bytes plus container tag and duration."""

    data: bytes
    mime_type: str = AUDIO_MIME_TYPE
    duration_seconds: float = 0.0
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))

    @property
    def size(self) -> int:
        return len(self.data)


def _default_stream_factory(**kwargs):
    """Open a PortAudio input stream via sounddevice.

    Raises:
        DeviceUnavailable: If PortAudio is missing or no input device exists.
    """
    try:
        import sounddevice as sd

        sd.query_devices(kind="input")
        return sd.InputStream(**kwargs)
    except DeviceUnavailable:
        raise
    except Exception as exc:
        raise DeviceUnavailable(exc) from exc


class RecordingSession:
    """Manages one microphone capture lifecycle: ``idle <-> recording``.

    Args:
        sample_rate: Capture sample rate in Hz.
        channels: Number of input channels (mixed down to mono on stop).
        device: Optional sounddevice input device index or name.
        stream_factory: Callable returning an input stream with
            ``start()``, ``stop()`` and ``close()``; tests inject a fake.
        on_levels: Optional listener receiving frequency-bin levels
            (0-255) every ``level_interval`` seconds while recording.
        on_tick: Optional listener receiving the elapsed seconds on each tick.
        tick_interval: Seconds between elapsed-time ticks.
        level_interval: Seconds between level samples.
        clock: Monotonic clock function.
    """

    def __init__(
        self,
        sample_rate: int = 16000,
        channels: int = 1,
        device: int | str | None = None,
        stream_factory: Callable | None = None,
        on_levels: Callable[[list[int]], None] | None = None,
        on_tick: Callable[[int], None] | None = None,
        tick_interval: float = 1.0,
        level_interval: float = 0.05,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._sample_rate = sample_rate
        self._channels = channels
        self._device = device
        self._stream_factory = stream_factory or _default_stream_factory
        self._on_levels = on_levels
        self._on_tick = on_tick
        self._tick_interval = tick_interval
        self._level_interval = level_interval
        self._clock = clock
        self._processor = AudioProcessor(sample_rate=sample_rate)

        self._lock = threading.Lock()
        self._state = CaptureState.idle
        self._stream = None
        self._chunks: list[np.ndarray] = []
        self._latest = np.zeros(0, dtype=np.float32)
        self._stop_event = threading.Event()
        self._ticker: threading.Thread | None = None
        self._sampler: threading.Thread | None = None
        self._started_at = 0.0
        self._elapsed = 0
        self._listener_failed = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> CaptureState:
        return self._state

    @property
    def is_recording(self) -> bool:
        return self._state == CaptureState.recording

    @property
    def elapsed_seconds(self) -> int:
        """Whole seconds since ``start()``, advanced by the 1-second tick."""
        return self._elapsed

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def start(self) -> None:
        """Open the microphone and begin buffering audio.

        Raises:
            AlreadyRecording: If this session is already capturing.
            DeviceUnavailable: If no input stream can be opened.
        """
        with self._lock:
            if self._state == CaptureState.recording:
                raise AlreadyRecording()

            stream = None
            try:
                stream = self._stream_factory(
                    samplerate=self._sample_rate,
                    channels=self._channels,
                    dtype="float32",
                    device=self._device,
                    callback=self._on_audio,
                )
                stream.start()
            except DeviceUnavailable:
                raise
            except Exception as exc:
                if stream is not None:
                    stream.close()
                raise DeviceUnavailable(exc) from exc

            self._stream = stream
            self._chunks = []
            self._latest = np.zeros(0, dtype=np.float32)
            self._elapsed = 0
            self._listener_failed = False
            self._started_at = self._clock()
            self._stop_event = threading.Event()
            self._state = CaptureState.recording

            self._ticker = threading.Thread(
                target=self._tick_loop, name="capture-ticker", daemon=True
            )
            self._ticker.start()
            if self._on_levels is not None:
                self._sampler = threading.Thread(
                    target=self._sample_loop, name="capture-levels", daemon=True
                )
                self._sampler.start()

        logger.info("Capture started (%d Hz, %d ch)", self._sample_rate, self._channels)

    def stop(self) -> AudioBlob | None:
        """Stop capturing, release every handle, and return the audio blob.

        Returns:
            The captured ``AudioBlob`` (empty ``data`` if no frames arrived),
            or None if the session was not recording.
        """
        with self._lock:
            if self._state != CaptureState.recording:
                return None
            self._state = CaptureState.idle
            self._stop_event.set()

            self._join_background()
            try:
                if self._stream is not None:
                    self._stream.stop()
                    self._stream.close()
            except Exception:
                logger.warning("Error while closing input stream", exc_info=True)
            finally:
                self._stream = None

            chunks, self._chunks = self._chunks, []
            self._latest = np.zeros(0, dtype=np.float32)

        samples = self._mixdown(chunks)
        duration = self._processor.duration_seconds(samples)
        if samples.size and self._processor.is_silent(samples):
            logger.warning("Captured %.1fs of audio that appears silent", duration)
        data = self._processor.encode_wav(samples) if samples.size else b""
        logger.info("Capture stopped: %.1fs, %d bytes", duration, len(data))
        return AudioBlob(data=data, duration_seconds=duration)

    def dispose(self) -> None:
        """Release all handles, discarding any captured audio."""
        self.stop()

    def __enter__(self) -> "RecordingSession":
        return self

    def __exit__(self, *exc_info) -> None:
        self.dispose()

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _on_audio(self, indata, frames, time_info, status) -> None:
        """PortAudio callback: buffer a copy of each input block."""
        if status:
            logger.debug("Input stream status: %s", status)
        if self._state != CaptureState.recording:
            return
        block = np.array(indata, dtype=np.float32, copy=True)
        self._chunks.append(block)
        self._latest = block[:, 0] if block.ndim > 1 else block

    def _mixdown(self, chunks: list[np.ndarray]) -> np.ndarray:
        if not chunks:
            return np.zeros(0, dtype=np.float32)
        audio = np.concatenate(chunks, axis=0)
        if audio.ndim > 1:
            audio = audio.mean(axis=1)
        return audio.astype(np.float32)

    def _join_background(self) -> None:
        current = threading.current_thread()
        for thread in (self._ticker, self._sampler):
            if thread is not None and thread is not current:
                thread.join(timeout=max(self._tick_interval, self._level_interval) + 1.0)
                if thread.is_alive():
                    logger.warning("Capture thread %s did not stop in time", thread.name)
        self._ticker = None
        self._sampler = None

    def _tick_loop(self) -> None:
        while not self._stop_event.wait(self._tick_interval):
            self._elapsed = int(self._clock() - self._started_at)
            if self._on_tick is not None:
                self._notify(self._on_tick, self._elapsed)

    def _sample_loop(self) -> None:
        while not self._stop_event.wait(self._level_interval):
            try:
                levels = self._processor.frequency_levels(self._latest)
            except Exception:
                logger.debug("Level sampling failed", exc_info=True)
                continue
            self._notify(self._on_levels, levels)

    def _notify(self, listener: Callable, value) -> None:
        """Call an advisory listener; its errors never affect the capture."""
        try:
            listener(value)
        except Exception:
            if not self._listener_failed:
                self._listener_failed = True
                logger.warning("Capture listener raised; ignoring", exc_info=True)
