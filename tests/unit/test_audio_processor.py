"""Tests for AudioProcessor (WAV encoding, levels, silence) and duration probing."""

import io

import numpy as np
import pytest
import soundfile as sf

from punchline.services.audio.processor import AudioProcessor, probe_duration_seconds


@pytest.fixture
def processor():
    """Create an AudioProcessor configured for 16 kHz mono audio."""
    return AudioProcessor(sample_rate=16000)


class TestEncodeWav:
    """Captured float samples become a 16-bit PCM WAV container."""

    def test_riff_header(self, processor, sine_samples):
        data = processor.encode_wav(sine_samples)
        assert data[:4] == b"RIFF"
        assert data[8:12] == b"WAVE"

    def test_preserves_rate_and_length(self, processor, sine_samples):
        info = sf.info(io.BytesIO(processor.encode_wav(sine_samples)))
        assert info.samplerate == 16000
        assert info.channels == 1
        assert info.frames == len(sine_samples)
        assert info.subtype == "PCM_16"

    def test_rejects_empty(self, processor):
        with pytest.raises(ValueError):
            processor.encode_wav(np.zeros(0, dtype=np.float32))


class TestFrequencyLevels:
    """Visualization levels: fft_size // 2 bins scaled to 0-255."""

    def test_bin_count_and_range(self, processor, sine_samples):
        levels = processor.frequency_levels(sine_samples)
        assert len(levels) == 128
        assert all(0 <= v <= 255 for v in levels)

    def test_empty_is_all_zero(self, processor):
        assert processor.frequency_levels(np.zeros(0, dtype=np.float32)) == [0] * 128

    def test_silence_is_all_zero(self, processor):
        assert set(processor.frequency_levels(np.zeros(512, dtype=np.float32))) == {0}

    def test_tone_peaks_near_its_bin(self, processor, sine_samples):
        """440Hz at 16kHz with a 256-point window lands near bin 7."""
        levels = processor.frequency_levels(sine_samples)
        assert abs(int(np.argmax(levels)) - 7) <= 1

    def test_short_input_padded(self, processor):
        levels = processor.frequency_levels(np.full(10, 0.5, dtype=np.float32))
        assert len(levels) == 128


class TestIsSilent:
    """Verify silence detection logic based on RMS energy threshold."""

    def test_silence_detected(self, processor):
        assert processor.is_silent(np.zeros(16000, dtype=np.float32)) is True

    def test_audio_not_silent(self, processor, sine_samples):
        assert processor.is_silent(sine_samples) is False

    def test_empty_array_is_silent(self, processor):
        assert processor.is_silent(np.array([], dtype=np.float32)) is True

    def test_custom_threshold(self, processor, sine_samples):
        assert processor.is_silent(sine_samples, threshold=1.0) is True


class TestDuration:
    def test_duration_seconds(self, processor, sine_samples):
        assert processor.duration_seconds(sine_samples) == pytest.approx(1.0)

    def test_probe_wav_file(self, tmp_path, sample_wav_bytes):
        path = tmp_path / "clip.wav"
        path.write_bytes(sample_wav_bytes)
        assert probe_duration_seconds(path) == pytest.approx(1.0, abs=0.01)

    def test_probe_garbage_returns_none(self, tmp_path):
        path = tmp_path / "broken.wav"
        path.write_bytes(b"definitely not audio")
        assert probe_duration_seconds(path) is None
