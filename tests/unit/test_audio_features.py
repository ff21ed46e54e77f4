"""
Unit Tests for Audio Feature Extraction

Tests for PCM decoding, RMS volume and pitch detection.
"""

import numpy as np
import pytest

from conftest import FailingPitchDetector, FixedPitchDetector, constant_pcm, sine_pcm
from speechtone.services.analyzers.audio_features import (
    AudioFeatureExtractor,
    MalformedAudioError,
    PraatPitchDetector,
    YinPitchDetector,
    build_pitch_detector,
)


# =============================================================================
# Input Validation Tests
# =============================================================================


class TestDecode:
    """Tests for PCM16 buffer validation."""

    def test_empty_buffer_rejected(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        with pytest.raises(MalformedAudioError):
            extractor.extract(b"", 0)

    def test_odd_length_rejected(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        with pytest.raises(MalformedAudioError):
            extractor.extract(b"\x00\x01\x02", 0)

    def test_rejection_does_not_call_detector(self):
        detector = FixedPitchDetector()
        extractor = AudioFeatureExtractor(detector)
        with pytest.raises(MalformedAudioError):
            extractor.extract(b"\x01", 0)
        assert detector.calls == 0

    def test_little_endian_decoding(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        samples = extractor.decode(b"\x01\x00\xff\x7f")
        assert samples.tolist() == [1, 32767]


# =============================================================================
# Volume Tests
# =============================================================================


class TestVolume:
    """Tests for RMS volume on the 0-100 scale."""

    def test_silence_is_zero(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        sample = extractor.extract(constant_pcm(0), 1000)
        assert sample.volume == 0.0

    def test_single_nonzero_sample_is_positive(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        pcm = np.array([0] * 99 + [1], dtype="<i2").tobytes()
        assert extractor.extract(pcm, 0).volume > 0.0

    def test_full_scale_is_clamped_to_100(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        assert extractor.extract(constant_pcm(-32768), 0).volume == 100.0
        assert extractor.extract(constant_pcm(32767), 0).volume == pytest.approx(100.0, abs=0.01)

    def test_sine_rms(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        volume = extractor.extract(sine_pcm(200.0, amplitude=0.5), 0).volume
        assert volume == pytest.approx(50.0 / np.sqrt(2), abs=0.1)

    def test_volume_monotonic_in_amplitude(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector())
        volumes = [
            extractor.extract(sine_pcm(200.0, amplitude=a), 0).volume
            for a in (0.05, 0.1, 0.2, 0.4, 0.8, 1.0)
        ]
        assert volumes == sorted(volumes)
        assert all(0.0 <= v <= 100.0 for v in volumes)


# =============================================================================
# Pitch Tests
# =============================================================================


class TestPitch:
    """Tests for pitch extraction and unvoiced handling."""

    def test_detector_value_is_used(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector(180.0))
        assert extractor.extract(sine_pcm(), 0).pitch == 180.0

    def test_detector_failure_is_unvoiced(self):
        extractor = AudioFeatureExtractor(FailingPitchDetector())
        sample = extractor.extract(sine_pcm(), 0)
        assert sample.pitch is None
        assert not sample.is_voiced

    def test_detector_none_is_unvoiced(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector(None))
        assert extractor.extract(sine_pcm(), 0).pitch is None

    def test_non_finite_pitch_is_unvoiced(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector(float("nan")))
        assert extractor.extract(sine_pcm(), 0).pitch is None

    def test_silence_skips_detector(self):
        detector = FixedPitchDetector(200.0)
        extractor = AudioFeatureExtractor(detector, silence_threshold=0.01)
        assert extractor.extract(constant_pcm(0), 0).pitch is None
        assert detector.calls == 0

    def test_quiet_voiced_chunk_reaches_detector_by_default(self):
        detector = FixedPitchDetector(150.0)
        extractor = AudioFeatureExtractor(detector)
        sample = extractor.extract(sine_pcm(150.0, amplitude=0.001), 0)
        assert sample.pitch == 150.0
        assert detector.calls == 1
        assert sample.volume < 1.0

    def test_praat_detects_sine_frequency(self):
        detector = PraatPitchDetector(sample_rate=16000)
        extractor = AudioFeatureExtractor(detector)
        pitch = extractor.extract(sine_pcm(200.0, duration=0.3), 0).pitch
        assert pitch == pytest.approx(200.0, abs=10.0)

    def test_yin_detects_sine_frequency(self):
        detector = YinPitchDetector(sample_rate=16000)
        extractor = AudioFeatureExtractor(detector)
        pitch = extractor.extract(sine_pcm(200.0, duration=0.5), 0).pitch
        assert pitch == pytest.approx(200.0, abs=10.0)

    def test_build_pitch_detector(self):
        assert isinstance(build_pitch_detector("praat"), PraatPitchDetector)
        assert isinstance(build_pitch_detector("yin"), YinPitchDetector)
        with pytest.raises(ValueError):
            build_pitch_detector("crepe")


class TestDuration:
    def test_duration_ms(self):
        extractor = AudioFeatureExtractor(FixedPitchDetector(), sample_rate=16000)
        assert extractor.duration_ms(sine_pcm(duration=0.25)) == pytest.approx(250.0)
