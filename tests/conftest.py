"""Shared pytest fixtures for testing."""

from typing import Optional

import numpy as np
import pytest

from speechtone.schemas.audio_metrics import AudioFeatureSample
from speechtone.services.analyzers.audio_features import AudioFeatureExtractor
from speechtone.services.analyzers.emotion import EmotionClassifier
from speechtone.services.feature_store import SessionFeatureStore
from speechtone.services.tone_engine import ToneEngine

SAMPLE_RATE = 16000


def sine_pcm(freq: float = 200.0, amplitude: float = 0.5, duration: float = 0.2, sr: int = SAMPLE_RATE) -> bytes:
    """16-bit little-endian PCM sine tone."""
    t = np.arange(int(sr * duration)) / sr
    samples = amplitude * np.sin(2 * np.pi * freq * t) * 32767
    return samples.astype("<i2").tobytes()


def constant_pcm(value: int, n_samples: int = 1600) -> bytes:
    return np.full(n_samples, value, dtype="<i2").tobytes()


def make_sample(timestamp_ms: int, volume: float = 50.0, pitch: Optional[float] = 150.0) -> AudioFeatureSample:
    return AudioFeatureSample(timestamp_ms=timestamp_ms, volume=volume, pitch=pitch)


class FixedPitchDetector:
    """Returns a preset pitch, so engine tests don't depend on a real tracker."""

    def __init__(self, pitch: Optional[float] = 220.0):
        self.pitch = pitch
        self.calls = 0

    def detect(self, audio: np.ndarray) -> Optional[float]:
        self.calls += 1
        return self.pitch


class FailingPitchDetector:
    def detect(self, audio: np.ndarray) -> Optional[float]:
        raise RuntimeError("detector blew up")


# =============================================================================
# Core Fixtures
# =============================================================================


@pytest.fixture
def store() -> SessionFeatureStore:
    return SessionFeatureStore(retention_ms=5000, rolling_size=10)


@pytest.fixture
def classifier() -> EmotionClassifier:
    return EmotionClassifier()


@pytest.fixture
def pitch_detector() -> FixedPitchDetector:
    return FixedPitchDetector(220.0)


@pytest.fixture
def engine(pitch_detector) -> ToneEngine:
    return ToneEngine(extractor=AudioFeatureExtractor(pitch_detector, sample_rate=SAMPLE_RATE))
