"""
Per-chunk acoustic features.
Runs on every incoming chunk (no buffering) so the continuous estimate stays responsive.
"""
import logging
import numpy as np
import librosa
import parselmouth
from typing import Optional, Protocol

from speechtone.schemas.audio_metrics import AudioFeatureSample

logger = logging.getLogger(__name__)

PCM16_MAX = 32768.0


class MalformedAudioError(ValueError):
    """Chunk is empty or not a whole number of 16-bit samples."""


class PitchDetector(Protocol):
    def detect(self, audio: np.ndarray) -> Optional[float]:
        """Return F0 in Hz for float audio in [-1, 1], or None if unvoiced."""
        ...


class PraatPitchDetector:
    """Praat autocorrelation pitch tracker, median over voiced frames."""

    def __init__(
        self,
        sample_rate: int = 16000,
        pitch_floor: float = 75.0,
        pitch_ceiling: float = 600.0,
        time_step: float = 0.01,
    ):
        self.sr = sample_rate
        self.pitch_floor = pitch_floor
        self.pitch_ceiling = pitch_ceiling
        self.time_step = time_step

    def detect(self, audio: np.ndarray) -> Optional[float]:
        sound = parselmouth.Sound(audio.astype(np.float64), sampling_frequency=self.sr)
        pitch_obj = sound.to_pitch(
            time_step=self.time_step,
            pitch_floor=self.pitch_floor,
            pitch_ceiling=self.pitch_ceiling
        )
        pitch_values = pitch_obj.selected_array['frequency']
        voiced = pitch_values[pitch_values > 0]
        if len(voiced) == 0:
            return None
        return float(np.median(voiced))


class YinPitchDetector:
    """Probabilistic YIN (librosa.pyin); frames flagged unvoiced are ignored."""

    def __init__(
        self,
        sample_rate: int = 16000,
        fmin: float = 75.0,
        fmax: float = 600.0,
        frame_length: int = 1024,
    ):
        self.sr = sample_rate
        self.fmin = fmin
        self.fmax = fmax
        self.frame_length = frame_length

    def detect(self, audio: np.ndarray) -> Optional[float]:
        f0, voiced_flag, _ = librosa.pyin(
            audio.astype(np.float32),
            fmin=self.fmin,
            fmax=self.fmax,
            sr=self.sr,
            frame_length=self.frame_length,
        )
        voiced = f0[voiced_flag & ~np.isnan(f0)]
        if len(voiced) == 0:
            return None
        return float(np.median(voiced))


def build_pitch_detector(
    name: str,
    sample_rate: int = 16000,
    pitch_floor: float = 75.0,
    pitch_ceiling: float = 600.0,
) -> PitchDetector:
    if name == "praat":
        return PraatPitchDetector(sample_rate, pitch_floor, pitch_ceiling)
    if name == "yin":
        return YinPitchDetector(sample_rate, pitch_floor, pitch_ceiling)
    raise ValueError(f"Unknown pitch detector: {name!r}")


class AudioFeatureExtractor:
    """Computes volume and pitch for one raw 16-bit little-endian PCM chunk."""

    def __init__(
        self,
        detector: Optional[PitchDetector] = None,
        sample_rate: int = 16000,
        silence_threshold: float = 0.0,
    ):
        self.sr = sample_rate
        self.detector = detector or PraatPitchDetector(sample_rate=sample_rate)
        self.silence_threshold = silence_threshold

    def decode(self, pcm: bytes) -> np.ndarray:
        if not pcm or len(pcm) % 2 != 0:
            raise MalformedAudioError(
                f"PCM16 chunk must have a positive even byte length, got {len(pcm or b'')}"
            )
        return np.frombuffer(pcm, dtype="<i2")

    def compute_volume(self, samples: np.ndarray) -> float:
        rms = float(np.sqrt(np.mean(samples.astype(np.float64) ** 2)))
        return min(100.0, max(0.0, (rms / PCM16_MAX) * 100.0))

    def compute_pitch(self, samples: np.ndarray) -> Optional[float]:
        audio = samples.astype(np.float32) / PCM16_MAX

        # Skip pitch if too quiet
        if float(np.sqrt(np.mean(audio.astype(np.float64) ** 2))) < self.silence_threshold:
            return None

        try:
            pitch = self.detector.detect(audio)
        except Exception as e:
            logger.debug(f"Pitch detection failed, treating chunk as unvoiced: {e}")
            return None

        if pitch is None or not np.isfinite(pitch) or pitch <= 0:
            return None
        return pitch

    def extract(self, pcm: bytes, timestamp_ms: int) -> AudioFeatureSample:
        samples = self.decode(pcm)
        return AudioFeatureSample(
            timestamp_ms=timestamp_ms,
            volume=self.compute_volume(samples),
            pitch=self.compute_pitch(samples),
        )

    def duration_ms(self, pcm: bytes) -> float:
        return (len(pcm) // 2) / self.sr * 1000.0
