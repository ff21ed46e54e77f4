import math
from dataclasses import dataclass
from typing import Callable, Dict, Optional, Tuple

from speechtone.schemas.audio_metrics import ContributingFeatures, Emotion, EmotionResult

SILENCE_DB = -60.0

VISUAL_STYLES: Dict[Emotion, str] = {
    Emotion.EXCITED: "neon, comic, fast brush",
    Emotion.SAD: "grayscale, watercolor, rainy",
    Emotion.ANGRY: "red/orange, jagged strokes",
    Emotion.HAPPY: "bright colors, smooth curves",
    Emotion.CALM: "soft pastels, gentle lines",
    Emotion.NEUTRAL: "pastel, clean line art",
}

NEUTRAL_CONFIDENCE = 0.5


def volume_to_db(volume: float) -> float:
    """Map the 0-100 volume scale onto a dB-like scale, -60 for silence."""
    if volume > 0:
        return 20 * math.log10(volume / 100)
    return SILENCE_DB


@dataclass(frozen=True)
class EmotionRule:
    emotion: Emotion
    confidence: float
    # (volume_db, pitch_hz, wpm) -> bool
    matches: Callable[[float, float, float], bool]


# Evaluated top-down, first match wins.
EMOTION_RULES: Tuple[EmotionRule, ...] = (
    EmotionRule(Emotion.EXCITED, 0.8, lambda db, pitch, wpm: db > -15 and pitch > 200 and wpm > 160),
    EmotionRule(Emotion.SAD, 0.7, lambda db, pitch, wpm: db < -25 and pitch < 150 and wpm < 100),
    EmotionRule(Emotion.ANGRY, 0.6, lambda db, pitch, wpm: db > -10 and wpm < 120),
    EmotionRule(Emotion.HAPPY, 0.7, lambda db, pitch, wpm: pitch > 180 and wpm > 140),
    EmotionRule(Emotion.CALM, 0.6, lambda db, pitch, wpm: pitch < 120 and wpm < 80),
)


class EmotionClassifier:
    """Rule-based mapping from volume, pitch and speech rate to an emotion."""

    def __init__(self, rules: Tuple[EmotionRule, ...] = EMOTION_RULES):
        self.rules = rules

    def classify(self, volume: float, pitch: Optional[float], wpm: float) -> EmotionResult:
        pitch = pitch or 0.0
        volume_db = volume_to_db(volume)

        for rule in self.rules:
            if rule.matches(volume_db, pitch, wpm):
                return self._result(rule.emotion, rule.confidence, volume, pitch, wpm)

        return self.neutral(volume, pitch, wpm)

    def neutral(self, volume: float = 0.0, pitch: Optional[float] = 0.0, wpm: float = 0.0) -> EmotionResult:
        return self._result(Emotion.NEUTRAL, NEUTRAL_CONFIDENCE, volume, pitch or 0.0, wpm)

    def _result(self, emotion: Emotion, confidence: float, volume: float, pitch: float, wpm: float) -> EmotionResult:
        return EmotionResult(
            emotion=emotion,
            confidence=confidence,
            visual_style=VISUAL_STYLES[emotion],
            features=ContributingFeatures(volume=volume, pitch=pitch, wpm=wpm),
        )
