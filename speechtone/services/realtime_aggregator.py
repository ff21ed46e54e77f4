"""
Continuous emotion estimate smoothed over the rolling buffer.
No speech-rate signal exists between turns, so the classifier is fed wpm=0.
"""
from typing import Optional

from speechtone.schemas.audio_metrics import EmotionResult
from speechtone.services.analyzers.emotion import EmotionClassifier
from speechtone.services.feature_store import SessionFeatureStore


class RealtimeAggregator:
    def __init__(
        self,
        store: SessionFeatureStore,
        classifier: EmotionClassifier,
        min_samples: int = 3,
    ):
        self.store = store
        self.classifier = classifier
        self.min_samples = min_samples

    def update(self, session_id: str) -> Optional[EmotionResult]:
        averages = self.store.rolling_averages(session_id)
        if averages is None:
            return None

        # Early estimates are unreliable
        if averages.sample_count < self.min_samples:
            return self.classifier.neutral(averages.avg_volume, averages.avg_pitch)

        return self.classifier.classify(averages.avg_volume, averages.avg_pitch, wpm=0.0)
