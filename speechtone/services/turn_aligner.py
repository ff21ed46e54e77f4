import logging
from typing import Optional, Tuple

from speechtone.schemas.audio_metrics import TranscriptTurn, TurnAlignment
from speechtone.services.analyzers.emotion import EmotionClassifier
from speechtone.services.analyzers.speech_rate import calculate_speech_rate
from speechtone.services.feature_store import SessionFeatureStore, mean_volume, mean_voiced_pitch

logger = logging.getLogger(__name__)


class TurnAligner:
    """Classifies a finalized turn from the acoustic samples recorded while it was spoken."""

    def __init__(
        self,
        store: SessionFeatureStore,
        classifier: EmotionClassifier,
        lookback_ms: int = 3000,
    ):
        self.store = store
        self.classifier = classifier
        self.lookback_ms = lookback_ms

    def turn_window(self, turn: TranscriptTurn, received_at_ms: int) -> Tuple[int, int]:
        if turn.words:
            return turn.words[0].start, turn.words[-1].end
        return received_at_ms - self.lookback_ms, received_at_ms

    def align(self, session_id: str, turn: TranscriptTurn, received_at_ms: int) -> Optional[TurnAlignment]:
        """
        Returns None when no samples fall inside the turn window: there is no
        acoustic signal to classify, so no turn-level emotion is produced.
        """
        start_ms, end_ms = self.turn_window(turn, received_at_ms)
        samples = self.store.window_samples(session_id, start_ms, end_ms)
        if not samples:
            logger.info(f"No audio features found for turn in session {session_id} [{start_ms}, {end_ms}]")
            return None

        avg_volume = mean_volume(samples)
        avg_pitch = mean_voiced_pitch(samples)
        wpm = calculate_speech_rate(turn.words)

        logger.info(f"Speech-specific analysis: {len(samples)} audio samples during '{turn.transcript}'")

        return TurnAlignment(
            window_start_ms=start_ms,
            window_end_ms=end_ms,
            sample_count=len(samples),
            avg_volume=avg_volume,
            avg_pitch=avg_pitch,
            wpm=wpm,
            result=self.classifier.classify(avg_volume, avg_pitch, wpm),
        )
