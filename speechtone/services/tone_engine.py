import logging
from typing import Optional

from speechtone.core.config import Settings
from speechtone.schemas.audio_metrics import TranscriptTurn
from speechtone.schemas.protocol import ContinuousEmotion, TurnEmotion
from speechtone.services.analyzers.audio_features import AudioFeatureExtractor, build_pitch_detector
from speechtone.services.analyzers.emotion import EmotionClassifier
from speechtone.services.feature_store import SessionFeatureStore
from speechtone.services.realtime_aggregator import RealtimeAggregator
from speechtone.services.turn_aligner import TurnAligner

logger = logging.getLogger(__name__)


class ToneEngine:
    """
    Entry point of the core pipeline.

    Audio chunks flow extractor -> store -> realtime aggregator -> classifier.
    Finalized turns flow store window -> turn aligner -> classifier.
    Calls for one session must arrive in order; sessions are independent.
    """

    def __init__(
        self,
        extractor: Optional[AudioFeatureExtractor] = None,
        store: Optional[SessionFeatureStore] = None,
        classifier: Optional[EmotionClassifier] = None,
        min_realtime_samples: int = 3,
        turn_lookback_ms: int = 3000,
    ):
        self.extractor = extractor or AudioFeatureExtractor()
        self.store = store or SessionFeatureStore()
        self.classifier = classifier or EmotionClassifier()
        self.aggregator = RealtimeAggregator(self.store, self.classifier, min_samples=min_realtime_samples)
        self.aligner = TurnAligner(self.store, self.classifier, lookback_ms=turn_lookback_ms)

    @classmethod
    def from_settings(cls, settings: Settings) -> "ToneEngine":
        detector = build_pitch_detector(
            settings.PITCH_DETECTOR,
            sample_rate=settings.SAMPLE_RATE,
            pitch_floor=settings.PITCH_FLOOR,
            pitch_ceiling=settings.PITCH_CEILING,
        )
        return cls(
            extractor=AudioFeatureExtractor(
                detector,
                sample_rate=settings.SAMPLE_RATE,
                silence_threshold=settings.SILENCE_THRESHOLD,
            ),
            store=SessionFeatureStore(
                retention_ms=settings.HISTORY_RETENTION_MS,
                rolling_size=settings.ROLLING_BUFFER_SIZE,
            ),
            min_realtime_samples=settings.MIN_REALTIME_SAMPLES,
            turn_lookback_ms=settings.TURN_LOOKBACK_MS,
        )

    @property
    def active_sessions(self) -> int:
        return len(self.store)

    def start_session(self, session_id: str) -> bool:
        return self.store.start(session_id)

    def process_chunk(self, session_id: str, pcm: bytes, timestamp_ms: int) -> ContinuousEmotion:
        # Raises MalformedAudioError before any state is touched
        sample = self.extractor.extract(pcm, timestamp_ms)
        self.store.append(session_id, sample)
        result = self.aggregator.update(session_id)

        logger.debug(
            f"Chunk ({session_id}, {timestamp_ms}): volume={sample.volume:.2f}, "
            f"pitch={sample.pitch}, emotion={result.emotion.value}"
        )

        return ContinuousEmotion(
            session_id=session_id,
            volume=sample.volume,
            pitch=sample.pitch,
            emotion=result.emotion,
            confidence=result.confidence,
            visual_style=result.visual_style,
            timestamp=timestamp_ms,
        )

    def process_turn(self, session_id: str, turn: TranscriptTurn, received_at_ms: int) -> Optional[TurnEmotion]:
        if session_id not in self.store:
            logger.info(f"Turn for unknown session {session_id} ignored")
            return None

        alignment = self.aligner.align(session_id, turn, received_at_ms)
        if alignment is None:
            return None

        result = alignment.result
        logger.info(f"Emotion: {result.emotion.value} ({result.confidence:.2f}), style: {result.visual_style}")

        return TurnEmotion(
            session_id=session_id,
            emotion=result.emotion,
            confidence=result.confidence,
            visual_style=result.visual_style,
            avg_volume=alignment.avg_volume,
            avg_pitch=alignment.avg_pitch,
            wpm=alignment.wpm,
            transcript=turn.transcript,
            timestamp=received_at_ms,
        )

    def end_session(self, session_id: str) -> bool:
        return self.store.release(session_id)
