import bisect
import logging
from collections import deque
from typing import Deque, Dict, List, Optional

from speechtone.schemas.audio_metrics import AudioFeatureSample, RollingAverages

logger = logging.getLogger(__name__)


class SessionFeatures:
    """Timestamp-ordered history plus a fixed-size rolling buffer for one session."""

    def __init__(self, rolling_size: int):
        self.history: List[AudioFeatureSample] = []
        self.timestamps: List[int] = []
        self.rolling: Deque[AudioFeatureSample] = deque(maxlen=rolling_size)

    def insert(self, sample: AudioFeatureSample):
        # bisect_right keeps arrival order among equal timestamps
        idx = bisect.bisect_right(self.timestamps, sample.timestamp_ms)
        self.timestamps.insert(idx, sample.timestamp_ms)
        self.history.insert(idx, sample)

    def evict_before(self, cutoff_ms: int):
        """Drop every sample with timestamp <= cutoff_ms."""
        idx = bisect.bisect_right(self.timestamps, cutoff_ms)
        if idx:
            del self.timestamps[:idx]
            del self.history[:idx]


class SessionFeatureStore:
    def __init__(self, retention_ms: int = 5000, rolling_size: int = 10):
        self.retention_ms = retention_ms
        self.rolling_size = rolling_size
        self._sessions: Dict[str, SessionFeatures] = {}

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._sessions

    def __len__(self) -> int:
        return len(self._sessions)

    def start(self, session_id: str) -> bool:
        """Allocate state for a session. Returns False if it already exists."""
        if session_id in self._sessions:
            return False
        self._sessions[session_id] = SessionFeatures(self.rolling_size)
        logger.debug(f"Feature store allocated for session {session_id}")
        return True

    def append(self, session_id: str, sample: AudioFeatureSample):
        state = self._sessions.get(session_id)
        if state is None:
            self.start(session_id)
            state = self._sessions[session_id]

        state.insert(sample)
        state.evict_before(state.timestamps[-1] - self.retention_ms)
        state.rolling.append(sample)

    def window_samples(self, session_id: str, start_ms: int, end_ms: int) -> List[AudioFeatureSample]:
        state = self._sessions.get(session_id)
        if state is None or start_ms > end_ms:
            return []
        lo = bisect.bisect_left(state.timestamps, start_ms)
        hi = bisect.bisect_right(state.timestamps, end_ms)
        return state.history[lo:hi]

    def rolling_averages(self, session_id: str) -> Optional[RollingAverages]:
        """Averages over the rolling buffer, None if the session is unknown."""
        state = self._sessions.get(session_id)
        if state is None:
            return None

        samples = list(state.rolling)
        if not samples:
            return RollingAverages(avg_volume=0.0, avg_pitch=0.0, sample_count=0)

        return RollingAverages(
            avg_volume=mean_volume(samples),
            avg_pitch=mean_voiced_pitch(samples),
            sample_count=len(samples),
        )

    def history_span_ms(self, session_id: str) -> int:
        state = self._sessions.get(session_id)
        if state is None or not state.timestamps:
            return 0
        return state.timestamps[-1] - state.timestamps[0]

    def release(self, session_id: str) -> bool:
        """Drop all state for a session. Returns False if there was none."""
        state = self._sessions.pop(session_id, None)
        if state is None:
            return False
        logger.debug(f"Feature store released session {session_id} ({len(state.history)} samples)")
        return True


def mean_volume(samples: List[AudioFeatureSample]) -> float:
    if not samples:
        return 0.0
    return sum(s.volume for s in samples) / len(samples)


def mean_voiced_pitch(samples: List[AudioFeatureSample]) -> float:
    voiced = [s.pitch for s in samples if s.is_voiced]
    if not voiced:
        return 0.0
    return sum(voiced) / len(voiced)
