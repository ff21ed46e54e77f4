from enum import Enum
from pydantic import BaseModel, ConfigDict, Field
from typing import Optional, List


class AudioFeatureSample(BaseModel):
    model_config = ConfigDict(frozen=True)

    timestamp_ms: int = Field(..., description="Arrival time of the chunk in ms")
    volume: float = Field(..., ge=0, le=100, description="RMS volume on a 0-100 scale")
    pitch: Optional[float] = Field(None, description="Fundamental frequency in Hz, None if unvoiced")

    @property
    def is_voiced(self) -> bool:
        return self.pitch is not None and self.pitch > 0


class TranscriptWord(BaseModel):
    text: str = ""
    start: int = Field(..., description="Word start in ms")
    end: int = Field(..., description="Word end in ms")


class TranscriptTurn(BaseModel):
    transcript: str
    confidence: float = 0.0
    words: List[TranscriptWord] = Field(default_factory=list)


class RollingAverages(BaseModel):
    avg_volume: float
    avg_pitch: float
    sample_count: int


class Emotion(str, Enum):
    EXCITED = "excited"
    SAD = "sad"
    ANGRY = "angry"
    HAPPY = "happy"
    CALM = "calm"
    NEUTRAL = "neutral"


class ContributingFeatures(BaseModel):
    volume: float
    pitch: float
    wpm: float


class EmotionResult(BaseModel):
    emotion: Emotion
    confidence: float = Field(..., gt=0, le=1)
    visual_style: str
    features: ContributingFeatures


class TurnAlignment(BaseModel):
    """Window-scoped aggregates for one finalized turn and their classification."""

    window_start_ms: int
    window_end_ms: int
    sample_count: int
    avg_volume: float
    avg_pitch: float
    wpm: float
    result: EmotionResult
