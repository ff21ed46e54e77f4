from pydantic import BaseModel, Field
from typing import Optional, Literal, List

from speechtone.schemas.audio_metrics import Emotion, TranscriptWord


class StartSessionPayload(BaseModel):
    type: Literal["start_session"] = "start_session"


class StreamPayload(BaseModel):
    type: Literal["audio"] = "audio"
    timestamp: Optional[int] = Field(None, description="Arrival timestamp in ms, server clock if omitted")
    audio_chunk: str = Field(..., description="Base64 encoded 16-bit little-endian PCM")


class TurnPayload(BaseModel):
    type: Literal["turn"] = "turn"
    timestamp: Optional[int] = Field(None, description="Receipt timestamp in ms on the audio chunk clock, server clock if omitted")
    transcript: str
    confidence: float = 0.0
    words: List[TranscriptWord] = Field(default_factory=list)


class EndSessionPayload(BaseModel):
    type: Literal["end_session"] = "end_session"


class ContinuousEmotion(BaseModel):
    type: Literal["continuous_emotion"] = "continuous_emotion"
    session_id: str
    volume: float
    pitch: Optional[float] = None
    emotion: Emotion
    confidence: float
    visual_style: str
    timestamp: int


class TurnEmotion(BaseModel):
    type: Literal["turn_emotion"] = "turn_emotion"
    session_id: str
    emotion: Emotion
    confidence: float
    visual_style: str
    avg_volume: float
    avg_pitch: float
    wpm: float
    transcript: str
    timestamp: int


class TranscriptResponse(BaseModel):
    type: Literal["transcript"] = "transcript"
    message_type: Literal["partial_transcript", "final_transcript"]
    text: str
    confidence: Optional[float] = None
    wpm: Optional[float] = None
    timestamp: int


class SessionStatusResponse(BaseModel):
    type: Literal["session_ready", "session_stopped"]
    session_id: str
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    type: Literal["error"] = "error"
    error: str
