from typing import List, Literal, Optional
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    ASSEMBLYAI_API_KEY: Optional[str] = None

    SAMPLE_RATE: int = 16000
    HISTORY_RETENTION_MS: int = 5000
    ROLLING_BUFFER_SIZE: int = 10
    MIN_REALTIME_SAMPLES: int = 3
    TURN_LOOKBACK_MS: int = 3000

    PITCH_DETECTOR: Literal["praat", "yin"] = "praat"
    PITCH_FLOOR: float = 75.0
    PITCH_CEILING: float = 600.0
    SILENCE_THRESHOLD: float = 0.0  # normalized RMS, pitch skipped below this; 0 runs the detector on every chunk

    HOST: str = "0.0.0.0"
    PORT: int = 8080
    CORS_ORIGINS: List[str] = ["*"]
    LOG_LEVEL: str = "INFO"

    class Config:
        env_file = ".env"
        extra = "ignore"

    @property
    def transcription_enabled(self) -> bool:
        return bool(self.ASSEMBLYAI_API_KEY)


settings = Settings()
