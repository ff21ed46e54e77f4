from typing import Sequence

from speechtone.schemas.audio_metrics import TranscriptWord


def calculate_speech_rate(words: Sequence[TranscriptWord]) -> float:
    """Words per minute between the first word's start and the last word's end."""
    if not words or len(words) < 2:
        return 0.0

    duration = (words[-1].end - words[0].start) / 1000.0
    if duration <= 0:
        return 0.0

    return (len(words) / duration) * 60.0
