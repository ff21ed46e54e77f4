import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Literal, Optional

from assemblyai.streaming.v3 import (
    BeginEvent,
    StreamingClient,
    StreamingClientOptions,
    StreamingError,
    StreamingEvents,
    StreamingParameters,
    TerminationEvent,
    TurnEvent,
)

from speechtone.schemas.audio_metrics import TranscriptTurn, TranscriptWord

logger = logging.getLogger(__name__)


def now_ms() -> int:
    return int(time.time() * 1000)


@dataclass
class ProviderEvent:
    kind: Literal["partial", "final", "error", "closed"]
    received_at_ms: int
    turn: Optional[TranscriptTurn] = None
    message: Optional[str] = None


class StreamingTranscriber:
    """
    AssemblyAI real-time transcription for one session.

    SDK callbacks run on the client's own thread; every event is handed to the
    session's asyncio queue so the core sees turns in order with its audio.
    Word offsets are relative to the start of the stream and are shifted onto
    the session clock using the first chunk's arrival time.
    """

    def __init__(
        self,
        api_key: str,
        loop: asyncio.AbstractEventLoop,
        queue: "asyncio.Queue[ProviderEvent]",
        sample_rate: int = 16000,
    ):
        self.api_key = api_key
        self.sample_rate = sample_rate
        self._loop = loop
        self._queue = queue
        self._client: Optional[StreamingClient] = None
        self._origin_ms: Optional[float] = None
        self._enabled = False

    @property
    def is_running(self) -> bool:
        return self._enabled

    def start(self):
        """Blocking: opens the provider connection."""
        client = StreamingClient(StreamingClientOptions(api_key=self.api_key))
        client.on(StreamingEvents.Begin, self._on_begin)
        client.on(StreamingEvents.Turn, self._on_turn)
        client.on(StreamingEvents.Termination, self._on_terminated)
        client.on(StreamingEvents.Error, self._on_error)
        client.connect(StreamingParameters(sample_rate=self.sample_rate, format_turns=True))
        self._client = client
        self._enabled = True

    def send_audio(self, pcm: bytes, timestamp_ms: int, duration_ms: float):
        if not self._enabled:
            return
        if self._origin_ms is None:
            # chunk timestamps mark arrival, i.e. the end of the chunk's audio
            self._origin_ms = timestamp_ms - duration_ms
        self._client.stream(pcm)

    def stop(self):
        """Blocking: terminates the provider session."""
        if not self._enabled:
            return
        self._enabled = False
        try:
            self._client.disconnect(terminate=True)
        except Exception as e:
            logger.error(f"Error closing transcriber: {e}")

    def to_session_turn(self, event: TurnEvent) -> TranscriptTurn:
        origin = self._origin_ms or 0
        words = [
            TranscriptWord(text=w.text, start=int(origin + w.start), end=int(origin + w.end))
            for w in (event.words or [])
        ]
        return TranscriptTurn(
            transcript=event.transcript,
            confidence=event.end_of_turn_confidence or 0.0,
            words=words,
        )

    def _publish(self, event: ProviderEvent):
        self._loop.call_soon_threadsafe(self._queue.put_nowait, event)

    def _on_begin(self, client, event: BeginEvent):
        logger.info(f"Transcription session opened with ID: {event.id}")

    def _on_turn(self, client, event: TurnEvent):
        if not event.transcript:
            return
        if not event.end_of_turn:
            self._publish(ProviderEvent("partial", now_ms(), turn=self.to_session_turn(event)))
        elif event.turn_is_formatted:
            # the unformatted end-of-turn is followed by a formatted copy
            logger.info(f"Final text: '{event.transcript}'")
            self._publish(ProviderEvent("final", now_ms(), turn=self.to_session_turn(event)))

    def _on_terminated(self, client, event: TerminationEvent):
        logger.info(f"Transcription session closed after {event.audio_duration_seconds}s of audio")
        self._enabled = False
        self._publish(ProviderEvent("closed", now_ms()))

    def _on_error(self, client, error: StreamingError):
        logger.error(f"Transcription error: {error}")
        self._publish(ProviderEvent("error", now_ms(), message=str(error)))
