import asyncio
import logging
from fastapi import WebSocket
from fastapi.concurrency import run_in_threadpool
from typing import Dict, Optional

from speechtone.core.config import Settings
from speechtone.services.tone_engine import ToneEngine
from speechtone.services.transcriber import ProviderEvent, StreamingTranscriber

logger = logging.getLogger(__name__)


class Session:
    def __init__(self, session_id: str, websocket: WebSocket):
        self.session_id = session_id
        self.websocket = websocket
        self.provider_events: "asyncio.Queue[ProviderEvent]" = asyncio.Queue()
        self.transcriber: Optional[StreamingTranscriber] = None


class SessionManager:
    """Owns the live connections and the tone engine shared by them."""

    def __init__(self, engine: ToneEngine, settings: Settings):
        self.engine = engine
        self.settings = settings
        self.active_sessions: Dict[str, Session] = {}

    async def connect(self, session_id: str, websocket: WebSocket) -> Session:
        await websocket.accept()
        session = Session(session_id, websocket)
        self.active_sessions[session_id] = session
        logger.info(f"Session {session_id} connected")
        return session

    def get_session(self, session_id: str) -> Optional[Session]:
        return self.active_sessions.get(session_id)

    async def start_transcription(self, session: Session) -> bool:
        """Allocate core state and, when configured, open the streaming transcriber."""
        self.engine.start_session(session.session_id)

        if not self.settings.transcription_enabled or session.transcriber is not None:
            return False

        transcriber = StreamingTranscriber(
            api_key=self.settings.ASSEMBLYAI_API_KEY,
            loop=asyncio.get_running_loop(),
            queue=session.provider_events,
            sample_rate=self.settings.SAMPLE_RATE,
        )
        await run_in_threadpool(transcriber.start)
        session.transcriber = transcriber
        return True

    async def stop_transcription(self, session: Session) -> bool:
        """Close the transcriber and release the session's core state."""
        if session.transcriber is not None:
            await run_in_threadpool(session.transcriber.stop)
            session.transcriber = None
        return self.engine.end_session(session.session_id)

    async def disconnect(self, session_id: str):
        session = self.active_sessions.pop(session_id, None)
        if session is None:
            return
        await self.stop_transcription(session)
        logger.info(f"Session {session_id} disconnected")
