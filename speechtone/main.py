from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from contextlib import asynccontextmanager
from datetime import datetime, timezone
import logging
from typing import Optional

from speechtone.api import websocket
from speechtone.core.config import Settings, settings as default_settings
from speechtone.core.logging import setup_logging
from speechtone.services.session_manager import SessionManager
from speechtone.services.tone_engine import ToneEngine

logger = logging.getLogger(__name__)


def create_app(settings: Settings = default_settings, engine: Optional[ToneEngine] = None) -> FastAPI:
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        app.state.session_manager = SessionManager(engine or ToneEngine.from_settings(settings), settings)
        logger.info(
            f"Tone engine ready (pitch detector: {settings.PITCH_DETECTOR}, "
            f"streaming transcription: {'on' if settings.transcription_enabled else 'off'})"
        )
        yield
        manager: SessionManager = app.state.session_manager
        for session_id in list(manager.active_sessions):
            await manager.disconnect(session_id)

    app = FastAPI(title="SpeechTone", lifespan=lifespan)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.include_router(websocket.router)

    @app.get("/api/health")
    def health_check():
        manager: SessionManager = app.state.session_manager
        return {
            "status": "ok",
            "message": "Speech tone server is running",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "activeSessions": manager.engine.active_sessions,
        }

    return app


setup_logging(default_settings.LOG_LEVEL)
app = create_app()


def run():
    import uvicorn
    uvicorn.run("speechtone.main:app", host=default_settings.HOST, port=default_settings.PORT, log_level="info")


if __name__ == "__main__":
    run()
