from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from pydantic import BaseModel, ValidationError
import asyncio
import base64
import binascii
import json
import logging
import uuid

from speechtone.schemas.audio_metrics import TranscriptTurn
from speechtone.schemas.protocol import (
    EndSessionPayload,
    ErrorResponse,
    SessionStatusResponse,
    StreamPayload,
    TranscriptResponse,
    TurnPayload,
)
from speechtone.services.analyzers.audio_features import MalformedAudioError
from speechtone.services.analyzers.speech_rate import calculate_speech_rate
from speechtone.services.session_manager import Session, SessionManager
from speechtone.services.transcriber import ProviderEvent, now_ms

logger = logging.getLogger(__name__)
router = APIRouter()


async def send_model(websocket: WebSocket, message: BaseModel):
    await websocket.send_text(message.model_dump_json())


async def send_error(websocket: WebSocket, error: str):
    await send_model(websocket, ErrorResponse(error=error))


async def handle_audio(manager: SessionManager, session: Session, payload: StreamPayload):
    try:
        pcm = base64.b64decode(payload.audio_chunk, validate=True)
    except binascii.Error as e:
        raise MalformedAudioError(f"Audio chunk is not valid base64: {e}") from e

    timestamp = payload.timestamp if payload.timestamp is not None else now_ms()
    emotion = await run_in_threadpool(manager.engine.process_chunk, session.session_id, pcm, timestamp)
    await send_model(session.websocket, emotion)

    if session.transcriber is not None and session.transcriber.is_running:
        session.transcriber.send_audio(pcm, timestamp, manager.engine.extractor.duration_ms(pcm))


async def handle_final_turn(manager: SessionManager, session: Session, turn: TranscriptTurn, received_at_ms: int):
    """Turn-level emotion (when aligned samples exist), then the final transcript."""
    emotion = await run_in_threadpool(manager.engine.process_turn, session.session_id, turn, received_at_ms)
    if emotion is not None:
        await send_model(session.websocket, emotion)

    wpm = calculate_speech_rate(turn.words)
    logger.info(f"Final text: '{turn.transcript}' ({wpm:.1f} WPM)")
    await send_model(session.websocket, TranscriptResponse(
        message_type="final_transcript",
        text=turn.transcript,
        confidence=turn.confidence,
        wpm=wpm,
        timestamp=received_at_ms,
    ))


async def handle_provider_event(manager: SessionManager, session: Session, event: ProviderEvent):
    if event.kind == "partial":
        await send_model(session.websocket, TranscriptResponse(
            message_type="partial_transcript",
            text=event.turn.transcript,
            timestamp=event.received_at_ms,
        ))
    elif event.kind == "final":
        await handle_final_turn(manager, session, event.turn, event.received_at_ms)
    elif event.kind == "error":
        await send_error(session.websocket, event.message or "Transcription error")
    elif event.kind == "closed":
        if session.transcriber is None:
            # closed by our own end_session, already released and acknowledged
            return
        session.transcriber = None
        manager.engine.end_session(session.session_id)
        await send_model(session.websocket, SessionStatusResponse(
            type="session_stopped",
            session_id=session.session_id,
            message="Transcription session closed",
        ))


async def handle_message(manager: SessionManager, session: Session, raw: dict):
    message_type = raw.get("type", "audio")

    if message_type == "start_session":
        try:
            started = await manager.start_transcription(session)
        except Exception as e:
            logger.error(f"Error starting transcription: {e}")
            await send_error(session.websocket, f"Failed to start transcription: {e}")
            return
        await send_model(session.websocket, SessionStatusResponse(
            type="session_ready",
            session_id=session.session_id,
            message="Ready to receive audio" + (" (streaming transcription on)" if started else ""),
        ))
    elif message_type == "audio":
        await handle_audio(manager, session, StreamPayload.model_validate(raw))
    elif message_type == "turn":
        payload = TurnPayload.model_validate(raw)
        turn = TranscriptTurn(transcript=payload.transcript, confidence=payload.confidence, words=payload.words)
        received_at_ms = payload.timestamp if payload.timestamp is not None else now_ms()
        await handle_final_turn(manager, session, turn, received_at_ms)
    elif message_type == "end_session":
        EndSessionPayload.model_validate(raw)
        logger.info("End session requested")
        await manager.stop_transcription(session)
        await send_model(session.websocket, SessionStatusResponse(
            type="session_stopped",
            session_id=session.session_id,
            message="Transcription stopped",
        ))
    else:
        await send_error(session.websocket, f"Unknown message type: {message_type}")


@router.websocket("/ws/audio")
async def audio_websocket_endpoint(websocket: WebSocket):
    manager: SessionManager = websocket.app.state.session_manager
    session_id = str(uuid.uuid4())
    session = await manager.connect(session_id, websocket)

    # One receive stays pending across polls so a frame is never lost to a timeout
    receive_task = asyncio.ensure_future(websocket.receive_text())
    try:
        while True:
            data = None
            done, _ = await asyncio.wait({receive_task}, timeout=0.05)
            if receive_task in done:
                data = receive_task.result()
                receive_task = asyncio.ensure_future(websocket.receive_text())

            if data:
                try:
                    raw = json.loads(data)
                    if not isinstance(raw, dict):
                        raise ValueError("Expected a JSON object")
                    await handle_message(manager, session, raw)
                except MalformedAudioError as e:
                    logger.warning(f"Rejected audio chunk: {e}")
                    await send_error(websocket, str(e))
                except ValidationError as e:
                    logger.error(f"Validation error: {e}")
                    await send_error(websocket, "Invalid message payload")
                except ValueError as e:
                    logger.error(f"Invalid message: {e}")
                    await send_error(websocket, "Invalid message")

            # Provider events queued from the transcriber thread
            while not session.provider_events.empty():
                await handle_provider_event(manager, session, session.provider_events.get_nowait())

    except WebSocketDisconnect:
        logger.info(f"Client disconnected: {session_id}")
    except Exception as e:
        logger.exception(f"Error in session {session_id}: {e}")
    finally:
        if not receive_task.done():
            receive_task.cancel()
        await manager.disconnect(session_id)
