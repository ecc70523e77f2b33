from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.websockets import WebSocketState
from pydantic import ValidationError
from typing import Any, Dict
import json
import uuid

from app.core.config import get_settings
from app.core.errors import ConfigurationError
from app.core.logger import get_logger
from app.schemas.messages import ClientAudioFrame, ClientCheckAccess, ClientSetTarget
from app.services.gladia_client import get_gladia_client
from app.services.notion_client import get_notion_client
from app.services.relay import TranscriptionSession
from app.services.viewer_hub import get_viewer_hub

router = APIRouter()
log = get_logger(__name__)


@router.websocket("/ws/transcription")
async def transcription_socket(websocket: WebSocket):
    """
    Audio relay for one client.

    Client messages (JSON text frames):
    - {"type": "audioFrame", "data": "<base64 audio>"}
    - {"type": "setTarget", "url": "<notion url>"} -> targetResponse
    - {"type": "checkAccess", "url": "<notion url>"} -> checkAccessResponse
    - {"type": "ping"} -> pong

    Every transcription result from any session is pushed to all connected
    clients as {"type": "transcriptionResult", "data": "<event json>"}.
    """
    await websocket.accept()
    try:
        session = TranscriptionSession(
            session_id=uuid.uuid4().hex[:12],
            settings=get_settings(),
            notion=get_notion_client(),
            gladia=get_gladia_client(),
            hub=get_viewer_hub(),
            viewer=websocket,
        )
    except ConfigurationError as e:
        log.error("Cannot open transcription session: %s", e)
        await _send(websocket, {"type": "error", "message": str(e)})
        await websocket.close(code=1011)
        return

    try:
        await session.open()
        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
                if not isinstance(message, dict):
                    raise ValueError("message must be a JSON object")
            except ValueError as e:
                await _send(websocket, {"type": "error", "message": f"Malformed message: {e}"})
                continue

            msg_type = message.get("type")
            try:
                if msg_type == "audioFrame":
                    msg = ClientAudioFrame(**message)
                    await session.handle_audio_frame(msg.data)

                elif msg_type == "setTarget":
                    msg = ClientSetTarget(**message)
                    result = await session.set_target(msg.url)
                    await _send(websocket, {"type": "targetResponse", **result})

                elif msg_type == "checkAccess":
                    msg = ClientCheckAccess(**message)
                    result = await session.check_access(msg.url)
                    await _send(websocket, {"type": "checkAccessResponse", **result})

                elif msg_type == "ping":
                    await _send(websocket, {"type": "pong"})

                else:
                    await _send(websocket, {"type": "error", "message": f"Unknown message type: {msg_type}"})
            except ValidationError as e:
                await _send(websocket, {"type": "error", "message": f"Invalid {msg_type} message: {e.errors()[0]['msg']}"})

    except WebSocketDisconnect:
        log.info("Transcription socket closed by client %s", session.session_id)
    except Exception as e:
        log.exception("Transcription socket error: %s", e)
        if websocket.application_state == WebSocketState.CONNECTED:
            try:
                await _send(websocket, {"type": "error", "message": str(e)})
                await websocket.close()
            except Exception:
                log.debug("Could not report error to client %s", session.session_id)
    finally:
        await session.close()


async def _send(ws: WebSocket, payload: Dict[str, Any]) -> None:
    await ws.send_json(payload)
