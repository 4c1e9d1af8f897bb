"""WebSocket endpoint for the device-side capture engine.

The device connects once and stays connected. The server sends JSON
``command`` messages (``start`` with the merged config, ``stop``,
``request_capability``); the device sends ``event`` messages carrying one
engine event each, and ``capability`` replies.

Pipeline: Device events → RemoteCaptureEngine → RecordingSessionMachine
"""

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from src.core.models import WebSocketMessage, WebSocketMessageType
from src.services.engine.remote import RemoteCaptureEngine

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws/engine")
async def engine_ws(websocket: WebSocket) -> None:
    """Bridge one capture engine connection into the session machine.

    Only one engine may be attached at a time; a second connection receives
    an error message and is closed.
    """
    await websocket.accept()
    engine: RemoteCaptureEngine = websocket.app.state.engine

    if engine.connected:
        error_msg = WebSocketMessage(
            type=WebSocketMessageType.error,
            data={"detail": "A capture engine is already connected"},
        )
        await websocket.send_json(error_msg.model_dump(mode="json"))
        await websocket.close(code=1013)
        return

    async def _send(data: dict) -> None:
        await websocket.send_json(data)

    engine.attach(_send)
    connected_msg = WebSocketMessage(type=WebSocketMessageType.connected)
    await websocket.send_json(connected_msg.model_dump(mode="json"))

    try:
        while True:
            try:
                engine.receive(await websocket.receive_json())
            except ValueError as exc:
                # ValidationError and JSONDecodeError both derive from ValueError
                if isinstance(exc, ValidationError):
                    logger.warning("Malformed engine message: %s", exc.errors()[:1])
                else:
                    logger.warning("Engine sent a non-JSON frame: %s", exc)
                error_msg = WebSocketMessage(
                    type=WebSocketMessageType.error,
                    data={"detail": "Malformed engine message"},
                )
                await websocket.send_json(error_msg.model_dump(mode="json"))
    except WebSocketDisconnect:
        logger.info("Capture engine WebSocket disconnected")
    finally:
        engine.detach()
