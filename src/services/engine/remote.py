"""Capture engine bridge to a device connected over WebSocket.

The device (phone app, desktop recorder) runs the actual microphone capture
and speech recognizer. The server sends it ``command`` messages and the device
answers with ``event`` messages (the ``EngineEvent`` union) and ``capability``
replies to permission requests.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable

from pydantic import TypeAdapter

from src.core.config import get_settings
from src.core.exceptions import EngineNotConnectedError
from src.core.models import (
    CaptureOptions,
    EngineEvent,
    ErrorEvent,
    WebSocketMessage,
    WebSocketMessageType,
)
from src.services.engine.base import BaseCapabilityProvider, BaseCaptureEngine

logger = logging.getLogger(__name__)

_event_adapter: TypeAdapter[EngineEvent] = TypeAdapter(EngineEvent)


class RemoteCaptureEngine(BaseCaptureEngine, BaseCapabilityProvider):
    """Engine and capability provider backed by one connected device.

    Args:
        capability_timeout: Seconds to wait for the device to answer a
            permission request before treating it as denied.
    """

    def __init__(self, capability_timeout: float | None = None) -> None:
        super().__init__()
        self._send: Callable[[dict], Awaitable[None]] | None = None
        self._capability_waiter: asyncio.Future | None = None
        self._capability_timeout = (
            get_settings().capability_timeout_seconds
            if capability_timeout is None
            else capability_timeout
        )

    @property
    def connected(self) -> bool:
        return self._send is not None

    def attach(self, send: Callable[[dict], Awaitable[None]]) -> None:
        """Bind the device connection. ``send`` delivers one JSON message."""
        self._send = send
        logger.info("Capture engine connected")

    def detach(self) -> None:
        """Forget the device connection and fail anything waiting on it."""
        self._send = None
        if self._capability_waiter is not None and not self._capability_waiter.done():
            self._capability_waiter.set_result(False)
        logger.info("Capture engine disconnected")
        # A vanished device can no longer capture; the session stays current
        self.emit(ErrorEvent(reason="engine disconnected"))

    async def _command(self, action: str, **data) -> None:
        if self._send is None:
            raise EngineNotConnectedError()
        message = WebSocketMessage(
            type=WebSocketMessageType.command,
            data={"action": action, **data},
        )
        await self._send(message.model_dump(mode="json"))

    async def start(self, config: CaptureOptions) -> None:
        await self._command("start", config=config.model_dump(mode="json", exclude_none=True))

    async def stop(self) -> None:
        await self._command("stop")

    async def request_capability(self) -> bool:
        """Ask the device to prompt for microphone / recognition access.

        Raises:
            EngineNotConnectedError: If no device is connected.
        """
        waiter = asyncio.get_running_loop().create_future()
        self._capability_waiter = waiter
        try:
            await self._command("request_capability")
            return await asyncio.wait_for(waiter, timeout=self._capability_timeout)
        except TimeoutError:
            logger.warning("No capability answer within %ss; treating as denied", self._capability_timeout)
            return False
        finally:
            if self._capability_waiter is waiter:
                self._capability_waiter = None

    def receive(self, payload: dict) -> None:
        """Dispatch one message received from the device.

        Raises:
            pydantic.ValidationError: If the message or event is malformed.
        """
        message = WebSocketMessage.model_validate(payload)
        if message.type is WebSocketMessageType.event:
            self.emit(_event_adapter.validate_python(message.data))
        elif message.type is WebSocketMessageType.capability:
            granted = bool(message.data.get("granted", False))
            if self._capability_waiter is not None and not self._capability_waiter.done():
                self._capability_waiter.set_result(granted)
            else:
                logger.warning("Unsolicited capability answer ignored")
        else:
            logger.warning("Ignoring unexpected %s message from engine", message.type)
