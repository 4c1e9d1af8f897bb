"""
Abstract interfaces for the external capture / recognition engine.

The engine records audio and recognizes speech on the device; the session
machine only sends it start/stop commands and consumes its events.
"""

from abc import ABC, abstractmethod
from collections.abc import Callable

from src.core.models import CaptureOptions, EngineEvent

EventListener = Callable[[EngineEvent], None]


class BaseCapabilityProvider(ABC):
    """Grants (or refuses) microphone and speech-recognition access."""

    @abstractmethod
    async def request_capability(self) -> bool:
        """Ask for capture permission.

        Returns:
            True if granted, False if denied.
        """


class BaseCaptureEngine(ABC):
    """Interface that every capture / recognition engine must implement.

    Engines deliver events by calling the listener registered with
    ``set_listener`` on the event loop thread.
    """

    def __init__(self) -> None:
        self._listener: EventListener | None = None

    def set_listener(self, listener: EventListener | None) -> None:
        """Register the callback that receives engine events."""
        self._listener = listener

    def emit(self, event: EngineEvent) -> None:
        """Deliver ``event`` to the registered listener, if any."""
        if self._listener is not None:
            self._listener(event)

    @abstractmethod
    async def start(self, config: CaptureOptions) -> None:
        """Begin a capture burst. Acknowledged later by a ``started`` event.

        Args:
            config: Recognition options merged with recording options.
        """

    @abstractmethod
    async def stop(self) -> None:
        """Stop capturing. The burst's file arrives later as ``capture_finalized``."""


class StaticCapabilityProvider(BaseCapabilityProvider):
    """Capability provider with a fixed answer (from settings or tests)."""

    def __init__(self, granted: bool = True) -> None:
        self.granted = granted

    async def request_capability(self) -> bool:
        return self.granted
