"""
Pydantic v2 models shared by the session machine, joiner and API layer.

Sessions, Capture options, Engine events, API responses, WebSocket
"""

from datetime import datetime
from enum import StrEnum
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field

# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------


class HealthResponse(BaseModel):
    """GET /health response."""

    status: str = "ok"
    version: str = "0.1.0"
    timestamp: datetime


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


class CaptureState(StrEnum):
    """Sub-state of the capture pipeline for the current session."""

    idle = "idle"
    listening = "listening"
    paused = "paused"


class TranscriptFragment(BaseModel):
    """One final recognition result, optionally paired with its audio file."""

    text: str
    audio_file: str | None = None


class Session(BaseModel):
    """A logical recording made of one or more hold-to-talk bursts."""

    id: str
    started_at: datetime
    ended_at: datetime | None = None
    audio_files: list[str] = Field(default_factory=list)
    transcripts: list[TranscriptFragment] = Field(default_factory=list)
    active: bool = True
    joined_audio_path: str | None = None

    @property
    def text(self) -> str:
        """All fragment texts joined into one transcript."""
        return " ".join(fragment.text for fragment in self.transcripts)


class MachineSnapshot(BaseModel):
    """Read-only view of the session machine for callers."""

    state: CaptureState
    is_listening: bool
    is_paused: bool
    current_session_id: str | None = None
    viewed_session_id: str | None = None
    transcript: str = ""
    interim_transcript: str = ""
    session_count: int = 0


class ClearReport(BaseModel):
    """Outcome of a bulk clear. Deletion failures are reported, not raised."""

    sessions_cleared: int = 0
    files_deleted: list[str] = Field(default_factory=list)
    errors: list[str] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Capture options
# ---------------------------------------------------------------------------


class RecordingOptions(BaseModel):
    """Where and how the engine persists each burst's audio."""

    model_config = ConfigDict(extra="allow")

    persist: bool = True
    output_directory: str | None = None
    output_file_name: str | None = None
    output_sample_rate: int = 16000
    output_encoding: str = "pcmFormatInt16"


class CaptureOptions(BaseModel):
    """Options passed to the capture / recognition engine on start.

    Unknown keys are kept so engine-specific options pass through untouched.
    """

    model_config = ConfigDict(extra="allow")

    lang: str | None = None
    interim_results: bool | None = None
    continuous: bool | None = None
    recording_options: RecordingOptions | None = None


# ---------------------------------------------------------------------------
# Engine events
# ---------------------------------------------------------------------------


class StartedEvent(BaseModel):
    """Engine acknowledged a start command and is capturing."""

    kind: Literal["started"] = "started"


class CaptureBegunEvent(BaseModel):
    """Engine opened a segment file. Not safe to read until finalized."""

    kind: Literal["capture_begun"] = "capture_begun"
    uri: str | None = None


class FinalResultEvent(BaseModel):
    kind: Literal["final_result"] = "final_result"
    text: str


class InterimResultEvent(BaseModel):
    kind: Literal["interim_result"] = "interim_result"
    text: str


class CaptureFinalizedEvent(BaseModel):
    """Engine closed a segment file; the file is complete."""

    kind: Literal["capture_finalized"] = "capture_finalized"
    uri: str | None = None


class EndedEvent(BaseModel):
    kind: Literal["ended"] = "ended"


class ErrorEvent(BaseModel):
    kind: Literal["error"] = "error"
    reason: str = "unknown"


EngineEvent = Annotated[
    StartedEvent
    | CaptureBegunEvent
    | FinalResultEvent
    | InterimResultEvent
    | CaptureFinalizedEvent
    | EndedEvent
    | ErrorEvent,
    Field(discriminator="kind"),
]


# ---------------------------------------------------------------------------
# Audio
# ---------------------------------------------------------------------------


class JoinRequest(BaseModel):
    """POST /audio/join request body. Order of files is output order."""

    audio_files: list[str] = Field(default_factory=list)


class JoinResponse(BaseModel):
    path: str
    source_count: int


class SegmentInfo(BaseModel):
    """Format and level information for one segment file."""

    path: str
    exists: bool = True
    sample_rate: int = 0
    channels: int = 0
    bits_per_sample: int = 0
    duration: float = 0.0
    rms: float = 0.0
    is_silent: bool = True


# ---------------------------------------------------------------------------
# WebSocket
# ---------------------------------------------------------------------------


class WebSocketMessageType(StrEnum):
    """Discriminator for messages exchanged with the capture engine."""

    connected = "connected"
    command = "command"
    event = "event"
    capability = "capability"
    error = "error"


class WebSocketMessage(BaseModel):
    """JSON message exchanged over the engine WebSocket."""

    type: WebSocketMessageType
    data: dict = Field(default_factory=dict)
