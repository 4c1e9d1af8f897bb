"""
Session REST endpoints.

Lists sessions, switches the displayed session, inspects segment files,
joins a session's segments and clears everything. All endpoints delegate to
the application's ``RecordingSessionMachine``; no business logic here.
"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from src.api.dependencies import get_machine
from src.core.exceptions import SessionNotFoundError
from src.core.models import (
    ClearReport,
    JoinResponse,
    MachineSnapshot,
    SegmentInfo,
    Session,
)
from src.services.audio.processor import AudioProcessor
from src.services.session_machine import RecordingSessionMachine

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sessions", tags=["sessions"])


def _require_session(machine: RecordingSessionMachine, session_id: str) -> Session:
    session = machine.get_session(session_id)
    if session is None:
        raise SessionNotFoundError(session_id)
    return session


@router.get("", response_model=list[Session])
async def list_sessions(machine: RecordingSessionMachine = Depends(get_machine)):
    """List all sessions in creation order."""
    return machine.sessions


@router.post("", response_model=Session)
async def create_session(machine: RecordingSessionMachine = Depends(get_machine)):
    """Start a fresh session; the previous one is ended."""
    return machine.create_new_session()


@router.get("/state", response_model=MachineSnapshot)
async def get_state(machine: RecordingSessionMachine = Depends(get_machine)):
    """Capture state plus the displayed transcript and interim text."""
    return machine.snapshot()


@router.delete("", response_model=ClearReport)
async def clear_sessions(machine: RecordingSessionMachine = Depends(get_machine)):
    """Delete all sessions and their audio files (best-effort per file)."""
    return await machine.clear_all()


@router.get("/{session_id}", response_model=Session)
async def get_session(session_id: str, machine: RecordingSessionMachine = Depends(get_machine)):
    """Get a single session by ID."""
    return _require_session(machine, session_id)


@router.get("/{session_id}/segments", response_model=list[SegmentInfo])
async def list_segments(session_id: str, machine: RecordingSessionMachine = Depends(get_machine)):
    """Describe each segment file of a session (format, duration, level)."""
    session = _require_session(machine, session_id)
    processor = AudioProcessor()
    return [await asyncio.to_thread(processor.describe, path) for path in session.audio_files]


@router.post("/{session_id}/view", response_model=MachineSnapshot)
async def view_session(session_id: str, machine: RecordingSessionMachine = Depends(get_machine)):
    """Display another session's transcript without touching capture."""
    if machine.switch_session(session_id) is None:
        raise SessionNotFoundError(session_id)
    return machine.snapshot()


@router.post("/{session_id}/join", response_model=JoinResponse)
async def join_session(session_id: str, machine: RecordingSessionMachine = Depends(get_machine)):
    """Join a session's segments, in recording order, into one WAV file."""
    session = _require_session(machine, session_id)
    path = await machine.join_session(session.id)
    return JoinResponse(path=path, source_count=len(session.audio_files))
