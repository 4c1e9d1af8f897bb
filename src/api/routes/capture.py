"""
Capture control endpoints (hold-to-talk).

A client maps "button pressed" to ``start`` (or ``resume`` when paused),
"button released" to ``pause`` and "done" to ``stop``. Each returns the
machine snapshot after the command completes.
"""

from fastapi import APIRouter, Depends

from src.api.dependencies import get_machine
from src.core.models import CaptureOptions, MachineSnapshot
from src.services.session_machine import RecordingSessionMachine

router = APIRouter(prefix="/capture", tags=["capture"])


@router.post("/start", response_model=MachineSnapshot)
async def start_capture(
    body: CaptureOptions | None = None,
    machine: RecordingSessionMachine = Depends(get_machine),
):
    await machine.start(body)
    return machine.snapshot()


@router.post("/pause", response_model=MachineSnapshot)
async def pause_capture(machine: RecordingSessionMachine = Depends(get_machine)):
    await machine.pause()
    return machine.snapshot()


@router.post("/resume", response_model=MachineSnapshot)
async def resume_capture(machine: RecordingSessionMachine = Depends(get_machine)):
    await machine.resume()
    return machine.snapshot()


@router.post("/stop", response_model=MachineSnapshot)
async def stop_capture(machine: RecordingSessionMachine = Depends(get_machine)):
    await machine.stop()
    return machine.snapshot()
