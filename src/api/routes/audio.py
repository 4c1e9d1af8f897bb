"""
Audio utility endpoints.

``POST /audio/join`` exposes the joiner to collaborators holding their own
ordered list of segment paths (the same call the mobile client makes).
"""

from fastapi import APIRouter

from src.core.models import JoinRequest, JoinResponse
from src.services.audio.joiner import join_audio_files

router = APIRouter(prefix="/audio", tags=["audio"])


@router.post("/join", response_model=JoinResponse)
async def join_files(body: JoinRequest):
    """Join WAV files in the given order into a new WAV file."""
    path = await join_audio_files(body.audio_files)
    return JoinResponse(path=path, source_count=len(body.audio_files))
