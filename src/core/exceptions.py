"""
VoiceStitch exception hierarchy.

All application-specific exceptions inherit from VoiceStitchError,
enabling centralized error handling in the API middleware layer.
"""

from datetime import UTC, datetime


class VoiceStitchError(Exception):
    """Base exception for all VoiceStitch errors."""

    def __init__(
        self,
        detail: str = "An unexpected error occurred",
        code: str = "VOICESTITCH_ERROR",
        status_code: int = 500,
    ) -> None:
        self.detail = detail
        self.code = code
        self.status_code = status_code
        self.timestamp = datetime.now(UTC).isoformat()
        super().__init__(detail)


# ---------------------------------------------------------------------------
# Capture / session state machine
# ---------------------------------------------------------------------------


class PermissionDeniedError(VoiceStitchError):
    """Raised when the microphone / recognition capability is not granted."""

    def __init__(self) -> None:
        super().__init__(
            detail="Permissions not granted",
            code="PERMISSION_DENIED",
            status_code=403,
        )


class StartTimedOutError(VoiceStitchError):
    """Raised when the capture engine never acknowledges a start command."""

    def __init__(self, timeout: float) -> None:
        self.timeout = timeout
        super().__init__(
            detail=f"Capture engine did not acknowledge start within {timeout:g}s",
            code="START_TIMED_OUT",
            status_code=504,
        )


class CaptureError(VoiceStitchError):
    """Raised when the capture / recognition engine reports an error."""

    def __init__(self, reason: str = "Capture failed") -> None:
        self.reason = reason
        super().__init__(
            detail=f"Capture error: {reason}",
            code="CAPTURE_ERROR",
            status_code=502,
        )


class CaptureInProgressError(VoiceStitchError):
    """Raised when an operation needs capture to be halted first."""

    def __init__(self) -> None:
        super().__init__(
            detail="Capture is in progress; pause or stop it first",
            code="CAPTURE_IN_PROGRESS",
            status_code=409,
        )


class EngineNotConnectedError(VoiceStitchError):
    """Raised when a command needs a capture engine but none is attached."""

    def __init__(self) -> None:
        super().__init__(
            detail="No capture engine is connected",
            code="ENGINE_NOT_CONNECTED",
            status_code=503,
        )


class SessionNotFoundError(VoiceStitchError):
    """Raised when a session ID does not exist."""

    def __init__(self, session_id: str) -> None:
        self.session_id = session_id
        super().__init__(
            detail=f"Session not found: {session_id}",
            code="SESSION_NOT_FOUND",
            status_code=404,
        )


# ---------------------------------------------------------------------------
# Container codec / joiner
# ---------------------------------------------------------------------------


class EmptyInputError(VoiceStitchError):
    """Raised when a join is requested with no audio files."""

    def __init__(self) -> None:
        super().__init__(
            detail="No audio files provided",
            code="EMPTY_INPUT",
            status_code=400,
        )


class SourceNotFoundError(VoiceStitchError):
    """Raised when a segment file to join does not exist."""

    def __init__(self, path: str) -> None:
        self.path = path
        super().__init__(
            detail=f"Audio file not found: {path}",
            code="SOURCE_NOT_FOUND",
            status_code=404,
        )


class InvalidFormatError(VoiceStitchError):
    """Raised when bytes are not a usable RIFF/WAVE container."""

    def __init__(self, path: str, reason: str = "not a valid WAV file") -> None:
        self.path = path
        self.reason = reason
        super().__init__(
            detail=f"Invalid WAV file {path}: {reason}",
            code="INVALID_FORMAT",
            status_code=422,
        )


class FormatMismatchError(VoiceStitchError):
    """Raised when a segment's format differs from the first segment's."""

    def __init__(self, path: str, reason: str) -> None:
        self.path = path
        self.reason = reason
        super().__init__(
            detail=f"Audio format mismatch in {path}: {reason}",
            code="FORMAT_MISMATCH",
            status_code=422,
        )


class JoinError(VoiceStitchError):
    """Raised when writing the joined file fails part-way."""

    def __init__(self, detail: str = "Failed to join audio files") -> None:
        super().__init__(detail=detail, code="JOIN_ERROR", status_code=500)
