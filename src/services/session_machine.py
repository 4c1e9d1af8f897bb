"""Recording session state machine for hold-to-talk capture.

Coordinates start / pause / resume / stop of the external capture engine and
attributes every transcript fragment and audio segment it emits to the right
logical session. Each hold-to-talk burst produces one segment file; all bursts
between a start and a stop belong to the same session, so the segments can be
joined later into one continuous recording.

All state is owned by one ``RecordingSessionMachine`` instance and mutated only
on the event loop. Commands run one at a time under a lock and suspend only
while awaiting the capability grant, the engine or a pending segment;
``handle_event`` never takes the lock and runs to completion.

Usage::

    machine = RecordingSessionMachine(engine, capability)
    await machine.start(CaptureOptions(lang="en-US"))
    await machine.pause()     # released the talk button
    await machine.resume()    # pressed it again, same session
    await machine.stop()
    joined = await machine.join_session()
"""

import asyncio
import logging
import time
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path

from src.core.config import get_settings
from src.core.exceptions import (
    CaptureError,
    CaptureInProgressError,
    EmptyInputError,
    PermissionDeniedError,
    SessionNotFoundError,
    StartTimedOutError,
    VoiceStitchError,
)
from src.core.models import (
    CaptureBegunEvent,
    CaptureFinalizedEvent,
    CaptureOptions,
    CaptureState,
    ClearReport,
    EndedEvent,
    EngineEvent,
    ErrorEvent,
    FinalResultEvent,
    InterimResultEvent,
    MachineSnapshot,
    RecordingOptions,
    Session,
    StartedEvent,
    TranscriptFragment,
)
from src.services.audio.joiner import AudioJoiner, join_audio_files
from src.services.engine.base import BaseCapabilityProvider, BaseCaptureEngine
from src.services.storage.files import ByteStorage, LocalByteStorage

logger = logging.getLogger(__name__)


class RecordingSessionMachine:
    """Owns the session list and the capture sub-state (idle/listening/paused).

    Args:
        engine: Capture / recognition engine. The machine registers itself as
            the engine's event listener.
        capability: Grants microphone / recognition access on each start.
        storage: Byte storage used to delete audio artifacts.
        joiner: Joiner used by ``join_session``.
        recordings_dir: Directory the engine is told to write segments to.
        start_timeout: Seconds to wait for the engine's ``started`` event.
        finalize_timeout: Seconds ``stop`` waits for the burst's segment file.
        clock: Returns the current time in seconds (for ids and file names).
    """

    def __init__(
        self,
        engine: BaseCaptureEngine,
        capability: BaseCapabilityProvider,
        *,
        storage: ByteStorage | None = None,
        joiner: AudioJoiner | None = None,
        recordings_dir: str | None = None,
        start_timeout: float | None = None,
        finalize_timeout: float | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = get_settings()
        self._engine = engine
        self._capability = capability
        self._storage = storage or LocalByteStorage()
        self._joiner = joiner or AudioJoiner.from_settings(self._storage)
        self._recordings_dir = Path(recordings_dir or self._settings.recordings_dir)
        self._start_timeout = (
            self._settings.start_timeout_seconds if start_timeout is None else start_timeout
        )
        self._finalize_timeout = (
            self._settings.finalize_timeout_seconds if finalize_timeout is None else finalize_timeout
        )
        self._clock = clock

        self._sessions: list[Session] = []
        self._current_id: str | None = None
        self._viewed_id: str | None = None
        self._burst_session_id: str | None = None
        self._is_listening = False
        self._is_paused = False
        self._interim = ""
        self._last_options: CaptureOptions | None = None
        self._session_counter = 0

        self._pending_uri: str | None = None
        self._awaiting_segment = False
        self._start_waiter: asyncio.Future | None = None
        self._finalize_waiter: asyncio.Future | None = None
        self._orphaned_files: list[str] = []
        self._joined_files: list[str] = []
        self._join_locks: dict[str, asyncio.Lock] = {}
        # Serializes start/pause/resume/stop/clear_all; events never take it
        self._command_lock = asyncio.Lock()

        engine.set_listener(self.handle_event)

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    @property
    def sessions(self) -> list[Session]:
        return list(self._sessions)

    @property
    def current_session(self) -> Session | None:
        """The session that receives new capture bursts."""
        return self.get_session(self._current_id) if self._current_id else None

    @property
    def viewed_session(self) -> Session | None:
        """The session whose transcript is displayed."""
        return self.get_session(self._viewed_id) if self._viewed_id else None

    @property
    def is_listening(self) -> bool:
        return self._is_listening

    @property
    def is_paused(self) -> bool:
        return self._is_paused

    @property
    def state(self) -> CaptureState:
        if self._is_listening:
            return CaptureState.listening
        if self._is_paused:
            return CaptureState.paused
        return CaptureState.idle

    @property
    def transcript(self) -> str:
        session = self.viewed_session
        return session.text if session else ""

    @property
    def interim_transcript(self) -> str:
        return self._interim

    def get_session(self, session_id: str) -> Session | None:
        for session in self._sessions:
            if session.id == session_id:
                return session
        return None

    def snapshot(self) -> MachineSnapshot:
        return MachineSnapshot(
            state=self.state,
            is_listening=self._is_listening,
            is_paused=self._is_paused,
            current_session_id=self._current_id,
            viewed_session_id=self._viewed_id,
            transcript=self.transcript,
            interim_transcript=self._interim,
            session_count=len(self._sessions),
        )

    # ------------------------------------------------------------------
    # Session management
    # ------------------------------------------------------------------

    def create_new_session(self) -> Session:
        """Create a session and make it both current and viewed.

        A still-active previous session is ended first.

        Raises:
            CaptureInProgressError: If the engine is currently listening.
        """
        if self._is_listening:
            raise CaptureInProgressError()

        previous = self.current_session
        if previous is not None and previous.active:
            self._end_session(previous)
        self._is_paused = False

        session = Session(
            id=f"session_{int(self._clock() * 1000)}_{self._session_counter}",
            started_at=datetime.now(UTC),
        )
        self._session_counter += 1
        self._sessions.append(session)
        self._current_id = session.id
        self._viewed_id = session.id
        self._interim = ""
        logger.info("Created session %s", session.id)
        return session

    def switch_session(self, session_id: str) -> Session | None:
        """Display another session's transcript. Capture is not affected."""
        session = self.get_session(session_id)
        if session is None:
            logger.warning("Cannot switch to unknown session %s", session_id)
            return None
        self._viewed_id = session.id
        self._interim = ""
        return session

    def _end_session(self, session: Session) -> None:
        session.active = False
        session.ended_at = datetime.now(UTC)
        logger.info(
            "Ended session %s (%d segments, %d fragments)",
            session.id,
            len(session.audio_files),
            len(session.transcripts),
        )

    # ------------------------------------------------------------------
    # Commands
    # ------------------------------------------------------------------

    async def start(self, options: CaptureOptions | None = None) -> None:
        """Begin (or continue) capturing into the current session.

        Args:
            options: Capture options; remembered and reused by ``resume``.
                ``None`` reuses the last options.

        Raises:
            PermissionDeniedError: If the capability is refused (no state change).
            StartTimedOutError: If the engine never acknowledges the start.
            CaptureError: If the engine reports an error before starting.
        """
        async with self._command_lock:
            await self._start(options)

    async def _start(self, options: CaptureOptions | None) -> None:
        if self._is_listening:
            logger.warning("Already listening")
            return

        if not await self._capability.request_capability():
            logger.error("Permissions not granted")
            raise PermissionDeniedError()

        if options is not None:
            self._last_options = options

        session = self.current_session
        if session is None or not session.active:
            session = self.create_new_session()

        config = self._build_config(session)
        waiter = asyncio.get_running_loop().create_future()
        self._start_waiter = waiter
        self._burst_session_id = session.id

        try:
            await self._engine.start(config)
            await asyncio.wait_for(waiter, timeout=self._start_timeout)
        except TimeoutError:
            logger.error(
                "Engine did not acknowledge start within %ss for session %s",
                self._start_timeout,
                session.id,
            )
            await self._stop_engine_quietly()
            raise StartTimedOutError(self._start_timeout) from None
        finally:
            if self._start_waiter is waiter:
                self._start_waiter = None

        logger.info("Listening in session %s", session.id)

    async def pause(self) -> None:
        """Stop the current burst; the session stays current and resumable."""
        async with self._command_lock:
            if not self._is_listening:
                logger.warning("Not currently listening")
                return
            await self._engine.stop()
            self._is_listening = False
            self._is_paused = True

    async def resume(self) -> None:
        """Start a new burst in the paused session with the last options."""
        async with self._command_lock:
            if self.state is not CaptureState.paused:
                logger.warning("Cannot resume from state %s", self.state)
                return
            session = self.current_session
            if session is None or not session.active:
                logger.warning("No active session to resume")
                return
            await self._start(None)

    async def stop(self) -> None:
        """Halt capture and end the current session."""
        async with self._command_lock:
            if not self._is_listening and not self._is_paused:
                logger.warning("Not currently recording")
                return

            if self._is_listening:
                await self._engine.stop()
            self._is_listening = False
            self._is_paused = False

            await self._wait_for_pending_segment()

            session = self.current_session
            if session is not None and session.active:
                self._end_session(session)

    async def clear_all(self) -> ClearReport:
        """Delete every session and its audio artifacts.

        File deletion is best-effort: failures are logged and reported, and
        the session state is cleared regardless.
        """
        async with self._command_lock:
            if self._is_listening:
                await self._stop_engine_quietly()

            locators = [path for session in self._sessions for path in session.audio_files]
            locators += self._orphaned_files + self._joined_files
            report = ClearReport(sessions_cleared=len(self._sessions))

            self._sessions = []
            self._current_id = None
            self._viewed_id = None
            self._burst_session_id = None
            self._is_listening = False
            self._is_paused = False
            self._interim = ""
            self._pending_uri = None
            self._awaiting_segment = False
            self._orphaned_files = []
            self._joined_files = []
            self._join_locks = {}

        for locator in dict.fromkeys(locators):
            try:
                if await asyncio.to_thread(self._storage.delete, locator):
                    report.files_deleted.append(locator)
            except OSError as exc:
                logger.warning("Error deleting audio file %s: %s", locator, exc)
                report.errors.append(f"{locator}: {exc}")

        logger.info(
            "Cleared %d sessions (%d files deleted, %d errors)",
            report.sessions_cleared,
            len(report.files_deleted),
            len(report.errors),
        )
        return report

    async def join_session(self, session_id: str | None = None) -> str:
        """Join a session's segments into one WAV file.

        Args:
            session_id: Session to join; defaults to the viewed session.

        Returns:
            Path of the joined file, also stored on the session.

        Raises:
            SessionNotFoundError: If the session does not exist.
            EmptyInputError: If the session has no audio segments.
        """
        session = self.get_session(session_id) if session_id else self.viewed_session
        if session is None:
            raise SessionNotFoundError(session_id or "<none>")
        if not session.audio_files:
            raise EmptyInputError()

        lock = self._join_locks.setdefault(session.id, asyncio.Lock())
        async with lock:
            joined_path = await join_audio_files(list(session.audio_files), self._joiner)

        self._joined_files.append(joined_path)
        session.joined_audio_path = joined_path
        logger.info("Joined %d segments of %s into %s", len(session.audio_files), session.id, joined_path)
        return joined_path

    # ------------------------------------------------------------------
    # Engine events
    # ------------------------------------------------------------------

    def handle_event(self, event: EngineEvent) -> None:
        """Apply one engine event. Never suspends."""
        if isinstance(event, StartedEvent):
            self._is_listening = True
            self._is_paused = False
            if self._start_waiter is not None and not self._start_waiter.done():
                self._start_waiter.set_result(None)
        elif isinstance(event, CaptureBegunEvent):
            # The file is incomplete until capture_finalized arrives
            logger.debug("Recording started for file: %s", event.uri)
            self._pending_uri = event.uri
            self._awaiting_segment = True
        elif isinstance(event, FinalResultEvent):
            self._on_final_result(event.text)
        elif isinstance(event, InterimResultEvent):
            self._interim = event.text
        elif isinstance(event, CaptureFinalizedEvent):
            self._on_segment_finalized(event.uri)
        elif isinstance(event, EndedEvent):
            self._is_listening = False
            session = self._burst_session()
            self._is_paused = session is not None
        elif isinstance(event, ErrorEvent):
            logger.error("Speech recognition error: %s", event.reason)
            self._is_listening = False
            self._is_paused = False
            if self._start_waiter is not None and not self._start_waiter.done():
                self._start_waiter.set_exception(CaptureError(event.reason))

    def _on_final_result(self, text: str) -> None:
        session = self._burst_session()
        if session is None:
            logger.warning("Dropping final result with no active session: %r", text)
            return
        session.transcripts.append(TranscriptFragment(text=text))
        self._interim = ""

    def _on_segment_finalized(self, uri: str | None) -> None:
        self._awaiting_segment = False
        self._pending_uri = None
        if self._finalize_waiter is not None and not self._finalize_waiter.done():
            self._finalize_waiter.set_result(None)

        if not uri:
            logger.warning("Capture finalized without a file; recording persistence is off?")
            return

        session = self._burst_session()
        if session is None:
            logger.warning("Segment %s arrived after its session ended; kept for cleanup", uri)
            self._orphaned_files.append(uri)
            return

        session.audio_files.append(uri)
        # Heuristic pairing: the newest fragment still lacking audio gets this
        # segment. Two finals before their segments can mis-attribute.
        for fragment in reversed(session.transcripts):
            if fragment.audio_file is None:
                fragment.audio_file = uri
                break

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _burst_session(self) -> Session | None:
        """Active session that owns the running (or last) capture burst."""
        session_id = self._burst_session_id or self._current_id
        session = self.get_session(session_id) if session_id else None
        if session is None or not session.active:
            return None
        return session

    def _build_config(self, session: Session) -> CaptureOptions:
        """Merge the caller's options over the recording defaults."""
        settings = self._settings
        base = self._last_options or CaptureOptions()

        defaults = RecordingOptions(
            persist=True,
            output_directory=str(self._recordings_dir),
            output_file_name=f"recording_{session.id}_{int(self._clock() * 1000)}.wav",
            output_sample_rate=settings.output_sample_rate,
            output_encoding=settings.output_encoding,
        )
        overrides = (
            base.recording_options.model_dump(exclude_unset=True) if base.recording_options else {}
        )
        recording = RecordingOptions.model_validate({**defaults.model_dump(), **overrides})

        data = base.model_dump(exclude={"recording_options"})
        if data.get("lang") is None:
            data["lang"] = settings.default_language
        if data.get("interim_results") is None:
            data["interim_results"] = settings.interim_results
        if data.get("continuous") is None:
            data["continuous"] = settings.continuous
        data["recording_options"] = recording
        return CaptureOptions.model_validate(data)

    async def _wait_for_pending_segment(self) -> None:
        if not self._awaiting_segment:
            return
        waiter = asyncio.get_running_loop().create_future()
        self._finalize_waiter = waiter
        try:
            await asyncio.wait_for(waiter, timeout=self._finalize_timeout)
        except TimeoutError:
            logger.warning(
                "Segment %s not finalized within %ss; ending session without it",
                self._pending_uri,
                self._finalize_timeout,
            )
        finally:
            self._finalize_waiter = None

    async def _stop_engine_quietly(self) -> None:
        try:
            await self._engine.stop()
        except VoiceStitchError as exc:
            logger.warning("Failed to stop capture engine: %s", exc)
