"""Concatenate PCM WAV segments into one continuous WAV file.

No resampling or gain change happens: each segment's ``data`` payload is
copied byte-for-byte, in input order, behind a canonical header derived from
the first segment's format.

Usage::

    from src.services.audio.joiner import join_audio_files

    joined_path = await join_audio_files(session.audio_files)
"""

import asyncio
import logging
import time
from collections.abc import Callable, Sequence
from pathlib import Path

from src.core.config import get_settings
from src.core.exceptions import (
    EmptyInputError,
    FormatMismatchError,
    JoinError,
    SourceNotFoundError,
    VoiceStitchError,
)
from src.services.audio.wav_codec import ParsedContainer, parse_container, write_header
from src.services.storage.files import ByteStorage, LocalByteStorage, to_local_path

logger = logging.getLogger(__name__)


class AudioJoiner:
    """Joins an ordered list of WAV segment files into a new WAV file.

    Args:
        storage: Byte storage used to read sources and write the output.
        strict_format: Reject segments whose format differs from the first
            one. When False the mismatch is logged and the join proceeds.
        filename_prefix: Prefix of the generated output file name.
        clock: Returns the current time in seconds (for the output name).
    """

    def __init__(
        self,
        storage: ByteStorage | None = None,
        *,
        strict_format: bool = True,
        filename_prefix: str = "joined_audio",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._storage = storage or LocalByteStorage()
        self._strict_format = strict_format
        self._filename_prefix = filename_prefix
        self._clock = clock

    @classmethod
    def from_settings(cls, storage: ByteStorage | None = None) -> "AudioJoiner":
        """Build a joiner configured from application settings."""
        settings = get_settings()
        return cls(
            storage,
            strict_format=settings.join_strict_format,
            filename_prefix=settings.joined_filename_prefix,
        )

    def join(self, sources: Sequence[str]) -> str:
        """Join ``sources`` (paths or ``file://`` URIs) in order.

        Returns:
            Path of the newly written WAV file, next to the first source.

        Raises:
            EmptyInputError: If ``sources`` is empty (nothing is written).
            SourceNotFoundError: If a source file does not exist.
            InvalidFormatError: If a source is not a valid WAV container.
            FormatMismatchError: If a source's format differs (strict mode).
            JoinError: If writing the output fails part-way.
        """
        if not sources:
            raise EmptyInputError()

        paths = [to_local_path(source) for source in sources]
        layouts = [self._inspect(path) for path in paths]

        canonical = layouts[0].format
        for path, layout in zip(paths[1:], layouts[1:]):
            diffs = canonical.differences(layout.format)
            if not diffs:
                continue
            if self._strict_format:
                raise FormatMismatchError(path, "; ".join(diffs))
            logger.warning("Joining %s despite format mismatch: %s", path, "; ".join(diffs))

        total_payload = sum(layout.payload_length for layout in layouts)
        header = write_header(canonical, total_payload)
        output_path = self._output_path(paths[0])

        logger.info(
            "Joining %d segments (%d payload bytes) into %s",
            len(paths),
            total_payload,
            output_path,
        )
        try:
            with self._storage.open_write(output_path) as out:
                out.write(header)
                for path, layout in zip(paths, layouts):
                    out.write(self._read_payload(path, layout))
        except VoiceStitchError:
            self._discard(output_path)
            raise
        except OSError as exc:
            self._discard(output_path)
            raise JoinError(f"Failed to write {output_path}: {exc}") from exc

        return output_path

    def _inspect(self, path: str) -> ParsedContainer:
        """Read and parse one source, mapping a missing file to its error."""
        if not self._storage.exists(path):
            raise SourceNotFoundError(path)
        try:
            data = self._storage.read_bytes(path)
        except FileNotFoundError as exc:
            raise SourceNotFoundError(path) from exc
        return parse_container(data, source=path)

    def _read_payload(self, path: str, layout: ParsedContainer) -> bytes:
        try:
            data = self._storage.read_bytes(path)
        except FileNotFoundError as exc:
            raise SourceNotFoundError(path) from exc
        end = layout.payload_offset + layout.payload_length
        payload = data[layout.payload_offset : end]
        if len(payload) != layout.payload_length:
            raise JoinError(f"Audio file changed while joining: {path}")
        return payload

    def _output_path(self, first_source: str) -> str:
        """Derive a fresh output path in the first source's directory."""
        directory = Path(first_source).parent
        stem = f"{self._filename_prefix}_{int(self._clock() * 1000)}"
        candidate = directory / f"{stem}.wav"
        counter = 1
        while self._storage.exists(str(candidate)):
            candidate = directory / f"{stem}_{counter}.wav"
            counter += 1
        return str(candidate)

    def _discard(self, output_path: str) -> None:
        """Best-effort removal of a partially written output."""
        try:
            self._storage.delete(output_path)
        except OSError as exc:
            logger.warning("Failed to remove partial output %s: %s", output_path, exc)


async def join_audio_files(
    ordered_paths: Sequence[str],
    joiner: AudioJoiner | None = None,
) -> str:
    """Join WAV files off the event loop and return the output path.

    Args:
        ordered_paths: Segment files in recording order.
        joiner: Joiner to use (defaults to one built from settings).
    """
    joiner = joiner or AudioJoiner.from_settings()
    return await asyncio.to_thread(joiner.join, list(ordered_paths))
