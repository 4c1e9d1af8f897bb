"""RIFF/WAVE container parsing and canonical header writing.

Segments arrive from recorders that may add extra chunks (``LIST``, ``fact``,
``JUNK`` padding) in front of the sample data, so the payload is located by
walking the chunk list rather than assuming a fixed 44-byte header. Output
headers are always the minimal canonical layout: ``RIFF`` + ``fmt `` + ``data``.
"""

import logging
import struct
from dataclasses import dataclass

from src.core.exceptions import InvalidFormatError

logger = logging.getLogger(__name__)

PREAMBLE_SIZE = 12  # "RIFF" + u32 size + "WAVE"
CHUNK_HEADER_SIZE = 8  # 4-byte id + u32 length
CANONICAL_HEADER_SIZE = 44
LEGACY_FMT_OFFSET = 20  # fmt body position in a canonical header
PCM_FMT_BODY_SIZE = 16

WAVE_FORMAT_PCM = 0x0001
WAVE_FORMAT_IEEE_FLOAT = 0x0003
WAVE_FORMAT_EXTENSIBLE = 0xFFFE

_MAX_RIFF_SIZE = 0xFFFFFFFF
_FMT_STRUCT = struct.Struct("<HHIIHH")


@dataclass(frozen=True, slots=True)
class FormatDescriptor:
    """The parts of a ``fmt `` chunk needed to describe raw PCM payload."""

    encoding_tag: int
    channels: int
    sample_rate: int
    byte_rate: int
    block_align: int
    bits_per_sample: int

    @classmethod
    def from_fmt_body(cls, body: bytes, source: str = "<buffer>") -> "FormatDescriptor":
        """Decode a ``fmt `` chunk body.

        ``WAVE_FORMAT_EXTENSIBLE`` bodies are resolved to their sub-format tag
        (first two bytes of the sub-format GUID) so the descriptor can be
        written back as a plain 16-byte body.

        Raises:
            InvalidFormatError: If the body is shorter than 16 bytes.
        """
        if len(body) < PCM_FMT_BODY_SIZE:
            raise InvalidFormatError(source, f"fmt chunk too short ({len(body)} bytes)")
        tag, channels, sample_rate, byte_rate, block_align, bits = _FMT_STRUCT.unpack_from(body)
        # Extensible layout: cbSize(2) validBits(2) channelMask(4) subFormat GUID(16)
        if tag == WAVE_FORMAT_EXTENSIBLE and len(body) >= 26:
            (tag,) = struct.unpack_from("<H", body, 24)
        return cls(tag, channels, sample_rate, byte_rate, block_align, bits)

    def to_bytes(self) -> bytes:
        """Encode as a 16-byte PCM ``fmt `` body."""
        return _FMT_STRUCT.pack(
            self.encoding_tag,
            self.channels,
            self.sample_rate,
            self.byte_rate,
            self.block_align,
            self.bits_per_sample,
        )

    def differences(self, other: "FormatDescriptor") -> list[str]:
        """List human-readable field differences against ``other``."""
        diffs = []
        for name in (
            "encoding_tag",
            "channels",
            "sample_rate",
            "bits_per_sample",
            "block_align",
        ):
            mine, theirs = getattr(self, name), getattr(other, name)
            if mine != theirs:
                diffs.append(f"{name} {theirs} != {mine}")
        return diffs


@dataclass(frozen=True, slots=True)
class ParsedContainer:
    """Location of the sample payload inside one container's bytes."""

    format: FormatDescriptor
    payload_offset: int
    payload_length: int

    @property
    def duration(self) -> float:
        """Payload duration in seconds (0.0 when byte rate is unknown)."""
        if self.format.byte_rate <= 0:
            return 0.0
        return self.payload_length / self.format.byte_rate


def _check_preamble(data: bytes, source: str) -> None:
    if len(data) < PREAMBLE_SIZE:
        raise InvalidFormatError(source, f"file too small ({len(data)} bytes)")
    if data[0:4] != b"RIFF" or data[8:12] != b"WAVE":
        raise InvalidFormatError(source, "missing RIFF/WAVE signature")


def parse_container(data: bytes, source: str = "<buffer>") -> ParsedContainer:
    """Parse a WAV container and locate its ``data`` payload.

    Walks the chunk list from the end of the preamble. Odd-length chunks are
    followed by one pad byte. If no ``data`` chunk is found, falls back to the
    legacy layout: payload at byte 44 through the end of the buffer.

    Args:
        data: Whole file contents (or at least everything up to the payload
            end for well-formed files).
        source: Name used in error messages.

    Returns:
        ParsedContainer with the format descriptor and payload location.

    Raises:
        InvalidFormatError: If the buffer is shorter than the preamble, the
            signature is wrong, or no format information can be found.
    """
    _check_preamble(data, source)

    fmt: FormatDescriptor | None = None
    payload: tuple[int, int] | None = None
    offset = PREAMBLE_SIZE
    size = len(data)

    while offset + CHUNK_HEADER_SIZE <= size:
        chunk_id = data[offset : offset + 4]
        (chunk_length,) = struct.unpack_from("<I", data, offset + 4)
        body_start = offset + CHUNK_HEADER_SIZE

        if chunk_id == b"fmt " and fmt is None:
            fmt = FormatDescriptor.from_fmt_body(data[body_start : body_start + chunk_length], source)
        elif chunk_id == b"data":
            available = size - body_start
            if chunk_length > available:
                logger.debug(
                    "%s: data chunk declares %d bytes, %d present; clamping",
                    source,
                    chunk_length,
                    available,
                )
                chunk_length = available
            payload = (body_start, chunk_length)
            break

        offset = body_start + chunk_length
        if chunk_length % 2 == 1:
            offset += 1

    if payload is None:
        logger.debug("%s: no data chunk found, using legacy 44-byte offset", source)
        payload = (CANONICAL_HEADER_SIZE, max(0, size - CANONICAL_HEADER_SIZE))

    if fmt is None:
        legacy_body = data[LEGACY_FMT_OFFSET : LEGACY_FMT_OFFSET + PCM_FMT_BODY_SIZE]
        if len(legacy_body) < PCM_FMT_BODY_SIZE:
            raise InvalidFormatError(source, "missing fmt chunk")
        fmt = FormatDescriptor.from_fmt_body(legacy_body, source)

    return ParsedContainer(format=fmt, payload_offset=payload[0], payload_length=payload[1])


def write_header(fmt: FormatDescriptor, total_payload_length: int) -> bytes:
    """Build a canonical 44-byte WAV header.

    The RIFF size field is ``36 + total_payload_length``: the header carries
    only the ``fmt `` and ``data`` chunks.

    Raises:
        InvalidFormatError: If the payload does not fit a 32-bit RIFF file.
    """
    riff_size = CANONICAL_HEADER_SIZE - 8 + total_payload_length
    if total_payload_length < 0 or riff_size > _MAX_RIFF_SIZE:
        raise InvalidFormatError(
            "<output>", f"payload of {total_payload_length} bytes exceeds the RIFF size limit"
        )
    return b"".join(
        [
            b"RIFF",
            struct.pack("<I", riff_size),
            b"WAVE",
            b"fmt ",
            struct.pack("<I", PCM_FMT_BODY_SIZE),
            fmt.to_bytes(),
            b"data",
            struct.pack("<I", total_payload_length),
        ]
    )
