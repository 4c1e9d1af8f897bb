"""Audio analysis utilities for PCM segment files.

Converts WAV payload bytes to numpy arrays and provides level / silence
detection so callers can list segments with useful metadata.
"""

import numpy as np

from src.core.exceptions import InvalidFormatError, SourceNotFoundError
from src.core.models import SegmentInfo
from src.services.audio.wav_codec import (
    WAVE_FORMAT_IEEE_FLOAT,
    FormatDescriptor,
    parse_container,
)
from src.services.storage.files import ByteStorage, LocalByteStorage, to_local_path


class AudioProcessor:
    """Inspects segment files through the WAV codec.

    Args:
        storage: Byte storage used to read segment files.
        silence_threshold: RMS energy below this value counts as silence.
    """

    def __init__(
        self,
        storage: ByteStorage | None = None,
        silence_threshold: float = 0.01,
    ) -> None:
        self._storage = storage or LocalByteStorage()
        self.silence_threshold = silence_threshold

    def pcm_to_ndarray(self, pcm_data: bytes, fmt: FormatDescriptor) -> np.ndarray:
        """Convert interleaved PCM payload to a float32 array in [-1.0, 1.0].

        Channels are kept interleaved; only the sample encoding is decoded.

        Raises:
            ValueError: If data length is not aligned to the frame size, or the
                sample width is not supported.
        """
        frame_size = fmt.block_align or (fmt.bits_per_sample // 8) * fmt.channels
        if frame_size and len(pcm_data) % frame_size != 0:
            raise ValueError(
                f"PCM data length ({len(pcm_data)}) is not aligned to frame size ({frame_size})"
            )
        bits = fmt.bits_per_sample
        if fmt.encoding_tag == WAVE_FORMAT_IEEE_FLOAT and bits == 32:
            return np.frombuffer(pcm_data, dtype="<f4").astype(np.float32)
        if bits == 8:
            # 8-bit WAV is unsigned, centred on 128
            return (np.frombuffer(pcm_data, dtype=np.uint8).astype(np.float32) - 128.0) / 128.0
        if bits == 16:
            return np.frombuffer(pcm_data, dtype="<i2").astype(np.float32) / 32768.0
        if bits == 24:
            # Packed little-endian 3-byte samples; sign-extend from bit 23
            raw = np.frombuffer(pcm_data, dtype=np.uint8).reshape(-1, 3).astype(np.int32)
            samples = raw[:, 0] | (raw[:, 1] << 8) | (raw[:, 2] << 16)
            samples = np.where(samples & 0x800000, samples - 0x1000000, samples)
            return samples.astype(np.float32) / 8388608.0
        if bits == 32:
            return np.frombuffer(pcm_data, dtype="<i4").astype(np.float32) / 2147483648.0
        raise ValueError(f"Unsupported sample width: {bits} bits")

    def rms(self, audio: np.ndarray) -> float:
        """Root-mean-square energy of a float32 signal (0.0 when empty)."""
        if len(audio) == 0:
            return 0.0
        return float(np.sqrt(np.mean(audio**2)))

    def is_silent(self, audio: np.ndarray, threshold: float | None = None) -> bool:
        """Check if an audio segment is silence based on RMS energy."""
        limit = self.silence_threshold if threshold is None else threshold
        return self.rms(audio) < limit

    def describe(self, locator: str) -> SegmentInfo:
        """Return format, duration and level information for one file.

        Missing files are reported with ``exists=False`` rather than raised,
        so a listing can show every locator a session holds.

        Raises:
            InvalidFormatError: If the file is not a valid WAV container.
        """
        path = to_local_path(locator)
        if not self._storage.exists(path):
            return SegmentInfo(path=locator, exists=False)
        try:
            data = self._storage.read_bytes(path)
        except FileNotFoundError as exc:
            raise SourceNotFoundError(path) from exc

        parsed = parse_container(data, source=path)
        fmt = parsed.format
        payload = data[parsed.payload_offset : parsed.payload_offset + parsed.payload_length]
        # Align to frame boundary (truncated recordings may end mid-frame)
        if fmt.block_align:
            payload = payload[: len(payload) - (len(payload) % fmt.block_align)]
        try:
            samples = self.pcm_to_ndarray(payload, fmt)
        except ValueError as exc:
            raise InvalidFormatError(path, str(exc)) from exc

        level = self.rms(samples)
        silent = self.is_silent(samples)
        return SegmentInfo(
            path=locator,
            sample_rate=fmt.sample_rate,
            channels=fmt.channels,
            bits_per_sample=fmt.bits_per_sample,
            duration=parsed.duration,
            rms=level,
            is_silent=silent,
        )
