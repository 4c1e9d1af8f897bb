"""Shared pytest fixtures for the VoiceStitch test suite.

Provides WAV byte builders, on-disk segment fixtures and a scriptable fake
capture engine used across unit and integration tests.
"""

import math
import struct

import pytest

from src.core.models import CaptureOptions, EngineEvent, StartedEvent
from src.services.engine.base import BaseCaptureEngine

# ---------------------------------------------------------------------------
# WAV builders
# ---------------------------------------------------------------------------


def fmt_body(sample_rate=16000, channels=1, bits=16, tag=1) -> bytes:
    """Build a 16-byte PCM ``fmt `` chunk body."""
    block_align = channels * bits // 8
    return struct.pack("<HHIIHH", tag, channels, sample_rate, sample_rate * block_align, block_align, bits)


def chunk(chunk_id: bytes, body: bytes) -> bytes:
    """Build one RIFF chunk, adding the pad byte after odd-length bodies."""
    pad = b"\x00" if len(body) % 2 else b""
    return chunk_id + struct.pack("<I", len(body)) + body + pad


def build_wav(
    payload: bytes,
    *,
    sample_rate=16000,
    channels=1,
    bits=16,
    before_fmt=(),
    before_data=(),
    fmt=None,
    data_length=None,
) -> bytes:
    """Build a WAV container with optional extra chunks around ``fmt ``.

    Args:
        payload: Sample bytes for the ``data`` chunk.
        before_fmt: ``(chunk_id, body)`` pairs placed ahead of ``fmt ``.
        before_data: ``(chunk_id, body)`` pairs placed between ``fmt `` and ``data``.
        fmt: Explicit ``fmt `` body (defaults to PCM from the other args).
        data_length: Declared ``data`` length (defaults to the real length).
    """
    body = b"WAVE"
    body += b"".join(chunk(cid, cbody) for cid, cbody in before_fmt)
    body += chunk(b"fmt ", fmt if fmt is not None else fmt_body(sample_rate, channels, bits))
    body += b"".join(chunk(cid, cbody) for cid, cbody in before_data)
    declared = len(payload) if data_length is None else data_length
    body += b"data" + struct.pack("<I", declared) + payload
    return b"RIFF" + struct.pack("<I", len(body)) + body


def sine_pcm(frames=1600, frequency=440.0, sample_rate=16000, amplitude=16000) -> bytes:
    """16-bit mono sine wave samples."""
    return b"".join(
        struct.pack("<h", int(amplitude * math.sin(2 * math.pi * frequency * i / sample_rate)))
        for i in range(frames)
    )


# ---------------------------------------------------------------------------
# Audio Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def sample_pcm_bytes():
    """Generate 0.1 seconds of 440Hz sine-wave PCM audio (16kHz, 16-bit, mono).

    Returns:
        bytes: Raw PCM audio data.
    """
    return sine_pcm()


@pytest.fixture
def silent_pcm_bytes():
    """Generate 0.1 seconds of silence as PCM audio (16kHz, 16-bit, mono)."""
    return b"\x00\x00" * 1600


@pytest.fixture
def write_wav(tmp_path):
    """Factory writing a WAV file under ``tmp_path``.

    Returns:
        Callable[[str, bytes], str]: ``(name, payload, **build_wav_kwargs) -> path``.
    """

    def _write(name: str, payload: bytes, **kwargs) -> str:
        path = tmp_path / name
        path.write_bytes(build_wav(payload, **kwargs))
        return str(path)

    return _write


@pytest.fixture
def sample_audio_path(tmp_path, sample_pcm_bytes):
    """Create a temporary WAV file with the stdlib ``wave`` writer.

    Returns:
        str: Path to the temporary WAV file.
    """
    import wave

    wav_path = tmp_path / "test_audio.wav"
    with wave.open(str(wav_path), "wb") as wf:
        wf.setnchannels(1)
        wf.setsampwidth(2)
        wf.setframerate(16000)
        wf.writeframes(sample_pcm_bytes)
    return str(wav_path)


# ---------------------------------------------------------------------------
# Engine Fixtures
# ---------------------------------------------------------------------------


class FakeCaptureEngine(BaseCaptureEngine):
    """Scriptable capture engine recording the commands it receives.

    Args:
        auto_ack: Emit ``started`` as soon as ``start`` is called.
        on_start: Events emitted on every ``start``, after any acknowledgment.
    """

    def __init__(self, auto_ack=True, on_start=()) -> None:
        super().__init__()
        self.auto_ack = auto_ack
        self.on_start = list(on_start)
        self.commands: list[str] = []
        self.configs: list[CaptureOptions] = []

    async def start(self, config: CaptureOptions) -> None:
        self.commands.append("start")
        self.configs.append(config)
        if self.auto_ack:
            self.emit(StartedEvent())
        for event in self.on_start:
            self.emit(event)

    async def stop(self) -> None:
        self.commands.append("stop")

    def push(self, *events: EngineEvent) -> None:
        """Deliver events to the listener in order."""
        for event in events:
            self.emit(event)


@pytest.fixture
def fake_engine():
    """Fake engine that acknowledges every start immediately."""
    return FakeCaptureEngine()


@pytest.fixture
def make_engine():
    """Factory for ``FakeCaptureEngine`` with custom start behaviour."""
    return FakeCaptureEngine


@pytest.fixture
def wav_bytes():
    """The ``build_wav`` helper, for tests that work on in-memory buffers."""
    return build_wav


@pytest.fixture
def wav_fmt_body():
    """The ``fmt_body`` helper."""
    return fmt_body
