"""Unit tests for the WAV segment joiner."""

from pathlib import Path

import pytest

from src.core.exceptions import (
    EmptyInputError,
    FormatMismatchError,
    InvalidFormatError,
    JoinError,
    SourceNotFoundError,
)
from src.services.audio.joiner import AudioJoiner, join_audio_files
from src.services.audio.wav_codec import parse_container
from src.services.storage.files import LocalByteStorage

FIXED_MS = 1_700_000_000_123


def _clock():
    return FIXED_MS / 1000


def _payload(path: str) -> bytes:
    data = Path(path).read_bytes()
    parsed = parse_container(data)
    return data[parsed.payload_offset : parsed.payload_offset + parsed.payload_length]


@pytest.fixture
def joiner():
    return AudioJoiner(clock=_clock)


class _FailingStorage(LocalByteStorage):
    """Local storage whose ``read_bytes`` fails on the n-th call."""

    def __init__(self, fail_on_call: int) -> None:
        self.calls = 0
        self.fail_on_call = fail_on_call

    def read_bytes(self, locator: str) -> bytes:
        self.calls += 1
        if self.calls == self.fail_on_call:
            raise OSError("device unplugged")
        return super().read_bytes(locator)


# ---------------------------------------------------------------------------
# Payload concatenation
# ---------------------------------------------------------------------------


class TestJoinPayload:
    def test_single_input_copies_payload_exactly(self, joiner, write_wav, sample_pcm_bytes):
        a = write_wav("a.wav", sample_pcm_bytes)

        out = joiner.join([a])

        assert _payload(out) == sample_pcm_bytes

    def test_two_inputs_concatenate_in_order(self, joiner, write_wav):
        a = write_wav("a.wav", b"\x01\x00" * 50)
        b = write_wav("b.wav", b"\x02\x00" * 30, before_fmt=[(b"LIST", b"odd")])

        out = joiner.join([a, b])

        assert _payload(out) == b"\x01\x00" * 50 + b"\x02\x00" * 30

    def test_reversed_order_reverses_payload(self, joiner, write_wav):
        a = write_wav("a.wav", b"\x01\x00" * 4)
        b = write_wav("b.wav", b"\x02\x00" * 4)

        out = joiner.join([b, a])

        assert _payload(out) == b"\x02\x00" * 4 + b"\x01\x00" * 4

    def test_output_header_is_canonical(self, joiner, write_wav):
        a = write_wav("a.wav", b"\x00" * 100, before_data=[(b"fact", b"\x00" * 4)])

        out = joiner.join([a])
        data = Path(out).read_bytes()

        assert len(data) == 44 + 100
        assert data[36:40] == b"data"

    def test_output_written_next_to_first_source(self, joiner, write_wav, tmp_path):
        a = write_wav("a.wav", b"\x00" * 8)

        out = joiner.join([a])

        assert Path(out) == tmp_path / f"joined_audio_{FIXED_MS}.wav"

    def test_accepts_file_uris(self, joiner, write_wav):
        a = write_wav("a.wav", b"\x05\x00" * 8)

        out = joiner.join([f"file://{a}"])

        assert _payload(out) == b"\x05\x00" * 8

    def test_rerun_creates_new_file_with_same_content(self, joiner, write_wav, tmp_path):
        a = write_wav("a.wav", b"\x03\x00" * 16)

        first = joiner.join([a])
        second = joiner.join([a])

        assert first != second
        assert Path(second) == tmp_path / f"joined_audio_{FIXED_MS}_1.wav"
        assert Path(first).read_bytes() == Path(second).read_bytes()


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestJoinErrors:
    def test_empty_input_writes_nothing(self, joiner, tmp_path):
        with pytest.raises(EmptyInputError):
            joiner.join([])
        assert list(tmp_path.iterdir()) == []

    def test_missing_source_names_path(self, joiner, write_wav, tmp_path):
        a = write_wav("a.wav", b"\x00" * 8)
        missing = str(tmp_path / "missing.wav")

        with pytest.raises(SourceNotFoundError) as exc_info:
            joiner.join([a, missing])

        assert exc_info.value.path == missing
        assert not list(tmp_path.glob("joined_audio_*"))

    def test_invalid_source(self, joiner, write_wav, tmp_path):
        a = write_wav("a.wav", b"\x00" * 8)
        bogus = tmp_path / "bogus.wav"
        bogus.write_bytes(b"not audio at all")

        with pytest.raises(InvalidFormatError) as exc_info:
            joiner.join([a, str(bogus)])

        assert exc_info.value.path == str(bogus)

    def test_format_mismatch_rejected(self, joiner, write_wav, tmp_path):
        a = write_wav("a.wav", b"\x00" * 8, sample_rate=16000)
        b = write_wav("b.wav", b"\x00" * 8, sample_rate=44100)

        with pytest.raises(FormatMismatchError) as exc_info:
            joiner.join([a, b])

        assert exc_info.value.path == b
        assert "sample_rate" in exc_info.value.reason
        assert not list(tmp_path.glob("joined_audio_*"))

    def test_format_mismatch_tolerated_when_not_strict(self, write_wav):
        joiner = AudioJoiner(strict_format=False, clock=_clock)
        a = write_wav("a.wav", b"\x01\x00" * 4, sample_rate=16000)
        b = write_wav("b.wav", b"\x02\x00" * 4, sample_rate=44100)

        out = joiner.join([a, b])

        assert _payload(out) == b"\x01\x00" * 4 + b"\x02\x00" * 4
        assert parse_container(Path(out).read_bytes()).format.sample_rate == 16000

    def test_write_failure_removes_partial_output(self, write_wav, tmp_path):
        # reads 1-2 inspect the sources, read 4 copies the second payload
        joiner = AudioJoiner(_FailingStorage(fail_on_call=4), clock=_clock)
        a = write_wav("a.wav", b"\x00" * 8)
        b = write_wav("b.wav", b"\x00" * 8)

        with pytest.raises(JoinError, match="device unplugged"):
            joiner.join([a, b])

        assert not list(tmp_path.glob("joined_audio_*"))


async def test_join_audio_files_runs_joiner(write_wav, sample_pcm_bytes):
    a = write_wav("a.wav", sample_pcm_bytes)

    out = await join_audio_files([a], AudioJoiner(clock=_clock))

    assert _payload(out) == sample_pcm_bytes


async def test_join_audio_files_empty_input():
    with pytest.raises(EmptyInputError):
        await join_audio_files([])
