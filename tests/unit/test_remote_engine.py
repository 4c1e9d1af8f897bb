"""Tests for the WebSocket-backed capture engine bridge."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from src.core.exceptions import EngineNotConnectedError
from src.core.models import (
    CaptureFinalizedEvent,
    CaptureOptions,
    ErrorEvent,
    FinalResultEvent,
    RecordingOptions,
)
from src.services.engine.remote import RemoteCaptureEngine


@pytest.fixture
def engine():
    return RemoteCaptureEngine(capability_timeout=0.05)


@pytest.fixture
def send():
    return AsyncMock()


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


async def test_commands_require_connection(engine):
    assert engine.connected is False
    with pytest.raises(EngineNotConnectedError):
        await engine.stop()
    with pytest.raises(EngineNotConnectedError):
        await engine.request_capability()


async def test_start_sends_config_without_unset_fields(engine, send):
    engine.attach(send)
    config = CaptureOptions(lang="en-US", recording_options=RecordingOptions(output_file_name="a.wav"))

    await engine.start(config)

    message = send.await_args.args[0]
    assert message["type"] == "command"
    assert message["data"]["action"] == "start"
    assert message["data"]["config"]["lang"] == "en-US"
    assert "continuous" not in message["data"]["config"]
    assert message["data"]["config"]["recording_options"]["output_file_name"] == "a.wav"


async def test_stop_sends_command(engine, send):
    engine.attach(send)
    await engine.stop()
    send.assert_awaited_once_with({"type": "command", "data": {"action": "stop"}})


# ---------------------------------------------------------------------------
# Capability
# ---------------------------------------------------------------------------


async def test_capability_answer_resolves_request(engine, send):
    engine.attach(send)

    task = asyncio.create_task(engine.request_capability())
    await asyncio.sleep(0)
    engine.receive({"type": "capability", "data": {"granted": True}})

    assert await task is True
    send.assert_awaited_once_with({"type": "command", "data": {"action": "request_capability"}})


async def test_capability_timeout_is_denial(engine, send):
    engine.attach(send)
    assert await engine.request_capability() is False


async def test_detach_denies_pending_capability(engine, send):
    engine.attach(send)

    task = asyncio.create_task(engine.request_capability())
    await asyncio.sleep(0)
    engine.detach()

    assert await task is False
    assert engine.connected is False


def test_unsolicited_capability_is_ignored(engine):
    engine.receive({"type": "capability", "data": {"granted": True}})


# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


def test_event_messages_reach_listener(engine):
    listener = MagicMock()
    engine.set_listener(listener)

    engine.receive({"type": "event", "data": {"kind": "final_result", "text": "hello"}})
    engine.receive({"type": "event", "data": {"kind": "capture_finalized", "uri": "file:///r/a.wav"}})

    events = [call.args[0] for call in listener.call_args_list]
    assert events == [
        FinalResultEvent(text="hello"),
        CaptureFinalizedEvent(uri="file:///r/a.wav"),
    ]


def test_detach_emits_error_event(engine, send):
    listener = MagicMock()
    engine.set_listener(listener)
    engine.attach(send)

    engine.detach()

    listener.assert_called_once_with(ErrorEvent(reason="engine disconnected"))


@pytest.mark.parametrize(
    "payload",
    [
        {"type": "event", "data": {"kind": "exploded"}},
        {"type": "event", "data": {"kind": "final_result"}},
        {"type": "nonsense"},
    ],
)
def test_malformed_messages_raise_validation_error(engine, payload):
    with pytest.raises(ValidationError):
        engine.receive(payload)
