"""Integration test fixtures for VoiceStitch.

Provides an async HTTP client over an app driven by the scriptable fake
engine, and a sync TestClient (for WebSocket) over an app that uses the real
``RemoteCaptureEngine`` bridge.
"""

import pytest
from httpx import ASGITransport, AsyncClient
from starlette.testclient import TestClient

from src.api.app import create_app
from src.services.engine.base import StaticCapabilityProvider


@pytest.fixture
def engine(make_engine):
    """Fake engine that acknowledges every start immediately."""
    return make_engine()


@pytest.fixture
def capability():
    return StaticCapabilityProvider(granted=True)


@pytest.fixture
def app(engine, capability):
    """Fresh application wired to the fake engine."""
    return create_app(engine=engine, capability=capability)


@pytest.fixture
async def async_client(app):
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c


@pytest.fixture
def remote_app():
    """Fresh application with the default WebSocket engine bridge."""
    return create_app()


@pytest.fixture
def test_client(remote_app):
    """Synchronous TestClient sharing one event loop between REST and WebSocket."""
    with TestClient(remote_app) as c:
        yield c
