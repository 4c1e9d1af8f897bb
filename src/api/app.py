"""
FastAPI application factory.

``create_app()`` assembles the application with CORS, error handlers,
routers, the health endpoint, and the application-scoped capture engine and
session machine. The module-level ``app`` instance allows
``uvicorn src.api.app:app --reload``.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from src.api import websocket
from src.api.middleware.error_handler import register_error_handlers
from src.api.routes import audio, capture, sessions
from src.core.config import get_settings
from src.core.models import HealthResponse
from src.services.engine.base import BaseCapabilityProvider, BaseCaptureEngine
from src.services.engine.remote import RemoteCaptureEngine
from src.services.session_machine import RecordingSessionMachine


def create_app(
    engine: BaseCaptureEngine | None = None,
    capability: BaseCapabilityProvider | None = None,
) -> FastAPI:
    """Build and return a fully configured FastAPI application.

    Args:
        engine: Capture engine; defaults to a ``RemoteCaptureEngine`` fed by
            the ``/ws/engine`` WebSocket.
        capability: Capability provider; defaults to the remote engine, which
            forwards the permission prompt to the device.
    """
    settings = get_settings()
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    app = FastAPI(
        title="VoiceStitch",
        description="Hold-to-talk recording sessions with transcript tracking "
        "and lossless joining of PCM WAV segments.",
        version="0.1.0",
    )

    # -- CORS --
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[
            "http://localhost:8081",  # Expo dev server
            "http://localhost:3000",  # Dev frontend
        ],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # -- Error handlers --
    register_error_handlers(app)

    # -- Application-scoped state (single owner of session state) --
    if engine is None:
        engine = RemoteCaptureEngine()
    if capability is None:
        if not isinstance(engine, BaseCapabilityProvider):
            raise ValueError("capability provider required for this engine")
        capability = engine
    app.state.engine = engine
    app.state.machine = RecordingSessionMachine(engine, capability)

    # -- Health check (root-level, not under /api/v1) --
    @app.get("/health", response_model=HealthResponse, tags=["system"])
    async def health() -> HealthResponse:
        return HealthResponse(timestamp=datetime.now(UTC))

    # -- REST routes --
    app.include_router(sessions.router, prefix="/api/v1")
    app.include_router(capture.router, prefix="/api/v1")
    app.include_router(audio.router, prefix="/api/v1")

    # -- WebSocket --
    app.include_router(websocket.router)

    return app


app = create_app()
