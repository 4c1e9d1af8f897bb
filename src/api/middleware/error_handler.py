"""
Global error handling for the FastAPI application.

Every failed command reaches the client through exactly one JSON envelope:
``detail``, ``code``, ``timestamp`` and, for joiner failures, the ``path`` of
the failing source.
"""

import logging
from datetime import UTC, datetime

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.core.exceptions import VoiceStitchError

logger = logging.getLogger(__name__)


def register_error_handlers(app: FastAPI) -> None:
    """Attach exception handlers to the FastAPI application.

    Registers three handlers in priority order:
    1. ``VoiceStitchError``: domain errors with their own status code.
    2. ``RequestValidationError``: malformed body/params (422).
    3. ``Exception``: anything unexpected (500, no stack trace leaked).

    Args:
        app: The FastAPI application instance to register handlers on.
    """

    @app.exception_handler(VoiceStitchError)
    async def voicestitch_error_handler(request: Request, exc: VoiceStitchError) -> JSONResponse:
        logger.warning("%s %s failed: %s (%s)", request.method, request.url.path, exc.detail, exc.code)
        content = {
            "detail": exc.detail,
            "code": exc.code,
            "timestamp": exc.timestamp,
        }
        path = getattr(exc, "path", None)
        if path is not None:
            content["path"] = path
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(
        _request: Request, exc: RequestValidationError
    ) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "detail": str(exc),
                "code": "VALIDATION_ERROR",
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )

    @app.exception_handler(Exception)
    async def generic_error_handler(request: Request, exc: Exception) -> JSONResponse:
        logger.exception("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "detail": "Internal server error",
                "code": "INTERNAL_ERROR",
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )
