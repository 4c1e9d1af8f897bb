"""FastAPI dependencies resolving the application-scoped services."""

from fastapi import Request

from src.services.session_machine import RecordingSessionMachine


def get_machine(request: Request) -> RecordingSessionMachine:
    """Return the session machine owned by the running application."""
    return request.app.state.machine
