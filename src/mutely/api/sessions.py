"""Session endpoints used by the presentation shell."""

from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import UUID  # noqa: TC003

from fastapi import APIRouter, HTTPException, Request, status

from mutely.api.models import (
    CreateSessionRequest,
    JoinSessionRequest,
    LogViolationRequest,
)
from mutely.domain.results import JoinStatus

if TYPE_CHECKING:
    from mutely.services.sessions import SessionService

router = APIRouter(tags=["sessions"])

_JOIN_ERRORS = {
    JoinStatus.INVALID_CODE: (status.HTTP_400_BAD_REQUEST, "Enter a 6-digit code."),
    JoinStatus.NOT_FOUND: (status.HTTP_404_NOT_FOUND, "Session not found."),
    JoinStatus.ENDED: (status.HTTP_409_CONFLICT, "This session has already ended."),
    JoinStatus.FAILED: (
        status.HTTP_503_SERVICE_UNAVAILABLE,
        "Could not join the session.",
    ),
}


def _service(request: Request) -> SessionService:
    return request.app.state.container.session_service


@router.post("/sessions", status_code=status.HTTP_201_CREATED)
async def create_session(
    payload: CreateSessionRequest, request: Request
) -> dict[str, object]:
    """Create a session and its host participant."""
    created = await _service(request).create_session(
        host_name=payload.host_name,
        session_name=payload.session_name,
        duration_minutes=payload.duration_minutes,
    )
    if created is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Could not create the session.",
        )
    return {
        "code": created.code,
        "session_id": created.session_id,
        "host_id": created.host_id,
    }


@router.post("/sessions/join")
async def join_session(
    payload: JoinSessionRequest, request: Request
) -> dict[str, object]:
    """Join a session as a guest."""
    result = await _service(request).join_session(payload.code, payload.name)
    if not result.joined:
        status_code, detail = _JOIN_ERRORS[result.status]
        raise HTTPException(status_code=status_code, detail=detail)
    return {"session": result.session, "participant_id": result.participant_id}


@router.get("/sessions/by-code/{code}")
async def session_by_code(code: str, request: Request) -> dict[str, object]:
    """Look up a session by its join code."""
    session = await _service(request).get_session_by_code(code)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"session": session}


@router.get("/sessions/{session_id}")
async def get_session(session_id: UUID, request: Request) -> dict[str, object]:
    """Return a session."""
    session = await _service(request).get_session(session_id)
    if session is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"session": session}


@router.get("/sessions/{session_id}/participants")
async def list_participants(session_id: UUID, request: Request) -> dict[str, object]:
    """Return active participants, oldest first."""
    return {"participants": await _service(request).list_participants(session_id)}


@router.get("/sessions/{session_id}/events")
async def list_events(session_id: UUID, request: Request) -> dict[str, object]:
    """Return violation events, newest first."""
    return {"events": await _service(request).list_violation_events(session_id)}


@router.get("/sessions/{session_id}/events/breaks")
async def list_break_events(session_id: UUID, request: Request) -> dict[str, object]:
    """Return break events for the wall of shame, oldest first."""
    return {"events": await _service(request).list_break_events(session_id)}


@router.post("/sessions/{session_id}/start")
async def start_session(session_id: UUID, request: Request) -> dict[str, str]:
    """Start a waiting session."""
    if not await _service(request).start_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session is not waiting to start.",
        )
    return {"status": "running"}


@router.post("/sessions/{session_id}/end")
async def end_session(session_id: UUID, request: Request) -> dict[str, str]:
    """End a session."""
    if not await _service(request).end_session(session_id):
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Session has already ended.",
        )
    return {"status": "ended"}


@router.post("/sessions/{session_id}/violations")
async def log_violation(
    session_id: UUID, payload: LogViolationRequest, request: Request
) -> dict[str, object]:
    """Log a violation; failures are reported in the body, not as errors."""
    result = await _service(request).log_violation(
        session_id, payload.participant_id, payload.event_type
    )
    return {
        "success": result.success,
        "error": result.error,
        "event_id": result.event_id,
        "new_count": result.new_count,
    }


@router.get("/sessions/{session_id}/summary")
async def session_summary(session_id: UUID, request: Request) -> dict[str, object]:
    """Return the end-of-session summary."""
    summary = await _service(request).get_summary(session_id)
    if summary is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"summary": summary}


@router.post("/participants/{participant_id}/leave")
async def leave_session(participant_id: UUID, request: Request) -> dict[str, str]:
    """Soft-leave a session."""
    if not await _service(request).leave_session(participant_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND)
    return {"status": "left"}
