"""Request models for the session API."""

from uuid import UUID

from pydantic import BaseModel, Field

from mutely.domain.sessions import ViolationEventType


class CreateSessionRequest(BaseModel):
    """Payload for creating a session as host."""

    host_name: str = Field(min_length=1, max_length=64)
    session_name: str | None = Field(default=None, max_length=80)
    duration_minutes: int | None = Field(default=None, ge=1, le=24 * 60)


class JoinSessionRequest(BaseModel):
    """Payload for joining a session by code."""

    code: str
    name: str = Field(min_length=1, max_length=64)


class LogViolationRequest(BaseModel):
    """Payload for logging a violation event."""

    participant_id: UUID
    event_type: ViolationEventType
