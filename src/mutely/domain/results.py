"""Result values returned by session commands."""

from dataclasses import dataclass
from enum import Enum
from uuid import UUID

from mutely.domain.sessions import Session


@dataclass(frozen=True)
class CreatedSession:
    """Identifiers handed back to the host after creating a session."""

    code: str
    session_id: UUID
    host_id: UUID


class JoinStatus(str, Enum):
    """Outcome of a join attempt."""

    JOINED = "joined"
    INVALID_CODE = "invalid_code"
    NOT_FOUND = "not_found"
    ENDED = "ended"
    FAILED = "failed"


@dataclass(frozen=True)
class JoinResult:
    """Outcome of joining a session by code."""

    status: JoinStatus
    session: Session | None = None
    participant_id: UUID | None = None

    @property
    def joined(self) -> bool:
        return self.status is JoinStatus.JOINED


@dataclass(frozen=True)
class LogViolationResult:
    """Outcome of logging a violation event."""

    success: bool
    error: str | None = None
    event_id: UUID | None = None
    new_count: int | None = None
