"""Domain models for focus sessions."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class SessionPhase(str, Enum):
    """Lifecycle phase of a session."""

    WAITING = "waiting"
    RUNNING = "running"
    ENDED = "ended"


class ParticipantRole(str, Enum):
    """Role of a participant within a session."""

    HOST = "host"
    GUEST = "guest"


class ViolationEventType(str, Enum):
    """Ways a participant can break the silence."""

    BACKGROUND_SWITCH = "background_switch"
    LEFT_SESSION = "left_session"
    LEFT_SESSION_SCREEN = "left_session_screen"
    TEST_EVENT = "test_event"

    @property
    def is_break(self) -> bool:
        """Return whether the event counts as a break for the wall of shame."""
        match self:
            case ViolationEventType.BACKGROUND_SWITCH | ViolationEventType.LEFT_SESSION:
                return True
            case ViolationEventType.LEFT_SESSION_SCREEN | ViolationEventType.TEST_EVENT:
                return False


BREAK_EVENT_TYPES = tuple(kind for kind in ViolationEventType if kind.is_break)


@dataclass(frozen=True)
class Session:
    """One focus session instance."""

    id: UUID
    code: str
    name: str
    duration_minutes: int
    host_id: UUID
    phase: SessionPhase
    started_at: datetime | None
    ended_at: datetime | None
    created_at: datetime


@dataclass(frozen=True)
class Participant:
    """A person attached to a session."""

    id: UUID
    session_id: UUID
    name: str
    role: ParticipantRole
    violation_count: int
    is_active: bool
    last_violation_at: datetime | None
    created_at: datetime

    @property
    def is_host(self) -> bool:
        return self.role is ParticipantRole.HOST


@dataclass(frozen=True)
class ViolationEvent:
    """A single detected silence-breaking act."""

    id: UUID
    session_id: UUID
    participant_id: UUID
    event_type: ViolationEventType
    created_at: datetime
