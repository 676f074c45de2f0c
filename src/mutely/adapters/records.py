"""Row parsing shared by the Supabase repositories and the HTTP client."""

from datetime import datetime
from uuid import UUID

from mutely.domain.sessions import (
    Participant,
    ParticipantRole,
    Session,
    SessionPhase,
    ViolationEvent,
    ViolationEventType,
)

SESSION_COLUMNS = (
    "id, code, name, duration_minutes, host_id, phase, started_at, ended_at, "
    "created_at"
)
PARTICIPANT_COLUMNS = (
    "id, session_id, name, role, violation_count, is_active, last_violation_at, "
    "created_at"
)
EVENT_COLUMNS = "id, session_id, participant_id, event_type, created_at"


def _parse_datetime(value: object) -> datetime | None:
    if not value:
        return None
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


def parse_session(row: dict[str, object]) -> Session:
    return Session(
        id=UUID(str(row["id"])),
        code=str(row["code"]),
        name=str(row.get("name", "")),
        duration_minutes=int(row.get("duration_minutes", 0)),
        host_id=UUID(str(row["host_id"])),
        phase=SessionPhase(row["phase"]),
        started_at=_parse_datetime(row.get("started_at")),
        ended_at=_parse_datetime(row.get("ended_at")),
        created_at=_parse_datetime(row["created_at"]),
    )


def parse_participant(row: dict[str, object]) -> Participant:
    return Participant(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        name=str(row.get("name", "")),
        role=ParticipantRole(row.get("role", ParticipantRole.GUEST.value)),
        violation_count=int(row.get("violation_count") or 0),
        is_active=bool(row.get("is_active", True)),
        last_violation_at=_parse_datetime(row.get("last_violation_at")),
        created_at=_parse_datetime(row["created_at"]),
    )


def parse_event(row: dict[str, object]) -> ViolationEvent:
    return ViolationEvent(
        id=UUID(str(row["id"])),
        session_id=UUID(str(row["session_id"])),
        participant_id=UUID(str(row["participant_id"])),
        event_type=ViolationEventType(row["event_type"]),
        created_at=_parse_datetime(row["created_at"]),
    )
