"""Domain models for the wall of shame and session summaries."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from mutely.domain.sessions import (
    Participant,
    Session,
    ViolationEvent,
    ViolationEventType,
)

UNKNOWN_PARTICIPANT_NAME = "Unknown"


@dataclass(frozen=True)
class WallOfShameEntry:
    """A break shown to everyone in a running session."""

    event_id: UUID
    participant_name: str
    event_type: ViolationEventType
    occurred_at: datetime
    stayed_seconds: int


@dataclass(frozen=True)
class BreakRecord:
    """A single break in a participant's timeline."""

    stayed_seconds: int
    returned_after_seconds: int | None = None


@dataclass(frozen=True)
class ParticipantSummary:
    """Summary of one participant's session."""

    participant: Participant
    breaks: list[BreakRecord]


@dataclass(frozen=True)
class SessionSummary:
    """Everything needed to render the end-of-session screen."""

    session: Session
    participants: list[Participant]
    events: list[ViolationEvent]
    participant_summaries: list[ParticipantSummary]
    total_violations: int
    most_focused: Participant | None


def seconds_between(start: datetime | None, end: datetime) -> int:
    """Whole seconds from start to end, clamped at zero."""
    if start is None:
        return 0
    return max(0, int((end - start).total_seconds()))


def format_mm_ss(seconds: int) -> str:
    """Format a duration as mm:ss."""
    if seconds < 0:
        return "00:00"
    minutes, secs = divmod(seconds, 60)
    return f"{minutes:02d}:{secs:02d}"


def build_wall_entry(
    event: ViolationEvent, participant_name: str, started_at: datetime | None
) -> WallOfShameEntry:
    """Convert a break event into a wall of shame entry."""
    return WallOfShameEntry(
        event_id=event.id,
        participant_name=participant_name,
        event_type=event.event_type,
        occurred_at=event.created_at,
        stayed_seconds=seconds_between(started_at, event.created_at),
    )


def build_participant_summary(
    participant: Participant,
    events: list[ViolationEvent],
    started_at: datetime | None,
) -> ParticipantSummary:
    """Build the break timeline for one participant.

    Only break events count. The gap to the participant's next break is
    reported as the time it took them to come back.
    """
    own = sorted(
        (
            event
            for event in events
            if event.participant_id == participant.id and event.event_type.is_break
        ),
        key=lambda event: event.created_at,
    )
    breaks: list[BreakRecord] = []
    for index, event in enumerate(own):
        returned_after = None
        if index < len(own) - 1:
            next_break = own[index + 1]
            returned_after = seconds_between(event.created_at, next_break.created_at)
        breaks.append(
            BreakRecord(
                stayed_seconds=seconds_between(started_at, event.created_at),
                returned_after_seconds=returned_after,
            )
        )
    return ParticipantSummary(participant=participant, breaks=breaks)
