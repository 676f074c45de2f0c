"""Tests for wall of shame and summary helpers."""

from datetime import timedelta
from uuid import uuid4

from mutely.domain.sessions import ViolationEventType
from mutely.domain.summary import (
    build_participant_summary,
    build_wall_entry,
    format_mm_ss,
    seconds_between,
)
from tests.conftest import T0, make_event, make_participant


def test_seconds_between_clamps_and_handles_missing_start() -> None:
    assert seconds_between(None, T0) == 0
    assert seconds_between(T0, T0 - timedelta(seconds=5)) == 0
    assert seconds_between(T0, T0 + timedelta(seconds=75.9)) == 75


def test_format_mm_ss() -> None:
    assert format_mm_ss(0) == "00:00"
    assert format_mm_ss(75) == "01:15"
    assert format_mm_ss(3600) == "60:00"
    assert format_mm_ss(-3) == "00:00"


def test_build_wall_entry_measures_from_start() -> None:
    event = make_event(uuid4(), uuid4(), created_at=T0 + timedelta(minutes=4))

    entry = build_wall_entry(event, "Olga", T0)

    assert entry.event_id == event.id
    assert entry.participant_name == "Olga"
    assert entry.stayed_seconds == 240


def test_participant_summary_counts_only_breaks() -> None:
    session_id = uuid4()
    participant = make_participant(session_id, "Gus")
    other = make_participant(session_id, "Olga")
    events = [
        make_event(
            session_id,
            participant.id,
            ViolationEventType.LEFT_SESSION,
            T0 + timedelta(minutes=20),
        ),
        make_event(
            session_id,
            participant.id,
            ViolationEventType.LEFT_SESSION_SCREEN,
            T0 + timedelta(minutes=10),
        ),
        make_event(session_id, other.id, created_at=T0 + timedelta(minutes=1)),
        make_event(session_id, participant.id, created_at=T0 + timedelta(minutes=5)),
    ]

    summary = build_participant_summary(participant, events, T0)

    assert [b.stayed_seconds for b in summary.breaks] == [300, 1200]
    assert [b.returned_after_seconds for b in summary.breaks] == [900, None]
