"""Session lifecycle commands and reads over the session store."""

import logging
import secrets
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Protocol
from uuid import UUID, uuid4

from mutely.domain.results import (
    CreatedSession,
    JoinResult,
    JoinStatus,
    LogViolationResult,
)
from mutely.domain.sessions import (
    BREAK_EVENT_TYPES,
    Participant,
    ParticipantRole,
    Session,
    SessionPhase,
    ViolationEvent,
    ViolationEventType,
)
from mutely.domain.summary import SessionSummary, build_participant_summary

_CODE_LENGTH = 6

_logger = logging.getLogger(__name__)


class SessionRepository(Protocol):
    """Persistence interface for sessions."""

    def create_session(  # noqa: PLR0913
        self,
        session_id: UUID,
        code: str,
        name: str,
        duration_minutes: int,
        host_id: UUID,
        created_at: datetime,
    ) -> Session:
        """Create a session in the waiting phase and return it."""

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""

    def get_session_by_code(self, code: str) -> Session | None:
        """Return the most recent session with the given join code, if present."""

    def update_phase(
        self,
        session_id: UUID,
        phase: SessionPhase,
        changed_at: datetime,
        from_phases: tuple[SessionPhase, ...],
    ) -> bool:
        """Move a session into a phase and stamp its timestamp field.

        Only sessions currently in one of ``from_phases`` are updated. Returns
        whether a row changed.
        """

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session row."""


class ParticipantRepository(Protocol):
    """Persistence interface for participants."""

    def create_participant(  # noqa: PLR0913
        self,
        participant_id: UUID,
        session_id: UUID,
        name: str,
        role: ParticipantRole,
        created_at: datetime,
    ) -> Participant:
        """Create an active participant with no violations."""

    def get_participant(self, participant_id: UUID) -> Participant | None:
        """Return a participant by id, if present."""

    def list_active_participants(self, session_id: UUID) -> list[Participant]:
        """Return active participants, oldest first."""

    def update_violation_stats(
        self, participant_id: UUID, violation_count: int, last_violation_at: datetime
    ) -> None:
        """Store a participant's violation count and last violation time."""

    def mark_inactive(self, participant_id: UUID) -> bool:
        """Soft-delete a participant. Returns whether a row changed."""


class ViolationEventRepository(Protocol):
    """Persistence interface for violation events."""

    def create_event(
        self,
        session_id: UUID,
        participant_id: UUID,
        event_type: ViolationEventType,
    ) -> ViolationEvent:
        """Append a violation event and return it."""

    def list_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Return all events for a session, newest first."""

    def list_events_by_type(
        self, session_id: UUID, event_types: tuple[ViolationEventType, ...]
    ) -> list[ViolationEvent]:
        """Return events of the given types, oldest first."""


def generate_session_code() -> str:
    """Return a random numeric join code."""
    return "".join(secrets.choice("0123456789") for _ in range(_CODE_LENGTH))


def normalize_session_code(raw: str) -> str | None:
    """Strip formatting from a typed or scanned code; None if it is not valid."""
    cleaned = raw.replace("-", "").replace(" ", "").strip()
    if len(cleaned) != _CODE_LENGTH or not cleaned.isdigit():
        return None
    return cleaned


@dataclass
class SessionService:
    """Application service for session commands and reads.

    Commands never raise for expected store failures; they log and return a
    result value instead. Reads propagate store errors so pollers can decide
    what to do with them.
    """

    session_repository: SessionRepository
    participant_repository: ParticipantRepository
    event_repository: ViolationEventRepository
    default_session_name: str = "Focus Session"
    default_duration_minutes: int = 30

    async def create_session(
        self,
        host_name: str,
        session_name: str | None = None,
        duration_minutes: int | None = None,
    ) -> CreatedSession | None:
        """Create a session and its host participant."""
        session_id = uuid4()
        host_id = uuid4()
        code = generate_session_code()
        now = datetime.now(tz=UTC)
        try:
            self.session_repository.create_session(
                session_id=session_id,
                code=code,
                name=session_name or self.default_session_name,
                duration_minutes=duration_minutes or self.default_duration_minutes,
                host_id=host_id,
                created_at=now,
            )
        except Exception:
            _logger.exception("Failed to create session")
            return None

        try:
            self.participant_repository.create_participant(
                participant_id=host_id,
                session_id=session_id,
                name=host_name,
                role=ParticipantRole.HOST,
                created_at=now,
            )
        except Exception:
            _logger.exception("Failed to create host participant")
            try:
                self.session_repository.delete_session(session_id)
            except Exception:
                _logger.exception("Failed to clean up session %s", session_id)
            return None

        _logger.info("Session created: id=%s code=%s", session_id, code)
        return CreatedSession(code=code, session_id=session_id, host_id=host_id)

    async def join_session(self, code: str, name: str) -> JoinResult:
        """Join a session by its code as a guest."""
        normalized = normalize_session_code(code)
        if normalized is None:
            return JoinResult(status=JoinStatus.INVALID_CODE)
        try:
            session = self.session_repository.get_session_by_code(normalized)
        except Exception:
            _logger.exception("Failed to look up session code %s", normalized)
            return JoinResult(status=JoinStatus.FAILED)
        if session is None:
            return JoinResult(status=JoinStatus.NOT_FOUND)
        if session.phase is SessionPhase.ENDED:
            return JoinResult(status=JoinStatus.ENDED, session=session)

        try:
            participant = self.participant_repository.create_participant(
                participant_id=uuid4(),
                session_id=session.id,
                name=name,
                role=ParticipantRole.GUEST,
                created_at=datetime.now(tz=UTC),
            )
        except Exception:
            _logger.exception("Failed to join session %s", session.id)
            return JoinResult(status=JoinStatus.FAILED, session=session)

        return JoinResult(
            status=JoinStatus.JOINED, session=session, participant_id=participant.id
        )

    async def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id."""
        return self.session_repository.get_session(session_id)

    async def get_session_by_code(self, code: str) -> Session | None:
        """Return a session by join code."""
        normalized = normalize_session_code(code)
        if normalized is None:
            return None
        return self.session_repository.get_session_by_code(normalized)

    async def get_participant(self, participant_id: UUID) -> Participant | None:
        """Return a participant by id."""
        return self.participant_repository.get_participant(participant_id)

    async def list_participants(self, session_id: UUID) -> list[Participant]:
        """Return active participants, oldest first."""
        return self.participant_repository.list_active_participants(session_id)

    async def list_violation_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Return every violation event, newest first."""
        return self.event_repository.list_events(session_id)

    async def list_break_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Return break events for the wall of shame, oldest first."""
        return self.event_repository.list_events_by_type(session_id, BREAK_EVENT_TYPES)

    async def start_session(self, session_id: UUID) -> bool:
        """Move a waiting session to running and stamp started_at."""
        return self._change_phase(
            session_id, SessionPhase.RUNNING, (SessionPhase.WAITING,)
        )

    async def end_session(self, session_id: UUID) -> bool:
        """End a session and stamp ended_at."""
        return self._change_phase(
            session_id,
            SessionPhase.ENDED,
            (SessionPhase.WAITING, SessionPhase.RUNNING),
        )

    async def leave_session(self, participant_id: UUID) -> bool:
        """Soft-leave: mark the participant inactive."""
        try:
            return self.participant_repository.mark_inactive(participant_id)
        except Exception:
            _logger.exception("Failed to leave session: participant=%s", participant_id)
            return False

    async def log_violation(
        self,
        session_id: UUID,
        participant_id: UUID,
        event_type: ViolationEventType,
    ) -> LogViolationResult:
        """Append a violation event and bump the participant's counter.

        The appended event is the record of truth: once it is written the
        result is a success even if the counter update fails.
        """
        try:
            event = self.event_repository.create_event(
                session_id=session_id,
                participant_id=participant_id,
                event_type=event_type,
            )
        except Exception as exc:
            message = f"Failed to append violation event: {exc}"
            _logger.exception(
                "Violation append failed: session=%s participant=%s type=%s",
                session_id,
                participant_id,
                event_type.value,
            )
            return LogViolationResult(success=False, error=message)

        new_count = 1
        try:
            participant = self.participant_repository.get_participant(participant_id)
            if participant is not None:
                new_count = participant.violation_count + 1
            self.participant_repository.update_violation_stats(
                participant_id,
                violation_count=new_count,
                last_violation_at=datetime.now(tz=UTC),
            )
        except Exception:
            _logger.warning(
                "Violation counter update failed for participant %s",
                participant_id,
                exc_info=True,
            )

        _logger.info(
            "Violation logged: event=%s type=%s count=%s",
            event.id,
            event_type.value,
            new_count,
        )
        return LogViolationResult(success=True, event_id=event.id, new_count=new_count)

    async def get_summary(self, session_id: UUID) -> SessionSummary | None:
        """Return the end-of-session summary, or None if the session is unknown."""
        try:
            session = self.session_repository.get_session(session_id)
            if session is None:
                return None
            participants = self.participant_repository.list_active_participants(
                session_id
            )
            events = self.event_repository.list_events(session_id)
        except Exception:
            _logger.exception("Failed to load summary for session %s", session_id)
            return None

        summaries = [
            build_participant_summary(participant, events, session.started_at)
            for participant in participants
        ]
        ranked = sorted(participants, key=lambda p: p.violation_count)
        return SessionSummary(
            session=session,
            participants=participants,
            events=events,
            participant_summaries=summaries,
            total_violations=sum(p.violation_count for p in participants),
            most_focused=ranked[0] if ranked else None,
        )

    def _change_phase(
        self,
        session_id: UUID,
        phase: SessionPhase,
        from_phases: tuple[SessionPhase, ...],
    ) -> bool:
        try:
            changed = self.session_repository.update_phase(
                session_id,
                phase=phase,
                changed_at=datetime.now(tz=UTC),
                from_phases=from_phases,
            )
        except Exception:
            _logger.exception(
                "Failed to move session %s to %s", session_id, phase.value
            )
            return False
        if not changed:
            _logger.warning(
                "Session %s not moved to %s: not in %s",
                session_id,
                phase.value,
                [p.value for p in from_phases],
            )
        return changed
