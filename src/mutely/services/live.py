"""Live session controller for one participant's in-session view."""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol
from uuid import UUID

from mutely.domain.results import LogViolationResult
from mutely.domain.sessions import (
    Participant,
    Session,
    SessionPhase,
    ViolationEvent,
    ViolationEventType,
)
from mutely.domain.summary import (
    UNKNOWN_PARTICIPANT_NAME,
    WallOfShameEntry,
    build_wall_entry,
)
from mutely.services.detector import PROTECTION_WINDOW_SECONDS, ViolationDetector
from mutely.services.observable import AppStateEvents, SessionStateStore, Unsubscribe
from mutely.services.poller import (
    DEFAULT_POLLING_INTERVAL_MS,
    PollerCallbacks,
    SessionReader,
    SyncPoller,
)
from mutely.services.timer import SessionTimer

_logger = logging.getLogger(__name__)


class SessionBackend(SessionReader, Protocol):
    """Everything the live view needs from the session store."""

    async def list_break_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Return break events, oldest first."""

    async def log_violation(
        self,
        session_id: UUID,
        participant_id: UUID,
        event_type: ViolationEventType,
    ) -> LogViolationResult:
        """Append a violation event for a participant."""

    async def end_session(self, session_id: UUID) -> bool:
        """End the session."""


@dataclass
class ViolationBanner:
    """Notice shown when someone else breaks the silence."""

    participant_name: str
    event: ViolationEvent
    stayed_seconds: int | None


class LiveSessionController:
    """Wires the poller, timer and detector together for a live session.

    The controller owns the participant-name lookup the poller reads, gates
    violation logging on role and phase, and makes sure the session-end
    transition happens once whether the timer or the poller sees it first.
    """

    def __init__(  # noqa: PLR0913
        self,
        backend: SessionBackend,
        session_id: UUID,
        participant_id: UUID,
        *,
        is_host: bool,
        app_state_events: AppStateEvents,
        on_navigate_summary: Callable[[], None],
        on_show_return_warning: Callable[[], None] | None = None,
        on_violation_banner: Callable[[ViolationBanner], None] | None = None,
        polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
        protection_window_seconds: float = PROTECTION_WINDOW_SECONDS,
        timer: SessionTimer | None = None,
        detector: ViolationDetector | None = None,
    ) -> None:
        self.backend = backend
        self.session_id = session_id
        self.participant_id = participant_id
        self.is_host = is_host
        self.app_state_events = app_state_events
        self.on_navigate_summary = on_navigate_summary
        self.on_show_return_warning = on_show_return_warning
        self.on_violation_banner = on_violation_banner
        self.store = SessionStateStore()
        self.participant_names: dict[UUID, str] = {}
        self._leaving_intentionally = False
        self._finished = False
        self._unsubscribe_timer: Unsubscribe | None = None
        self._reload_task: asyncio.Task[None] | None = None

        self.timer = timer or SessionTimer(self._handle_session_end)
        self.timer.on_complete = self._handle_session_end
        self.timer.on_tick = self._publish_remaining
        self.detector = detector or ViolationDetector(
            self._log_violation,
            self._show_return_warning,
            enabled=False,
            is_host=is_host,
            protection_window_seconds=protection_window_seconds,
        )
        self.poller = SyncPoller(
            backend,
            session_id,
            callbacks=PollerCallbacks(
                on_participant_join=self._handle_participant_join,
                on_participant_leave=self._handle_participant_leave,
                on_participant_update=self._handle_participant_update,
                on_session_end=self._handle_session_ended_remotely,
                on_session_update=self._handle_session_update,
                on_violation_event=self._handle_violation_event,
            ),
            participant_names=self.participant_names,
            polling_interval_ms=polling_interval_ms,
        )

    @property
    def finished(self) -> bool:
        return self._finished

    async def start(self) -> None:
        """Load the initial state and begin syncing, timing and detecting.

        A failed initial load is logged and retried on the polling cadence;
        syncing and detection start regardless.
        """
        try:
            session = await self._load_initial_state()
        except Exception:
            _logger.exception("Initial load failed for session %s", self.session_id)
            session = None
            loaded = False
        else:
            loaded = True
        # The timer listens first so a resume is corrected before a violation
        # is logged over the network.
        self._unsubscribe_timer = self.app_state_events.subscribe(
            self.timer.on_app_state_change
        )
        self.detector.attach(self.app_state_events)
        self.poller.start()
        if not loaded:
            self._reload_task = asyncio.get_running_loop().create_task(
                self._reload_initial_state()
            )
        elif session is not None:
            await self._begin_timer(session)

    def stop(self) -> None:
        """Tear down every subscription and timer."""
        self.poller.stop()
        self.timer.stop()
        self.detector.detach()
        if self._unsubscribe_timer is not None:
            self._unsubscribe_timer()
            self._unsubscribe_timer = None
        task, self._reload_task = self._reload_task, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()

    async def leave(self) -> LogViolationResult | None:
        """Leave on purpose: log a left_session violation and tear down."""
        self._leaving_intentionally = True
        result = await self.detector.trigger_leave_violation()
        if result is not None and not result.success:
            _logger.warning("Leave violation not logged: %s", result.error)
        self.stop()
        return result

    async def handle_screen_blur(self) -> LogViolationResult | None:
        """Log navigating away from the live screen without leaving properly."""
        if self._leaving_intentionally or self._finished:
            return None
        return await self._log_violation(ViolationEventType.LEFT_SESSION_SCREEN)

    async def _log_violation(
        self, event_type: ViolationEventType
    ) -> LogViolationResult:
        if self.is_host:
            _logger.info("Host: violation log skipped")
            return LogViolationResult(success=True)
        session = self.store.value.session
        if session is None or session.phase is not SessionPhase.RUNNING:
            _logger.info("Session not running: violation log skipped")
            return LogViolationResult(success=True)
        return await self.backend.log_violation(
            self.session_id, self.participant_id, event_type
        )

    def _show_return_warning(self) -> None:
        if self.on_show_return_warning is not None:
            self.on_show_return_warning()

    async def _handle_session_end(self) -> None:
        if self._finished:
            return
        self._finished = True
        self._leaving_intentionally = True
        self.detector.configure(enabled=False)
        if self.is_host:
            ended = await self.backend.end_session(self.session_id)
            if not ended:
                _logger.warning("Host could not end session %s", self.session_id)
        self.stop()
        self.on_navigate_summary()

    def _handle_session_ended_remotely(self, session: Session) -> None:
        if self._finished:
            return
        self._finished = True
        self._leaving_intentionally = True
        self.detector.configure(enabled=False)
        self.store.update(session=session)
        self.stop()
        self.on_navigate_summary()

    def _handle_session_update(self, session: Session) -> None:
        self._apply_session(session)
        if session.started_at is not None and not self._finished:
            self.timer.start()

    def _apply_session(self, session: Session) -> None:
        self.store.update(session=session)
        self.timer.anchor(session)
        self.detector.configure(
            enabled=session.phase is SessionPhase.RUNNING and not self.is_host
        )

    def _handle_participant_join(self, participant: Participant) -> None:
        participants = [
            p for p in self.store.value.participants if p.id != participant.id
        ]
        participants.append(participant)
        self._set_participants(participants)

    def _handle_participant_leave(self, participant: Participant) -> None:
        participants = [
            p for p in self.store.value.participants if p.id != participant.id
        ]
        self._set_participants(participants)

    def _handle_participant_update(self, participant: Participant) -> None:
        participants = [
            participant if p.id == participant.id else p
            for p in self.store.value.participants
        ]
        self._set_participants(participants)

    def _set_participants(self, participants: list[Participant]) -> None:
        # Names of departed participants stay resolvable for late events.
        for participant in participants:
            self.participant_names[participant.id] = participant.name
        self.store.update(participants=participants)

    def _handle_violation_event(self, event: ViolationEvent, name: str) -> None:
        if event.participant_id == self.participant_id:
            return
        session = self.store.value.session
        started_at = session.started_at if session is not None else None
        if self.on_violation_banner is not None:
            stayed = None
            if started_at is not None:
                stayed = build_wall_entry(event, name, started_at).stayed_seconds
            self.on_violation_banner(
                ViolationBanner(
                    participant_name=name, event=event, stayed_seconds=stayed
                )
            )
        if event.event_type.is_break and started_at is not None:
            wall = self.store.value.wall_of_shame
            if any(entry.event_id == event.id for entry in wall):
                return
            self.store.update(
                wall_of_shame=[*wall, build_wall_entry(event, name, started_at)]
            )

    async def _load_wall_of_shame(self, session: Session) -> None:
        if session.started_at is None:
            return
        events = await self.backend.list_break_events(self.session_id)
        entries: list[WallOfShameEntry] = [
            build_wall_entry(
                event,
                self.participant_names.get(
                    event.participant_id, UNKNOWN_PARTICIPANT_NAME
                ),
                session.started_at,
            )
            for event in events
        ]
        self.store.update(wall_of_shame=entries)

    async def _load_initial_state(self) -> Session | None:
        session = await self.backend.get_session(self.session_id)
        participants = await self.backend.list_participants(self.session_id)
        self._set_participants(participants)
        if session is not None:
            self._apply_session(session)
            await self._load_wall_of_shame(session)
        return session

    async def _reload_initial_state(self) -> None:
        interval = self.poller.polling_interval_ms / 1000
        while not self._finished:
            await asyncio.sleep(interval)
            try:
                session = await self._load_initial_state()
            except Exception:
                _logger.exception(
                    "Initial load retry failed for session %s", self.session_id
                )
                continue
            if session is not None:
                await self._begin_timer(session)
            return

    async def _begin_timer(self, session: Session) -> None:
        if session.started_at is None:
            return
        await self.timer.tick()
        if not self._finished:
            self.timer.start()

    def _publish_remaining(self, remaining: int) -> None:
        self.store.update(remaining_seconds=remaining)
