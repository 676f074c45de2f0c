"""Polling-based session sync with edge-triggered change callbacks.

Every tick re-fetches the full session, roster and event list and diffs them
against the last committed snapshot, so a missed or failed tick heals itself
on the next one. Within a tick callbacks fire in a fixed order: session
changes, then roster changes, then new violation events.
"""

import asyncio
import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass, replace
from typing import Protocol
from uuid import UUID

from mutely.domain.sessions import Participant, Session, SessionPhase, ViolationEvent

DEFAULT_POLLING_INTERVAL_MS = 2000
PLACEHOLDER_NAME = "Someone"

_logger = logging.getLogger(__name__)


class SessionReader(Protocol):
    """Read side of the session store used for syncing."""

    async def get_session(self, session_id: UUID) -> Session | None:
        """Return the session, or None if it does not exist."""

    async def list_participants(self, session_id: UUID) -> list[Participant]:
        """Return active participants, oldest first."""

    async def list_violation_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Return all violation events, newest first."""


@dataclass
class PollerCallbacks:
    """Optional change callbacks; any left as None is skipped."""

    on_participant_join: Callable[[Participant], None] | None = None
    on_participant_leave: Callable[[Participant], None] | None = None
    on_participant_update: Callable[[Participant], None] | None = None
    on_session_start: Callable[[Session], None] | None = None
    on_session_end: Callable[[Session], None] | None = None
    on_session_update: Callable[[Session], None] | None = None
    on_violation_event: Callable[[ViolationEvent, str], None] | None = None


class SyncPoller:
    """Keeps one view in sync with a session by polling the store."""

    def __init__(  # noqa: PLR0913
        self,
        reader: SessionReader,
        session_id: UUID,
        callbacks: PollerCallbacks | None = None,
        participant_names: Mapping[UUID, str] | None = None,
        polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
    ) -> None:
        self.reader = reader
        self.session_id = session_id
        self.callbacks = callbacks or PollerCallbacks()
        # Owned by the caller and read live on every tick.
        self.participant_names: Mapping[UUID, str] = (
            participant_names if participant_names is not None else {}
        )
        self.polling_interval_ms = polling_interval_ms
        self._last_session: Session | None = None
        self._last_participants: dict[UUID, Participant] = {}
        self._last_event_count = 0
        self._generation = 0
        self._runner: asyncio.Task[None] | None = None
        self._ticks: set[asyncio.Task[None]] = set()

    @property
    def is_active(self) -> bool:
        return self._runner is not None and not self._runner.done()

    @property
    def last_session(self) -> Session | None:
        return self._last_session

    @property
    def last_participants(self) -> dict[UUID, Participant]:
        return dict(self._last_participants)

    @property
    def last_event_count(self) -> int:
        return self._last_event_count

    def start(self) -> "SyncPoller":
        """Poll immediately, then once per interval until stopped."""
        if self.is_active:
            return self
        self._generation += 1
        self._last_session = None
        self._last_participants = {}
        self._last_event_count = 0
        self._runner = asyncio.get_running_loop().create_task(
            self._run(self._generation)
        )
        _logger.info("Polling started for session %s", self.session_id)
        return self

    def stop(self) -> None:
        """Stop polling and forget every snapshot.

        Ticks already in flight keep running but their results are dropped.
        """
        self._generation += 1
        if self._runner is not None:
            self._runner.cancel()
            self._runner = None
        self._last_session = None
        self._last_participants = {}
        self._last_event_count = 0
        _logger.info("Polling stopped for session %s", self.session_id)

    async def poll_once(self) -> None:
        """Run one fetch-diff-notify tick."""
        await self._tick(self._generation)

    async def refresh_now(self) -> None:
        """Refresh session and roster snapshots outside the polling cadence.

        Violation events are not diffed here, so a manual refresh never
        replays event callbacks. A fetch that finds no session keeps the last
        session snapshot rather than clearing it, so the next tick still
        diffs against the last known record.
        """
        generation = self._generation
        try:
            session = await self.reader.get_session(self.session_id)
            participants = await self.reader.list_participants(self.session_id)
        except Exception:
            _logger.exception("Refresh failed for session %s", self.session_id)
            return
        if generation != self._generation:
            return
        if session is not None:
            self._emit(self.callbacks.on_session_update, session)
            if generation != self._generation:
                return
            self._last_session = session
        self._last_participants = {p.id: p for p in participants}

    async def _run(self, generation: int) -> None:
        interval = self.polling_interval_ms / 1000
        while generation == self._generation:
            # Ticks are not awaited here; a slow tick may overlap the next one.
            task = asyncio.get_running_loop().create_task(self._tick(generation))
            self._ticks.add(task)
            task.add_done_callback(self._ticks.discard)
            await asyncio.sleep(interval)

    async def _tick(self, generation: int) -> None:
        try:
            session = await self.reader.get_session(self.session_id)
            if session is None or generation != self._generation:
                return
            if not self._diff_session(session, generation):
                return

            participants = await self.reader.list_participants(self.session_id)
            if generation != self._generation:
                return
            if not self._diff_participants(participants, generation):
                return

            events = await self.reader.list_violation_events(self.session_id)
            if generation != self._generation:
                return
            self._diff_events(events, generation)
        except Exception:
            _logger.exception("Polling error for session %s", self.session_id)

    # Each diff returns False as soon as a callback has stopped the poller;
    # nothing is emitted or committed after that.
    def _diff_session(self, session: Session, generation: int) -> bool:
        previous = self._last_session
        if previous is not None:
            if previous.phase is not session.phase:
                match session.phase:
                    case SessionPhase.RUNNING:
                        self._emit(self.callbacks.on_session_start, session)
                    case SessionPhase.ENDED:
                        self._emit(self.callbacks.on_session_end, session)
                    case SessionPhase.WAITING:
                        pass
                if generation != self._generation:
                    return False
            if previous != session:
                self._emit(self.callbacks.on_session_update, session)
                if generation != self._generation:
                    return False
        self._last_session = session
        return True

    def _diff_participants(
        self, participants: list[Participant], generation: int
    ) -> bool:
        previous_map = self._last_participants
        current_map = {participant.id: participant for participant in participants}
        changes: list[tuple[Callable[[Participant], None] | None, Participant]] = []
        for participant in participants:
            previous = previous_map.get(participant.id)
            if previous is None:
                changes.append((self.callbacks.on_participant_join, participant))
            elif previous.is_active and not participant.is_active:
                changes.append((self.callbacks.on_participant_leave, participant))
            elif previous.violation_count != participant.violation_count:
                changes.append((self.callbacks.on_participant_update, participant))
        # The roster only lists active participants, so a soft leave shows up
        # as a previously active id that is no longer returned.
        for participant_id, previous in previous_map.items():
            if participant_id not in current_map and previous.is_active:
                changes.append(
                    (
                        self.callbacks.on_participant_leave,
                        replace(previous, is_active=False),
                    )
                )
        for callback, participant in changes:
            self._emit(callback, participant)
            if generation != self._generation:
                return False
        self._last_participants = current_map
        return True

    def _diff_events(self, events: list[ViolationEvent], generation: int) -> None:
        new_count = len(events) - self._last_event_count
        if new_count <= 0:
            return
        for event in reversed(events[:new_count]):
            name = self.participant_names.get(event.participant_id) or PLACEHOLDER_NAME
            if self.callbacks.on_violation_event is not None:
                self.callbacks.on_violation_event(event, name)
            if generation != self._generation:
                return
        self._last_event_count = len(events)

    @staticmethod
    def _emit(callback: Callable[..., None] | None, value: object) -> None:
        if callback is not None:
            callback(value)


def watch_session(  # noqa: PLR0913
    reader: SessionReader,
    session_id: UUID,
    callbacks: PollerCallbacks | None = None,
    participant_names: Mapping[UUID, str] | None = None,
    polling_interval_ms: int = DEFAULT_POLLING_INTERVAL_MS,
) -> SyncPoller:
    """Create and start a poller for a session."""
    return SyncPoller(
        reader,
        session_id,
        callbacks=callbacks,
        participant_names=participant_names,
        polling_interval_ms=polling_interval_ms,
    ).start()
