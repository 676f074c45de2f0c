"""Tests for the live session controller."""

import asyncio
from dataclasses import dataclass, field
from datetime import timedelta
from uuid import UUID, uuid4

from mutely.domain.results import LogViolationResult
from mutely.domain.sessions import (
    ParticipantRole,
    Session,
    SessionPhase,
    ViolationEventType,
)
from mutely.services.live import LiveSessionController, SessionBackend, ViolationBanner
from mutely.services.observable import AppState, AppStateEvents
from mutely.services.sessions import SessionService
from mutely.services.timer import SessionTimer
from tests.conftest import (
    T0,
    FakeClock,
    InMemoryParticipantRepository,
    InMemorySessionRepository,
    InMemoryViolationEventRepository,
)


@dataclass
class World:
    sessions: InMemorySessionRepository
    participants: InMemoryParticipantRepository
    events: InMemoryViolationEventRepository
    service: SessionService
    session_id: UUID
    host_id: UUID
    guest_id: UUID
    other_id: UUID


@dataclass
class Harness:
    controller: LiveSessionController
    app_state: AppStateEvents
    navigations: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)
    banners: list[ViolationBanner] = field(default_factory=list)

    async def trip_away(self) -> None:
        await self.app_state.publish(AppState.BACKGROUND)
        await self.app_state.publish(AppState.ACTIVE)


@dataclass
class ControlledBackend:
    """Session service whose session fetch can fail and whose logging can stall."""

    service: SessionService
    error: Exception | None = None
    gate: asyncio.Event | None = None

    async def get_session(self, session_id: UUID) -> Session | None:
        if self.error is not None:
            raise self.error
        return await self.service.get_session(session_id)

    async def log_violation(
        self,
        session_id: UUID,
        participant_id: UUID,
        event_type: ViolationEventType,
    ) -> LogViolationResult:
        if self.gate is not None:
            await self.gate.wait()
        return await self.service.log_violation(session_id, participant_id, event_type)

    def __getattr__(self, name: str) -> object:
        return getattr(self.service, name)


def _world(*, running: bool = True, duration_minutes: int = 30) -> World:
    sessions = InMemorySessionRepository()
    participants = InMemoryParticipantRepository()
    events = InMemoryViolationEventRepository()
    session_id, host_id, guest_id, other_id = uuid4(), uuid4(), uuid4(), uuid4()
    sessions.create_session(
        session_id, "123456", "Focus", duration_minutes, host_id, T0
    )
    for participant_id, name, role in (
        (host_id, "Hana", ParticipantRole.HOST),
        (guest_id, "Gus", ParticipantRole.GUEST),
        (other_id, "Olga", ParticipantRole.GUEST),
    ):
        participants.create_participant(participant_id, session_id, name, role, T0)
    if running:
        sessions.update_phase(
            session_id, SessionPhase.RUNNING, T0, (SessionPhase.WAITING,)
        )
    service = SessionService(
        session_repository=sessions,
        participant_repository=participants,
        event_repository=events,
    )
    return World(
        sessions, participants, events, service, session_id, host_id, guest_id, other_id
    )


def _harness(
    world: World,
    participant_id: UUID,
    *,
    is_host: bool = False,
    window: float = 0.0,
    clock: FakeClock | None = None,
    backend: SessionBackend | None = None,
    polling_interval_ms: int = 60_000,
) -> Harness:
    app_state = AppStateEvents()
    navigations: list[str] = []
    warnings: list[str] = []
    banners: list[ViolationBanner] = []

    async def noop() -> None:
        return None

    controller = LiveSessionController(
        backend or world.service,
        world.session_id,
        participant_id,
        is_host=is_host,
        app_state_events=app_state,
        on_navigate_summary=lambda: navigations.append("summary"),
        on_show_return_warning=lambda: warnings.append("warn"),
        on_violation_banner=banners.append,
        polling_interval_ms=polling_interval_ms,
        protection_window_seconds=window,
        timer=SessionTimer(noop, now=(clock or FakeClock()).now),
    )
    return Harness(controller, app_state, navigations, warnings, banners)


def test_start_loads_session_roster_and_wall() -> None:
    world = _world()
    world.events.create_event(
        world.session_id, world.other_id, ViolationEventType.BACKGROUND_SWITCH
    )
    world.events.create_event(
        world.session_id, world.other_id, ViolationEventType.LEFT_SESSION_SCREEN
    )
    world.events.create_event(
        world.session_id, world.guest_id, ViolationEventType.LEFT_SESSION
    )
    harness = _harness(world, world.guest_id)

    async def scenario() -> None:
        await harness.controller.start()
        harness.controller.stop()

    asyncio.run(scenario())

    state = harness.controller.store.value
    assert state.session is not None
    assert state.session.phase is SessionPhase.RUNNING
    assert sorted(p.name for p in state.participants) == ["Gus", "Hana", "Olga"]
    assert [(e.participant_name, e.stayed_seconds) for e in state.wall_of_shame] == [
        ("Olga", 0),
        ("Gus", 2),
    ]
    assert state.remaining_seconds == 30 * 60
    assert harness.controller.detector.is_enabled


def test_guest_trip_away_is_logged_and_warned() -> None:
    world = _world()
    harness = _harness(world, world.guest_id)

    async def scenario() -> None:
        await harness.controller.start()
        await harness.trip_away()
        harness.controller.stop()

    asyncio.run(scenario())

    assert [e.event_type for e in world.events.events] == [
        ViolationEventType.BACKGROUND_SWITCH
    ]
    assert world.participants.participants[world.guest_id].violation_count == 1
    assert harness.warnings == ["warn"]


def test_short_trip_inside_window_is_not_logged() -> None:
    world = _world()
    harness = _harness(world, world.guest_id, window=3600)

    async def scenario() -> None:
        await harness.controller.start()
        await harness.trip_away()
        harness.controller.stop()

    asyncio.run(scenario())

    assert world.events.events == []
    assert harness.warnings == []


def test_host_is_never_logged() -> None:
    world = _world()
    harness = _harness(world, world.host_id, is_host=True)

    async def scenario() -> None:
        await harness.controller.start()
        await harness.trip_away()
        await harness.controller.handle_screen_blur()
        harness.controller.stop()

    asyncio.run(scenario())

    assert world.events.events == []
    assert harness.warnings == []


def test_detection_turns_on_when_session_starts() -> None:
    world = _world(running=False)
    harness = _harness(world, world.guest_id)
    controller = harness.controller

    async def scenario() -> None:
        await controller.start()
        await harness.trip_away()
        blurred = await controller.handle_screen_blur()
        assert blurred is not None and blurred.success
        await controller.poller.poll_once()
        assert await world.service.start_session(world.session_id)
        await controller.poller.poll_once()
        assert controller.timer.is_running
        await harness.trip_away()
        controller.stop()

    asyncio.run(scenario())

    assert len(world.events.events) == 1
    assert controller.store.value.session is not None
    assert controller.store.value.session.phase is SessionPhase.RUNNING


def test_remote_end_navigates_once() -> None:
    world = _world()
    harness = _harness(world, world.guest_id)
    controller = harness.controller

    async def scenario() -> None:
        await controller.start()
        await controller.poller.poll_once()
        assert await world.service.end_session(world.session_id)
        await controller.poller.poll_once()
        await controller.poller.poll_once()
        assert await controller.handle_screen_blur() is None

    asyncio.run(scenario())

    assert harness.navigations == ["summary"]
    assert controller.finished
    assert not controller.poller.is_active
    assert not controller.detector.is_enabled
    state = controller.store.value
    assert state.session is not None and state.session.phase is SessionPhase.ENDED


def test_host_timer_completion_ends_session() -> None:
    world = _world(duration_minutes=1)
    clock = FakeClock(current=T0 + timedelta(seconds=61))
    harness = _harness(world, world.host_id, is_host=True, clock=clock)

    asyncio.run(harness.controller.start())

    session = world.sessions.sessions[world.session_id]
    assert session.phase is SessionPhase.ENDED
    assert session.ended_at is not None
    assert harness.navigations == ["summary"]
    assert harness.controller.store.value.remaining_seconds == 0
    assert not harness.controller.timer.is_running


def test_guest_timer_completion_leaves_session_to_host() -> None:
    world = _world(duration_minutes=1)
    clock = FakeClock(current=T0 + timedelta(seconds=90))
    harness = _harness(world, world.guest_id, clock=clock)

    asyncio.run(harness.controller.start())

    assert world.sessions.sessions[world.session_id].phase is SessionPhase.RUNNING
    assert harness.navigations == ["summary"]


def test_leave_logs_once_and_suppresses_screen_blur() -> None:
    world = _world()
    harness = _harness(world, world.guest_id)
    controller = harness.controller

    async def scenario() -> None:
        await controller.start()
        result = await controller.leave()
        assert result is not None and result.success
        assert await controller.handle_screen_blur() is None

    asyncio.run(scenario())

    assert [e.event_type for e in world.events.events] == [
        ViolationEventType.LEFT_SESSION
    ]
    assert not controller.poller.is_active


def test_screen_blur_logs_left_session_screen() -> None:
    world = _world()
    harness = _harness(world, world.guest_id)

    async def scenario() -> None:
        await harness.controller.start()
        await harness.controller.handle_screen_blur()
        harness.controller.stop()

    asyncio.run(scenario())

    assert [e.event_type for e in world.events.events] == [
        ViolationEventType.LEFT_SESSION_SCREEN
    ]


def test_others_violations_raise_banners_and_fill_wall_once() -> None:
    world = _world()
    harness = _harness(world, world.guest_id)
    controller = harness.controller

    async def scenario() -> None:
        await controller.start()
        await controller.poller.poll_once()
        for participant_id, event_type in (
            (world.other_id, ViolationEventType.BACKGROUND_SWITCH),
            (world.guest_id, ViolationEventType.BACKGROUND_SWITCH),
            (world.other_id, ViolationEventType.LEFT_SESSION_SCREEN),
        ):
            await world.service.log_violation(
                world.session_id, participant_id, event_type
            )
        await controller.poller.poll_once()
        controller.poller.stop()
        await controller.poller.poll_once()
        controller.stop()

    asyncio.run(scenario())

    assert [(b.participant_name, b.event.event_type) for b in harness.banners] == [
        ("Olga", ViolationEventType.BACKGROUND_SWITCH),
        ("Olga", ViolationEventType.LEFT_SESSION_SCREEN),
        ("Olga", ViolationEventType.BACKGROUND_SWITCH),
        ("Olga", ViolationEventType.LEFT_SESSION_SCREEN),
    ]
    assert harness.banners[0].stayed_seconds == 0
    wall = controller.store.value.wall_of_shame
    assert [(e.participant_name, e.event_type) for e in wall] == [
        ("Olga", ViolationEventType.BACKGROUND_SWITCH)
    ]


def test_departed_participant_keeps_their_name() -> None:
    world = _world()
    harness = _harness(world, world.guest_id)
    controller = harness.controller

    async def scenario() -> None:
        await controller.start()
        await controller.poller.poll_once()
        assert await world.service.leave_session(world.other_id)
        await controller.poller.poll_once()
        world.events.create_event(
            world.session_id, world.other_id, ViolationEventType.LEFT_SESSION
        )
        await controller.poller.poll_once()
        controller.stop()

    asyncio.run(scenario())

    assert [p.name for p in controller.store.value.participants] == ["Hana", "Gus"]
    assert [b.participant_name for b in harness.banners] == ["Olga"]


def test_failed_initial_load_still_polls_and_recovers() -> None:
    world = _world()
    backend = ControlledBackend(world.service, error=ConnectionError("offline"))
    harness = _harness(world, world.guest_id, backend=backend, polling_interval_ms=10)
    controller = harness.controller

    async def scenario() -> None:
        await controller.start()
        assert controller.poller.is_active
        assert controller.store.value.session is None
        backend.error = None
        await asyncio.sleep(0.1)
        controller.stop()

    asyncio.run(scenario())

    state = controller.store.value
    assert state.session is not None
    assert state.session.phase is SessionPhase.RUNNING
    assert controller.detector.is_enabled
    assert state.remaining_seconds == 30 * 60
    assert [p.name for p in state.participants] == ["Hana", "Gus", "Olga"]


def test_resume_corrects_countdown_before_violation_is_logged() -> None:
    world = _world()
    clock = FakeClock()
    backend = ControlledBackend(world.service)
    harness = _harness(world, world.guest_id, clock=clock, backend=backend)
    controller = harness.controller

    async def scenario() -> None:
        backend.gate = asyncio.Event()
        await controller.start()
        await asyncio.sleep(0)
        assert controller.store.value.remaining_seconds == 30 * 60
        clock.advance(10 * 60)
        await harness.app_state.publish(AppState.BACKGROUND)
        resumed = asyncio.create_task(harness.app_state.publish(AppState.ACTIVE))
        await asyncio.sleep(0)
        await asyncio.sleep(0)
        assert controller.store.value.remaining_seconds == 20 * 60
        assert world.events.events == []
        backend.gate.set()
        await resumed
        controller.stop()

    asyncio.run(scenario())

    assert len(world.events.events) == 1
    assert harness.warnings == ["warn"]
