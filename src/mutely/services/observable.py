"""Small observable stores with explicit subscribe/unsubscribe handles."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Generic, TypeVar

from mutely.domain.sessions import Participant, Session
from mutely.domain.summary import WallOfShameEntry

T = TypeVar("T")

Unsubscribe = Callable[[], None]


class Observable(Generic[T]):
    """Holds a value and notifies listeners whenever it is replaced."""

    def __init__(self, initial: T, *, replay: bool = True) -> None:
        self._value = initial
        self._replay = replay
        self._listeners: list[Callable[[T], None]] = []

    @property
    def value(self) -> T:
        return self._value

    def subscribe(self, listener: Callable[[T], None]) -> Unsubscribe:
        """Register a listener; the returned handle removes it again."""
        self._listeners.append(listener)
        if self._replay:
            listener(self._value)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def set(self, value: T) -> None:
        """Replace the value and notify every listener."""
        self._value = value
        for listener in list(self._listeners):
            listener(value)


class AppState(str, Enum):
    """Foreground state reported by the host environment."""

    ACTIVE = "active"
    INACTIVE = "inactive"
    BACKGROUND = "background"


AppStateListener = Callable[[AppState], Awaitable[None]]


class AppStateEvents:
    """Fans host-environment app-state changes out to async listeners."""

    def __init__(self, initial: AppState = AppState.ACTIVE) -> None:
        self.current = initial
        self._listeners: list[AppStateListener] = []

    def subscribe(self, listener: AppStateListener) -> Unsubscribe:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def publish(self, state: AppState) -> None:
        """Deliver a state change to listeners in subscription order."""
        self.current = state
        for listener in list(self._listeners):
            await listener(state)


@dataclass(frozen=True)
class LiveSessionState:
    """Snapshot of what a live session view renders."""

    session: Session | None = None
    participants: list[Participant] = field(default_factory=list)
    wall_of_shame: list[WallOfShameEntry] = field(default_factory=list)
    remaining_seconds: int | None = None


class SessionStateStore(Observable[LiveSessionState]):
    """Observable store for one live session view."""

    def __init__(self) -> None:
        super().__init__(LiveSessionState())

    def update(self, **changes: object) -> LiveSessionState:
        """Replace selected fields and publish the new snapshot."""
        state = replace(self.value, **changes)
        self.set(state)
        return state

    def reset(self) -> None:
        self.set(LiveSessionState())
