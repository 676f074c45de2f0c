"""Foreground violation detection.

The host environment cannot tell "screen locked" apart from "switched to
another app": both look like active -> background -> active. A fixed
protection window separates the two. Returning before the window closes is
treated as a lock screen; returning after it is a violation.

Classification is a pure function over an immutable tracking state so it can
be tested without any environment. ``ViolationDetector`` is the thin shell
that feeds it app-state changes and performs the injected side effects.
"""

import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from mutely.domain.results import LogViolationResult
from mutely.domain.sessions import ViolationEventType
from mutely.services.observable import AppState, AppStateEvents, Unsubscribe

PROTECTION_WINDOW_SECONDS = 5.0

_logger = logging.getLogger(__name__)

LogViolation = Callable[[ViolationEventType], Awaitable[LogViolationResult | None]]


class Verdict(str, Enum):
    """What a single app-state transition means."""

    NOT_TRACKED = "not_tracked"
    NO_CHANGE = "no_change"
    ENTERED_BACKGROUND = "entered_background"
    PROTECTED_RETURN = "protected_return"
    TRANSIENT_RETURN = "transient_return"
    VIOLATION = "violation"


@dataclass(frozen=True)
class TrackingState:
    """Transition-tracking state carried between app-state changes."""

    app_state: AppState = AppState.ACTIVE
    background_at: float | None = None
    was_backgrounded: bool = False


@dataclass(frozen=True)
class Classification:
    verdict: Verdict
    away_seconds: float | None = None


def classify_transition(
    tracking: TrackingState,
    next_state: AppState,
    now: float,
    *,
    tracking_enabled: bool = True,
    protection_window_seconds: float = PROTECTION_WINDOW_SECONDS,
) -> tuple[TrackingState, Classification]:
    """Classify one app-state change and return the next tracking state."""
    if not tracking_enabled:
        return TrackingState(app_state=next_state), Classification(Verdict.NOT_TRACKED)

    previous = tracking.app_state
    if next_state is AppState.BACKGROUND:
        if previous is AppState.BACKGROUND:
            return tracking, Classification(Verdict.NO_CHANGE)
        return (
            TrackingState(
                app_state=next_state, background_at=now, was_backgrounded=True
            ),
            Classification(Verdict.ENTERED_BACKGROUND),
        )

    if next_state is AppState.ACTIVE:
        if tracking.was_backgrounded and tracking.background_at is not None:
            away = max(0.0, now - tracking.background_at)
            verdict = (
                Verdict.VIOLATION
                if away >= protection_window_seconds
                else Verdict.PROTECTED_RETURN
            )
            return TrackingState(app_state=next_state), Classification(verdict, away)
        if previous is AppState.INACTIVE:
            return (
                TrackingState(app_state=next_state),
                Classification(Verdict.TRANSIENT_RETURN),
            )
        return TrackingState(app_state=next_state), Classification(Verdict.NO_CHANGE)

    # Inactive keeps any pending background timestamp: active -> background
    # -> inactive -> active is still a trip away from the app.
    return (
        TrackingState(
            app_state=next_state,
            background_at=tracking.background_at,
            was_backgrounded=tracking.was_backgrounded,
        ),
        Classification(Verdict.NO_CHANGE),
    )


class ViolationDetector:
    """Watches app-state changes and reports violations.

    Hosts are never tracked. Tracking only happens while ``enabled`` is true,
    which callers keep in sync with the session being in the running phase.
    """

    def __init__(  # noqa: PLR0913
        self,
        on_log_violation: LogViolation,
        on_show_return_warning: Callable[[], None],
        *,
        enabled: bool = True,
        is_host: bool = False,
        protection_window_seconds: float = PROTECTION_WINDOW_SECONDS,
        clock: Callable[[], float] = time.monotonic,
        initial_state: AppState = AppState.ACTIVE,
    ) -> None:
        self.on_log_violation = on_log_violation
        self.on_show_return_warning = on_show_return_warning
        self.protection_window_seconds = protection_window_seconds
        self._clock = clock
        self._enabled = enabled
        self._is_host = is_host
        self._tracking = TrackingState(app_state=initial_state)
        self._unsubscribe: Unsubscribe | None = None

    @property
    def is_enabled(self) -> bool:
        return self._enabled and not self._is_host

    @property
    def tracking(self) -> TrackingState:
        return self._tracking

    def configure(
        self, *, enabled: bool | None = None, is_host: bool | None = None
    ) -> None:
        """Change the activation flags; disabling drops any pending tracking."""
        if enabled is not None:
            self._enabled = enabled
        if is_host is not None:
            self._is_host = is_host
        if not self.is_enabled:
            self._tracking = TrackingState(app_state=self._tracking.app_state)

    def attach(self, source: AppStateEvents) -> None:
        """Start receiving app-state changes from the environment."""
        self.detach()
        self._tracking = TrackingState(app_state=source.current)
        self._unsubscribe = source.subscribe(self.handle_app_state_change)

    def detach(self) -> None:
        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

    async def handle_app_state_change(self, next_state: AppState) -> Classification:
        """Classify a transition and run the side effects it calls for."""
        previous = self._tracking.app_state
        self._tracking, classification = classify_transition(
            self._tracking,
            next_state,
            self._clock(),
            tracking_enabled=self.is_enabled,
            protection_window_seconds=self.protection_window_seconds,
        )
        match classification.verdict:
            case Verdict.VIOLATION:
                _logger.info(
                    "Violation: away %.1fs >= %.1fs",
                    classification.away_seconds,
                    self.protection_window_seconds,
                )
                await self._log(ViolationEventType.BACKGROUND_SWITCH)
                self.on_show_return_warning()
            case Verdict.PROTECTED_RETURN:
                _logger.info(
                    "No violation: away %.1fs < %.1fs",
                    classification.away_seconds,
                    self.protection_window_seconds,
                )
            case Verdict.ENTERED_BACKGROUND:
                _logger.debug("App moved to background from %s", previous.value)
            case Verdict.TRANSIENT_RETURN | Verdict.NO_CHANGE | Verdict.NOT_TRACKED:
                pass
        return classification

    async def trigger_leave_violation(self) -> LogViolationResult | None:
        """Log an explicit leave, bypassing the protection window."""
        if not self.is_enabled:
            return None
        _logger.info("Manual leave violation")
        return await self.on_log_violation(ViolationEventType.LEFT_SESSION)

    async def _log(self, event_type: ViolationEventType) -> None:
        try:
            result = await self.on_log_violation(event_type)
        except Exception:
            _logger.exception("Violation logging raised for %s", event_type.value)
            return
        if result is not None and not result.success:
            _logger.warning("Violation logging failed: %s", result.error)
