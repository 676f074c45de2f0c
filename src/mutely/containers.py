"""Dependency container wiring for the application."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from uuid import UUID

from supabase import create_client

from mutely.adapters.mutely_api_client import HttpxMutelyClient
from mutely.adapters.supabase_participant_repository import (
    SupabaseParticipantRepository,
)
from mutely.adapters.supabase_session_repository import SupabaseSessionRepository
from mutely.adapters.supabase_violation_repository import (
    SupabaseViolationEventRepository,
)
from mutely.config import Settings
from mutely.services.live import LiveSessionController, SessionBackend, ViolationBanner
from mutely.services.observable import AppStateEvents
from mutely.services.sessions import SessionService


@dataclass
class AppContainer:
    """Holds server-side dependencies."""

    settings: Settings
    session_service: SessionService
    close_resources: Callable[[], Awaitable[None]]


@dataclass
class DeviceContainer:
    """Holds dependencies for a device running a live session view."""

    settings: Settings
    backend: SessionBackend
    app_state_events: AppStateEvents
    close_resources: Callable[[], Awaitable[None]]

    def live_session(  # noqa: PLR0913
        self,
        session_id: UUID,
        participant_id: UUID,
        *,
        is_host: bool,
        on_navigate_summary: Callable[[], None],
        on_show_return_warning: Callable[[], None] | None = None,
        on_violation_banner: Callable[[ViolationBanner], None] | None = None,
    ) -> LiveSessionController:
        """Create a live session controller using the configured timings."""
        return LiveSessionController(
            self.backend,
            session_id,
            participant_id,
            is_host=is_host,
            app_state_events=self.app_state_events,
            on_navigate_summary=on_navigate_summary,
            on_show_return_warning=on_show_return_warning,
            on_violation_banner=on_violation_banner,
            polling_interval_ms=self.settings.polling_interval_ms,
            protection_window_seconds=self.settings.protection_window_seconds,
        )


def build_container(settings: Settings | None = None) -> AppContainer:
    """Create the default server-side dependency container."""
    resolved_settings = settings or Settings()
    supabase_client = create_client(
        resolved_settings.supabase_url, resolved_settings.supabase_service_key
    )
    session_service = SessionService(
        session_repository=SupabaseSessionRepository(supabase_client),
        participant_repository=SupabaseParticipantRepository(supabase_client),
        event_repository=SupabaseViolationEventRepository(supabase_client),
        default_session_name=resolved_settings.default_session_name,
        default_duration_minutes=resolved_settings.default_duration_minutes,
    )

    async def close_resources() -> None:
        return None

    return AppContainer(
        settings=resolved_settings,
        session_service=session_service,
        close_resources=close_resources,
    )


def build_device_container(settings: Settings | None = None) -> DeviceContainer:
    """Create the dependency container for a device talking to the API."""
    resolved_settings = settings or Settings()
    api_client = HttpxMutelyClient.create(resolved_settings.api_base_url)

    async def close_resources() -> None:
        await api_client.close()

    return DeviceContainer(
        settings=resolved_settings,
        backend=api_client,
        app_state_events=AppStateEvents(),
        close_resources=close_resources,
    )
