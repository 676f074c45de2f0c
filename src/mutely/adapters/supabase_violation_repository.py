"""Supabase repository for violation events."""

from dataclasses import dataclass
from uuid import UUID

from supabase import Client

from mutely.adapters.records import EVENT_COLUMNS, parse_event
from mutely.domain.sessions import ViolationEvent, ViolationEventType
from mutely.services.sessions import ViolationEventRepository


@dataclass
class SupabaseViolationEventRepository(ViolationEventRepository):
    """Supabase implementation for the append-only violation log."""

    client: Client

    def create_event(
        self,
        session_id: UUID,
        participant_id: UUID,
        event_type: ViolationEventType,
    ) -> ViolationEvent:
        """Insert an event row; id and created_at come from the database."""
        response = (
            self.client.table("violation_events")
            .insert(
                {
                    "session_id": str(session_id),
                    "participant_id": str(participant_id),
                    "event_type": event_type.value,
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create violation event")
        return parse_event(response.data[0])

    def list_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Return events for a session, newest first."""
        response = (
            self.client.table("violation_events")
            .select(EVENT_COLUMNS)
            .eq("session_id", str(session_id))
            .order("created_at", desc=True)
            .execute()
        )
        return [parse_event(row) for row in response.data or []]

    def list_events_by_type(
        self, session_id: UUID, event_types: tuple[ViolationEventType, ...]
    ) -> list[ViolationEvent]:
        """Return events of the given types, oldest first."""
        response = (
            self.client.table("violation_events")
            .select(EVENT_COLUMNS)
            .eq("session_id", str(session_id))
            .in_("event_type", [kind.value for kind in event_types])
            .order("created_at", desc=False)
            .execute()
        )
        return [parse_event(row) for row in response.data or []]
