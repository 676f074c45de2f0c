"""Supabase-backed session repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from mutely.adapters.records import SESSION_COLUMNS, parse_session
from mutely.domain.sessions import Session, SessionPhase
from mutely.services.sessions import SessionRepository

_TIMESTAMP_FIELDS = {
    SessionPhase.RUNNING: "started_at",
    SessionPhase.ENDED: "ended_at",
}


@dataclass
class SupabaseSessionRepository(SessionRepository):
    """Supabase implementation for sessions."""

    client: Client

    def create_session(  # noqa: PLR0913
        self,
        session_id: UUID,
        code: str,
        name: str,
        duration_minutes: int,
        host_id: UUID,
        created_at: datetime,
    ) -> Session:
        """Create a session row and return it."""
        response = (
            self.client.table("sessions")
            .insert(
                {
                    "id": str(session_id),
                    "code": code,
                    "name": name,
                    "duration_minutes": duration_minutes,
                    "host_id": str(host_id),
                    "phase": SessionPhase.WAITING.value,
                    "started_at": None,
                    "ended_at": None,
                    "created_at": created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create session")
        return parse_session(response.data[0])

    def get_session(self, session_id: UUID) -> Session | None:
        """Return a session by id, if present."""
        response = (
            self.client.table("sessions")
            .select(SESSION_COLUMNS)
            .eq("id", str(session_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_session(response.data[0])

    def get_session_by_code(self, code: str) -> Session | None:
        """Return the newest session using a join code."""
        response = (
            self.client.table("sessions")
            .select(SESSION_COLUMNS)
            .eq("code", code)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_session(response.data[0])

    def update_phase(
        self,
        session_id: UUID,
        phase: SessionPhase,
        changed_at: datetime,
        from_phases: tuple[SessionPhase, ...],
    ) -> bool:
        """Conditionally move a session into a new phase."""
        payload: dict[str, object] = {"phase": phase.value}
        timestamp_field = _TIMESTAMP_FIELDS.get(phase)
        if timestamp_field is not None:
            payload[timestamp_field] = changed_at.isoformat()
        response = (
            self.client.table("sessions")
            .update(payload)
            .eq("id", str(session_id))
            .in_("phase", [p.value for p in from_phases])
            .execute()
        )
        return bool(response.data)

    def delete_session(self, session_id: UUID) -> None:
        """Delete a session row."""
        self.client.table("sessions").delete().eq("id", str(session_id)).execute()
