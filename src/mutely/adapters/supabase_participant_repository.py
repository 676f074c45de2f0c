"""Supabase-backed participant repository."""

from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from supabase import Client

from mutely.adapters.records import PARTICIPANT_COLUMNS, parse_participant
from mutely.domain.sessions import Participant, ParticipantRole
from mutely.services.sessions import ParticipantRepository


@dataclass
class SupabaseParticipantRepository(ParticipantRepository):
    """Supabase implementation for participants."""

    client: Client

    def create_participant(  # noqa: PLR0913
        self,
        participant_id: UUID,
        session_id: UUID,
        name: str,
        role: ParticipantRole,
        created_at: datetime,
    ) -> Participant:
        """Create a participant row and return it."""
        response = (
            self.client.table("participants")
            .insert(
                {
                    "id": str(participant_id),
                    "session_id": str(session_id),
                    "name": name,
                    "role": role.value,
                    "violation_count": 0,
                    "is_active": True,
                    "last_violation_at": None,
                    "created_at": created_at.isoformat(),
                }
            )
            .execute()
        )
        if not response.data:
            raise RuntimeError("Failed to create participant")
        return parse_participant(response.data[0])

    def get_participant(self, participant_id: UUID) -> Participant | None:
        """Return a participant by id, if present."""
        response = (
            self.client.table("participants")
            .select(PARTICIPANT_COLUMNS)
            .eq("id", str(participant_id))
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return parse_participant(response.data[0])

    def list_active_participants(self, session_id: UUID) -> list[Participant]:
        """Return active participants, oldest first."""
        response = (
            self.client.table("participants")
            .select(PARTICIPANT_COLUMNS)
            .eq("session_id", str(session_id))
            .eq("is_active", True)
            .order("created_at", desc=False)
            .execute()
        )
        return [parse_participant(row) for row in response.data or []]

    def update_violation_stats(
        self, participant_id: UUID, violation_count: int, last_violation_at: datetime
    ) -> None:
        """Store the violation counter and last violation time."""
        self.client.table("participants").update(
            {
                "violation_count": violation_count,
                "last_violation_at": last_violation_at.isoformat(),
            }
        ).eq("id", str(participant_id)).execute()

    def mark_inactive(self, participant_id: UUID) -> bool:
        """Soft-delete a participant."""
        response = (
            self.client.table("participants")
            .update({"is_active": False})
            .eq("id", str(participant_id))
            .execute()
        )
        return bool(response.data)
