"""HTTP client for devices talking to the Mutely API."""

from dataclasses import dataclass
from uuid import UUID

import httpx

from mutely.adapters.records import parse_event, parse_participant, parse_session
from mutely.domain.results import (
    CreatedSession,
    JoinResult,
    JoinStatus,
    LogViolationResult,
)
from mutely.domain.sessions import (
    Participant,
    Session,
    ViolationEvent,
    ViolationEventType,
)

_JOIN_STATUS_BY_CODE = {
    400: JoinStatus.INVALID_CODE,
    404: JoinStatus.NOT_FOUND,
    409: JoinStatus.ENDED,
}


@dataclass
class HttpxMutelyClient:
    """Session store client implemented with httpx.

    Reads raise on transport errors so pollers can log and retry on their next
    tick. Commands return result values like the server-side service does.
    """

    base_url: str
    http_client: httpx.AsyncClient
    timeout: float = 10

    @classmethod
    def create(cls, base_url: str) -> "HttpxMutelyClient":
        """Create a client with a managed httpx session."""
        return cls(base_url=base_url.rstrip("/"), http_client=httpx.AsyncClient())

    async def get_session(self, session_id: UUID) -> Session | None:
        """Fetch a session; None when the server reports 404."""
        response = await self.http_client.get(
            f"{self.base_url}/sessions/{session_id}", timeout=self.timeout
        )
        if response.status_code == httpx.codes.NOT_FOUND:
            return None
        response.raise_for_status()
        return parse_session(response.json()["session"])

    async def list_participants(self, session_id: UUID) -> list[Participant]:
        """Fetch active participants, oldest first."""
        response = await self.http_client.get(
            f"{self.base_url}/sessions/{session_id}/participants",
            timeout=self.timeout,
        )
        response.raise_for_status()
        return [parse_participant(row) for row in response.json()["participants"]]

    async def list_violation_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Fetch every violation event, newest first."""
        response = await self.http_client.get(
            f"{self.base_url}/sessions/{session_id}/events", timeout=self.timeout
        )
        response.raise_for_status()
        return [parse_event(row) for row in response.json()["events"]]

    async def list_break_events(self, session_id: UUID) -> list[ViolationEvent]:
        """Fetch break events, oldest first."""
        response = await self.http_client.get(
            f"{self.base_url}/sessions/{session_id}/events/breaks",
            timeout=self.timeout,
        )
        response.raise_for_status()
        return [parse_event(row) for row in response.json()["events"]]

    async def create_session(
        self,
        host_name: str,
        session_name: str | None = None,
        duration_minutes: int | None = None,
    ) -> CreatedSession | None:
        """Create a session; None when the server could not."""
        payload: dict[str, object] = {"host_name": host_name}
        if session_name is not None:
            payload["session_name"] = session_name
        if duration_minutes is not None:
            payload["duration_minutes"] = duration_minutes
        try:
            response = await self.http_client.post(
                f"{self.base_url}/sessions", json=payload, timeout=self.timeout
            )
            response.raise_for_status()
        except httpx.HTTPError:
            return None
        data = response.json()
        return CreatedSession(
            code=str(data["code"]),
            session_id=UUID(str(data["session_id"])),
            host_id=UUID(str(data["host_id"])),
        )

    async def join_session(self, code: str, name: str) -> JoinResult:
        """Join a session by code."""
        try:
            response = await self.http_client.post(
                f"{self.base_url}/sessions/join",
                json={"code": code, "name": name},
                timeout=self.timeout,
            )
        except httpx.HTTPError:
            return JoinResult(status=JoinStatus.FAILED)
        status = _JOIN_STATUS_BY_CODE.get(response.status_code)
        if status is not None:
            return JoinResult(status=status)
        if response.is_error:
            return JoinResult(status=JoinStatus.FAILED)
        data = response.json()
        return JoinResult(
            status=JoinStatus.JOINED,
            session=parse_session(data["session"]),
            participant_id=UUID(str(data["participant_id"])),
        )

    async def start_session(self, session_id: UUID) -> bool:
        return await self._post_ok(f"/sessions/{session_id}/start")

    async def end_session(self, session_id: UUID) -> bool:
        return await self._post_ok(f"/sessions/{session_id}/end")

    async def leave_session(self, participant_id: UUID) -> bool:
        return await self._post_ok(f"/participants/{participant_id}/leave")

    async def log_violation(
        self,
        session_id: UUID,
        participant_id: UUID,
        event_type: ViolationEventType,
    ) -> LogViolationResult:
        """Log a violation; transport failures come back as unsuccessful results."""
        try:
            response = await self.http_client.post(
                f"{self.base_url}/sessions/{session_id}/violations",
                json={
                    "participant_id": str(participant_id),
                    "event_type": event_type.value,
                },
                timeout=self.timeout,
            )
            response.raise_for_status()
        except httpx.HTTPError as exc:
            return LogViolationResult(success=False, error=str(exc))
        data = response.json()
        event_id = data.get("event_id")
        return LogViolationResult(
            success=bool(data.get("success")),
            error=data.get("error"),
            event_id=UUID(str(event_id)) if event_id else None,
            new_count=data.get("new_count"),
        )

    async def close(self) -> None:
        """Close the underlying HTTP session."""
        await self.http_client.aclose()

    async def _post_ok(self, path: str) -> bool:
        try:
            response = await self.http_client.post(
                f"{self.base_url}{path}", timeout=self.timeout
            )
        except httpx.HTTPError:
            return False
        return response.is_success
