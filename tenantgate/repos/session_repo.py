"""Browser-session storage: which organization is currently selected.

Mirrors the repo pattern used for the relational data: a Protocol, an
in-memory implementation for tests and local dev, and a Redis-backed one
when REDIS_URL is configured.  Sessions are ephemeral, so Redis (with a
TTL) is the durable home rather than PostgreSQL.
"""

from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tenantgate.models.session import SessionState


class SessionStore(Protocol):
    async def get(self, session_id: str) -> SessionState: ...
    async def set_current_organization(
        self, session_id: str, org_id: UUID | None
    ) -> None: ...


class InMemorySessionStore:
    def __init__(self) -> None:
        self._sessions: dict[str, SessionState] = {}

    async def get(self, session_id: str) -> SessionState:
        return self._sessions.get(session_id, SessionState())

    async def set_current_organization(
        self, session_id: str, org_id: UUID | None
    ) -> None:
        self._sessions[session_id] = SessionState(current_organization_id=org_id)


class RedisSessionStore:
    """One hash per session: ``session:{sid}`` -> {current_organization_id}."""

    _PREFIX = "session:"
    _FIELD = "current_organization_id"

    def __init__(self, redis_client, ttl_seconds: int) -> None:
        self._redis = redis_client
        self._ttl = ttl_seconds

    async def get(self, session_id: str) -> SessionState:
        raw = await self._redis.hget(f"{self._PREFIX}{session_id}", self._FIELD)
        if not raw:
            return SessionState()
        try:
            return SessionState(current_organization_id=UUID(raw))
        except ValueError:
            return SessionState()

    async def set_current_organization(
        self, session_id: str, org_id: UUID | None
    ) -> None:
        key = f"{self._PREFIX}{session_id}"
        if org_id is None:
            await self._redis.hdel(key, self._FIELD)
            return
        await self._redis.hset(key, self._FIELD, str(org_id))
        await self._redis.expire(key, self._ttl)
