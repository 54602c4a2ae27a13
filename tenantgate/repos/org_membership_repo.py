from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from tenantgate.models.organization import OrgMembership, OrgRole


class OrgMembershipRepo(Protocol):
    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None: ...
    async def add(self, membership: OrgMembership) -> None: ...
    async def remove(self, org_id: UUID, user_id: UUID) -> bool: ...
    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: OrgRole
    ) -> OrgMembership | None: ...
    async def list_by_org(self, org_id: UUID) -> list[OrgMembership]: ...
    async def list_by_user(self, user_id: UUID) -> list[OrgMembership]: ...
    async def count_by_org(self, org_id: UUID) -> int: ...
    async def remove_all_for_org(self, org_id: UUID) -> int: ...


class InMemoryOrgMembershipRepo:
    def __init__(self) -> None:
        # insertion ordered, so list_by_user is stable across calls
        self._store: dict[tuple[UUID, UUID], OrgMembership] = {}

    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None:
        return self._store.get((org_id, user_id))

    async def add(self, membership: OrgMembership) -> None:
        key = (membership.org_id, membership.user_id)
        if key in self._store:
            raise ValueError("membership already exists")
        self._store[key] = membership

    async def remove(self, org_id: UUID, user_id: UUID) -> bool:
        return self._store.pop((org_id, user_id), None) is not None

    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: OrgRole
    ) -> OrgMembership | None:
        key = (org_id, user_id)
        existing = self._store.get(key)
        if existing is None:
            return None
        updated = replace(existing, org_role=new_role)
        self._store[key] = updated
        return updated

    async def list_by_org(self, org_id: UUID) -> list[OrgMembership]:
        return [m for m in self._store.values() if m.org_id == org_id]

    async def list_by_user(self, user_id: UUID) -> list[OrgMembership]:
        return [m for m in self._store.values() if m.user_id == user_id]

    async def count_by_org(self, org_id: UUID) -> int:
        return sum(1 for m in self._store.values() if m.org_id == org_id)

    async def remove_all_for_org(self, org_id: UUID) -> int:
        keys = [k for k in self._store if k[0] == org_id]
        for key in keys:
            del self._store[key]
        return len(keys)
