from __future__ import annotations

from dataclasses import replace
from typing import Protocol
from uuid import UUID

from tenantgate.models.organization import BILLING_FIELDS, Organization
from tenantgate.services.errors import SlugTaken


class OrgRepo(Protocol):
    async def get_by_id(self, org_id: UUID) -> Organization | None: ...
    async def get_by_slug(self, slug: str) -> Organization | None: ...
    async def add(self, org: Organization) -> None: ...
    async def update_name(self, org_id: UUID, name: str) -> Organization | None: ...
    async def set_plan(
        self, org_id: UUID, plan_id: UUID | None, *, clear_billing_ids: bool
    ) -> Organization | None: ...
    async def delete(self, org_id: UUID) -> bool: ...
    async def list_all(self) -> list[Organization]: ...


class InMemoryOrgRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Organization] = {}

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        return self._by_id.get(org_id)

    async def get_by_slug(self, slug: str) -> Organization | None:
        return next((o for o in self._by_id.values() if o.slug == slug), None)

    async def add(self, org: Organization) -> None:
        if any(o.slug == org.slug for o in self._by_id.values()):
            raise SlugTaken(f"Slug already taken: {org.slug}")
        self._by_id[org.id] = org

    async def update_name(self, org_id: UUID, name: str) -> Organization | None:
        org = self._by_id.get(org_id)
        if org is None:
            return None
        updated = replace(org, name=name)
        self._by_id[org_id] = updated
        return updated

    async def set_plan(
        self, org_id: UUID, plan_id: UUID | None, *, clear_billing_ids: bool
    ) -> Organization | None:
        org = self._by_id.get(org_id)
        if org is None:
            return None
        changes: dict[str, object] = {"plan_id": plan_id}
        if clear_billing_ids:
            changes.update(dict.fromkeys(BILLING_FIELDS))
        updated = replace(org, **changes)  # type: ignore[arg-type]
        self._by_id[org_id] = updated
        return updated

    async def delete(self, org_id: UUID) -> bool:
        return self._by_id.pop(org_id, None) is not None

    async def list_all(self) -> list[Organization]:
        return list(self._by_id.values())
