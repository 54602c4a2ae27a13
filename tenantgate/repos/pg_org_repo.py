"""PostgreSQL implementation of OrgRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.tables import OrganizationRow
from tenantgate.models.organization import BILLING_FIELDS, Organization
from tenantgate.services.errors import SlugTaken


class PgOrgRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get_by_id(self, org_id: UUID) -> Organization | None:
        row = await self._session.get(OrganizationRow, org_id)
        return _row_to_org(row) if row is not None else None

    async def get_by_slug(self, slug: str) -> Organization | None:
        stmt = select(OrganizationRow).where(OrganizationRow.slug == slug)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None

    async def add(self, org: Organization) -> None:
        row = OrganizationRow(
            id=org.id,
            name=org.name,
            slug=org.slug,
            plan_id=org.plan_id,
            created_at=org.created_at,
            **{f: getattr(org, f) for f in BILLING_FIELDS},
        )
        # Savepoint keeps the outer transaction usable after a slug clash.
        try:
            async with self._session.begin_nested():
                self._session.add(row)
                await self._session.flush()
        except IntegrityError:
            raise SlugTaken(f"Slug already taken: {org.slug}") from None

    async def update_name(self, org_id: UUID, name: str) -> Organization | None:
        return await self._update(org_id, {"name": name})

    async def set_plan(
        self, org_id: UUID, plan_id: UUID | None, *, clear_billing_ids: bool
    ) -> Organization | None:
        values: dict[str, object] = {"plan_id": plan_id}
        if clear_billing_ids:
            values.update(dict.fromkeys(BILLING_FIELDS))
        return await self._update(org_id, values)

    async def delete(self, org_id: UUID) -> bool:
        stmt = delete(OrganizationRow).where(OrganizationRow.id == org_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def list_all(self) -> list[Organization]:
        stmt = select(OrganizationRow).order_by(OrganizationRow.created_at)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_org(r) for r in rows]

    async def _update(self, org_id: UUID, values: dict) -> Organization | None:
        stmt = (
            update(OrganizationRow)
            .where(OrganizationRow.id == org_id)
            .values(**values)
            .returning(OrganizationRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_org(row) if row is not None else None


def _row_to_org(row: OrganizationRow) -> Organization:
    return Organization(
        id=row.id,
        name=row.name,
        slug=row.slug,
        plan_id=row.plan_id,
        created_at=row.created_at,
        **{f: getattr(row, f) for f in BILLING_FIELDS},
    )
