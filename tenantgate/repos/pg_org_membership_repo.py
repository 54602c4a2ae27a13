"""PostgreSQL implementation of OrgMembershipRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.tables import OrgMembershipRow
from tenantgate.models.organization import OrgMembership, OrgRole


class PgOrgMembershipRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, org_id: UUID, user_id: UUID) -> OrgMembership | None:
        row = await self._session.get(OrgMembershipRow, (org_id, user_id))
        return _row_to_membership(row) if row is not None else None

    async def add(self, membership: OrgMembership) -> None:
        self._session.add(
            OrgMembershipRow(
                org_id=membership.org_id,
                user_id=membership.user_id,
                org_role=membership.org_role,
                created_at=membership.created_at,
            )
        )
        await self._session.flush()

    async def remove(self, org_id: UUID, user_id: UUID) -> bool:
        stmt = delete(OrgMembershipRow).where(
            OrgMembershipRow.org_id == org_id, OrgMembershipRow.user_id == user_id
        )
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def update_role(
        self, org_id: UUID, user_id: UUID, new_role: OrgRole
    ) -> OrgMembership | None:
        stmt = (
            update(OrgMembershipRow)
            .where(
                OrgMembershipRow.org_id == org_id, OrgMembershipRow.user_id == user_id
            )
            .values(org_role=new_role)
            .returning(OrgMembershipRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_membership(row) if row is not None else None

    async def list_by_org(self, org_id: UUID) -> list[OrgMembership]:
        stmt = (
            select(OrgMembershipRow)
            .where(OrgMembershipRow.org_id == org_id)
            .order_by(OrgMembershipRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_membership(r) for r in rows]

    async def list_by_user(self, user_id: UUID) -> list[OrgMembership]:
        # created_at, org_id: a stable order for the "first organization" fallback
        stmt = (
            select(OrgMembershipRow)
            .where(OrgMembershipRow.user_id == user_id)
            .order_by(OrgMembershipRow.created_at, OrgMembershipRow.org_id)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_membership(r) for r in rows]

    async def count_by_org(self, org_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(OrgMembershipRow)
            .where(OrgMembershipRow.org_id == org_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def remove_all_for_org(self, org_id: UUID) -> int:
        stmt = delete(OrgMembershipRow).where(OrgMembershipRow.org_id == org_id)
        result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_membership(row: OrgMembershipRow) -> OrgMembership:
    return OrgMembership(
        org_id=row.org_id,
        user_id=row.user_id,
        org_role=row.org_role,  # type: ignore[arg-type]
        created_at=row.created_at,
    )
