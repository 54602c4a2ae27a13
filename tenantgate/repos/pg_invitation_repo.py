"""PostgreSQL implementation of InvitationRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.tables import InvitationRow
from tenantgate.models.invitation import Invitation


class PgInvitationRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, invitation: Invitation) -> None:
        self._session.add(
            InvitationRow(
                id=invitation.id,
                org_id=invitation.org_id,
                email=invitation.email,
                org_role=invitation.org_role,
                token=invitation.token,
                invited_by=invitation.invited_by,
                expires_at=invitation.expires_at,
                created_at=invitation.created_at,
            )
        )
        await self._session.flush()

    async def get_by_token(self, token: str) -> Invitation | None:
        stmt = select(InvitationRow).where(InvitationRow.token == token)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_invitation(row) if row is not None else None

    async def get_pending(self, org_id: UUID, email: str) -> Invitation | None:
        stmt = select(InvitationRow).where(
            InvitationRow.org_id == org_id, InvitationRow.email == email
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_invitation(row) if row is not None else None

    async def list_by_org(self, org_id: UUID) -> list[Invitation]:
        stmt = (
            select(InvitationRow)
            .where(InvitationRow.org_id == org_id)
            .order_by(InvitationRow.created_at)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_invitation(r) for r in rows]

    async def count_by_org(self, org_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(InvitationRow)
            .where(InvitationRow.org_id == org_id)
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def delete(self, invitation_id: UUID, org_id: UUID | None = None) -> bool:
        stmt = delete(InvitationRow).where(InvitationRow.id == invitation_id)
        if org_id is not None:
            stmt = stmt.where(InvitationRow.org_id == org_id)
        result = await self._session.execute(stmt)
        return result.rowcount > 0

    async def delete_all_for_org(self, org_id: UUID) -> int:
        stmt = delete(InvitationRow).where(InvitationRow.org_id == org_id)
        result = await self._session.execute(stmt)
        return result.rowcount


def _row_to_invitation(row: InvitationRow) -> Invitation:
    return Invitation(
        id=row.id,
        org_id=row.org_id,
        email=row.email,
        org_role=row.org_role,  # type: ignore[arg-type]
        token=row.token,
        expires_at=row.expires_at,
        invited_by=row.invited_by,
        created_at=row.created_at,
    )
