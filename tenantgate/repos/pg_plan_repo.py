"""PostgreSQL implementation of PlanRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.tables import PlanRow
from tenantgate.models.plan import Plan, Quotas


class PgPlanRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add(self, plan: Plan) -> None:
        self._session.add(
            PlanRow(
                id=plan.id,
                codename=plan.codename,
                name=plan.name,
                required_coupon_count=plan.required_coupon_count,
                is_default=plan.is_default,
                quotas=plan.quotas.to_json(),
                created_at=plan.created_at,
            )
        )
        await self._session.flush()

    async def get_by_id(self, plan_id: UUID) -> Plan | None:
        row = await self._session.get(PlanRow, plan_id)
        return _row_to_plan(row) if row is not None else None

    async def get_by_codename(self, codename: str) -> Plan | None:
        stmt = select(PlanRow).where(PlanRow.codename == codename)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_plan(row) if row is not None else None

    async def get_default(self) -> Plan | None:
        stmt = select(PlanRow).where(PlanRow.is_default.is_(True)).limit(1)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_plan(row) if row is not None else None

    async def find_by_required_coupon_count(self, count: int) -> list[Plan]:
        stmt = (
            select(PlanRow)
            .where(PlanRow.required_coupon_count == count)
            .order_by(PlanRow.created_at, PlanRow.codename)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_plan(r) for r in rows]

    async def list_all(self) -> list[Plan]:
        stmt = select(PlanRow).order_by(PlanRow.created_at, PlanRow.codename)
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_plan(r) for r in rows]

    async def update(self, plan: Plan) -> Plan | None:
        stmt = (
            update(PlanRow)
            .where(PlanRow.id == plan.id)
            .values(
                name=plan.name,
                required_coupon_count=plan.required_coupon_count,
                is_default=plan.is_default,
                quotas=plan.quotas.to_json(),
            )
            .returning(PlanRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_plan(row) if row is not None else None

    async def delete(self, plan_id: UUID) -> bool:
        result = await self._session.execute(delete(PlanRow).where(PlanRow.id == plan_id))
        return result.rowcount > 0


def _row_to_plan(row: PlanRow) -> Plan:
    return Plan(
        id=row.id,
        codename=row.codename,
        name=row.name,
        required_coupon_count=row.required_coupon_count,
        is_default=row.is_default,
        quotas=Quotas.from_json(row.quotas),
        created_at=row.created_at,
    )
