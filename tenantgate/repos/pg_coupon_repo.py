"""PostgreSQL implementation of CouponRepo."""

from __future__ import annotations

from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.db.tables import CouponRow
from tenantgate.models.coupon import Coupon
from tenantgate.repos.coupon_repo import CouponStatus


class PgCouponRepo:
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def add_many(self, coupons: list[Coupon]) -> None:
        self._session.add_all(
            [
                CouponRow(
                    id=c.id,
                    code=c.code,
                    created_at=c.created_at,
                    used_at=c.used_at,
                    organization_id=c.organization_id,
                    used_by_user_id=c.used_by_user_id,
                    expired=c.expired,
                )
                for c in coupons
            ]
        )
        await self._session.flush()

    async def get_by_id(self, coupon_id: UUID) -> Coupon | None:
        row = await self._session.get(CouponRow, coupon_id)
        return _row_to_coupon(row) if row is not None else None

    async def get_by_code(self, code: str) -> Coupon | None:
        stmt = select(CouponRow).where(CouponRow.code == code)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_coupon(row) if row is not None else None

    async def claim(
        self, code: str, org_id: UUID, user_id: UUID, used_at: int
    ) -> Coupon | None:
        """One conditional UPDATE; a concurrent claimer sees zero rows."""
        stmt = (
            update(CouponRow)
            .where(
                CouponRow.code == code,
                CouponRow.used_at.is_(None),
                CouponRow.expired.is_(False),
            )
            .values(used_at=used_at, organization_id=org_id, used_by_user_id=user_id)
            .returning(CouponRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_coupon(row) if row is not None else None

    async def count_valid(self, org_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(CouponRow)
            .where(
                CouponRow.organization_id == org_id,
                CouponRow.used_at.is_not(None),
                CouponRow.expired.is_(False),
            )
        )
        return (await self._session.execute(stmt)).scalar_one()

    async def expire_codes(self, codes: list[str]) -> list[Coupon]:
        if not codes:
            return []
        stmt = (
            update(CouponRow)
            .where(CouponRow.code.in_(codes), CouponRow.expired.is_(False))
            .values(expired=True)
            .returning(CouponRow)
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_coupon(r) for r in rows]

    async def expire_by_id(self, coupon_id: UUID) -> Coupon | None:
        stmt = (
            update(CouponRow)
            .where(CouponRow.id == coupon_id, CouponRow.expired.is_(False))
            .values(expired=True)
            .returning(CouponRow)
        )
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_coupon(row) if row is not None else None

    async def delete(self, coupon_id: UUID) -> Coupon | None:
        stmt = delete(CouponRow).where(CouponRow.id == coupon_id).returning(CouponRow)
        row = (await self._session.execute(stmt)).scalar_one_or_none()
        return _row_to_coupon(row) if row is not None else None

    async def retire_for_org(self, org_id: UUID) -> int:
        stmt = (
            update(CouponRow)
            .where(CouponRow.organization_id == org_id)
            .values(organization_id=None, expired=True)
        )
        result = await self._session.execute(stmt)
        return result.rowcount

    async def list_page(
        self, *, search: str, status: CouponStatus, offset: int, limit: int
    ) -> tuple[list[Coupon], int]:
        conditions = []
        if search:
            conditions.append(CouponRow.code.contains(search.upper(), autoescape=True))
        if status == "used":
            conditions.append(CouponRow.used_at.is_not(None))
        elif status == "unused":
            conditions.append(CouponRow.used_at.is_(None))
            conditions.append(CouponRow.expired.is_(False))
        elif status == "expired":
            conditions.append(CouponRow.expired.is_(True))

        stmt = (
            select(CouponRow)
            .where(*conditions)
            .order_by(CouponRow.created_at.desc())
            .offset(offset)
            .limit(limit)
        )
        count_stmt = select(func.count()).select_from(CouponRow).where(*conditions)

        rows = (await self._session.execute(stmt)).scalars().all()
        total = (await self._session.execute(count_stmt)).scalar_one()
        return [_row_to_coupon(r) for r in rows], total

    async def list_redeemed_by_org(self, org_id: UUID) -> list[Coupon]:
        stmt = (
            select(CouponRow)
            .where(CouponRow.organization_id == org_id, CouponRow.used_at.is_not(None))
            .order_by(CouponRow.used_at.desc())
        )
        rows = (await self._session.execute(stmt)).scalars().all()
        return [_row_to_coupon(r) for r in rows]


def _row_to_coupon(row: CouponRow) -> Coupon:
    return Coupon(
        id=row.id,
        code=row.code,
        created_at=row.created_at,
        used_at=row.used_at,
        organization_id=row.organization_id,
        used_by_user_id=row.used_by_user_id,
        expired=row.expired,
    )
