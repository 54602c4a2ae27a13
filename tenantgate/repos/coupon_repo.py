from __future__ import annotations

import threading
from dataclasses import replace
from typing import Literal, Protocol
from uuid import UUID

from tenantgate.models.coupon import Coupon

CouponStatus = Literal["all", "used", "unused", "expired"]


class CouponRepo(Protocol):
    async def add_many(self, coupons: list[Coupon]) -> None: ...
    async def get_by_id(self, coupon_id: UUID) -> Coupon | None: ...
    async def get_by_code(self, code: str) -> Coupon | None: ...
    async def claim(
        self, code: str, org_id: UUID, user_id: UUID, used_at: int
    ) -> Coupon | None: ...
    async def count_valid(self, org_id: UUID) -> int: ...
    async def expire_codes(self, codes: list[str]) -> list[Coupon]: ...
    async def expire_by_id(self, coupon_id: UUID) -> Coupon | None: ...
    async def delete(self, coupon_id: UUID) -> Coupon | None: ...
    async def retire_for_org(self, org_id: UUID) -> int: ...
    async def list_page(
        self, *, search: str, status: CouponStatus, offset: int, limit: int
    ) -> tuple[list[Coupon], int]: ...
    async def list_redeemed_by_org(self, org_id: UUID) -> list[Coupon]: ...


def _matches_status(coupon: Coupon, status: CouponStatus) -> bool:
    if status == "used":
        return coupon.used_at is not None
    if status == "unused":
        return coupon.used_at is None and not coupon.expired
    if status == "expired":
        return coupon.expired
    return True


class InMemoryCouponRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Coupon] = {}
        # claim/expire are check-and-set; the lock makes them one step even
        # when handlers run on worker threads.
        self._lock = threading.Lock()

    async def add_many(self, coupons: list[Coupon]) -> None:
        with self._lock:
            existing = {c.code for c in self._by_id.values()}
            for coupon in coupons:
                if coupon.code in existing:
                    raise ValueError(f"coupon code already exists: {coupon.code}")
                existing.add(coupon.code)
            for coupon in coupons:
                self._by_id[coupon.id] = coupon

    async def get_by_id(self, coupon_id: UUID) -> Coupon | None:
        return self._by_id.get(coupon_id)

    async def get_by_code(self, code: str) -> Coupon | None:
        return next((c for c in self._by_id.values() if c.code == code), None)

    async def claim(
        self, code: str, org_id: UUID, user_id: UUID, used_at: int
    ) -> Coupon | None:
        """Bind an unused, unexpired coupon to *org_id*.

        Returns None when the code is unknown, already used or expired.
        """
        with self._lock:
            coupon = next((c for c in self._by_id.values() if c.code == code), None)
            if coupon is None or coupon.used_at is not None or coupon.expired:
                return None
            claimed = replace(
                coupon,
                used_at=used_at,
                organization_id=org_id,
                used_by_user_id=user_id,
            )
            self._by_id[coupon.id] = claimed
            return claimed

    async def count_valid(self, org_id: UUID) -> int:
        return sum(1 for c in self._by_id.values() if c.counts_toward(org_id))

    async def expire_codes(self, codes: list[str]) -> list[Coupon]:
        """Mark every unexpired coupon in *codes* expired; return those rows."""
        wanted = set(codes)
        expired: list[Coupon] = []
        with self._lock:
            for coupon in list(self._by_id.values()):
                if coupon.code in wanted and not coupon.expired:
                    updated = replace(coupon, expired=True)
                    self._by_id[coupon.id] = updated
                    expired.append(updated)
        return expired

    async def expire_by_id(self, coupon_id: UUID) -> Coupon | None:
        """Expire one coupon; None when it is absent or already expired."""
        with self._lock:
            coupon = self._by_id.get(coupon_id)
            if coupon is None or coupon.expired:
                return None
            updated = replace(coupon, expired=True)
            self._by_id[coupon_id] = updated
            return updated

    async def delete(self, coupon_id: UUID) -> Coupon | None:
        with self._lock:
            return self._by_id.pop(coupon_id, None)

    async def retire_for_org(self, org_id: UUID) -> int:
        count = 0
        with self._lock:
            for coupon in list(self._by_id.values()):
                if coupon.organization_id == org_id:
                    self._by_id[coupon.id] = replace(
                        coupon, organization_id=None, expired=True
                    )
                    count += 1
        return count

    async def list_page(
        self, *, search: str, status: CouponStatus, offset: int, limit: int
    ) -> tuple[list[Coupon], int]:
        needle = search.upper()
        matches = [
            c
            for c in self._by_id.values()
            if needle in c.code and _matches_status(c, status)
        ]
        matches.sort(key=lambda c: c.created_at, reverse=True)
        return matches[offset : offset + limit], len(matches)

    async def list_redeemed_by_org(self, org_id: UUID) -> list[Coupon]:
        redeemed = [
            c
            for c in self._by_id.values()
            if c.organization_id == org_id and c.used_at is not None
        ]
        return sorted(redeemed, key=lambda c: c.used_at or 0, reverse=True)
