from __future__ import annotations

import time
from dataclasses import dataclass
from uuid import UUID, uuid4


def normalize_code(code: str) -> str:
    """Codes are stored and compared uppercased."""
    return code.strip().upper()


@dataclass(frozen=True, slots=True)
class Coupon:
    """Single-use redemption code.

    Lifecycle: unused -> redeemed (used_at, organization_id and
    used_by_user_id set together, once) -> optionally expired.  Expiry is
    independent of redemption and idempotent.
    """

    id: UUID
    code: str
    created_at: int = 0
    used_at: int | None = None
    organization_id: UUID | None = None
    used_by_user_id: UUID | None = None
    expired: bool = False

    @staticmethod
    def new(*, code: str) -> Coupon:
        return Coupon(id=uuid4(), code=normalize_code(code), created_at=int(time.time()))

    @property
    def is_redeemed(self) -> bool:
        return self.used_at is not None

    def counts_toward(self, org_id: UUID) -> bool:
        return self.is_redeemed and not self.expired and self.organization_id == org_id
