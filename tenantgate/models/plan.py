from __future__ import annotations

import time
from dataclasses import dataclass, field
from uuid import UUID, uuid4


@dataclass(frozen=True, slots=True)
class Quotas:
    """Limits granted by a plan.  ``team_members=None`` means unlimited."""

    can_use_app: bool = True
    team_members: int | None = 1

    def to_json(self) -> dict[str, object]:
        return {"canUseApp": self.can_use_app, "teamMembers": self.team_members}

    @staticmethod
    def from_json(data: dict | None) -> Quotas:
        if not data:
            return Quotas()
        return Quotas(
            can_use_app=bool(data.get("canUseApp", True)),
            team_members=data.get("teamMembers"),
        )


@dataclass(frozen=True, slots=True)
class Plan:
    id: UUID
    codename: str
    name: str
    required_coupon_count: int | None = None
    is_default: bool = False
    quotas: Quotas = field(default_factory=Quotas)
    created_at: int = 0

    @staticmethod
    def new(
        *,
        codename: str,
        name: str = "",
        required_coupon_count: int | None = None,
        is_default: bool = False,
        quotas: Quotas | None = None,
    ) -> Plan:
        return Plan(
            id=uuid4(),
            codename=codename,
            name=name or codename,
            required_coupon_count=required_coupon_count,
            is_default=is_default,
            quotas=quotas or Quotas(),
            created_at=int(time.time()),
        )
