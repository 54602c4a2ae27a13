from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tenantgate.models.plan import Plan


class PlanRepo(Protocol):
    async def add(self, plan: Plan) -> None: ...
    async def get_by_id(self, plan_id: UUID) -> Plan | None: ...
    async def get_by_codename(self, codename: str) -> Plan | None: ...
    async def get_default(self) -> Plan | None: ...
    async def find_by_required_coupon_count(self, count: int) -> list[Plan]: ...
    async def list_all(self) -> list[Plan]: ...
    async def update(self, plan: Plan) -> Plan | None: ...
    async def delete(self, plan_id: UUID) -> bool: ...


class InMemoryPlanRepo:
    def __init__(self) -> None:
        self._plans: list[Plan] = []

    async def add(self, plan: Plan) -> None:
        if any(p.codename == plan.codename for p in self._plans):
            raise ValueError("codename already exists")
        if plan.is_default and any(p.is_default for p in self._plans):
            raise ValueError("a default plan already exists")
        self._plans.append(plan)

    async def get_by_id(self, plan_id: UUID) -> Plan | None:
        return next((p for p in self._plans if p.id == plan_id), None)

    async def get_by_codename(self, codename: str) -> Plan | None:
        return next((p for p in self._plans if p.codename == codename), None)

    async def get_default(self) -> Plan | None:
        return next((p for p in self._plans if p.is_default), None)

    async def find_by_required_coupon_count(self, count: int) -> list[Plan]:
        # sorted() is stable: same-second plans keep insertion order
        matches = [p for p in self._plans if p.required_coupon_count == count]
        return sorted(matches, key=lambda p: p.created_at)

    async def list_all(self) -> list[Plan]:
        return sorted(self._plans, key=lambda p: p.created_at)

    async def update(self, plan: Plan) -> Plan | None:
        for i, existing in enumerate(self._plans):
            if existing.id == plan.id:
                if plan.is_default and any(
                    p.is_default and p.id != plan.id for p in self._plans
                ):
                    raise ValueError("a default plan already exists")
                self._plans[i] = plan
                return plan
        return None

    async def delete(self, plan_id: UUID) -> bool:
        before = len(self._plans)
        self._plans = [p for p in self._plans if p.id != plan_id]
        return len(self._plans) < before
