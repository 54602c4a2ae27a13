"""Plan derivation from redeemed coupons.

An organization's plan is a pure function of its valid coupon count and
the plan catalog:

    1. the earliest-created plan whose required_coupon_count equals the
       count, else
    2. the default plan, else
    3. no plan.

``recalculate`` is the only writer of coupon-derived plans.  Assigning a
plan clears every billing-provider id so a coupon plan never coexists
with a paid subscription.  Running it twice is a no-op.  Catalog edits
that move the derivation (coupon count or default flag) recalculate the
organizations they can affect.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, replace
from uuid import UUID

from tenantgate.core.metrics import PLAN_RECALCULATIONS
from tenantgate.models.organization import Organization
from tenantgate.models.plan import Plan, Quotas
from tenantgate.repos.registry import Repos
from tenantgate.services.errors import OrganizationNotFound, PlanConflict, PlanNotFound

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class RecalculationResult:
    organization: Organization
    plan: Plan | None
    coupon_count: int
    changed: bool


def derive_plan(coupon_count: int, plans: list[Plan]) -> Plan | None:
    matching = [p for p in plans if p.required_coupon_count == coupon_count]
    if matching:
        return min(matching, key=lambda p: p.created_at)
    return next((p for p in plans if p.is_default), None)


async def recalculate(repos: Repos, org_id: UUID) -> RecalculationResult:
    org = await repos.orgs.get_by_id(org_id)
    if org is None:
        raise OrganizationNotFound(f"Organization {org_id} not found")

    count = await repos.coupons.count_valid(org_id)
    candidates = await repos.plans.find_by_required_coupon_count(count)
    default = await repos.plans.get_default()
    plan = derive_plan(count, candidates + ([default] if default else []))

    target_id = plan.id if plan is not None else None
    # Planless results keep billing ids; only a coupon plan displaces them.
    clear_billing = plan is not None and org.has_billing_ids()

    if org.plan_id == target_id and not clear_billing:
        PLAN_RECALCULATIONS.labels(result="unchanged").inc()
        return RecalculationResult(org, plan, count, changed=False)

    updated = await repos.orgs.set_plan(
        org_id, target_id, clear_billing_ids=plan is not None
    )
    if updated is None:
        raise OrganizationNotFound(f"Organization {org_id} not found")

    PLAN_RECALCULATIONS.labels(result="changed").inc()
    logger.info(
        "Plan recalculated org=%s coupons=%d plan=%s",
        org_id,
        count,
        plan.codename if plan else None,
    )
    return RecalculationResult(updated, plan, count, changed=True)


async def set_organization_plan(
    repos: Repos, org_id: UUID, plan_id: UUID | None
) -> Organization:
    """Manual override.  None means "the default plan, or none"."""
    org = await repos.orgs.get_by_id(org_id)
    if org is None:
        raise OrganizationNotFound()

    if plan_id is None:
        default = await repos.plans.get_default()
        target = default.id if default else None
    else:
        plan = await repos.plans.get_by_id(plan_id)
        if plan is None:
            raise PlanNotFound()
        target = plan.id

    updated = await repos.orgs.set_plan(org_id, target, clear_billing_ids=False)
    if updated is None:
        raise OrganizationNotFound()
    logger.info("Plan set manually org=%s plan=%s", org_id, target)
    return updated


async def create_plan(
    repos: Repos,
    *,
    codename: str,
    name: str,
    required_coupon_count: int | None = None,
    is_default: bool = False,
    quotas: Quotas | None = None,
) -> Plan:
    if await repos.plans.get_by_codename(codename) is not None:
        raise PlanConflict(f"Plan codename already exists: {codename}")
    if is_default and await repos.plans.get_default() is not None:
        raise PlanConflict("A default plan already exists")

    plan = Plan.new(
        codename=codename,
        name=name,
        required_coupon_count=required_coupon_count,
        is_default=is_default,
        quotas=quotas or Quotas(),
    )
    await repos.plans.add(plan)
    logger.info("Plan created codename=%s default=%s", codename, is_default)
    return plan


async def list_plans(repos: Repos) -> list[Plan]:
    return await repos.plans.list_all()


PLAN_FIELDS: frozenset[str] = frozenset({"name", "required_coupon_count", "is_default", "quotas"})


async def _recalculate_where(
    repos: Repos, affected: Callable[[Organization], Awaitable[bool]]
) -> int:
    changed = 0
    for org in await repos.orgs.list_all():
        if await affected(org) and (await recalculate(repos, org.id)).changed:
            changed += 1
    return changed


async def update_plan(repos: Repos, plan_id: UUID, **changes: object) -> tuple[Plan, int]:
    """Edit a catalog entry; returns it and how many organizations changed plan."""
    unknown = set(changes) - PLAN_FIELDS
    if unknown:
        raise ValueError(f"unknown plan fields: {', '.join(sorted(unknown))}")

    plan = await repos.plans.get_by_id(plan_id)
    if plan is None:
        raise PlanNotFound()
    if changes.get("is_default") and not plan.is_default:
        if await repos.plans.get_default() is not None:
            raise PlanConflict("A default plan already exists")

    updated = await repos.plans.update(replace(plan, **changes))  # type: ignore[arg-type]
    if updated is None:
        raise PlanNotFound()

    if (
        updated.required_coupon_count == plan.required_coupon_count
        and updated.is_default == plan.is_default
    ):
        logger.info("Plan updated codename=%s", updated.codename)
        return updated, 0

    async def affected(org: Organization) -> bool:
        if org.plan_id == plan.id:
            return True
        if org.plan_id is None and updated.is_default:
            return True
        if updated.required_coupon_count is None:
            return False
        return await repos.coupons.count_valid(org.id) == updated.required_coupon_count

    changed = await _recalculate_where(repos, affected)
    logger.info("Plan updated codename=%s organizations_changed=%d", updated.codename, changed)
    return updated, changed


async def delete_plan(repos: Repos, plan_id: UUID) -> int:
    """Remove a catalog entry and re-derive the plan of every organization on it."""
    plan = await repos.plans.get_by_id(plan_id)
    if plan is None:
        raise PlanNotFound()

    on_plan = [o.id for o in await repos.orgs.list_all() if o.plan_id == plan_id]
    for org_id in on_plan:
        await repos.orgs.set_plan(org_id, None, clear_billing_ids=False)
    if not await repos.plans.delete(plan_id):
        raise PlanNotFound()

    for org_id in on_plan:
        await recalculate(repos, org_id)
    logger.info("Plan deleted codename=%s organizations_reassigned=%d", plan.codename, len(on_plan))
    return len(on_plan)
