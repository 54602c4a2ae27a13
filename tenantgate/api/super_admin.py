"""Super-admin operations: coupon ledger, plan catalog, organization oversight.

Every route requires the caller's email to be on the super-admin
allow-list.  None of them grant or use organization roles.
"""

from __future__ import annotations

import logging
from typing import Annotated, Literal
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response, status
from pydantic import BaseModel, Field

from tenantgate.api.dependencies import get_notifier, get_repos, require_super_admin
from tenantgate.api.schemas import (
    ExpiryReportOut,
    InviteOut,
    MemberOut,
    Name,
    OrgOut,
    PlanOut,
    UpdateRoleIn,
)
from tenantgate.models.coupon import Coupon
from tenantgate.models.plan import Quotas
from tenantgate.models.principal import Principal
from tenantgate.repos.registry import Repos
from tenantgate.services import (
    coupon_service,
    entitlement_service,
    invitation_service,
    org_service,
)
from tenantgate.services.coupon_service import MAX_GENERATE
from tenantgate.services.notifications import Notifier

logger = logging.getLogger(__name__)

router = APIRouter(
    prefix="/v1/admin",
    tags=["super-admin"],
    dependencies=[Depends(require_super_admin)],
)


class CouponOut(BaseModel):
    id: str
    code: str
    created_at: int
    used_at: int | None
    organization_id: str | None
    used_by_user_id: str | None
    expired: bool

    @classmethod
    def from_coupon(cls, coupon: Coupon) -> CouponOut:
        return cls(
            id=str(coupon.id),
            code=coupon.code,
            created_at=coupon.created_at,
            used_at=coupon.used_at,
            organization_id=str(coupon.organization_id) if coupon.organization_id else None,
            used_by_user_id=str(coupon.used_by_user_id) if coupon.used_by_user_id else None,
            expired=coupon.expired,
        )


class CouponPageOut(BaseModel):
    coupons: list[CouponOut]
    total: int
    page: int
    limit: int
    total_pages: int


class GenerateCouponsIn(BaseModel):
    prefix: str = Field(pattern=r"^[A-Za-z0-9][A-Za-z0-9_-]*$", max_length=32)
    count: int = Field(ge=1, le=MAX_GENERATE)


class CouponChangeOut(BaseModel):
    coupon: CouponOut
    organization_plan_changed: bool


class ExpireBatchIn(BaseModel):
    codes: list[str] = Field(min_length=1)


class QuotasIn(BaseModel):
    can_use_app: bool = True
    team_members: int | None = Field(default=1, ge=0)


class PlanCreateIn(BaseModel):
    codename: str = Field(pattern=r"^[a-z0-9][a-z0-9_-]*$", max_length=64)
    name: Name
    required_coupon_count: int | None = Field(default=None, ge=0)
    default: bool = False
    quotas: QuotasIn = QuotasIn()


class SetPlanIn(BaseModel):
    plan_id: UUID | None = None


class PlanUpdateIn(BaseModel):
    name: Name | None = None
    required_coupon_count: int | None = Field(default=None, ge=0)
    default: bool | None = None
    quotas: QuotasIn | None = None


class PlanChangeOut(BaseModel):
    plan: PlanOut
    organizations_changed: int


class OrgSummaryOut(OrgOut):
    plan_codename: str | None
    member_count: int
    coupon_count: int


class OrgDetailOut(OrgOut):
    plan: PlanOut | None
    coupon_count: int
    members: list[MemberOut]
    invites: list[InviteOut]


@router.get("/check-access")
async def check_access(
    principal: Annotated[Principal, Depends(require_super_admin)],
) -> dict:
    return {"is_super_admin": True, "email": principal.email}


@router.get("/coupons", response_model=CouponPageOut)
async def list_coupons(
    repos: Annotated[Repos, Depends(get_repos)],
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=200)] = 50,
    search: str = "",
    status_filter: Annotated[
        Literal["all", "used", "unused", "expired"], Query(alias="status")
    ] = "all",
) -> CouponPageOut:
    result = await coupon_service.list_coupons(
        repos, page=page, limit=limit, search=search, status=status_filter
    )
    return CouponPageOut(
        coupons=[CouponOut.from_coupon(c) for c in result.coupons],
        total=result.total,
        page=result.page,
        limit=result.limit,
        total_pages=result.total_pages,
    )


@router.post("/coupons", response_model=list[CouponOut], status_code=status.HTTP_201_CREATED)
async def generate_coupons(
    body: GenerateCouponsIn,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[CouponOut]:
    coupons = await coupon_service.generate_coupons(repos, body.prefix, body.count)
    logger.info("Super admin %s generated %d coupon(s)", principal.user_id, len(coupons))
    return [CouponOut.from_coupon(c) for c in coupons]


@router.post("/coupons/expire-batch", response_model=ExpiryReportOut)
async def expire_coupons_batch(
    body: ExpireBatchIn,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ExpiryReportOut:
    report = await coupon_service.expire_batch(repos, body.codes)
    logger.info("Super admin %s ran batch expiry", principal.user_id)
    return ExpiryReportOut.from_report(report)


@router.post("/coupons/{coupon_id}/expire", response_model=CouponChangeOut)
async def expire_coupon(
    coupon_id: UUID,
    repos: Annotated[Repos, Depends(get_repos)],
) -> CouponChangeOut:
    coupon, result = await coupon_service.expire_coupon(repos, coupon_id)
    return CouponChangeOut(
        coupon=CouponOut.from_coupon(coupon),
        organization_plan_changed=bool(result and result.changed),
    )


@router.delete("/coupons/{coupon_id}", response_model=CouponChangeOut)
async def delete_coupon(
    coupon_id: UUID,
    repos: Annotated[Repos, Depends(get_repos)],
) -> CouponChangeOut:
    coupon, result = await coupon_service.delete_coupon(repos, coupon_id)
    return CouponChangeOut(
        coupon=CouponOut.from_coupon(coupon),
        organization_plan_changed=bool(result and result.changed),
    )


@router.get("/organizations", response_model=list[OrgSummaryOut])
async def list_organizations(repos: Annotated[Repos, Depends(get_repos)]) -> list[OrgSummaryOut]:
    return [
        OrgSummaryOut(
            **OrgOut.from_org(s.organization).model_dump(),
            plan_codename=s.plan.codename if s.plan else None,
            member_count=s.member_count,
            coupon_count=s.coupon_count,
        )
        for s in await org_service.list_all_organizations(repos)
    ]


@router.get("/organizations/{org_id}", response_model=OrgDetailOut)
async def get_organization(
    org_id: UUID,
    repos: Annotated[Repos, Depends(get_repos)],
) -> OrgDetailOut:
    detail = await org_service.get_organization_detail(repos, org_id)
    return OrgDetailOut(
        **OrgOut.from_org(detail.organization).model_dump(),
        plan=PlanOut.from_plan(detail.plan) if detail.plan else None,
        coupon_count=detail.coupon_count,
        members=[
            MemberOut(
                id=str(m.user.id),
                name=m.user.name,
                email=m.user.email,
                role=m.membership.org_role,
            )
            for m in detail.members
        ],
        invites=[InviteOut.from_invitation(i) for i in detail.invitations],
    )


@router.get("/organizations/{org_id}/coupons", response_model=list[CouponOut])
async def list_org_coupons(
    org_id: UUID,
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[CouponOut]:
    return [CouponOut.from_coupon(c) for c in await coupon_service.list_org_coupons(repos, org_id)]


@router.put("/organizations/{org_id}/plan", response_model=OrgOut)
async def set_org_plan(
    org_id: UUID,
    body: SetPlanIn,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> OrgOut:
    org = await entitlement_service.set_organization_plan(repos, org_id, body.plan_id)
    logger.info("Super admin %s set plan of org=%s", principal.user_id, org_id)
    return OrgOut.from_org(org)


@router.delete("/organizations/{org_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_org(
    org_id: UUID,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> Response:
    await org_service.delete_organization(repos, org_id)
    logger.info("Super admin %s deleted org=%s", principal.user_id, org_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.patch("/organizations/{org_id}/members/{member_id}", response_model=MemberOut)
async def change_member_role(
    org_id: UUID,
    member_id: UUID,
    body: UpdateRoleIn,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> MemberOut:
    membership = await org_service.admin_change_member_role(
        repos, notifier, principal, org_id, member_id, body.role
    )
    user = await repos.users.get_by_id(member_id)
    return MemberOut(
        id=str(member_id),
        name=user.name if user else "",
        email=user.email if user else "",
        role=membership.org_role,
    )


@router.delete(
    "/organizations/{org_id}/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def remove_member(
    org_id: UUID,
    member_id: UUID,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> Response:
    await org_service.admin_remove_member(repos, notifier, principal, org_id, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.delete(
    "/organizations/{org_id}/invites/{invite_id}", status_code=status.HTTP_204_NO_CONTENT
)
async def revoke_invite(
    org_id: UUID,
    invite_id: UUID,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> Response:
    await invitation_service.admin_revoke_invitation(repos, org_id, invite_id)
    logger.info(
        "Super admin %s revoked invitation=%s in org=%s", principal.user_id, invite_id, org_id
    )
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/plans", response_model=list[PlanOut])
async def list_plans(repos: Annotated[Repos, Depends(get_repos)]) -> list[PlanOut]:
    return [PlanOut.from_plan(p) for p in await entitlement_service.list_plans(repos)]


@router.post("/plans", response_model=PlanOut, status_code=status.HTTP_201_CREATED)
async def create_plan(
    body: PlanCreateIn,
    repos: Annotated[Repos, Depends(get_repos)],
) -> PlanOut:
    plan = await entitlement_service.create_plan(
        repos,
        codename=body.codename,
        name=body.name,
        required_coupon_count=body.required_coupon_count,
        is_default=body.default,
        quotas=Quotas(
            can_use_app=body.quotas.can_use_app,
            team_members=body.quotas.team_members,
        ),
    )
    return PlanOut.from_plan(plan)


@router.patch("/plans/{plan_id}", response_model=PlanChangeOut)
async def update_plan(
    plan_id: UUID,
    body: PlanUpdateIn,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> PlanChangeOut:
    changes: dict[str, object] = {}
    if body.name is not None:
        changes["name"] = body.name
    # null here clears the coupon requirement; an absent field leaves it alone
    if "required_coupon_count" in body.model_fields_set:
        changes["required_coupon_count"] = body.required_coupon_count
    if body.default is not None:
        changes["is_default"] = body.default
    if body.quotas is not None:
        changes["quotas"] = Quotas(
            can_use_app=body.quotas.can_use_app,
            team_members=body.quotas.team_members,
        )

    plan, changed = await entitlement_service.update_plan(repos, plan_id, **changes)
    logger.info("Super admin %s updated plan=%s", principal.user_id, plan_id)
    return PlanChangeOut(plan=PlanOut.from_plan(plan), organizations_changed=changed)


@router.delete("/plans/{plan_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_plan(
    plan_id: UUID,
    principal: Annotated[Principal, Depends(require_super_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> Response:
    await entitlement_service.delete_plan(repos, plan_id)
    logger.info("Super admin %s deleted plan=%s", principal.user_id, plan_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
