"""Organization endpoints scoped to the caller's current organization.

The current organization is a property of the browser session, not of
the URL: ``/v1/orgs/current/...`` always means "the organization this
session has selected", and every handler receives a gated
SessionContext for it.
"""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, status
from pydantic import BaseModel

from tenantgate.api.dependencies import (
    get_repos,
    get_session_store,
    require_org_role,
    require_principal,
    require_user,
)
from tenantgate.api.schemas import Name, OrgOut, PlanOut
from tenantgate.models.principal import Principal
from tenantgate.models.session import SessionContext
from tenantgate.models.user import User
from tenantgate.repos.registry import Repos
from tenantgate.repos.session_repo import SessionStore
from tenantgate.services import coupon_service, org_service, session_context

router = APIRouter(prefix="/v1/orgs", tags=["orgs"])

_require_member = require_org_role("user")
_require_admin = require_org_role("admin")


class OrgCreateIn(BaseModel):
    name: Name


class MyOrgOut(BaseModel):
    id: str
    name: str
    slug: str
    role: str


class CurrentOrgOut(BaseModel):
    id: str
    name: str
    slug: str
    role: str
    plan: PlanOut | None
    coupon_count: int


class SwitchOrgIn(BaseModel):
    organization_id: UUID


class RenameOrgIn(BaseModel):
    name: Name


class RedeemIn(BaseModel):
    code: str


class RedeemOut(BaseModel):
    message: str
    organization: OrgOut
    plan: PlanOut | None
    coupon_count: int


@router.post("", response_model=OrgOut, status_code=status.HTTP_201_CREATED)
async def create_org(
    body: OrgCreateIn,
    principal: Annotated[Principal, Depends(require_principal)],
    user: Annotated[User, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> OrgOut:
    """Create an organization; the creator becomes its owner and switches to it."""
    org = await org_service.create_organization(repos, user.id, body.name)
    await sessions.set_current_organization(principal.session_id, org.id)
    return OrgOut.from_org(org)


@router.get("", response_model=list[MyOrgOut])
async def list_my_orgs(
    user: Annotated[User, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[MyOrgOut]:
    orgs = await org_service.list_my_organizations(repos, user.id)
    return [MyOrgOut(id=str(o.id), name=o.name, slug=o.slug, role=role) for o, role in orgs]


@router.get("/current", response_model=CurrentOrgOut)
async def get_current_org(
    ctx: Annotated[SessionContext, Depends(_require_member)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> CurrentOrgOut:
    org = ctx.organization
    return CurrentOrgOut(
        id=str(org.id),
        name=org.name,
        slug=org.slug,
        role=ctx.role,
        plan=PlanOut.from_plan(ctx.plan) if ctx.plan else None,
        coupon_count=await repos.coupons.count_valid(org.id),
    )


@router.post("/current", response_model=MyOrgOut)
async def switch_current_org(
    body: SwitchOrgIn,
    principal: Annotated[Principal, Depends(require_principal)],
    repos: Annotated[Repos, Depends(get_repos)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> MyOrgOut:
    """Select the organization this browser session acts in."""
    membership = await session_context.switch_organization(
        principal, repos, sessions, body.organization_id
    )
    org = await repos.orgs.get_by_id(membership.org_id)
    return MyOrgOut(
        id=str(membership.org_id),
        name=org.name if org else "",
        slug=org.slug if org else "",
        role=membership.org_role,
    )


@router.patch("/current", response_model=OrgOut)
async def rename_current_org(
    body: RenameOrgIn,
    ctx: Annotated[SessionContext, Depends(_require_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> OrgOut:
    org = await org_service.rename_organization(repos, ctx, body.name)
    return OrgOut.from_org(org)


@router.post("/current/redeem-ltd", response_model=RedeemOut)
async def redeem_coupon(
    body: RedeemIn,
    ctx: Annotated[SessionContext, Depends(_require_member)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> RedeemOut:
    result = await coupon_service.redeem(repos, body.code, ctx.org_id, ctx.user_id)
    return RedeemOut(
        message="Coupon redeemed successfully",
        organization=OrgOut.from_org(result.organization),
        plan=PlanOut.from_plan(result.plan) if result.plan else None,
        coupon_count=result.coupon_count,
    )
