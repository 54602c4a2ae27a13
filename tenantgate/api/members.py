"""Members and invitations of the current organization."""

from __future__ import annotations

from typing import Annotated
from uuid import UUID

from fastapi import APIRouter, Depends, Response, status
from pydantic import BaseModel, Field

from tenantgate.api.dependencies import (
    get_notifier,
    get_repos,
    get_session_store,
    require_org_role,
    require_principal,
)
from tenantgate.api.schemas import AssignableRole, InviteOut, MemberOut, UpdateRoleIn
from tenantgate.models.principal import Principal
from tenantgate.models.session import SessionContext
from tenantgate.repos.registry import Repos
from tenantgate.repos.session_repo import SessionStore
from tenantgate.services import invitation_service, org_service
from tenantgate.services.notifications import Notifier

router = APIRouter(prefix="/v1/orgs", tags=["members"])

_require_member = require_org_role("user")
_require_admin = require_org_role("admin")


class InviteIn(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$", max_length=320)
    role: AssignableRole = "user"


class AcceptInviteIn(BaseModel):
    token: str = Field(min_length=1)


class AcceptInviteOut(BaseModel):
    organization_id: str
    role: str


@router.get("/current/members", response_model=list[MemberOut])
async def list_members(
    ctx: Annotated[SessionContext, Depends(_require_member)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[MemberOut]:
    members = await org_service.list_members(repos, ctx.org_id)
    return [
        MemberOut(
            id=str(m.user.id),
            name=m.user.name,
            email=m.user.email,
            role=m.membership.org_role,
        )
        for m in members
    ]


@router.patch("/current/members/{member_id}", response_model=MemberOut)
async def change_member_role(
    member_id: UUID,
    body: UpdateRoleIn,
    ctx: Annotated[SessionContext, Depends(_require_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> MemberOut:
    membership = await org_service.change_member_role(
        repos, notifier, ctx, member_id, body.role
    )
    user = await repos.users.get_by_id(member_id)
    return MemberOut(
        id=str(member_id),
        name=user.name if user else "",
        email=user.email if user else "",
        role=membership.org_role,
    )


@router.delete("/current/members/{member_id}", status_code=status.HTTP_204_NO_CONTENT)
async def remove_member(
    member_id: UUID,
    ctx: Annotated[SessionContext, Depends(_require_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> Response:
    await org_service.remove_member(repos, notifier, ctx, member_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/current/invites", response_model=list[InviteOut])
async def list_invites(
    ctx: Annotated[SessionContext, Depends(_require_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> list[InviteOut]:
    invitations = await invitation_service.list_invitations(repos, ctx.org_id)
    return [InviteOut.from_invitation(i) for i in invitations]


@router.post("/current/invites", response_model=InviteOut, status_code=status.HTTP_201_CREATED)
async def create_invite(
    body: InviteIn,
    ctx: Annotated[SessionContext, Depends(_require_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
    notifier: Annotated[Notifier, Depends(get_notifier)],
) -> InviteOut:
    invitation = await invitation_service.create_invitation(
        repos, notifier, ctx, body.email, body.role
    )
    return InviteOut.from_invitation(invitation)


@router.delete("/current/invites/{invite_id}", status_code=status.HTTP_204_NO_CONTENT)
async def revoke_invite(
    invite_id: UUID,
    ctx: Annotated[SessionContext, Depends(_require_admin)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> Response:
    await invitation_service.revoke_invitation(repos, ctx.org_id, invite_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/accept-invite", response_model=AcceptInviteOut)
async def accept_invite(
    body: AcceptInviteIn,
    principal: Annotated[Principal, Depends(require_principal)],
    repos: Annotated[Repos, Depends(get_repos)],
    sessions: Annotated[SessionStore, Depends(get_session_store)],
) -> AcceptInviteOut:
    """Join the inviting organization.  No organization gate: the caller is not a member yet."""
    membership = await invitation_service.accept_invitation(
        repos, sessions, principal, body.token
    )
    return AcceptInviteOut(organization_id=str(membership.org_id), role=membership.org_role)
