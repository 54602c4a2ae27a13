"""Team invitations.

An invitation reserves a seat: pending invitations count against the
plan's team-member quota together with current members.  Acceptance
re-checks the quota and consumes the invitation either way once it
gets that far, so a full organization never accumulates stale
invitations.
"""

from __future__ import annotations

import logging
import time
from urllib.parse import urlencode
from uuid import UUID

from tenantgate.core.config import SETTINGS
from tenantgate.models.invitation import Invitation
from tenantgate.models.organization import OrgMembership, OrgRole
from tenantgate.models.plan import Plan
from tenantgate.models.principal import Principal
from tenantgate.models.session import SessionContext
from tenantgate.models.user import normalize_email
from tenantgate.repos.registry import Repos
from tenantgate.repos.session_repo import SessionStore
from tenantgate.services.errors import (
    InvitationError,
    OrganizationNotFound,
    QuotaExceeded,
)
from tenantgate.services.notifications import Notifier, notify_safely
from tenantgate.services.session_context import resolve_user

logger = logging.getLogger(__name__)

INVITABLE_ROLES: frozenset[str] = frozenset({"user", "admin"})


def accept_url(token: str, app_url: str | None = None) -> str:
    base = (app_url if app_url is not None else SETTINGS.app_url).rstrip("/")
    return f"{base}/app/accept-invite?{urlencode({'token': token})}"


def _seat_limit(plan: Plan | None) -> int | None:
    return plan.quotas.team_members if plan is not None else None


async def list_invitations(repos: Repos, org_id: UUID) -> list[Invitation]:
    return await repos.invitations.list_by_org(org_id)


async def create_invitation(
    repos: Repos,
    notifier: Notifier,
    ctx: SessionContext,
    email: str,
    role: OrgRole,
) -> Invitation:
    if role not in INVITABLE_ROLES:
        raise ValueError("role must be 'user' or 'admin'")
    email = normalize_email(email)

    pending = await repos.invitations.get_pending(ctx.org_id, email)
    if pending is not None:
        if not pending.is_expired():
            raise InvitationError("An invitation has already been sent to this email")
        await repos.invitations.delete(pending.id)

    existing = await repos.users.get_by_email(email)
    if existing is not None and await repos.memberships.get(ctx.org_id, existing.id):
        raise InvitationError("This user is already a member of the organization")

    if ctx.plan is None:
        raise InvitationError("Organization has no active plan")

    limit = _seat_limit(ctx.plan)
    if limit is not None:
        seats = await repos.memberships.count_by_org(ctx.org_id)
        seats += await repos.invitations.count_by_org(ctx.org_id)
        if seats >= limit:
            raise QuotaExceeded(
                f"You have reached your team members limit ({limit}). "
                "Please upgrade your plan to add more team members."
            )

    invitation = Invitation.new(
        org_id=ctx.org_id, email=email, org_role=role, invited_by=ctx.user_id
    )
    await repos.invitations.add(invitation)
    logger.info(
        "Invitation created org=%s email=%s role=%s by=%s",
        ctx.org_id,
        email,
        role,
        ctx.user_id,
    )

    await notify_safely(
        notifier.invited(
            email=email,
            org_name=ctx.organization.name,
            role=role,
            invited_by=ctx.user.name or ctx.user.email,
            accept_url=accept_url(invitation.token),
            expires_at=invitation.expires_at,
        ),
        kind="invited",
    )
    return invitation


async def revoke_invitation(repos: Repos, org_id: UUID, invitation_id: UUID) -> bool:
    deleted = await repos.invitations.delete(invitation_id, org_id=org_id)
    if deleted:
        logger.info("Invitation revoked org=%s invitation=%s", org_id, invitation_id)
    return deleted


async def admin_revoke_invitation(repos: Repos, org_id: UUID, invitation_id: UUID) -> None:
    """Super-admin revoke; unlike the org-scoped one, a miss is an error."""
    if await repos.orgs.get_by_id(org_id) is None:
        raise OrganizationNotFound()
    if not await revoke_invitation(repos, org_id, invitation_id):
        raise InvitationError("Invitation not found", status=404)


async def accept_invitation(
    repos: Repos, sessions: SessionStore, principal: Principal, token: str
) -> OrgMembership:
    user = await resolve_user(principal, repos)

    invitation = await repos.invitations.get_by_token(token)
    if invitation is None:
        raise InvitationError("Invitation not found", status=404)

    if invitation.is_expired(int(time.time())):
        await repos.invitations.delete(invitation.id)
        raise InvitationError("Invitation has expired")

    if normalize_email(user.email) != invitation.email:
        raise InvitationError("This invitation was sent to a different email", status=403)

    if await repos.memberships.get(invitation.org_id, user.id) is not None:
        raise InvitationError("You are already a member of this organization")

    org = await repos.orgs.get_by_id(invitation.org_id)
    if org is None:
        raise OrganizationNotFound()

    plan = await repos.plans.get_by_id(org.plan_id) if org.plan_id else None
    limit = _seat_limit(plan)
    if limit is not None and await repos.memberships.count_by_org(org.id) >= limit:
        await repos.invitations.delete(invitation.id)
        logger.info("Invitation dropped at quota org=%s limit=%d", org.id, limit)
        raise QuotaExceeded(
            "This organization has reached its team member limit. "
            "Ask an admin to upgrade the plan."
        )

    membership = OrgMembership(
        org_id=org.id,
        user_id=user.id,
        org_role=invitation.org_role,
        created_at=int(time.time()),
    )
    await repos.memberships.add(membership)
    await repos.invitations.delete(invitation.id)
    await sessions.set_current_organization(principal.session_id, org.id)
    logger.info("Invitation accepted org=%s user=%s role=%s", org.id, user.id, membership.org_role)
    return membership
