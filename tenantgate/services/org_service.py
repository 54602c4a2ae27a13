"""Organizations, memberships and profile.

Callers pass an already-resolved ``SessionContext`` for anything scoped
to the current organization; the role gate has run by then.  Member
mutation adds the checks the role hierarchy alone cannot express: no one
changes their own role or removes themselves, and the owner is
immutable.  The super-admin variants take an organization id instead of
a context and keep the same member protections.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from tenantgate.models.invitation import Invitation
from tenantgate.models.organization import Organization, OrgMembership, OrgRole
from tenantgate.models.plan import Plan
from tenantgate.models.principal import Principal
from tenantgate.models.session import SessionContext
from tenantgate.models.user import User
from tenantgate.repos.registry import Repos
from tenantgate.services.errors import (
    MemberMutationDenied,
    MemberNotFound,
    OrganizationNotFound,
    SlugTaken,
)
from tenantgate.services.notifications import Notifier, notify_safely

logger = logging.getLogger(__name__)

MIN_NAME_LENGTH = 2
SLUG_ATTEMPTS = 3
ASSIGNABLE_ROLES: frozenset[str] = frozenset({"user", "admin"})


@dataclass(frozen=True, slots=True)
class Member:
    user: User
    membership: OrgMembership


def _clean_name(name: str, what: str) -> str:
    name = name.strip()
    if len(name) < MIN_NAME_LENGTH:
        raise ValueError(f"{what} must be at least {MIN_NAME_LENGTH} characters")
    return name


def slugify(name: str) -> str:
    return "-".join(name.strip().lower().split())


async def _unique_slug(repos: Repos, name: str) -> str:
    base = slugify(name)
    slug = base
    counter = 2
    while await repos.orgs.get_by_slug(slug) is not None:
        slug = f"{base}-{counter}"
        counter += 1
    return slug


async def create_organization(repos: Repos, user_id: UUID, name: str) -> Organization:
    name = _clean_name(name, "Organization name")
    default = await repos.plans.get_default()
    for attempt in range(1, SLUG_ATTEMPTS + 1):
        org = Organization.new(
            name=name,
            slug=await _unique_slug(repos, name),
            plan_id=default.id if default else None,
        )
        try:
            await repos.orgs.add(org)
            break
        except SlugTaken:
            # Another request claimed the slug between lookup and insert.
            if attempt == SLUG_ATTEMPTS:
                raise
            logger.info("Slug %s taken concurrently, retrying", org.slug)
    await repos.memberships.add(OrgMembership(org_id=org.id, user_id=user_id, org_role="owner"))
    logger.info("Organization created org=%s slug=%s owner=%s", org.id, org.slug, user_id)
    return org


async def list_my_organizations(
    repos: Repos, user_id: UUID
) -> list[tuple[Organization, OrgRole]]:
    result = []
    for membership in await repos.memberships.list_by_user(user_id):
        org = await repos.orgs.get_by_id(membership.org_id)
        if org is not None:
            result.append((org, membership.org_role))
    return result


async def rename_organization(repos: Repos, ctx: SessionContext, name: str) -> Organization:
    updated = await repos.orgs.update_name(ctx.org_id, _clean_name(name, "Organization name"))
    if updated is None:
        raise OrganizationNotFound()
    logger.info("Organization renamed org=%s by user=%s", ctx.org_id, ctx.user_id)
    return updated


async def update_my_name(repos: Repos, user_id: UUID, name: str) -> User:
    updated = await repos.users.update_name(user_id, _clean_name(name, "Name"))
    if updated is None:
        raise MemberNotFound("User not found")
    return updated


async def list_members(repos: Repos, org_id: UUID) -> list[Member]:
    memberships = await repos.memberships.list_by_org(org_id)
    users = await repos.users.get_many([m.user_id for m in memberships])
    return [Member(users[m.user_id], m) for m in memberships if m.user_id in users]


async def _mutable_member(
    repos: Repos, org_id: UUID, actor_id: UUID, member_id: UUID, *, self_message: str
) -> tuple[User, OrgMembership]:
    if member_id == actor_id:
        raise MemberMutationDenied(self_message, status=400)

    membership = await repos.memberships.get(org_id, member_id)
    if membership is None:
        raise MemberNotFound()
    if membership.org_role == "owner":
        raise MemberMutationDenied("The organization owner cannot be changed or removed")

    user = await repos.users.get_by_id(member_id)
    if user is None:
        raise MemberNotFound()
    return user, membership


async def _change_role(
    repos: Repos,
    notifier: Notifier,
    org: Organization,
    actor_id: UUID,
    actor_name: str,
    member_id: UUID,
    role: str,
) -> OrgMembership:
    if role not in ASSIGNABLE_ROLES:
        raise ValueError("role must be 'user' or 'admin'")

    user, _ = await _mutable_member(
        repos, org.id, actor_id, member_id, self_message="You cannot change your own role"
    )
    updated = await repos.memberships.update_role(org.id, member_id, role)
    if updated is None:
        raise MemberNotFound()

    logger.info(
        "Member role changed org=%s member=%s role=%s by=%s",
        org.id,
        member_id,
        role,
        actor_id,
    )
    await notify_safely(
        notifier.role_changed(
            email=user.email,
            org_name=org.name,
            new_role=role,
            changed_by=actor_name,
        ),
        kind="role_changed",
    )
    return updated


async def _remove(
    repos: Repos,
    notifier: Notifier,
    org: Organization,
    actor_id: UUID,
    actor_name: str,
    member_id: UUID,
) -> None:
    user, _ = await _mutable_member(
        repos, org.id, actor_id, member_id, self_message="You cannot remove yourself"
    )
    if not await repos.memberships.remove(org.id, member_id):
        raise MemberNotFound()

    logger.info("Member removed org=%s member=%s by=%s", org.id, member_id, actor_id)
    await notify_safely(
        notifier.access_revoked(
            email=user.email,
            org_name=org.name,
            revoked_by=actor_name,
        ),
        kind="access_revoked",
    )


async def change_member_role(
    repos: Repos,
    notifier: Notifier,
    ctx: SessionContext,
    member_id: UUID,
    role: str,
) -> OrgMembership:
    return await _change_role(
        repos,
        notifier,
        ctx.organization,
        ctx.user_id,
        ctx.user.name or ctx.user.email,
        member_id,
        role,
    )


async def remove_member(
    repos: Repos, notifier: Notifier, ctx: SessionContext, member_id: UUID
) -> None:
    await _remove(
        repos, notifier, ctx.organization, ctx.user_id, ctx.user.name or ctx.user.email, member_id
    )


async def _require_org(repos: Repos, org_id: UUID) -> Organization:
    org = await repos.orgs.get_by_id(org_id)
    if org is None:
        raise OrganizationNotFound()
    return org


async def admin_change_member_role(
    repos: Repos,
    notifier: Notifier,
    principal: Principal,
    org_id: UUID,
    member_id: UUID,
    role: str,
) -> OrgMembership:
    """Super-admin role change in any organization.  The owner stays immutable."""
    org = await _require_org(repos, org_id)
    return await _change_role(
        repos, notifier, org, principal.user_id, principal.email, member_id, role
    )


async def admin_remove_member(
    repos: Repos, notifier: Notifier, principal: Principal, org_id: UUID, member_id: UUID
) -> None:
    org = await _require_org(repos, org_id)
    await _remove(repos, notifier, org, principal.user_id, principal.email, member_id)


# ---- super-admin overview ----


@dataclass(frozen=True, slots=True)
class OrgSummary:
    organization: Organization
    plan: Plan | None
    member_count: int
    coupon_count: int


@dataclass(frozen=True, slots=True)
class OrgDetail:
    organization: Organization
    plan: Plan | None
    members: list[Member]
    invitations: list[Invitation]
    coupon_count: int


async def list_all_organizations(repos: Repos) -> list[OrgSummary]:
    plans = {p.id: p for p in await repos.plans.list_all()}
    return [
        OrgSummary(
            organization=org,
            plan=plans.get(org.plan_id) if org.plan_id else None,
            member_count=await repos.memberships.count_by_org(org.id),
            coupon_count=await repos.coupons.count_valid(org.id),
        )
        for org in await repos.orgs.list_all()
    ]


async def get_organization_detail(repos: Repos, org_id: UUID) -> OrgDetail:
    org = await _require_org(repos, org_id)
    plan = await repos.plans.get_by_id(org.plan_id) if org.plan_id else None
    return OrgDetail(
        organization=org,
        plan=plan,
        members=await list_members(repos, org_id),
        invitations=await repos.invitations.list_by_org(org_id),
        coupon_count=await repos.coupons.count_valid(org_id),
    )


async def delete_organization(repos: Repos, org_id: UUID) -> None:
    """Remove an organization and everything scoped to it.

    Its coupons stay in the ledger, unbound and expired, so they can
    never be redeemed or counted again.
    """
    await _require_org(repos, org_id)

    members = await repos.memberships.remove_all_for_org(org_id)
    invitations = await repos.invitations.delete_all_for_org(org_id)
    coupons = await repos.coupons.retire_for_org(org_id)
    await repos.orgs.delete(org_id)
    logger.info(
        "Organization deleted org=%s members=%d invitations=%d coupons_retired=%d",
        org_id,
        members,
        invitations,
        coupons,
    )
