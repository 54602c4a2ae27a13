"""Resolve who is calling and which organization they are acting in.

Runs once per request.  When the browser session has no organization
selected, or the selected one is no longer among the user's memberships,
the first membership is chosen and written back to the session so later
requests see the same choice.
"""

from __future__ import annotations

import logging
from uuid import UUID

from tenantgate.models.organization import OrgMembership, OrgRole
from tenantgate.models.principal import Principal
from tenantgate.models.session import SessionContext
from tenantgate.models.user import User
from tenantgate.repos.registry import Repos
from tenantgate.repos.session_repo import SessionStore
from tenantgate.services.authorization import authorize
from tenantgate.services.errors import (
    NoOrganizationSelected,
    NotAMember,
    OrganizationNotFound,
    Unauthenticated,
)

logger = logging.getLogger(__name__)


async def resolve_user(principal: Principal, repos: Repos) -> User:
    user = await repos.users.get_by_id(principal.user_id)
    if user is None:
        raise Unauthenticated("User not found")
    return user


async def resolve_organization_id(
    principal: Principal, repos: Repos, sessions: SessionStore
) -> UUID:
    state = await sessions.get(principal.session_id)
    selected = state.current_organization_id
    if selected is not None:
        # Deleting an organization removes its memberships, so this also
        # catches a selection whose organization is gone.
        if await repos.memberships.get(selected, principal.user_id) is not None:
            return selected
        logger.info(
            "Dropping stale organization selection org=%s for user=%s",
            selected,
            principal.user_id,
        )

    memberships = await repos.memberships.list_by_user(principal.user_id)
    if not memberships:
        if selected is not None:
            await sessions.set_current_organization(principal.session_id, None)
        raise NoOrganizationSelected()

    org_id = memberships[0].org_id
    await sessions.set_current_organization(principal.session_id, org_id)
    logger.info("Selected default organization org=%s for user=%s", org_id, principal.user_id)
    return org_id


async def resolve(
    principal: Principal,
    repos: Repos,
    sessions: SessionStore,
    *,
    minimum_role: OrgRole = "user",
) -> SessionContext:
    user = await resolve_user(principal, repos)
    org_id = await resolve_organization_id(principal, repos, sessions)
    role = await authorize(repos.memberships, principal, org_id, minimum_role)

    organization = await repos.orgs.get_by_id(org_id)
    if organization is None:
        raise OrganizationNotFound()

    plan = None
    if organization.plan_id is not None:
        plan = await repos.plans.get_by_id(organization.plan_id)

    return SessionContext(
        principal=principal,
        user=user,
        organization=organization,
        role=role,
        plan=plan,
    )


async def switch_organization(
    principal: Principal, repos: Repos, sessions: SessionStore, org_id: UUID
) -> OrgMembership:
    membership = await repos.memberships.get(org_id, principal.user_id)
    if membership is None:
        raise NotAMember()
    await sessions.set_current_organization(principal.session_id, org_id)
    logger.info("User %s switched to org=%s", principal.user_id, org_id)
    return membership
