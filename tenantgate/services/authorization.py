"""The authorization gate.

Two independent checks:

- ``authorize``: membership in a specific organization with at least a
  minimum role.  Looked up from storage on every call.
- ``require_super_admin``: principal email in the configured allow-list.

Neither implies the other; a super-admin gets no organization role and
an owner gets no super-admin rights.
"""

from __future__ import annotations

import logging
from uuid import UUID

from tenantgate.core.metrics import AUTHZ_DENIALS
from tenantgate.models.organization import OrgRole
from tenantgate.models.principal import Principal
from tenantgate.repos.org_membership_repo import OrgMembershipRepo
from tenantgate.services.errors import Forbidden
from tenantgate.services.roles import has_higher_or_equal_role

logger = logging.getLogger(__name__)


async def authorize(
    memberships: OrgMembershipRepo,
    principal: Principal,
    org_id: UUID,
    minimum_role: OrgRole,
) -> OrgRole:
    """Return the caller's role in *org_id*, or raise Forbidden."""
    membership = await memberships.get(org_id, principal.user_id)
    if membership is None:
        AUTHZ_DENIALS.labels(reason="not_member").inc()
        logger.warning(
            "Access denied: user=%s not a member of org=%s required=%s",
            principal.user_id,
            org_id,
            minimum_role,
        )
        raise Forbidden("You do not have access to this organization")

    if not has_higher_or_equal_role(membership.org_role, minimum_role):
        AUTHZ_DENIALS.labels(reason="insufficient_role").inc()
        logger.warning(
            "Access denied: user=%s org_role=%s required=%s org=%s",
            principal.user_id,
            membership.org_role,
            minimum_role,
            org_id,
        )
        raise Forbidden("You do not have the required role to perform this action")

    return membership.org_role


def require_super_admin(principal: Principal, allow_list: frozenset[str]) -> Principal:
    if not allow_list:
        AUTHZ_DENIALS.labels(reason="not_super_admin").inc()
        logger.warning("Super-admin check for user=%s with no allow-list", principal.user_id)
        raise Forbidden("No super admins configured")

    if not principal.is_super_admin(allow_list):
        AUTHZ_DENIALS.labels(reason="not_super_admin").inc()
        logger.warning("Access denied: user=%s is not a super admin", principal.user_id)
        raise Forbidden("Only super admins can access this resource")

    return principal
