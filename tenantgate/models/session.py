from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID

from tenantgate.models.organization import Organization, OrgRole
from tenantgate.models.plan import Plan
from tenantgate.models.principal import Principal
from tenantgate.models.user import User


@dataclass(frozen=True, slots=True)
class SessionState:
    """What the browser session remembers between requests."""

    current_organization_id: UUID | None = None


@dataclass(frozen=True, slots=True)
class SessionContext:
    """Who is acting, as which organization, with which role.

    Built once per request by ``session_context.resolve`` at the
    authorization boundary; handlers read these fields instead of going
    back to storage.
    """

    principal: Principal
    user: User
    organization: Organization
    role: OrgRole
    plan: Plan | None = None

    @property
    def user_id(self) -> UUID:
        return self.user.id

    @property
    def org_id(self) -> UUID:
        return self.organization.id
