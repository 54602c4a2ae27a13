"""One bundle of repositories per unit of work.

Services take a ``Repos`` instead of six separate arguments.  The
in-memory bundle is a process-wide singleton; a PostgreSQL bundle wraps
a single AsyncSession so every read in an operation sees the writes
that came before it.
"""

from __future__ import annotations

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from tenantgate.repos.coupon_repo import CouponRepo, InMemoryCouponRepo
from tenantgate.repos.invitation_repo import InMemoryInvitationRepo, InvitationRepo
from tenantgate.repos.org_membership_repo import (
    InMemoryOrgMembershipRepo,
    OrgMembershipRepo,
)
from tenantgate.repos.org_repo import InMemoryOrgRepo, OrgRepo
from tenantgate.repos.pg_coupon_repo import PgCouponRepo
from tenantgate.repos.pg_invitation_repo import PgInvitationRepo
from tenantgate.repos.pg_org_membership_repo import PgOrgMembershipRepo
from tenantgate.repos.pg_org_repo import PgOrgRepo
from tenantgate.repos.pg_plan_repo import PgPlanRepo
from tenantgate.repos.pg_user_repo import PgUserRepo
from tenantgate.repos.plan_repo import InMemoryPlanRepo, PlanRepo
from tenantgate.repos.user_repo import InMemoryUserRepo, UserRepo


@dataclass(frozen=True)
class Repos:
    users: UserRepo
    orgs: OrgRepo
    memberships: OrgMembershipRepo
    invitations: InvitationRepo
    coupons: CouponRepo
    plans: PlanRepo
    session: AsyncSession | None = None

    @asynccontextmanager
    async def savepoint(self) -> AsyncIterator[None]:
        """Scope a step so its failure rolls back only that step."""
        if self.session is None:
            yield
            return
        async with self.session.begin_nested():
            yield


def in_memory_repos() -> Repos:
    return Repos(
        users=InMemoryUserRepo(),
        orgs=InMemoryOrgRepo(),
        memberships=InMemoryOrgMembershipRepo(),
        invitations=InMemoryInvitationRepo(),
        coupons=InMemoryCouponRepo(),
        plans=InMemoryPlanRepo(),
    )


def pg_repos(session: AsyncSession) -> Repos:
    return Repos(
        users=PgUserRepo(session),
        orgs=PgOrgRepo(session),
        memberships=PgOrgMembershipRepo(session),
        invitations=PgInvitationRepo(session),
        coupons=PgCouponRepo(session),
        plans=PgPlanRepo(session),
        session=session,
    )


# Used whenever DATABASE_URL is unset (local dev, tests).
memory_repos = in_memory_repos()
