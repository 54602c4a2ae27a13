from __future__ import annotations

import asyncio
from dataclasses import replace
from uuid import UUID

import pytest
from fastapi.testclient import TestClient

from tenantgate.api import dependencies
from tenantgate.api.dependencies import session_store
from tenantgate.main import app
from tenantgate.models.coupon import Coupon
from tenantgate.models.organization import Organization, OrgMembership
from tenantgate.models.plan import Plan, Quotas
from tenantgate.models.user import User
from tenantgate.repos.registry import memory_repos
from tenantgate.services import token_service
from tenantgate.services.task_queue import task_queue

SUPER_ADMIN_EMAIL = "root@example.com"


@pytest.fixture(autouse=True)
def reset_repos() -> None:
    """Clear every in-memory store between tests."""
    memory_repos.users._by_id.clear()  # type: ignore[attr-defined]
    memory_repos.users._by_email.clear()  # type: ignore[attr-defined]
    memory_repos.orgs._by_id.clear()  # type: ignore[attr-defined]
    memory_repos.memberships._store.clear()  # type: ignore[attr-defined]
    memory_repos.invitations._by_id.clear()  # type: ignore[attr-defined]
    memory_repos.coupons._by_id.clear()  # type: ignore[attr-defined]
    memory_repos.plans._plans.clear()  # type: ignore[attr-defined]


@pytest.fixture(autouse=True)
def reset_sessions() -> None:
    if hasattr(session_store, "_sessions"):
        session_store._sessions.clear()  # type: ignore[union-attr]


@pytest.fixture(autouse=True)
def reset_task_queue() -> None:
    if hasattr(task_queue, "_queues"):
        task_queue._queues.clear()  # type: ignore[union-attr]


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


@pytest.fixture
def super_admins(monkeypatch: pytest.MonkeyPatch) -> frozenset[str]:
    """Configure a one-entry super-admin allow-list."""
    allow_list = frozenset({SUPER_ADMIN_EMAIL})
    monkeypatch.setattr(
        dependencies,
        "SETTINGS",
        replace(dependencies.SETTINGS, super_admin_emails=allow_list),
    )
    return allow_list


def run(coro):
    """Drive a coroutine to completion from a synchronous test."""
    return asyncio.run(coro)


def auth(token: str | None) -> dict[str, str]:
    if token is None:
        return {}
    return {"Authorization": f"Bearer {token}"}


def mint_token(user: User | UUID | str, email: str | None = None, sid: str | None = None) -> str:
    """Create a valid ES256 JWT for *user*.

    Each call gets a fresh browser session unless *sid* is given.
    """
    if isinstance(user, User):
        return token_service.create_access_token(
            sub=str(user.id), email=email or user.email, sid=sid
        )
    return token_service.create_access_token(
        sub=str(user), email=email or "nobody@example.com", sid=sid
    )


# ---------------------------------------------------------------------------
# Seed helpers (write straight to the in-memory repos)
# ---------------------------------------------------------------------------


def create_test_user(email: str = "user@example.com", name: str = "Test User") -> User:
    user = User.new(email=email, name=name)
    run(memory_repos.users.add(user))
    return user


def create_test_plan(
    codename: str = "free",
    *,
    required_coupon_count: int | None = None,
    is_default: bool = False,
    team_members: int | None = 5,
) -> Plan:
    plan = Plan.new(
        codename=codename,
        required_coupon_count=required_coupon_count,
        is_default=is_default,
        quotas=Quotas(team_members=team_members),
    )
    run(memory_repos.plans.add(plan))
    return plan


def create_test_org(
    slug: str = "test-org", *, plan: Plan | None = None, **billing: str
) -> Organization:
    org = Organization.new(
        name=slug.replace("-", " ").title(),
        slug=slug,
        plan_id=plan.id if plan else None,
    )
    if billing:
        org = replace(org, **billing)
    run(memory_repos.orgs.add(org))
    return org


def add_test_member(org_id: UUID, user_id: UUID, org_role: str = "user") -> OrgMembership:
    m = OrgMembership(org_id=org_id, user_id=user_id, org_role=org_role)  # type: ignore[arg-type]
    run(memory_repos.memberships.add(m))
    return m


def create_test_coupons(*codes: str) -> list[Coupon]:
    coupons = [Coupon.new(code=c) for c in codes]
    run(memory_repos.coupons.add_many(coupons))
    return coupons
