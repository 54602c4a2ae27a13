from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Literal
from uuid import UUID, uuid4

OrgRole = Literal["owner", "admin", "user"]

ORG_ROLES: tuple[OrgRole, ...] = ("owner", "admin", "user")

# Billing identifiers an organization may carry, one pair per provider.
BILLING_FIELDS = (
    "stripe_customer_id",
    "stripe_subscription_id",
    "lemon_squeezy_customer_id",
    "lemon_squeezy_subscription_id",
    "dodo_customer_id",
    "dodo_subscription_id",
)


@dataclass(frozen=True, slots=True)
class Organization:
    id: UUID
    name: str
    slug: str
    plan_id: UUID | None = None
    created_at: int = 0
    stripe_customer_id: str | None = None
    stripe_subscription_id: str | None = None
    lemon_squeezy_customer_id: str | None = None
    lemon_squeezy_subscription_id: str | None = None
    dodo_customer_id: str | None = None
    dodo_subscription_id: str | None = None

    @staticmethod
    def new(*, name: str, slug: str, plan_id: UUID | None = None) -> Organization:
        return Organization(
            id=uuid4(),
            name=name,
            slug=slug,
            plan_id=plan_id,
            created_at=int(time.time()),
        )

    def has_billing_ids(self) -> bool:
        return any(getattr(self, f) is not None for f in BILLING_FIELDS)


@dataclass(frozen=True, slots=True)
class OrgMembership:
    """(org, user) binding.  Its own record, referenced by id from both sides."""

    org_id: UUID
    user_id: UUID
    org_role: OrgRole
    created_at: int = 0
