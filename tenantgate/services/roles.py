"""Organization role hierarchy: owner > admin > user."""

from __future__ import annotations

from tenantgate.models.organization import OrgRole

ROLE_RANK: dict[str, int] = {"user": 0, "admin": 1, "owner": 2}


def role_rank(role: str) -> int:
    try:
        return ROLE_RANK[role]
    except KeyError:
        raise ValueError(f"unknown org role: {role!r}") from None


def has_higher_or_equal_role(current: OrgRole, required: OrgRole) -> bool:
    return role_rank(current) >= role_rank(required)
