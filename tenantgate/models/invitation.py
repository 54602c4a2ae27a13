from __future__ import annotations

import secrets
import time
from dataclasses import dataclass
from uuid import UUID, uuid4

from tenantgate.models.organization import OrgRole
from tenantgate.models.user import normalize_email

INVITATION_TTL_SECONDS = 7 * 24 * 3600


@dataclass(frozen=True, slots=True)
class Invitation:
    id: UUID
    org_id: UUID
    email: str
    org_role: OrgRole
    token: str
    expires_at: int
    invited_by: UUID | None = None
    created_at: int = 0

    @staticmethod
    def new(
        *,
        org_id: UUID,
        email: str,
        org_role: OrgRole,
        invited_by: UUID | None = None,
    ) -> Invitation:
        now = int(time.time())
        return Invitation(
            id=uuid4(),
            org_id=org_id,
            email=normalize_email(email),
            org_role=org_role,
            token=secrets.token_urlsafe(24),
            expires_at=now + INVITATION_TTL_SECONDS,
            invited_by=invited_by,
            created_at=now,
        )

    def is_expired(self, now: int | None = None) -> bool:
        return (now if now is not None else int(time.time())) > self.expires_at
