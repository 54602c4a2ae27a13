from __future__ import annotations

from typing import Protocol
from uuid import UUID

from tenantgate.models.invitation import Invitation


class InvitationRepo(Protocol):
    async def add(self, invitation: Invitation) -> None: ...
    async def get_by_token(self, token: str) -> Invitation | None: ...
    async def get_pending(self, org_id: UUID, email: str) -> Invitation | None: ...
    async def list_by_org(self, org_id: UUID) -> list[Invitation]: ...
    async def count_by_org(self, org_id: UUID) -> int: ...
    async def delete(self, invitation_id: UUID, org_id: UUID | None = None) -> bool: ...
    async def delete_all_for_org(self, org_id: UUID) -> int: ...


class InMemoryInvitationRepo:
    def __init__(self) -> None:
        self._by_id: dict[UUID, Invitation] = {}

    async def add(self, invitation: Invitation) -> None:
        self._by_id[invitation.id] = invitation

    async def get_by_token(self, token: str) -> Invitation | None:
        return next((i for i in self._by_id.values() if i.token == token), None)

    async def get_pending(self, org_id: UUID, email: str) -> Invitation | None:
        return next(
            (i for i in self._by_id.values() if i.org_id == org_id and i.email == email),
            None,
        )

    async def list_by_org(self, org_id: UUID) -> list[Invitation]:
        return [i for i in self._by_id.values() if i.org_id == org_id]

    async def count_by_org(self, org_id: UUID) -> int:
        return sum(1 for i in self._by_id.values() if i.org_id == org_id)

    async def delete(self, invitation_id: UUID, org_id: UUID | None = None) -> bool:
        invitation = self._by_id.get(invitation_id)
        if invitation is None:
            return False
        if org_id is not None and invitation.org_id != org_id:
            return False
        del self._by_id[invitation_id]
        return True

    async def delete_all_for_org(self, org_id: UUID) -> int:
        ids = [i.id for i in self._by_id.values() if i.org_id == org_id]
        for invitation_id in ids:
            del self._by_id[invitation_id]
        return len(ids)
