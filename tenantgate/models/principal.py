from __future__ import annotations

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated identity extracted from a validated bearer token.

    user_id:    JWT ``sub``, parsed as a UUID
    email:      JWT ``email``, lowercased; used for the super-admin
                allow-list and invitation matching
    session_id: JWT ``sid``; keys the browser session that remembers the
                currently selected organization
    """

    user_id: UUID
    email: str
    session_id: str

    def is_super_admin(self, allow_list: frozenset[str]) -> bool:
        return bool(self.email) and self.email.lower() in allow_list
