from __future__ import annotations

import time
from dataclasses import dataclass
from uuid import UUID, uuid4


def normalize_email(email: str) -> str:
    return email.strip().lower()


@dataclass(frozen=True, slots=True)
class User:
    id: UUID
    email: str
    name: str = ""
    created_at: int = 0

    @staticmethod
    def new(*, email: str, name: str = "", user_id: UUID | None = None) -> User:
        return User(
            id=user_id or uuid4(),
            email=normalize_email(email),
            name=name.strip(),
            created_at=int(time.time()),
        )
