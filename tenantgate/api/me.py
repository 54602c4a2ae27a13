"""The caller's own profile."""

from __future__ import annotations

from typing import Annotated

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from tenantgate.api.dependencies import get_repos, require_user
from tenantgate.api.schemas import Name
from tenantgate.models.user import User
from tenantgate.repos.registry import Repos
from tenantgate.services import org_service

router = APIRouter(tags=["profile"])


class ProfileOut(BaseModel):
    id: str
    email: str
    name: str


class UpdateProfileIn(BaseModel):
    name: Name


@router.get("/auth/me", response_model=ProfileOut)
async def get_my_profile(user: Annotated[User, Depends(require_user)]) -> ProfileOut:
    return ProfileOut(id=str(user.id), email=user.email, name=user.name)


@router.patch("/auth/me", response_model=ProfileOut)
async def update_my_profile(
    body: UpdateProfileIn,
    user: Annotated[User, Depends(require_user)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> ProfileOut:
    updated = await org_service.update_my_name(repos, user.id, body.name)
    return ProfileOut(id=str(updated.id), email=updated.email, name=updated.name)
