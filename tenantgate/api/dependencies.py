from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from typing import Annotated
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer

from tenantgate.core.config import SETTINGS
from tenantgate.core.logging import org_id_var, user_id_var
from tenantgate.db.engine import async_session_factory
from tenantgate.db.redis import redis_pool
from tenantgate.models.organization import OrgRole
from tenantgate.models.principal import Principal
from tenantgate.models.session import SessionContext
from tenantgate.models.user import User, normalize_email
from tenantgate.repos.registry import Repos, memory_repos, pg_repos
from tenantgate.repos.session_repo import (
    InMemorySessionStore,
    RedisSessionStore,
    SessionStore,
)
from tenantgate.services import authorization, session_context, token_service
from tenantgate.services.errors import TenantGateError
from tenantgate.services.notifications import Notifier, QueueNotifier
from tenantgate.services.task_queue import task_queue

logger = logging.getLogger(__name__)

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/oauth/token")

if redis_pool is not None:
    session_store: SessionStore = RedisSessionStore(redis_pool, SETTINGS.session_ttl_seconds)
else:
    session_store = InMemorySessionStore()

notifier: Notifier = QueueNotifier(task_queue)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


def to_http_exception(exc: TenantGateError) -> HTTPException:
    headers = {"WWW-Authenticate": "Bearer"} if exc.status == 401 else None
    return HTTPException(status_code=exc.status, detail=exc.message, headers=headers)


async def require_principal(
    raw_token: Annotated[str, Depends(oauth2_scheme)],
) -> Principal:
    """Validate the bearer token and build the request's Principal."""
    try:
        claims = token_service.decode_access_token(raw_token)
    except jwt.ExpiredSignatureError:
        logger.warning("Expired token rejected")
        raise _unauthorized("Token expired") from None
    except jwt.InvalidTokenError as e:
        logger.warning("Invalid token rejected: %s", e)
        raise _unauthorized("Invalid token") from None

    try:
        user_id = UUID(str(claims["sub"]))
    except ValueError:
        logger.warning("Token with non-UUID subject rejected")
        raise _unauthorized("Invalid token subject") from None

    principal = Principal(
        user_id=user_id,
        email=normalize_email(claims.get("email") or ""),
        session_id=str(claims.get("sid") or claims["jti"]),
    )
    user_id_var.set(str(principal.user_id))
    return principal


async def get_repos() -> AsyncGenerator[Repos, None]:
    """One unit of work per request.

    Domain rejections commit: they are raised before any write except
    deliberate cleanup (an expired or over-quota invitation is deleted),
    and that cleanup must stick.  Anything else rolls back.
    """
    if async_session_factory is None:
        yield memory_repos
        return

    async with async_session_factory() as session:
        try:
            yield pg_repos(session)
        except TenantGateError:
            await session.commit()
            raise
        except Exception:
            await session.rollback()
            raise
        else:
            await session.commit()


def get_session_store() -> SessionStore:
    return session_store


def get_notifier() -> Notifier:
    return notifier


async def require_user(
    principal: Annotated[Principal, Depends(require_principal)],
    repos: Annotated[Repos, Depends(get_repos)],
) -> User:
    return await session_context.resolve_user(principal, repos)


def require_org_role(minimum_role: OrgRole):
    """Dependency factory: resolve the SessionContext and gate it.

    Usage::

        _require_admin = require_org_role("admin")

        @router.patch("/v1/orgs/current")
        async def rename(ctx: Annotated[SessionContext, Depends(_require_admin)]):
            ...
    """

    async def _guard(
        principal: Annotated[Principal, Depends(require_principal)],
        repos: Annotated[Repos, Depends(get_repos)],
        sessions: Annotated[SessionStore, Depends(get_session_store)],
    ) -> SessionContext:
        ctx = await session_context.resolve(
            principal, repos, sessions, minimum_role=minimum_role
        )
        org_id_var.set(str(ctx.org_id))
        return ctx

    return _guard


async def require_super_admin(
    principal: Annotated[Principal, Depends(require_principal)],
) -> Principal:
    return authorization.require_super_admin(principal, SETTINGS.super_admin_emails)
