"""Outbound member notifications.

Services call a ``Notifier`` after a membership change has been made.
The default implementation only enqueues; the worker renders and sends.
Notification failures never undo the change that triggered them.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable
from typing import Protocol

from tenantgate.core.metrics import NOTIFICATIONS_ENQUEUED
from tenantgate.services.task_queue import TaskQueue

logger = logging.getLogger(__name__)

NOTIFICATIONS_QUEUE = "notifications"


class Notifier(Protocol):
    async def role_changed(
        self, *, email: str, org_name: str, new_role: str, changed_by: str
    ) -> None: ...

    async def access_revoked(self, *, email: str, org_name: str, revoked_by: str) -> None: ...

    async def invited(
        self,
        *,
        email: str,
        org_name: str,
        role: str,
        invited_by: str,
        accept_url: str,
        expires_at: int,
    ) -> None: ...


class QueueNotifier:
    def __init__(self, queue: TaskQueue) -> None:
        self._queue = queue

    async def _enqueue(self, kind: str, **payload) -> None:
        await self._queue.enqueue(NOTIFICATIONS_QUEUE, {"kind": kind, **payload})
        NOTIFICATIONS_ENQUEUED.labels(kind=kind).inc()

    async def role_changed(
        self, *, email: str, org_name: str, new_role: str, changed_by: str
    ) -> None:
        await self._enqueue(
            "role_changed", email=email, org_name=org_name, new_role=new_role, changed_by=changed_by
        )

    async def access_revoked(self, *, email: str, org_name: str, revoked_by: str) -> None:
        await self._enqueue(
            "access_revoked", email=email, org_name=org_name, revoked_by=revoked_by
        )

    async def invited(
        self,
        *,
        email: str,
        org_name: str,
        role: str,
        invited_by: str,
        accept_url: str,
        expires_at: int,
    ) -> None:
        await self._enqueue(
            "invited",
            email=email,
            org_name=org_name,
            role=role,
            invited_by=invited_by,
            accept_url=accept_url,
            expires_at=expires_at,
        )


async def notify_safely(pending: Awaitable[None], *, kind: str) -> None:
    try:
        await pending
    except Exception:
        logger.exception("Failed to enqueue %s notification", kind)


def render_notification(payload: dict) -> tuple[str, str, str]:
    """Return (to, subject, text) for a queued notification payload."""
    kind = payload.get("kind")
    org = payload.get("org_name", "")
    to = payload["email"]
    if kind == "role_changed":
        return (
            to,
            f"Your role has been updated in {org}",
            f"{payload.get('changed_by')} changed your role in {org} to "
            f"{payload.get('new_role')}.",
        )
    if kind == "access_revoked":
        return (
            to,
            f"Your access to {org} has been revoked",
            f"{payload.get('revoked_by')} removed you from {org}.",
        )
    if kind == "invited":
        return (
            to,
            f"Join {org}",
            f"{payload.get('invited_by')} invited you to join {org} as "
            f"{payload.get('role')}.\n\nAccept the invitation: {payload.get('accept_url')}\n"
            f"This link expires in 7 days.",
        )
    raise ValueError(f"unknown notification kind: {kind!r}")
