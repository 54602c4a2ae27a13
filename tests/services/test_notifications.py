from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import replace

import httpx
import pytest

from tenantgate import worker
from tenantgate.services.notifications import (
    NOTIFICATIONS_QUEUE,
    QueueNotifier,
    notify_safely,
    render_notification,
)
from tenantgate.services.task_queue import InMemoryTaskQueue


@pytest.fixture
def queue() -> InMemoryTaskQueue:
    return InMemoryTaskQueue()


# ---- rendering ----


@pytest.mark.parametrize(
    "payload,subject,fragment",
    [
        (
            {"kind": "role_changed", "email": "a@example.com", "org_name": "Acme",
             "new_role": "admin", "changed_by": "Olive"},
            "Your role has been updated in Acme",
            "Olive changed your role in Acme to admin.",
        ),
        (
            {"kind": "access_revoked", "email": "a@example.com", "org_name": "Acme",
             "revoked_by": "Olive"},
            "Your access to Acme has been revoked",
            "Olive removed you from Acme.",
        ),
        (
            {"kind": "invited", "email": "a@example.com", "org_name": "Acme", "role": "user",
             "invited_by": "Olive", "accept_url": "https://app/x?token=t", "expires_at": 0},
            "Join Acme",
            "https://app/x?token=t",
        ),
    ],
)
def test_render_notification(payload: dict, subject: str, fragment: str) -> None:
    to, rendered_subject, text = render_notification(payload)
    assert to == "a@example.com"
    assert rendered_subject == subject
    assert fragment in text


def test_render_unknown_kind() -> None:
    with pytest.raises(ValueError, match="unknown notification kind"):
        render_notification({"kind": "party", "email": "a@example.com"})


# ---- enqueueing ----


def test_queue_notifier_enqueues_payload(queue: InMemoryTaskQueue) -> None:
    notifier = QueueNotifier(queue)
    asyncio.run(notifier.access_revoked(email="a@example.com", org_name="Acme", revoked_by="Olive"))

    assert asyncio.run(queue.queue_length(NOTIFICATIONS_QUEUE)) == 1
    task = asyncio.run(queue.dequeue(NOTIFICATIONS_QUEUE))
    assert task is not None
    assert task.payload == {
        "kind": "access_revoked",
        "email": "a@example.com",
        "org_name": "Acme",
        "revoked_by": "Olive",
    }


def test_notify_safely_logs_failure(caplog: pytest.LogCaptureFixture) -> None:
    async def boom() -> None:
        raise ConnectionError("redis down")

    with caplog.at_level(logging.ERROR):
        asyncio.run(notify_safely(boom(), kind="invited"))

    assert "Failed to enqueue invited notification" in caplog.text


# ---- worker ----

ROLE_CHANGED = {
    "kind": "role_changed",
    "email": "a@example.com",
    "org_name": "Acme",
    "new_role": "admin",
    "changed_by": "Olive",
}


def test_handle_notification_without_webhook_logs(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    monkeypatch.setattr(worker, "SETTINGS", replace(worker.SETTINGS, mail_webhook_url=None))

    with caplog.at_level(logging.INFO):
        asyncio.run(worker.handle_notification(ROLE_CHANGED))

    assert "would send 'Your role has been updated in Acme' to a@example.com" in caplog.text


def test_handle_notification_posts_to_webhook(monkeypatch: pytest.MonkeyPatch) -> None:
    sent: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        sent.append(json.loads(request.content))
        return httpx.Response(202)

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        worker.httpx,
        "AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    monkeypatch.setattr(
        worker, "SETTINGS", replace(worker.SETTINGS, mail_webhook_url="https://mail.test/send")
    )

    asyncio.run(worker.handle_notification(ROLE_CHANGED))

    assert len(sent) == 1
    assert sent[0]["to"] == "a@example.com"
    assert sent[0]["subject"] == "Your role has been updated in Acme"


def test_process_one_handles_task(queue: InMemoryTaskQueue, monkeypatch: pytest.MonkeyPatch) -> None:
    handled: list[dict] = []

    async def record(payload: dict) -> None:
        handled.append(payload)

    monkeypatch.setitem(worker.HANDLERS, NOTIFICATIONS_QUEUE, record)
    asyncio.run(queue.enqueue(NOTIFICATIONS_QUEUE, ROLE_CHANGED))

    assert asyncio.run(worker.process_one(queue, NOTIFICATIONS_QUEUE)) is True
    assert handled == [ROLE_CHANGED]
    assert asyncio.run(worker.process_one(queue, NOTIFICATIONS_QUEUE)) is False


def test_process_one_drops_failing_task(
    queue: InMemoryTaskQueue, caplog: pytest.LogCaptureFixture
) -> None:
    asyncio.run(queue.enqueue(NOTIFICATIONS_QUEUE, {"kind": "party", "email": "a@example.com"}))

    with caplog.at_level(logging.ERROR):
        assert asyncio.run(worker.process_one(queue, NOTIFICATIONS_QUEUE)) is True

    assert "failed" in caplog.text
    assert asyncio.run(queue.queue_length(NOTIFICATIONS_QUEUE)) == 0
