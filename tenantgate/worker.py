"""Background worker: delivers queued notifications.

RUN:  python -m tenantgate.worker

Same image as the API, different command.  Each registered queue is
polled in turn; a failing task is logged and dropped (at-most-once).
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Coroutine
from typing import Any

import httpx

from tenantgate.core.config import SETTINGS
from tenantgate.core.logging import setup_logging
from tenantgate.services.notifications import NOTIFICATIONS_QUEUE, render_notification
from tenantgate.services.task_queue import RedisTaskQueue, TaskQueue, task_queue

TaskHandler = Callable[[dict], Coroutine[Any, Any, None]]

logger = logging.getLogger("tenantgate.worker")

HANDLERS: dict[str, TaskHandler] = {}

MAIL_TIMEOUT_SECONDS = 10.0


def register_handler(queue: str):
    """Decorator: register a coroutine as the handler for a queue."""

    def decorator(func):
        HANDLERS[queue] = func
        return func

    return decorator


@register_handler(NOTIFICATIONS_QUEUE)
async def handle_notification(payload: dict) -> None:
    to, subject, text = render_notification(payload)

    if not SETTINGS.mail_webhook_url:
        logger.info("Mail webhook not configured; would send %r to %s", subject, to)
        return

    async with httpx.AsyncClient(timeout=MAIL_TIMEOUT_SECONDS) as client:
        response = await client.post(
            SETTINGS.mail_webhook_url,
            json={"to": to, "subject": subject, "text": text},
        )
        response.raise_for_status()
    logger.info("Sent %s notification to %s", payload.get("kind"), to)


async def process_one(queue: TaskQueue, queue_name: str, timeout: int = 1) -> bool:
    """Handle at most one task from *queue_name*.  Returns True if one was taken."""
    task = await queue.dequeue(queue_name, timeout=timeout)
    if task is None:
        return False

    try:
        await HANDLERS[queue_name](task.payload)
        logger.info("Task %s on [%s] completed", task.id, queue_name)
    except Exception:
        logger.exception("Task %s on [%s] failed", task.id, queue_name)
    return True


async def run_worker() -> None:
    queues = list(HANDLERS)
    logger.info("Worker started, listening on queues: %s", queues)
    while True:
        handled = False
        for queue_name in queues:
            handled |= await process_one(task_queue, queue_name)
        if not handled and not isinstance(task_queue, RedisTaskQueue):
            # In-memory dequeue does not block.
            await asyncio.sleep(1)


if __name__ == "__main__":
    setup_logging(SETTINGS.log_level, json_format=SETTINGS.log_json)
    asyncio.run(run_worker())
