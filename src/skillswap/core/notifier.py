"""Notifier gateway: fire-and-forget transition events.

The booking service hands every successful transition to a
NotificationDispatcher, which delivers it in the background. Delivery is
at-most-once from this side; failures are logged and never reach the
caller. Retry and multi-channel fan-out belong to the notification
subsystem behind the gateway, which should deduplicate on ``event_id``.
"""

import asyncio
import os
import uuid
from datetime import datetime
from typing import Protocol

import httpx
from pydantic import BaseModel, Field

from skillswap.core.logging import get_logger

logger = get_logger(__name__)


class TransitionEvent(BaseModel):
    """A successful state change of a session."""

    event_id: uuid.UUID = Field(default_factory=uuid.uuid4)
    session_id: uuid.UUID
    action: str
    from_status: str | None = Field(None, description="None for newly created sessions")
    to_status: str
    actor_id: str
    timestamp: datetime


class Notifier(Protocol):
    async def publish(self, event: TransitionEvent) -> None: ...


class LoggingNotifier:
    """Default gateway: records transitions in the structured log."""

    async def publish(self, event: TransitionEvent) -> None:
        logger.info(
            "session.transition",
            event_id=str(event.event_id),
            session_id=str(event.session_id),
            action=event.action,
            from_status=event.from_status,
            to_status=event.to_status,
            actor_id=event.actor_id,
        )


class WebhookNotifier:
    """Posts each event as JSON to the notification subsystem."""

    def __init__(self, url: str, timeout: float = 5.0, client: httpx.AsyncClient | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    async def publish(self, event: TransitionEvent) -> None:
        payload = event.model_dump(mode="json")
        if self._client is not None:
            response = await self._client.post(self.url, json=payload, timeout=self.timeout)
            response.raise_for_status()
            return

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.post(self.url, json=payload)
            response.raise_for_status()


class NotificationDispatcher:
    """Schedules event delivery without blocking the booking operation."""

    def __init__(self, notifier: Notifier):
        self.notifier = notifier
        self._pending: set[asyncio.Task] = set()

    def emit(self, event: TransitionEvent) -> None:
        """Queue ``event`` for delivery and return immediately."""
        task = asyncio.create_task(self._deliver(event))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, event: TransitionEvent) -> None:
        try:
            await self.notifier.publish(event)
        except Exception as exc:
            logger.warning(
                "notification.delivery_failed",
                event_id=str(event.event_id),
                session_id=str(event.session_id),
                action=event.action,
                error=str(exc),
                error_type=type(exc).__name__,
            )
            return

        logger.debug(
            "notification.delivered",
            event_id=str(event.event_id),
            session_id=str(event.session_id),
        )

    @property
    def pending_count(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for in-flight deliveries (shutdown, tests)."""
        if self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


def build_notifier() -> Notifier:
    """Webhook notifier when NOTIFIER_WEBHOOK_URL is set, logging otherwise."""
    url = os.getenv("NOTIFIER_WEBHOOK_URL")
    if not url:
        return LoggingNotifier()

    timeout = float(os.getenv("NOTIFIER_TIMEOUT_SECONDS", "5"))
    logger.info("notifier.webhook_enabled", url=url, timeout=timeout)
    return WebhookNotifier(url, timeout=timeout)
