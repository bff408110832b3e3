"""Email outbox — fire-and-forget delivery after the order has committed.

Messages are rendered immediately and sent on a background task so the
caller never waits on (or fails because of) the mail provider. Failures are
logged and dropped; there is no retry.
"""

import asyncio

import structlog

from notifications.channel import get_email_channel
from notifications.templates import get_template

logger = structlog.get_logger(__name__)


class EmailOutbox:
    def __init__(self, channel=None):
        self._channel = channel
        self._pending: set[asyncio.Task] = set()

    @property
    def channel(self):
        return self._channel or get_email_channel()

    def enqueue(self, notification_type: str, to: str | None, context: dict) -> asyncio.Task | None:
        """Schedule an email. Returns the task, or None when nothing was scheduled."""
        if not to:
            logger.info("Email skipped, no recipient", notification_type=notification_type)
            return None

        content = get_template(notification_type).render(context)
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("Email skipped, no running event loop", notification_type=notification_type, to=to)
            return None

        task = loop.create_task(self._deliver(notification_type, to, content))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task

    async def _deliver(self, notification_type: str, to: str, content: dict) -> None:
        try:
            result = await self.channel.send(to=to, subject=content["subject"], body=content["body"])
        except Exception as exc:
            logger.error("Email delivery failed", notification_type=notification_type, to=to, error=str(exc))
            return

        if result.get("status") == "sent":
            logger.info(
                "Email sent",
                notification_type=notification_type,
                to=to,
                message_id=result.get("message_id"),
            )
        else:
            logger.error(
                "Email delivery failed",
                notification_type=notification_type,
                to=to,
                error=result.get("error", "Unknown dispatch error"),
            )

    @property
    def pending(self) -> int:
        return len(self._pending)

    async def drain(self) -> None:
        """Wait for every scheduled email (used on shutdown and in tests)."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)


_outbox_instance: EmailOutbox | None = None


def get_outbox() -> EmailOutbox:
    global _outbox_instance
    if _outbox_instance is None:
        _outbox_instance = EmailOutbox()
    return _outbox_instance


def reset_outbox() -> None:
    """Reset the outbox singleton (useful for testing)."""
    global _outbox_instance
    _outbox_instance = None
