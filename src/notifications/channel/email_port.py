"""Email port — the one outbound channel for order lifecycle emails."""

from abc import ABC, abstractmethod
from typing import TypedDict


class SendResult(TypedDict, total=False):
    message_id: str | None
    status: str  # sent | failed
    error: str


class EmailPort(ABC):
    """Transactional email provider.

    Delivery is best effort: a ``failed`` status or a raised exception is
    logged by the outbox and never reaches the order flow.
    """

    @abstractmethod
    async def send(self, to: str, subject: str, body: str, html_body: str | None = None) -> SendResult: ...
