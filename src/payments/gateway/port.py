"""Payment gateway port (abstract interface).

Defines the contract that all payment gateway adapters must implement.
This enables swapping between FakeGateway (dev/test) and CashfreeGateway
(production) without changing any checkout code.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass


class PaymentGatewayError(Exception):
    """The gateway refused the request or could not be reached."""


@dataclass(frozen=True)
class CustomerDetails:
    customer_id: str
    name: str
    email: str
    phone: str = "9999999999"


@dataclass(frozen=True)
class PaymentOrder:
    """A gateway-side order the client pays against."""

    order_id: str
    amount: float
    currency: str
    payment_session_id: str | None = None
    gateway_order_id: str | None = None


@dataclass(frozen=True)
class PaymentVerification:
    order_id: str
    paid: bool
    gateway_status: str | None = None
    gateway_order_id: str | None = None
    amount: float | None = None


class PaymentGateway(ABC):
    """Abstract payment gateway interface."""

    @abstractmethod
    async def create_order(
        self,
        order_id: str,
        amount: float,
        currency: str,
        customer: CustomerDetails,
        note: str | None = None,
    ) -> PaymentOrder:
        """Open a payment order with the gateway."""
        ...

    @abstractmethod
    async def verify_payment(self, order_id: str) -> PaymentVerification:
        """Ask the gateway whether the payment order has been paid."""
        ...
