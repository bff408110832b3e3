"""Configurable fake payment gateway for development and testing.

This adapter simulates a real payment gateway without any external calls.
It can be configured at runtime to succeed or fail, making it useful for:
- Automated tests with predictable outcomes
- Development without real gateway credentials

Orders created here are reported as paid on verification unless
``should_succeed`` is switched off.
"""

from uuid import uuid4

from payments.gateway.port import (
    CustomerDetails,
    PaymentGateway,
    PaymentGatewayError,
    PaymentOrder,
    PaymentVerification,
)


class FakeGateway(PaymentGateway):
    """Configurable fake payment gateway."""

    def __init__(self) -> None:
        self.should_succeed: bool = True
        self.failure_reason: str = "Payment declined"
        self.calls: list[dict] = []
        self.orders: dict[str, PaymentOrder] = {}

    def configure(self, should_succeed: bool, failure_reason: str = "Payment declined") -> None:
        """Configure gateway behavior at runtime."""
        self.should_succeed = should_succeed
        self.failure_reason = failure_reason

    async def create_order(
        self,
        order_id: str,
        amount: float,
        currency: str,
        customer: CustomerDetails,
        note: str | None = None,
    ) -> PaymentOrder:
        self.calls.append({"method": "create_order", "order_id": order_id, "amount": amount, "currency": currency})
        if not self.should_succeed:
            raise PaymentGatewayError(self.failure_reason)

        order = PaymentOrder(
            order_id=order_id,
            amount=amount,
            currency=currency,
            payment_session_id=f"fake_session_{uuid4().hex[:12]}",
            gateway_order_id=f"fake_cf_{uuid4().hex[:12]}",
        )
        self.orders[order_id] = order
        return order

    async def verify_payment(self, order_id: str) -> PaymentVerification:
        self.calls.append({"method": "verify_payment", "order_id": order_id})
        order = self.orders.get(order_id)
        paid = self.should_succeed
        return PaymentVerification(
            order_id=order_id,
            paid=paid,
            gateway_status="PAID" if paid else "ACTIVE",
            gateway_order_id=order.gateway_order_id if order else None,
            amount=order.amount if order else None,
        )
