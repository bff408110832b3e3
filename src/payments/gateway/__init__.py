"""Payment gateway factory.

Provides get_gateway() / set_gateway() to swap implementations:
- FakeGateway for development and testing
- CashfreeGateway for production (PAYMENT_GATEWAY=cashfree)
"""

import os

from payments.gateway.fake_adapter import FakeGateway
from payments.gateway.port import PaymentGateway

_current_gateway: PaymentGateway | None = None


def get_gateway() -> PaymentGateway:
    """Return the current payment gateway. Defaults to FakeGateway."""
    global _current_gateway
    if _current_gateway is None:
        adapter = os.environ.get("PAYMENT_GATEWAY", "fake")
        if adapter == "fake":
            _current_gateway = FakeGateway()
        elif adapter == "cashfree":
            from payments.gateway.cashfree_adapter import CashfreeGateway

            _current_gateway = CashfreeGateway(
                app_id=os.environ["CASHFREE_APP_ID"],
                secret_key=os.environ["CASHFREE_SECRET_KEY"],
                production=os.environ.get("CASHFREE_ENV", "sandbox") == "production",
                return_url=os.environ.get("CASHFREE_RETURN_URL"),
                notify_url=os.environ.get("CASHFREE_NOTIFY_URL"),
            )
        else:
            raise ValueError(f"Unknown payment gateway: {adapter}")
    return _current_gateway


def set_gateway(gateway: PaymentGateway) -> None:
    """Override the active payment gateway (useful for tests)."""
    global _current_gateway
    _current_gateway = gateway


def reset_gateway() -> None:
    """Reset to default gateway."""
    global _current_gateway
    _current_gateway = None
