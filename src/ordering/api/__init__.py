"""Ordering domain API package."""

from ordering.api.routes import (
    affiliate_router,
    checkout_router,
    order_router,
    wallet_router,
    webhook_router,
)

__all__ = ["affiliate_router", "checkout_router", "order_router", "wallet_router", "webhook_router"]
