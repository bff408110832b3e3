"""Serviceability and courier API package."""

from fulfillment.api.routes import courier_router, serviceability_router

__all__ = ["courier_router", "serviceability_router"]
