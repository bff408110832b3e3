"""Courier adapter abstraction — pluggable courier integration."""

import os

from fulfillment.courier.port import CourierPort

_courier_instance: CourierPort | None = None


def get_courier() -> CourierPort:
    """Return the configured courier adapter (singleton).

    Uses FakeCourier by default. In production, configure via the
    COURIER_ADAPTER environment variable (``ithink``) together with
    ITHINK_ACCESS_TOKEN and ITHINK_SECRET_KEY.
    """
    global _courier_instance
    if _courier_instance is None:
        adapter = os.environ.get("COURIER_ADAPTER", "fake")
        if adapter == "fake":
            from fulfillment.courier.fake_adapter import FakeCourier

            _courier_instance = FakeCourier()
        elif adapter == "ithink":
            from fulfillment.courier.ithink_adapter import DEFAULT_BASE_URL, IThinkCourier

            _courier_instance = IThinkCourier(
                access_token=os.environ.get("ITHINK_ACCESS_TOKEN"),
                secret_key=os.environ.get("ITHINK_SECRET_KEY"),
                base_url=os.environ.get("ITHINK_BASE_URL", DEFAULT_BASE_URL),
                company_name=os.environ.get("ITHINK_COMPANY_NAME", ""),
            )
        else:
            raise ValueError(f"Unknown courier adapter: {adapter}")
    return _courier_instance


def set_courier(courier: CourierPort) -> None:
    """Override the active courier adapter (useful for tests)."""
    global _courier_instance
    _courier_instance = courier


def reset_courier():
    """Reset the courier singleton (useful for testing)."""
    global _courier_instance
    _courier_instance = None


def pickup_pincode() -> str:
    return os.environ.get("ITHINK_PICKUP_PINCODE", "400001")
