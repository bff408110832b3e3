"""Courier free-text status → internal order status.

Checks run most-specific first: "RTO delivered" is a return, "out for
delivery" is still in transit, and "undelivered" is not a delivery.
Unrecognized text maps to None and must not trigger a transition.
"""

import re

from ordering.order.order import OrderStatus

_RULES = (
    (re.compile(r"refund"), OrderStatus.REFUNDED),
    (re.compile(r"\brto\b|return"), OrderStatus.RETURNED),
    (re.compile(r"cancel"), OrderStatus.CANCELLED),
    (re.compile(r"undeliver|not deliver|non[- ]deliver|failed deliver|delivery fail"), None),
    (re.compile(r"out for delivery|ship|transit"), OrderStatus.SHIPPED),
    (re.compile(r"deliver"), OrderStatus.DELIVERED),
    (re.compile(r"pick|process|manifest"), OrderStatus.PROCESSING),
)


def map_courier_status(text: str | None) -> OrderStatus | None:
    normalized = " ".join((text or "").lower().replace("_", " ").split())
    if not normalized:
        return None
    for pattern, status in _RULES:
        if pattern.search(normalized):
            return status
    return None
