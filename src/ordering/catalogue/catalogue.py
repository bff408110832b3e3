"""Catalogue pricing records — the server-side source of commission and cashback terms.

Products, combos and offers are managed elsewhere; this context only keeps the
fields checkout needs: price, cashback terms, affiliate commission rate, and for
combos the list of constituent product ids.
"""

import json

from protean.fields import Boolean, Float, Integer, String, Text

from ordering.domain import ordering


@ordering.aggregate
class Product:
    name = String(required=True, max_length=255)
    sku = String(max_length=100)
    price = Float(required=True, min_value=0.0)
    cashback_percentage = Float(default=0.0)
    cashback_price = Float()  # fixed cashback per unit, wins over percentage
    affiliate_commission = Float(default=0.0)  # percent of the line value


@ordering.aggregate
class Combo:
    name = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    product_ids = Text()  # JSON list of Product ids
    cashback_percentage = Float(default=0.0)
    cashback_price = Float()
    affiliate_commission = Float(default=0.0)

    def constituent_product_ids(self) -> list[str] | None:
        """Return the stored product id list, or None when it is missing or malformed."""
        if not self.product_ids:
            return None
        try:
            value = json.loads(self.product_ids)
        except (TypeError, ValueError):
            return None
        if not isinstance(value, list) or not value:
            return None
        return [str(v) for v in value if v not in (None, "")]


@ordering.aggregate
class Offer:
    title = String(required=True, max_length=255)
    price = Float(required=True, min_value=0.0)
    cashback_percentage = Float(default=0.0)
    cashback_price = Float()
    affiliate_commission = Float(default=0.0)


@ordering.aggregate
class GiftMilestone:
    """Order-total band that grants an extra cashback percentage."""

    min_amount = Float(required=True, min_value=0.0)
    max_amount = Float()
    cashback_percentage = Float(default=0.0)
    is_active = Boolean(default=True)
    sort_order = Integer(default=0)

    def covers(self, order_total: float) -> bool:
        if not self.is_active:
            return False
        if order_total < self.min_amount:
            return False
        return self.max_amount is None or order_total < self.max_amount
