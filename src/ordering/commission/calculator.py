"""Commission and cashback calculation from server-side catalogue terms.

Client-submitted commission values are never trusted: every rate is resolved
from the Product, Combo or Offer record the line item references. The compute
functions are pure over a ``RateCard`` snapshot; ``load_rate_card`` is the only
part that reads storage.
"""

from dataclasses import dataclass

from protean.exceptions import ObjectNotFoundError
from protean.utils.globals import current_domain

from ordering.catalogue.catalogue import Combo, GiftMilestone, Offer, Product
from ordering.checkout.payload import CheckoutItem, ItemKind
from ordering.shared.money import to_float, two_places

_RECORD_FOR_KIND = {
    ItemKind.PRODUCT: Product,
    ItemKind.COMBO: Combo,
    ItemKind.OFFER: Offer,
}


@dataclass(frozen=True)
class CatalogueTerms:
    commission_rate: float = 0.0
    cashback_percentage: float = 0.0
    cashback_price: float | None = None


@dataclass(frozen=True)
class MilestoneTerms:
    min_amount: float
    max_amount: float | None
    cashback_percentage: float

    def covers(self, order_total: float) -> bool:
        if order_total < self.min_amount:
            return False
        return self.max_amount is None or order_total < self.max_amount


@dataclass(frozen=True)
class RateCard:
    """Snapshot of the catalogue terms relevant to one checkout."""

    terms: dict
    milestones: tuple = ()

    def terms_for(self, item: CheckoutItem) -> CatalogueTerms:
        return self.terms.get((item.kind, item.ref_id), CatalogueTerms())


@dataclass(frozen=True)
class ItemCommission:
    ref: str
    line_total: float
    rate: float
    commission: float


@dataclass(frozen=True)
class CommissionResult:
    total_commission: float
    effective_rate: float
    breakdown: tuple


def _terms_from_record(record) -> CatalogueTerms:
    cashback_price = getattr(record, "cashback_price", None)
    return CatalogueTerms(
        commission_rate=to_float(getattr(record, "affiliate_commission", None)),
        cashback_percentage=to_float(getattr(record, "cashback_percentage", None)),
        cashback_price=to_float(cashback_price) if cashback_price not in (None, "") else None,
    )


def load_rate_card(items: list[CheckoutItem]) -> RateCard:
    """Read the catalogue records referenced by ``items``.

    Missing records resolve to zero rates rather than an error.
    """
    terms = {}
    for item in items:
        key = (item.kind, item.ref_id)
        if key in terms:
            continue
        try:
            record = current_domain.repository_for(_RECORD_FOR_KIND[item.kind]).get(item.ref_id)
        except ObjectNotFoundError:
            terms[key] = CatalogueTerms()
            continue
        terms[key] = _terms_from_record(record)

    milestones = (
        current_domain.repository_for(GiftMilestone)._dao.query.filter(is_active=True).all().items
    )
    milestones = sorted(milestones, key=lambda m: (m.sort_order or 0, m.min_amount))
    return RateCard(
        terms=terms,
        milestones=tuple(
            MilestoneTerms(
                min_amount=to_float(m.min_amount),
                max_amount=to_float(m.max_amount) if m.max_amount is not None else None,
                cashback_percentage=to_float(m.cashback_percentage),
            )
            for m in milestones
        ),
    )


def compute_item_commission(item: CheckoutItem, card: RateCard) -> ItemCommission:
    rate = card.terms_for(item).commission_rate
    return ItemCommission(
        ref=item.ref,
        line_total=two_places(item.line_total),
        rate=rate,
        commission=two_places(item.price * item.quantity * rate / 100),
    )


def compute_order_commission(
    items: list[CheckoutItem],
    card: RateCard,
    order_total: float | None = None,
) -> CommissionResult:
    """Per-item and total affiliate commission for an order.

    The effective rate is expressed against ``order_total`` (defaults to the
    sum of line totals) and is 0 for a zero total.
    """
    breakdown = tuple(compute_item_commission(item, card) for item in items)
    total = two_places(sum(line.commission for line in breakdown))
    if order_total is None:
        order_total = sum(item.line_total for item in items)
    effective_rate = two_places(total / order_total * 100) if order_total else 0.0
    return CommissionResult(total_commission=total, effective_rate=effective_rate, breakdown=breakdown)


def compute_item_cashback(item: CheckoutItem, card: RateCard) -> float:
    terms = card.terms_for(item)
    if terms.cashback_price:
        return two_places(terms.cashback_price * item.quantity)
    return two_places(item.price * item.quantity * terms.cashback_percentage / 100)


def compute_milestone_cashback(order_total: float, card: RateCard) -> float:
    """Cashback granted by the first active milestone band covering the total."""
    for milestone in card.milestones:
        if milestone.covers(order_total) and milestone.cashback_percentage > 0:
            return two_places(order_total * milestone.cashback_percentage / 100)
    return 0.0
