"""PlaceOrder — persist an order, its items, wallet debits and pending obligations.

Everything here runs in a single Unit of Work: the order row, the expanded
line items, the redeem debits and the pending cashback/commission rows commit
together. Any failure (unknown combo, insufficient balance on the fresh
wallet read) rolls the whole checkout back, so no order is left without items.
"""

import json

import structlog
from protean import handle
from protean.exceptions import ObjectNotFoundError, ValidationError
from protean.fields import Float, Identifier, String, Text
from protean.utils.globals import current_domain

from ordering.catalogue.catalogue import Combo, Product
from ordering.checkout.payload import CheckoutItem, ItemKind, parse_items
from ordering.commission.calculator import (
    RateCard,
    compute_item_cashback,
    compute_item_commission,
    compute_milestone_cashback,
    compute_order_commission,
    load_rate_card,
)
from ordering.domain import ordering
from ordering.ledger.affiliate import Affiliate
from ordering.ledger.wallet import TransactionType, Wallet, WalletKind
from ordering.order.order import DeliveryPartner, LineKind, Order
from ordering.shared.money import two_places, whole_units

logger = structlog.get_logger(__name__)


@ordering.command(part_of="Order")
class PlaceOrder:
    user_id = Identifier(required=True)
    items = Text(required=True)  # JSON: list of raw checkout item dicts
    total_amount = Float(required=True)
    shipping_address = Text(required=True)  # JSON: list of normalized recipients
    payment_method = String(max_length=50)
    shipping_charge = Float(default=0.0)
    delivery_partner = String(max_length=20, default=DeliveryPartner.COURIER.value)
    delivery_type = String(max_length=20)
    redeem_amount = Float(default=0.0)
    affiliate_code = String(max_length=50)
    affiliate_wallet_amount = Float(default=0.0)
    promo_code = String(max_length=50)
    payment_order_id = String(max_length=100)
    customer = Text()  # JSON: {name, email, phone}
    note = String(max_length=500)


def _shade_label(value) -> str | None:
    if value in (None, ""):
        return None
    if isinstance(value, dict):
        return str(value.get("name") or value.get("shade") or json.dumps(value))
    return str(value)


def _product_name(product_id: str) -> str:
    try:
        return current_domain.repository_for(Product).get(product_id).name
    except ObjectNotFoundError:
        return f"Product {product_id}"


def _combo_lines(item: CheckoutItem, card: RateCard) -> list[dict]:
    """A header row for the combo plus one zero-priced row per constituent product."""
    try:
        combo = current_domain.repository_for(Combo).get(item.ref_id)
    except ObjectNotFoundError:
        raise ValidationError({"items": [f"Combo {item.ref_id} does not exist"]}) from None

    product_ids = combo.constituent_product_ids()
    if product_ids is None:
        product_ids = [key for key in item.shades if key != "default"]
    if not product_ids:
        raise ValidationError({"items": [f"Combo {item.ref_id} has no products to expand"]})

    commission = compute_item_commission(item, card)
    header = {
        "line_kind": LineKind.COMBO_HEADER.value,
        "combo_id": item.ref_id,
        "name": item.name or combo.name,
        "quantity": item.quantity,
        "price": item.price,
        "cashback_amount": compute_item_cashback(item, card),
        "commission_rate": commission.rate,
        "commission_amount": commission.commission,
    }
    components = [
        {
            "line_kind": LineKind.COMBO_COMPONENT.value,
            "combo_id": item.ref_id,
            "product_id": product_id,
            "name": _product_name(product_id),
            "quantity": item.quantity,
            "price": 0.0,
            "shade": _shade_label(item.shades.get(product_id)),
        }
        for product_id in product_ids
    ]
    return [header, *components]


def expand_line_items(items: list[CheckoutItem], card: RateCard) -> list[dict]:
    lines = []
    for item in items:
        if item.kind == ItemKind.COMBO:
            lines.extend(_combo_lines(item, card))
            continue

        commission = compute_item_commission(item, card)
        line = {
            "line_kind": LineKind.OFFER.value if item.kind == ItemKind.OFFER else LineKind.PRODUCT.value,
            "name": item.name,
            "quantity": item.quantity,
            "price": item.price,
            "shade": _shade_label(item.shades.get(item.ref_id) or item.shades.get("default")),
            "cashback_amount": compute_item_cashback(item, card),
            "commission_rate": commission.rate,
            "commission_amount": commission.commission,
        }
        line["offer_id" if item.kind == ItemKind.OFFER else "product_id"] = item.ref_id
        lines.append(line)
    return lines


def assert_discounts_exclusive(promo_code: str | None, affiliate_code: str | None, affiliate_wallet_amount) -> None:
    if (promo_code or "").strip() and ((affiliate_code or "").strip() or (affiliate_wallet_amount or 0) > 0):
        raise ValidationError(
            {"promo_code": ["A promo code cannot be combined with an affiliate code or affiliate wallet redemption"]}
        )


@ordering.command_handler(part_of=Order)
class PlaceOrderHandler:
    @handle(PlaceOrder)
    def place_order(self, command):
        assert_discounts_exclusive(command.promo_code, command.affiliate_code, command.affiliate_wallet_amount)

        items = parse_items(json.loads(command.items))
        recipients = json.loads(command.shipping_address)
        redeem_amount = whole_units(command.redeem_amount)
        affiliate_wallet_amount = whole_units(command.affiliate_wallet_amount)
        shipping_charge = whole_units(command.shipping_charge)

        card = load_rate_card(items)
        lines = expand_line_items(items, card)

        affiliate = current_domain.repository_for(Affiliate).find_active_by_code(command.affiliate_code)
        order = Order.place(
            user_id=command.user_id,
            items_data=lines,
            total_amount=two_places(command.total_amount),
            recipients=recipients,
            payment_method=command.payment_method,
            shipping_charge=shipping_charge,
            delivery_partner=command.delivery_partner or DeliveryPartner.COURIER.value,
            delivery_type=command.delivery_type,
            redeem_amount=redeem_amount,
            affiliate_code=affiliate.code if affiliate else None,
            affiliate_wallet_amount=affiliate_wallet_amount,
            promo_code=command.promo_code,
            payment_order_id=command.payment_order_id,
            customer=json.loads(command.customer) if command.customer else None,
            note=command.note,
        )
        order_id = str(order.id)

        wallet_repo = current_domain.repository_for(Wallet)
        wallets: dict[tuple[str, WalletKind], Wallet] = {}

        def wallet_for(user_id, kind: WalletKind) -> Wallet:
            key = (str(user_id), kind)
            if key not in wallets:
                wallets[key] = wallet_repo.get_or_create(str(user_id), kind)
            return wallets[key]

        if redeem_amount > 0:
            wallet_for(command.user_id, WalletKind.CASHBACK).debit(
                redeem_amount,
                TransactionType.REDEEM,
                description=f"Redeemed on order {order.order_number}",
                order_id=order_id,
            )
        if affiliate_wallet_amount > 0:
            wallet_for(command.user_id, WalletKind.COMMISSION).debit(
                affiliate_wallet_amount,
                TransactionType.REDEMPTION,
                description=f"Affiliate wallet redeemed on order {order.order_number}",
                order_id=order_id,
            )

        if affiliate is not None:
            commission = compute_order_commission(items, card, order_total=order.total_amount)
            if commission.total_commission > 0:
                wallet_for(affiliate.user_id, WalletKind.COMMISSION).record_pending_obligation(
                    order_id=order_id,
                    amount=commission.total_commission,
                    description=f"Commission for order {order.order_number}",
                    sale_amount=order.total_amount,
                    commission_rate=commission.effective_rate,
                )
        elif command.affiliate_code:
            logger.info("Unknown affiliate code ignored", affiliate_code=command.affiliate_code)

        for position, item in enumerate(items, start=1):
            cashback = compute_item_cashback(item, card)
            if cashback > 0:
                wallet_for(command.user_id, WalletKind.CASHBACK).record_pending_obligation(
                    order_id=order_id,
                    amount=cashback,
                    description=f"Cashback for line {position} ({item.name or item.ref}) on order {order.order_number}",
                )

        milestone_cashback = compute_milestone_cashback(order.total_amount, card)
        if milestone_cashback > 0:
            wallet_for(command.user_id, WalletKind.CASHBACK).record_pending_obligation(
                order_id=order_id,
                amount=milestone_cashback,
                description=f"Milestone gift cashback on order {order.order_number}",
            )

        current_domain.repository_for(Order).add(order)
        for wallet in wallets.values():
            wallet_repo.add(wallet)

        logger.info(
            "Order placed",
            order_id=order_id,
            order_number=order.order_number,
            user_id=str(command.user_id),
            delivery_partner=order.delivery_partner,
            items=len(lines),
        )
        return order_id
