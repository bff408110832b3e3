"""Order assembler — the checkout orchestration around the PlaceOrder command.

Runs in three phases:

1. Gates. Cheap validation of the payload, discount exclusivity and wallet
   balances. Nothing is written, and remote services are not called.
2. Remote checks. Payment verification, pincode existence and courier
   serviceability, all awaited concurrently where possible. Their outcome
   decides the delivery partner server-side; lookup failures fail open.
3. Commit and hand-off. ``PlaceOrder`` persists everything in one Unit of
   Work; only then is the shipment booked and the confirmation email queued.
   Neither of those can fail the checkout.
"""

import asyncio
import json

import structlog
from protean.exceptions import ValidationError
from protean.utils.globals import current_domain

from fulfillment.courier import get_courier, pickup_pincode
from fulfillment.courier.port import DEFAULT_UNIT_WEIGHT_KG, CourierPort
from fulfillment.dispatcher import ShippingDispatcher
from ordering.checkout.payload import CheckoutItem, Recipient, parse_items, parse_shipping_address
from ordering.ledger.wallet import InsufficientBalance, Wallet, WalletKind
from ordering.order.emails import send_order_confirmation
from ordering.order.order import DeliveryPartner, DeliveryType, Order, is_cash_on_delivery
from ordering.order.placement import PlaceOrder, assert_discounts_exclusive
from ordering.shared.money import to_float, two_places, whole_units
from payments.gateway import get_gateway
from payments.gateway.port import PaymentGateway, PaymentGatewayError
from serviceability import get_checker
from serviceability.pincode import PincodeChecker, PincodeStatus

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS = ("user_id", "total_amount", "shipping_address", "items")


def _clean(value) -> str | None:
    text = str(value).strip() if value is not None else ""
    return text or None


def parcel_weight(items: list[CheckoutItem]) -> float:
    return sum(max(item.quantity, 1) for item in items) * DEFAULT_UNIT_WEIGHT_KG


class OrderAssembler:
    def __init__(
        self,
        checker: PincodeChecker | None = None,
        courier: CourierPort | None = None,
        gateway: PaymentGateway | None = None,
        dispatcher: ShippingDispatcher | None = None,
    ):
        self.checker = checker or get_checker()
        self.courier = courier or get_courier()
        self.gateway = gateway or get_gateway()
        self.dispatcher = dispatcher or ShippingDispatcher(self.courier)

    # -------------------------------------------------------------------
    # Phase 1: gates
    # -------------------------------------------------------------------
    @staticmethod
    def _assert_required(payload: dict) -> None:
        missing = {
            field: [f"{field} is required"] for field in REQUIRED_FIELDS if payload.get(field) in (None, "", [], {})
        }
        if missing:
            raise ValidationError(missing)

    @staticmethod
    def _resolve_affiliate_code(payload: dict, affiliate_cookie: str | None) -> str | None:
        """Body code first, else the attribution cookie. A promo code drops the cookie."""
        code = _clean(payload.get("affiliate_code"))
        if code:
            return code
        if affiliate_cookie and not _clean(payload.get("promo_code")):
            return _clean(affiliate_cookie)
        return None

    @staticmethod
    def _assert_balance(user_id: str, kind: WalletKind, amount: float) -> None:
        if amount <= 0:
            return
        wallet = current_domain.repository_for(Wallet).find_for(user_id, kind)
        available = wallet.balance if wallet else 0.0
        if amount > two_places(available):
            raise InsufficientBalance(
                {"amount": [f"Insufficient {kind.value} balance: requested {amount:.2f}, available {available:.2f}"]}
            )

    # -------------------------------------------------------------------
    # Phase 2: remote checks
    # -------------------------------------------------------------------
    async def _verify_payment(self, payment_order_id: str) -> None:
        try:
            verification = await self.gateway.verify_payment(payment_order_id)
        except PaymentGatewayError as exc:
            logger.warning("Payment verification failed", payment_order_id=payment_order_id, error=str(exc))
            raise ValidationError({"payment_order_id": ["Payment could not be verified"]}) from exc
        if not verification.paid:
            raise ValidationError({"payment_order_id": ["Payment has not been completed"]})

    async def _validate_pincodes(self, pincodes: list[str]) -> None:
        results = await asyncio.gather(*(self.checker.validate(code) for code in pincodes))
        invalid = [result.pincode for result in results if result.status == PincodeStatus.INVALID.value]
        if invalid:
            raise ValidationError({"shipping_address": [f"Invalid pincode: {code}" for code in invalid]})
        for result in results:
            if result.status == PincodeStatus.ERROR.value:
                logger.warning("Pincode existence unknown, accepting address", pincode=result.pincode)

    async def _resolve_delivery(
        self,
        recipients: list[Recipient],
        items: list[CheckoutItem],
        cod: bool,
    ) -> tuple[str, str | None]:
        """Courier only when every recipient's pincode is known and serviceable."""
        if any(not recipient.pincode for recipient in recipients):
            return DeliveryPartner.MANUAL.value, "Shipping address has no pincode"
        if not self.courier.is_configured:
            return DeliveryPartner.COURIER.value, None

        pincodes = sorted({recipient.pincode for recipient in recipients})
        weight = parcel_weight(items)
        results = await asyncio.gather(
            *(
                self.courier.check_serviceability(code, weight, cod, pickup_pincode=pickup_pincode())
                for code in pincodes
            ),
            return_exceptions=True,
        )
        for code, result in zip(pincodes, results, strict=True):
            if isinstance(result, Exception):
                logger.warning("Serviceability check failed, assuming serviceable", pincode=code, error=str(result))
                continue
            if not result.serviceable:
                return DeliveryPartner.MANUAL.value, f"Pincode {code} is not serviceable by courier"
        return DeliveryPartner.COURIER.value, None

    # -------------------------------------------------------------------
    # Entry point
    # -------------------------------------------------------------------
    async def place_order(self, payload: dict, affiliate_cookie: str | None = None) -> dict:
        self._assert_required(payload)

        user_id = str(payload["user_id"])
        items = parse_items(payload["items"])
        recipients = parse_shipping_address(payload["shipping_address"])
        promo_code = _clean(payload.get("promo_code"))
        affiliate_code = self._resolve_affiliate_code(payload, affiliate_cookie)
        redeem_amount = whole_units(to_float(payload.get("redeem_amount"), field="redeem_amount"))
        affiliate_wallet_amount = whole_units(
            to_float(payload.get("affiliate_wallet_amount"), field="affiliate_wallet_amount")
        )
        payment_method = _clean(payload.get("payment_method"))
        payment_order_id = _clean(payload.get("payment_order_id"))
        cod = is_cash_on_delivery(payment_method)

        assert_discounts_exclusive(promo_code, affiliate_code, affiliate_wallet_amount)
        self._assert_balance(user_id, WalletKind.CASHBACK, redeem_amount)
        self._assert_balance(user_id, WalletKind.COMMISSION, affiliate_wallet_amount)

        if payment_order_id:
            await self._verify_payment(payment_order_id)
        pincodes = sorted({recipient.pincode for recipient in recipients if recipient.pincode})
        if pincodes:
            await self._validate_pincodes(pincodes)

        delivery_partner, manual_reason = await self._resolve_delivery(recipients, items, cod)
        if delivery_partner == DeliveryPartner.MANUAL.value:
            delivery_type = DeliveryType.MANUAL.value
            logger.info("Order routed to manual delivery", user_id=user_id, reason=manual_reason)
        else:
            requested = (_clean(payload.get("delivery_type")) or DeliveryType.STANDARD.value).upper()
            if requested not in (DeliveryType.STANDARD.value, DeliveryType.EXPRESS.value):
                requested = DeliveryType.STANDARD.value
            delivery_type = requested

        first = recipients[0]
        customer = {
            "name": _clean(payload.get("customer_name")) or first.name,
            "email": _clean(payload.get("customer_email")) or first.email,
            "phone": _clean(payload.get("customer_phone")) or first.phone,
        }

        command = PlaceOrder(
            user_id=user_id,
            items=json.dumps(payload["items"]),
            total_amount=to_float(payload["total_amount"], field="total_amount"),
            shipping_address=json.dumps([recipient.to_dict() for recipient in recipients]),
            payment_method=payment_method,
            shipping_charge=to_float(payload.get("shipping_charge"), field="shipping_charge"),
            delivery_partner=delivery_partner,
            delivery_type=delivery_type,
            redeem_amount=redeem_amount,
            affiliate_code=affiliate_code,
            affiliate_wallet_amount=affiliate_wallet_amount,
            promo_code=promo_code,
            payment_order_id=payment_order_id,
            customer=json.dumps(customer),
            note=f"Manual delivery: {manual_reason}" if manual_reason else None,
        )
        try:
            order_id = current_domain.process(command, asynchronous=False)
        except ValidationError:
            raise
        except Exception as exc:
            logger.critical(
                "Order placement failed after validation, manual reconciliation required",
                user_id=user_id,
                payment_order_id=payment_order_id,
                error=str(exc),
            )
            raise

        dispatch = await self.dispatcher.dispatch(order_id)
        order = current_domain.repository_for(Order).get(order_id)
        send_order_confirmation(order)

        return {
            "order_id": order_id,
            "order_number": order.order_number,
            "delivery_partner": order.delivery_partner,
            "delivery_type": order.delivery_type,
            "courier": dispatch.as_dict(),
        }
