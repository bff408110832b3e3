"""Cashfree payment gateway adapter (PG API, version 2023-08-01)."""

import httpx
import structlog

from payments.gateway.port import (
    CustomerDetails,
    PaymentGateway,
    PaymentGatewayError,
    PaymentOrder,
    PaymentVerification,
)

logger = structlog.get_logger(__name__)

API_VERSION = "2023-08-01"
PRODUCTION_URL = "https://api.cashfree.com"
SANDBOX_URL = "https://sandbox.cashfree.com"
REQUEST_TIMEOUT_SECONDS = 15.0


class CashfreeGateway(PaymentGateway):
    """Production Cashfree gateway adapter."""

    def __init__(
        self,
        app_id: str,
        secret_key: str,
        production: bool = False,
        return_url: str | None = None,
        notify_url: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.app_id = app_id
        self.secret_key = secret_key
        self.base_url = PRODUCTION_URL if production else SANDBOX_URL
        self.return_url = return_url
        self.notify_url = notify_url
        self._transport = transport

    @property
    def _headers(self) -> dict:
        return {
            "x-api-version": API_VERSION,
            "x-client-id": self.app_id,
            "x-client-secret": self.secret_key,
        }

    async def _request(self, method: str, path: str, payload: dict | None = None) -> dict:
        try:
            async with httpx.AsyncClient(
                timeout=REQUEST_TIMEOUT_SECONDS, transport=self._transport, headers=self._headers
            ) as client:
                response = await client.request(method, f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"Cashfree request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            raise PaymentGatewayError(f"Invalid response from Cashfree: HTTP {response.status_code}") from None
        if response.is_error:
            message = body.get("message") if isinstance(body, dict) else None
            raise PaymentGatewayError(message or f"Cashfree API error: HTTP {response.status_code}")
        return body

    async def create_order(
        self,
        order_id: str,
        amount: float,
        currency: str,
        customer: CustomerDetails,
        note: str | None = None,
    ) -> PaymentOrder:
        payload = {
            "order_id": order_id,
            "order_amount": amount,
            "order_currency": currency,
            "customer_details": {
                "customer_id": customer.customer_id,
                "customer_name": customer.name,
                "customer_email": customer.email,
                "customer_phone": customer.phone,
            },
            "order_note": note or "",
        }
        meta = {k: v for k, v in (("return_url", self.return_url), ("notify_url", self.notify_url)) if v}
        if meta:
            payload["order_meta"] = meta

        body = await self._request("POST", "/pg/orders", payload)
        logger.info("Cashfree order created", order_id=order_id, amount=amount)
        return PaymentOrder(
            order_id=order_id,
            amount=amount,
            currency=currency,
            payment_session_id=body.get("payment_session_id"),
            gateway_order_id=str(body["cf_order_id"]) if body.get("cf_order_id") is not None else None,
        )

    async def verify_payment(self, order_id: str) -> PaymentVerification:
        body = await self._request("GET", f"/pg/orders/{order_id}")
        status = body.get("order_status")
        return PaymentVerification(
            order_id=order_id,
            paid=status == "PAID",
            gateway_status=status,
            gateway_order_id=str(body["cf_order_id"]) if body.get("cf_order_id") is not None else None,
            amount=body.get("order_amount"),
        )
