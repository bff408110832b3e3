"""iThink Logistics courier adapter.

Every iThink endpoint is a JSON POST whose body wraps the request under
``data`` together with the account's ``access_token`` and ``secret_key``.
A non-2xx HTTP status or a ``status_code`` other than 200 in the body is an
error.
"""

from datetime import UTC, datetime, timedelta

import httpx
import structlog

from fulfillment.courier.port import (
    AwbNotReady,
    CourierError,
    CourierPort,
    ServiceabilityResult,
    ShipmentRequest,
    ShipmentResult,
    TrackingResult,
    coerce_order_number,
)

logger = structlog.get_logger(__name__)

DEFAULT_BASE_URL = "https://api.ithinklogistics.com"
REQUEST_TIMEOUT_SECONDS = 30.0
AWB_LOOKBACK_DAYS = 7

PINCODE_CHECK_PATH = "/api_v3/pincode/check.json"
ORDER_SYNC_PATH = "/api_v3/order/sync.json"
ORDER_DETAILS_PATH = "/api_v3/order/get_details.json"
TRACK_PATH = "/api_v2/order/track.json"


def _flag(value) -> bool:
    return str(value or "").strip().upper() == "Y"


def _data(body: dict) -> dict:
    data = body.get("data") or {}
    if not isinstance(data, dict):
        raise CourierError("Unexpected response shape from iThink", response=body)
    return data


def _row(body: dict, key: str) -> dict:
    """One keyed row of the ``data`` map; a missing row is empty."""
    row = _data(body).get(key) or {}
    if not isinstance(row, dict):
        raise CourierError("Unexpected response shape from iThink", response=body)
    return row


class IThinkCourier(CourierPort):
    def __init__(
        self,
        access_token: str | None,
        secret_key: str | None,
        base_url: str = DEFAULT_BASE_URL,
        company_name: str = "",
        timeout: float = REQUEST_TIMEOUT_SECONDS,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.access_token = access_token
        self.secret_key = secret_key
        self.base_url = (base_url or DEFAULT_BASE_URL).rstrip("/")
        self.company_name = company_name
        self.timeout = timeout
        self._transport = transport

    @property
    def is_configured(self) -> bool:
        return bool(self.access_token and self.secret_key)

    async def _post(self, path: str, data: dict) -> dict:
        if not self.is_configured:
            raise CourierError("iThink credentials are not configured")

        payload = {"data": {**data, "access_token": self.access_token, "secret_key": self.secret_key}}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                response = await client.post(f"{self.base_url}{path}", json=payload)
        except httpx.HTTPError as exc:
            raise CourierError(f"iThink request failed: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            raise CourierError(f"Invalid response from iThink: HTTP {response.status_code}") from None

        if response.is_error:
            raise CourierError(f"iThink API error: HTTP {response.status_code}", response=body)
        if not isinstance(body, dict):
            raise CourierError("Unexpected response shape from iThink")
        status_code = body.get("status_code")
        if status_code is not None and str(status_code) != "200":
            raise CourierError(f"iThink API status_code={status_code}", response=body)
        return body

    # -------------------------------------------------------------------
    # Serviceability
    # -------------------------------------------------------------------
    async def check_serviceability(self, pincode, weight_kg, cod, pickup_pincode=None) -> ServiceabilityResult:
        body = await self._post(PINCODE_CHECK_PATH, {"pincode": str(pincode)})
        courier_map = _data(body).get(str(pincode)) or {}

        available = []
        if isinstance(courier_map, dict):
            for name, details in courier_map.items():
                if not isinstance(details, dict):
                    continue
                mode_ok = _flag(details.get("cod")) if cod else _flag(details.get("prepaid"))
                if _flag(details.get("pickup")) and mode_ok:
                    available.append(name)

        return ServiceabilityResult(pincode=str(pincode), serviceable=bool(available), couriers=tuple(available))

    # -------------------------------------------------------------------
    # Shipments
    # -------------------------------------------------------------------
    def _shipment_payload(self, request: ShipmentRequest) -> dict:
        length, width, height = request.dimensions_cm
        total = request.total_amount or sum(line.price * line.quantity for line in request.lines)
        address = {
            "name": request.name or "Customer",
            "company_name": self.company_name,
            "add": request.address,
            "pin": request.pincode,
            "city": request.city,
            "state": request.state,
            "country": "India",
            "phone": request.phone,
            "alt_phone": request.phone,
        }
        return {
            "order": coerce_order_number(request.order_number),
            "sub_order": "",
            "order_date": request.order_date.strftime("%d-%m-%Y %H:%M:%S"),
            "total_amount": str(total),
            **address,
            **{f"billing_{key}": value for key, value in address.items()},
            "products": [
                {
                    "product_name": line.name or "Product",
                    "product_sku": line.sku,
                    "product_quantity": str(line.quantity),
                    "product_price": str(line.price),
                }
                for line in request.lines
            ],
            "shipment_length": str(length),
            "shipment_width": str(width),
            "shipment_height": str(height),
            "weight": str(request.weight_kg),
            "shipping_charges": str(request.shipping_charge),
            "cod_amount": str(total) if request.cod else "0",
            "payment_mode": "COD" if request.cod else "Prepaid",
        }

    async def create_shipment(self, request: ShipmentRequest) -> ShipmentResult:
        shipment = self._shipment_payload(request)
        body = await self._post(ORDER_SYNC_PATH, {"shipments": [shipment]})

        row = _row(body, "1")
        status = str(row.get("status") or "").lower()
        if status and status != "success":
            remark = row.get("remark") or body.get("html_message") or "Unknown error"
            raise CourierError(f"iThink order sync failed: {remark}", response=body)

        order_no = shipment["order"]
        tracking_number = None
        try:
            tracking_number = await self.generate_awb(order_no)
        except CourierError as exc:
            logger.info("AWB not yet available after order sync", order_number=order_no, reason=str(exc))

        return ShipmentResult(
            courier_order_id=order_no,
            shipment_id=str(row.get("waybill") or order_no),
            tracking_number=tracking_number,
            courier_company=row.get("logistic_name") or None,
        )

    async def generate_awb(self, order_number: str) -> str:
        today = datetime.now(UTC).date()
        body = await self._post(
            ORDER_DETAILS_PATH,
            {
                "awb_number_list": "",
                "order_no": coerce_order_number(order_number),
                "start_date": (today - timedelta(days=AWB_LOOKBACK_DAYS)).isoformat(),
                "end_date": today.isoformat(),
            },
        )
        data = _data(body)
        if data:
            row = next(iter(data.values())) or {}
            if not isinstance(row, dict):
                raise CourierError("Unexpected response shape from iThink", response=body)
            awb = str(row.get("awb_no") or row.get("awb") or "").strip()
            if awb:
                return awb
        raise AwbNotReady("AWB not available for this order yet")

    async def track_shipment(self, tracking_number: str) -> TrackingResult:
        body = await self._post(TRACK_PATH, {"awb_number_list": tracking_number})
        row = _row(body, tracking_number)
        last_scan = row.get("last_scan_details")
        if not isinstance(last_scan, dict):
            last_scan = {}
        events = row.get("scan_details")
        status_text = str(row.get("current_status") or last_scan.get("status") or "")
        return TrackingResult(
            tracking_number=tracking_number,
            status_text=status_text,
            events=list(events) if isinstance(events, list) else [],
        )
