"""Tests for the iThink Logistics adapter against a mock transport."""

import asyncio
import json
from datetime import UTC, datetime

import httpx
import pytest
from fulfillment.courier.ithink_adapter import (
    ORDER_DETAILS_PATH,
    ORDER_SYNC_PATH,
    PINCODE_CHECK_PATH,
    TRACK_PATH,
    IThinkCourier,
)
from fulfillment.courier.port import AwbNotReady, CourierError, ShipmentLine, ShipmentRequest


class _IThink:
    """Records requests and answers per endpoint path."""

    def __init__(self, **responses):
        self.responses = responses
        self.requests: list[tuple[str, dict]] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        self.requests.append((request.url.path, body))
        answer = self.responses.get(request.url.path)
        if callable(answer):
            return answer(request)
        if answer is None:
            return httpx.Response(404, json={"status_code": 404})
        return httpx.Response(200, json=answer)

    def sent(self, path):
        return [body["data"] for sent_path, body in self.requests if sent_path == path]


def _courier(api, **kwargs):
    return IThinkCourier(
        access_token=kwargs.pop("access_token", "token-1"),
        secret_key=kwargs.pop("secret_key", "secret-1"),
        company_name="Glow Cosmetics",
        transport=httpx.MockTransport(api),
        **kwargs,
    )


def _request(cod=False, total_amount=800.0):
    return ShipmentRequest(
        order_number="ORD-100001",
        order_date=datetime(2026, 1, 5, 10, 30, 15, tzinfo=UTC),
        name="Asha Rao",
        phone="9876543210",
        address="12 MG Road",
        city="Bengaluru",
        state="Karnataka",
        pincode="560001",
        lines=(
            ShipmentLine(name="Lipstick", quantity=1, price=500.0, sku="prod-001"),
            ShipmentLine(name="Kajal", quantity=1, price=300.0, sku="prod-002"),
        ),
        cod=cod,
        total_amount=total_amount,
    )


AWB_FOUND = {"status_code": 200, "data": {"0": {"awb_no": "IT123456789"}}}
SYNC_OK = {"status_code": 200, "data": {"1": {"status": "success", "waybill": "IT123456789", "logistic_name": "Delhivery"}}}


class TestConfiguration:
    def test_missing_credentials(self):
        api = _IThink()
        courier = _courier(api, secret_key=None)
        assert courier.is_configured is False
        with pytest.raises(CourierError, match="not configured"):
            asyncio.run(courier.generate_awb("ORD-1"))
        assert api.requests == []

    def test_credentials_sent_with_every_request(self):
        api = _IThink(**{ORDER_DETAILS_PATH: AWB_FOUND})
        asyncio.run(_courier(api).generate_awb("ORD-1"))
        [data] = api.sent(ORDER_DETAILS_PATH)
        assert data["access_token"] == "token-1"
        assert data["secret_key"] == "secret-1"


class TestServiceability:
    def test_couriers_filtered_by_payment_mode(self):
        api = _IThink(
            **{
                PINCODE_CHECK_PATH: {
                    "status_code": 200,
                    "data": {
                        "560001": {
                            "Delhivery": {"prepaid": "Y", "cod": "Y", "pickup": "Y"},
                            "Xpressbees": {"prepaid": "Y", "cod": "N", "pickup": "Y"},
                            "Ekart": {"prepaid": "Y", "cod": "Y", "pickup": "N"},
                        }
                    },
                }
            }
        )
        result = asyncio.run(_courier(api).check_serviceability("560001", 0.5, cod=True))
        assert result.serviceable is True
        assert result.couriers == ("Delhivery",)

        prepaid = asyncio.run(_courier(api).check_serviceability("560001", 0.5, cod=False))
        assert set(prepaid.couriers) == {"Delhivery", "Xpressbees"}

    def test_no_couriers(self):
        api = _IThink(**{PINCODE_CHECK_PATH: {"status_code": 200, "data": {}}})
        assert asyncio.run(_courier(api).check_serviceability("999999", 0.5, cod=False)).serviceable is False


class TestCreateShipment:
    def test_sync_then_awb(self):
        api = _IThink(**{ORDER_SYNC_PATH: SYNC_OK, ORDER_DETAILS_PATH: AWB_FOUND})
        result = asyncio.run(_courier(api).create_shipment(_request()))
        assert result.courier_order_id == "ORD-100001"
        assert result.tracking_number == "IT123456789"
        assert result.courier_company == "Delhivery"

        [data] = api.sent(ORDER_SYNC_PATH)
        [shipment] = data["shipments"]
        assert shipment["order"] == "ORD-100001"
        assert shipment["order_date"] == "05-01-2026 10:30:15"
        assert shipment["payment_mode"] == "Prepaid"
        assert shipment["cod_amount"] == "0"
        assert shipment["billing_pin"] == "560001"
        assert shipment["company_name"] == "Glow Cosmetics"
        assert [p["product_sku"] for p in shipment["products"]] == ["prod-001", "prod-002"]

    def test_cod_amount_is_order_total(self):
        api = _IThink(**{ORDER_SYNC_PATH: SYNC_OK, ORDER_DETAILS_PATH: AWB_FOUND})
        asyncio.run(_courier(api).create_shipment(_request(cod=True, total_amount=755.0)))
        [shipment] = api.sent(ORDER_SYNC_PATH)[0]["shipments"]
        assert shipment["payment_mode"] == "COD"
        assert shipment["cod_amount"] == "755.0"

    def test_awb_not_ready_after_sync(self):
        api = _IThink(**{ORDER_SYNC_PATH: SYNC_OK, ORDER_DETAILS_PATH: {"status_code": 200, "data": {}}})
        result = asyncio.run(_courier(api).create_shipment(_request()))
        assert result.tracking_number is None
        assert result.courier_order_id == "ORD-100001"

    def test_sync_rejected(self):
        api = _IThink(
            **{ORDER_SYNC_PATH: {"status_code": 200, "data": {"1": {"status": "error", "remark": "Invalid pincode"}}}}
        )
        with pytest.raises(CourierError, match="Invalid pincode"):
            asyncio.run(_courier(api).create_shipment(_request()))

    def test_error_status_code_in_body(self):
        api = _IThink(**{ORDER_SYNC_PATH: {"status_code": 400, "html_message": "Bad request"}})
        with pytest.raises(CourierError) as exc_info:
            asyncio.run(_courier(api).create_shipment(_request()))
        assert exc_info.value.response["html_message"] == "Bad request"


class TestGenerateAwb:
    def test_found(self):
        api = _IThink(**{ORDER_DETAILS_PATH: AWB_FOUND})
        assert asyncio.run(_courier(api).generate_awb("100001")) == "IT123456789"
        assert api.sent(ORDER_DETAILS_PATH)[0]["order_no"] == "ORD-100001"

    def test_not_ready(self):
        api = _IThink(**{ORDER_DETAILS_PATH: {"status_code": 200, "data": {"0": {"awb_no": ""}}}})
        with pytest.raises(AwbNotReady):
            asyncio.run(_courier(api).generate_awb("ORD-100001"))

    def test_http_error(self):
        api = _IThink(**{ORDER_DETAILS_PATH: lambda request: httpx.Response(500, json={"message": "down"})})
        with pytest.raises(CourierError) as exc_info:
            asyncio.run(_courier(api).generate_awb("ORD-100001"))
        assert not isinstance(exc_info.value, AwbNotReady)

    def test_non_json_response(self):
        api = _IThink(**{ORDER_DETAILS_PATH: lambda request: httpx.Response(502, text="Bad Gateway")})
        with pytest.raises(CourierError, match="HTTP 502"):
            asyncio.run(_courier(api).generate_awb("ORD-100001"))

    def test_network_failure(self):
        def unreachable(request):
            raise httpx.ConnectError("unreachable", request=request)

        api = _IThink(**{ORDER_DETAILS_PATH: unreachable})
        with pytest.raises(CourierError, match="request failed"):
            asyncio.run(_courier(api).generate_awb("ORD-100001"))


class TestTracking:
    def test_current_status(self):
        api = _IThink(
            **{
                TRACK_PATH: {
                    "status_code": 200,
                    "data": {
                        "IT123456789": {
                            "current_status": "Out For Delivery",
                            "scan_details": [{"status": "Picked Up"}, {"status": "Out For Delivery"}],
                        }
                    },
                }
            }
        )
        result = asyncio.run(_courier(api).track_shipment("IT123456789"))
        assert result.status_text == "Out For Delivery"
        assert len(result.events) == 2

    def test_falls_back_to_last_scan(self):
        api = _IThink(
            **{
                TRACK_PATH: {
                    "status_code": 200,
                    "data": {"IT123456789": {"last_scan_details": {"status": "In Transit"}}},
                }
            }
        )
        assert asyncio.run(_courier(api).track_shipment("IT123456789")).status_text == "In Transit"


class TestMalformedResponses:
    @pytest.mark.parametrize("data", [["unexpected"], "unexpected", {"1": "unexpected"}])
    def test_order_sync(self, data):
        api = _IThink(**{ORDER_SYNC_PATH: {"status_code": 200, "data": data}})
        with pytest.raises(CourierError, match="Unexpected response shape"):
            asyncio.run(_courier(api).create_shipment(_request()))

    @pytest.mark.parametrize("data", [["unexpected"], "unexpected", {"0": ["awb"]}])
    def test_order_details(self, data):
        api = _IThink(**{ORDER_DETAILS_PATH: {"status_code": 200, "data": data}})
        with pytest.raises(CourierError, match="Unexpected response shape") as exc_info:
            asyncio.run(_courier(api).generate_awb("ORD-100001"))
        assert not isinstance(exc_info.value, AwbNotReady)

    @pytest.mark.parametrize("data", [["unexpected"], "unexpected", {"IT123456789": "Delivered"}])
    def test_track(self, data):
        api = _IThink(**{TRACK_PATH: {"status_code": 200, "data": data}})
        with pytest.raises(CourierError, match="Unexpected response shape"):
            asyncio.run(_courier(api).track_shipment("IT123456789"))

    def test_pincode_check(self):
        api = _IThink(**{PINCODE_CHECK_PATH: {"status_code": 200, "data": ["unexpected"]}})
        with pytest.raises(CourierError, match="Unexpected response shape"):
            asyncio.run(_courier(api).check_serviceability("560001", 0.5, cod=False))

    def test_malformed_awb_lookup_after_sync_leaves_awb_pending(self):
        api = _IThink(**{ORDER_SYNC_PATH: SYNC_OK, ORDER_DETAILS_PATH: {"status_code": 200, "data": ["unexpected"]}})
        result = asyncio.run(_courier(api).create_shipment(_request()))
        assert result.courier_order_id == "ORD-100001"
        assert result.tracking_number is None

    def test_malformed_scan_details_ignored(self):
        api = _IThink(
            **{
                TRACK_PATH: {
                    "status_code": 200,
                    "data": {"IT123456789": {"current_status": "In Transit", "scan_details": "n/a", "last_scan_details": []}},
                }
            }
        )
        result = asyncio.run(_courier(api).track_shipment("IT123456789"))
        assert result.status_text == "In Transit"
        assert result.events == []
