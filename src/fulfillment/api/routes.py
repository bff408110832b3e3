"""FastAPI routes for pincode serviceability and courier configuration."""

import os

from fastapi import APIRouter, HTTPException, Query

from fulfillment.api.schemas import (
    ConfigureCourierRequest,
    CourierConfigResponse,
    CourierServiceabilityResponse,
    PincodeValidationResponse,
)
from fulfillment.courier import get_courier, pickup_pincode
from fulfillment.courier.fake_adapter import FakeCourier
from fulfillment.courier.port import DEFAULT_UNIT_WEIGHT_KG, CourierError
from serviceability import get_checker

# ---------------------------------------------------------------------------
# Serviceability Router
# ---------------------------------------------------------------------------
serviceability_router = APIRouter(prefix="/serviceability", tags=["serviceability"])


@serviceability_router.get("/pincodes/{pincode}", response_model=PincodeValidationResponse)
async def validate_pincode(pincode: str) -> PincodeValidationResponse:
    """Does this pincode exist? ``error`` means the lookup services were unavailable."""
    result = await get_checker().validate(pincode)
    return PincodeValidationResponse(**result.as_dict())


@serviceability_router.get("/courier/{pincode}", response_model=CourierServiceabilityResponse)
async def courier_serviceability(
    pincode: str,
    weight: float = Query(default=DEFAULT_UNIT_WEIGHT_KG, gt=0),
    cod: bool = Query(default=False),
) -> CourierServiceabilityResponse:
    courier = get_courier()
    if not courier.is_configured:
        return CourierServiceabilityResponse(pincode=pincode, serviceable=True, checked=False)
    try:
        result = await courier.check_serviceability(pincode, weight, cod, pickup_pincode=pickup_pincode())
    except CourierError as exc:
        return CourierServiceabilityResponse(pincode=pincode, serviceable=True, checked=False, error=str(exc))
    return CourierServiceabilityResponse(
        pincode=result.pincode,
        serviceable=result.serviceable,
        couriers=list(result.couriers),
    )


# ---------------------------------------------------------------------------
# Courier Router
# ---------------------------------------------------------------------------
courier_router = APIRouter(prefix="/courier", tags=["courier"])


@courier_router.post("/configure", response_model=CourierConfigResponse)
async def configure_courier(body: ConfigureCourierRequest) -> CourierConfigResponse:
    """Configure the FakeCourier behavior (non-production only)."""
    if os.environ.get("PROTEAN_ENV") == "production":
        raise HTTPException(status_code=403, detail="Courier configuration not available in production")

    courier = get_courier()
    if not isinstance(courier, FakeCourier):
        raise HTTPException(status_code=400, detail="Courier configuration only available for FakeCourier")

    courier.configure(
        should_succeed=body.should_succeed,
        failure_reason=body.failure_reason,
        awb_ready=body.awb_ready,
        unserviceable=body.unserviceable,
        tracking_status=body.tracking_status,
    )
    return CourierConfigResponse(
        courier=type(courier).__name__,
        should_succeed=courier.should_succeed,
        failure_reason=courier.failure_reason,
        awb_ready=courier.awb_ready,
        unserviceable=sorted(courier.unserviceable),
    )
