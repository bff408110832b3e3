"""Pydantic request/response schemas for the serviceability and courier API."""

from pydantic import BaseModel


class PincodeValidationResponse(BaseModel):
    pincode: str
    status: str  # success | invalid | error
    valid: bool
    message: str = ""
    source: str | None = None


class CourierServiceabilityResponse(BaseModel):
    pincode: str
    serviceable: bool
    couriers: list[str] = []
    checked: bool = True
    error: str | None = None


class ConfigureCourierRequest(BaseModel):
    should_succeed: bool = True
    failure_reason: str = "Courier unavailable"
    awb_ready: bool = True
    unserviceable: list[str] | None = None
    tracking_status: str | None = None


class CourierConfigResponse(BaseModel):
    courier: str
    should_succeed: bool
    failure_reason: str
    awb_ready: bool
    unserviceable: list[str]
