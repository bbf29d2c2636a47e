"""
Pydantic request / response schemas for the REST API.

Response models are the only shapes that leave the service.  None of them
declares ``carrier_id``, ``internal_cost_ex_gst`` or
``internal_margin_ex_gst``; with ``from_attributes`` pydantic reads only the
declared fields, so those columns cannot leak through a projection.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import AliasChoices, BaseModel, Field

from src.domain.enums import (
    AssignmentOutcome,
    BookingStatus,
    PaymentMethod,
    PaymentOutcome,
    PaymentStatus,
    QuoteSource,
    SourceChannel,
    TransportType,
    VehicleType,
)


# ── Requests ──────────────────────────────────────────────────────────


class PriceEstimateRequest(BaseModel):
    pickup_postcode: str = Field(..., min_length=1, max_length=10)
    delivery_postcode: str = Field(..., min_length=1, max_length=10)
    vehicle_type: VehicleType
    is_running: bool = True
    transport_type: TransportType = TransportType.OPEN
    add_ons: dict[str, bool] = Field(
        default_factory=dict,
        description="e.g. {\"insurance\": true}; unknown add-ons are ignored.",
    )


class StatusUpdateRequest(BaseModel):
    status: BookingStatus
    note: Optional[str] = Field(None, max_length=500)


class CostingRequest(BaseModel):
    internal_cost_ex_gst: int = Field(..., ge=0)


class AssignDriverRequest(BaseModel):
    booking_reference: str = Field(..., min_length=1, max_length=64)
    driver_id: int
    carrier_id: Optional[int] = None


class AssignmentResponseRequest(BaseModel):
    outcome: AssignmentOutcome


class PaymentEventRequest(BaseModel):
    booking_reference: str = Field(..., min_length=1, max_length=64)
    outcome: PaymentOutcome
    method: PaymentMethod = PaymentMethod.FULL


# ── Responses ─────────────────────────────────────────────────────────


class PriceEstimateResponse(BaseModel):
    distance_km: float
    base_price: int
    add_ons: dict[str, int]
    gst: int
    total_price: int
    deposit_amount: int
    balance_amount: int
    estimated_pickup_window: str
    estimated_delivery_timeframe: str

    model_config = {"from_attributes": True}


class QuoteResponse(BaseModel):
    id: int
    quote_number: str
    customer_id: Optional[int] = None
    pickup_address_id: int
    dropoff_address_id: int
    vehicle_id: int
    preferred_pickup_date: date
    transport_type: TransportType
    distance_km: float
    duration_estimate_days_min: int
    duration_estimate_days_max: int
    pickup_window_days_min: int
    pickup_window_days_max: int
    subtotal_ex_gst: int
    gst_amount: int
    total_inc_gst: int
    currency: str
    expires_at: datetime
    pricing_breakdown: dict
    source: QuoteSource
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StatusChangeResponse(BaseModel):
    status: BookingStatus
    timestamp: datetime = Field(validation_alias=AliasChoices("changed_at", "timestamp"))
    note: str

    model_config = {"from_attributes": True}


class BookingCreatedResponse(BaseModel):
    booking_number: str
    tracking_token: str
    status: BookingStatus
    total_inc_gst: int
    deposit_required_amount: int
    balance_due_amount: int
    payment_intent_id: Optional[str] = None

    model_config = {"from_attributes": True}


class BookingResponse(BaseModel):
    booking_number: str
    quote_id: int
    status: BookingStatus
    pickup_window_start: date
    pickup_window_end: date
    special_instructions: str
    total_inc_gst: int
    deposit_required_amount: int
    balance_due_amount: int
    payment_method: PaymentMethod
    payment_status: PaymentStatus
    paid_amount: int
    tracking_token: str
    source_channel: SourceChannel
    actual_pickup_at: Optional[datetime] = None
    actual_delivery_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    status_history: list[StatusChangeResponse] = []

    model_config = {"from_attributes": True}


class PaymentStatusResponse(BaseModel):
    booking_number: str
    status: BookingStatus
    payment_status: PaymentStatus
    paid_amount: int

    model_config = {"from_attributes": True}


class AdminBookingSummary(BaseModel):
    booking_number: str
    customer_id: int
    status: BookingStatus
    total_inc_gst: int
    payment_status: PaymentStatus
    source_channel: SourceChannel
    created_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class StatusUpdateResponse(BaseModel):
    booking_number: str
    status: BookingStatus
    history_entry: StatusChangeResponse


class TrackingResponse(BaseModel):
    """Public, unauthenticated view of a booking."""

    booking_number: str
    status: BookingStatus
    pickup_suburb: str
    pickup_state: str
    dropoff_suburb: str
    dropoff_state: str
    pickup_window_start: date
    pickup_window_end: date
    actual_pickup_at: Optional[datetime] = None
    actual_delivery_at: Optional[datetime] = None
    status_history: list[StatusChangeResponse] = []


class HealthResponse(BaseModel):
    status: str = "ok"
