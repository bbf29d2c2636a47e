"""
Service-layer inputs and outputs.

The services take and return these; ``src.api.schemas`` reuses them as
request / response bodies.  ``JobAssignmentView`` has no carrier field, so a
carrier cannot reach a caller through it.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Optional

from pydantic import BaseModel, Field

from src.domain.enums import (
    JobStatus,
    PaymentMethod,
    SourceChannel,
    TransportType,
    VehicleType,
)


class AddressIn(BaseModel):
    address: str = Field(..., min_length=1, max_length=255)
    suburb: str = Field(..., min_length=1, max_length=120)
    postcode: str = Field(..., min_length=1, max_length=10)
    state: str = Field(..., min_length=1, max_length=10)
    contact_name: Optional[str] = Field(None, max_length=120)
    contact_phone: Optional[str] = Field(None, max_length=40)


class VehicleIn(BaseModel):
    vehicle_type: VehicleType
    make: str = Field(..., min_length=1, max_length=80)
    model: str = Field(..., min_length=1, max_length=80)
    year: str = Field(..., min_length=4, max_length=4)
    is_running: bool = True


class QuoteCreateRequest(BaseModel):
    pickup_address: AddressIn
    dropoff_address: AddressIn
    vehicle: VehicleIn
    preferred_pickup_date: date
    transport_type: TransportType
    add_ons: dict[str, bool] = Field(default_factory=dict)


class BookingCreateRequest(BaseModel):
    quote_id: int
    pickup_window_start: date
    pickup_window_end: date
    special_instructions: str = Field("", max_length=2000)
    payment_method: PaymentMethod = PaymentMethod.DEPOSIT
    source_channel: SourceChannel = SourceChannel.NEXTTRANSPORT


class JobAssignmentView(BaseModel):
    """External-safe assignment projection: carrier identity is not a field."""

    id: int
    booking_id: int
    booking_number: str
    driver_id: int
    driver_name: str
    assigned_by_admin_id: int
    assigned_by_admin_name: str
    assigned_at: datetime
    status: JobStatus
