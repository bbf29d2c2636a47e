"""
Public tracking
===============

GET /api/v1/tracking/{reference} -- by booking number or tracking token

No authentication.  The response is a fixed projection: suburbs and states
only (no street lines or contacts), and nothing about carriers or costs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db
from src.api.middleware import limiter
from src.api.schemas import StatusChangeResponse, TrackingResponse
from src.config import settings
from src.infrastructure.repositories import AddressRepository
from src.services.bookings import get_booking_or_404, status_history

router = APIRouter(prefix="/tracking", tags=["tracking"])


@router.get(
    "/{reference}",
    response_model=TrackingResponse,
    summary="Track a booking",
    responses={404: {"description": "Booking not found"}},
)
@limiter.limit(settings.rate_limit)
async def track_booking(
    request: Request,
    reference: str,
    db: AsyncSession = Depends(get_db),
):
    booking = await get_booking_or_404(db, reference.strip())
    addresses = AddressRepository(db)
    pickup = await addresses.get_by_id(booking.pickup_address_id)
    dropoff = await addresses.get_by_id(booking.dropoff_address_id)
    history = await status_history(db, booking)

    return TrackingResponse(
        booking_number=booking.booking_number,
        status=booking.status,
        pickup_suburb=pickup.suburb,
        pickup_state=pickup.state,
        dropoff_suburb=dropoff.suburb,
        dropoff_state=dropoff.state,
        pickup_window_start=booking.pickup_window_start,
        pickup_window_end=booking.pickup_window_end,
        actual_pickup_at=booking.actual_pickup_at,
        actual_delivery_at=booking.actual_delivery_at,
        status_history=[StatusChangeResponse.model_validate(h) for h in history],
    )
