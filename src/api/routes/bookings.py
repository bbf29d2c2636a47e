"""
Booking endpoints (customer)
============================

POST /api/v1/bookings                  -- convert a quote into a booking
GET  /api/v1/bookings/{booking_number} -- the caller's booking with history
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import (
    get_db,
    get_outbox,
    get_payment_gateway,
    require_customer,
)
from src.api.middleware import limiter
from src.api.schemas import BookingCreatedResponse, BookingResponse, StatusChangeResponse
from src.config import settings
from src.domain.errors import NotFound
from src.infrastructure.models import UserModel
from src.infrastructure.payments import PaymentGateway
from src.services.bookings import create_booking, get_booking_or_404, status_history
from src.services.notifications import Outbox
from src.services.schemas import BookingCreateRequest

router = APIRouter(prefix="/bookings", tags=["bookings"])


@router.post(
    "",
    status_code=201,
    response_model=BookingCreatedResponse,
    summary="Create a booking from a quote",
    description=(
        "Freezes the quote's prices, splits the deposit and starts the "
        "booking in ``booking_pending_payment``.  Expired or already-booked "
        "quotes are rejected."
    ),
)
@limiter.limit(settings.rate_limit)
async def post_booking(
    request: Request,
    body: BookingCreateRequest,
    db: AsyncSession = Depends(get_db),
    customer: UserModel = Depends(require_customer),
    gateway: Optional[PaymentGateway] = Depends(get_payment_gateway),
    outbox: Outbox = Depends(get_outbox),
):
    return await create_booking(
        db, body, customer=customer, gateway=gateway, outbox=outbox
    )


@router.get(
    "/{booking_number}",
    response_model=BookingResponse,
    summary="Get one of your bookings",
)
@limiter.limit(settings.rate_limit)
async def get_booking(
    request: Request,
    booking_number: str,
    db: AsyncSession = Depends(get_db),
    customer: UserModel = Depends(require_customer),
):
    booking = await get_booking_or_404(db, booking_number)
    if booking.customer_id != customer.id:
        raise NotFound("Booking not found")

    response = BookingResponse.model_validate(booking)
    response.status_history = [
        StatusChangeResponse.model_validate(h) for h in await status_history(db, booking)
    ]
    return response
