"""
Booking lifecycle
=================

* ``create_booking``   -- convert a quote at its frozen price
* ``transition``       -- the single path for every status change
* ``record_payment_succeeded`` / ``record_payment_failed`` -- payment events
* ``record_internal_costing`` -- admin-only cost / margin (never serialized)

Every status change goes through ``BookingTimeline.transition_to`` so the
transition table, the history append and the pickup / delivery stamps are
applied together, on a row the caller has locked, inside one transaction.
"""

from __future__ import annotations

import logging
import secrets
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.entities import BOOKING_PREFIX, BookingTimeline, utcnow
from src.domain.enums import HOLD_STATUSES, BookingStatus, PaymentMethod, PaymentStatus
from src.domain.errors import ConflictError, InvalidInput, NotFound, QuoteExpired, UpstreamFailure
from src.domain.pricing import split_deposit
from src.infrastructure.models import (
    BookingModel,
    BookingStatusHistoryModel,
    QuoteModel,
    UserModel,
)
from src.infrastructure.payments import PaymentGateway
from src.infrastructure.repositories import (
    BookingRepository,
    QuoteRepository,
    UserRepository,
)
from src.services.notifications import BOOKING_CONFIRMATION, STATUS_UPDATE, Outbox
from src.services.quotes import is_expired, next_reference
from src.services.schemas import BookingCreateRequest

logger = logging.getLogger(__name__)

BOOKING_SEQUENCE = "booking"
TRACKING_TOKEN_BYTES = 16


def new_tracking_token() -> str:
    """Random, URL-safe, unrelated to the booking number."""
    return secrets.token_urlsafe(TRACKING_TOKEN_BYTES)


async def get_booking_or_404(
    session: AsyncSession, reference: str, *, for_update: bool = False
) -> BookingModel:
    booking = await BookingRepository(session).get_by_reference(
        reference, for_update=for_update
    )
    if booking is None:
        raise NotFound("Booking not found")
    return booking


async def _customer_email(session: AsyncSession, booking: BookingModel) -> Optional[str]:
    customer = await UserRepository(session).get_by_id(booking.customer_id)
    return customer.email if customer else None


async def load_timeline(session: AsyncSession, booking: BookingModel) -> BookingTimeline:
    """Rebuild the state machine for *booking*, including where a hold may resume."""
    status = BookingStatus(booking.status)
    resume_floor = None
    if status in HOLD_STATUSES:
        resume_floor = await BookingRepository(session).last_forward_status(booking.id)
    return BookingTimeline(
        status=status,
        actual_pickup_at=booking.actual_pickup_at,
        actual_delivery_at=booking.actual_delivery_at,
        resume_floor=resume_floor,
    )


async def transition(
    session: AsyncSession,
    booking: BookingModel,
    new_status: BookingStatus,
    *,
    note: Optional[str] = None,
    outbox: Optional[Outbox] = None,
    now: Optional[datetime] = None,
) -> BookingStatusHistoryModel:
    """Apply one lifecycle transition and append exactly one history entry."""
    now = now or utcnow()
    timeline = await load_timeline(session, booking)
    previous = timeline.status
    change = timeline.transition_to(new_status, now, note)

    booking.status = timeline.status
    booking.actual_pickup_at = timeline.actual_pickup_at
    booking.actual_delivery_at = timeline.actual_delivery_at
    booking.updated_at = now

    entry = await BookingRepository(session).append_history(
        BookingStatusHistoryModel(
            booking_id=booking.id,
            status=change.status,
            note=change.note,
            changed_at=change.timestamp,
        )
    )
    logger.info(
        "Booking %s: %s -> %s", booking.booking_number, previous.value, change.status.value
    )

    if outbox is not None:
        outbox.add(
            await _customer_email(session, booking),
            STATUS_UPDATE,
            booking_number=booking.booking_number,
            status=change.status.value,
            note=change.note,
        )
    return entry


async def create_booking(
    session: AsyncSession,
    body: BookingCreateRequest,
    *,
    customer: UserModel,
    gateway: Optional[PaymentGateway] = None,
    outbox: Optional[Outbox] = None,
    now: Optional[datetime] = None,
) -> BookingModel:
    now = now or utcnow()

    quote = await QuoteRepository(session).get_by_id(body.quote_id)
    # Someone else's quote looks exactly like a missing one
    if quote is None or (quote.customer_id is not None and quote.customer_id != customer.id):
        raise NotFound("Quote not found")
    if is_expired(quote, now):
        raise QuoteExpired(quote.quote_number)
    if body.pickup_window_end < body.pickup_window_start:
        raise InvalidInput("pickup_window_end must not be before pickup_window_start")

    repo = BookingRepository(session)
    if await repo.get_by_quote_id(quote.id) is not None:
        raise ConflictError(f"Quote {quote.quote_number} has already been booked")

    deposit, balance = split_deposit(quote.total_inc_gst, settings.deposit_rate)
    booking = BookingModel(
        booking_number=await next_reference(session, BOOKING_SEQUENCE, BOOKING_PREFIX, now),
        quote_id=quote.id,
        customer_id=customer.id,
        status=BookingStatus.QUOTE_CREATED,
        pickup_address_id=quote.pickup_address_id,
        dropoff_address_id=quote.dropoff_address_id,
        vehicle_id=quote.vehicle_id,
        pickup_window_start=body.pickup_window_start,
        pickup_window_end=body.pickup_window_end,
        special_instructions=body.special_instructions,
        total_inc_gst=quote.total_inc_gst,
        deposit_required_amount=deposit,
        balance_due_amount=balance,
        payment_method=body.payment_method,
        payment_status=PaymentStatus.PENDING,
        paid_amount=0,
        tracking_token=new_tracking_token(),
        source_channel=body.source_channel,
        created_at=now,
    )
    booking = await repo.create(booking)

    # quote_created is the starting point; creation itself is the first transition
    await transition(
        session,
        booking,
        BookingStatus.BOOKING_PENDING_PAYMENT,
        note=f"Booking created from quote {quote.quote_number}; price frozen",
        now=now,
    )

    if gateway is not None:
        booking.payment_intent_id = await _create_payment_intent(gateway, booking, quote)

    logger.info(
        "Booking %s created from quote %s (%s payment)",
        booking.booking_number,
        quote.quote_number,
        booking.payment_method.value,
    )
    if outbox is not None:
        outbox.add(
            customer.email,
            BOOKING_CONFIRMATION,
            booking_number=booking.booking_number,
            customer_name=customer.name,
            total_inc_gst=booking.total_inc_gst,
            tracking_token=booking.tracking_token,
        )
    return booking


async def _create_payment_intent(
    gateway: PaymentGateway, booking: BookingModel, quote: QuoteModel
) -> Optional[str]:
    """Payment is optional at creation time: failures defer it, never abort."""
    if booking.payment_method is PaymentMethod.FULL:
        amount = booking.total_inc_gst
    else:
        amount = booking.deposit_required_amount
    try:
        return await gateway.create_payment_intent(
            amount=amount,
            method=booking.payment_method,
            metadata={
                "booking_number": booking.booking_number,
                "quote_number": quote.quote_number,
            },
        )
    except UpstreamFailure:
        logger.exception(
            "Payment intent creation failed for booking %s; continuing without one",
            booking.booking_number,
        )
        return None


async def record_payment_succeeded(
    session: AsyncSession,
    reference: str,
    method: PaymentMethod,
    *,
    outbox: Optional[Outbox] = None,
    now: Optional[datetime] = None,
) -> BookingModel:
    booking = await get_booking_or_404(session, reference, for_update=True)

    if booking.payment_status is PaymentStatus.PAID:
        logger.info("Duplicate payment event for %s ignored", booking.booking_number)
        return booking

    if booking.status in (BookingStatus.CANCELLED, BookingStatus.REFUNDED):
        logger.warning(
            "Payment received for %s booking %s; needs refund follow-up",
            booking.status.value,
            booking.booking_number,
        )

    if method is PaymentMethod.DEPOSIT:
        if booking.payment_status is PaymentStatus.PARTIAL:
            logger.info("Duplicate deposit event for %s ignored", booking.booking_number)
            return booking
        booking.paid_amount = booking.deposit_required_amount
        booking.payment_status = PaymentStatus.PARTIAL
        logger.info(
            "Deposit of %d AUD received for %s; balance %d outstanding",
            booking.deposit_required_amount,
            booking.booking_number,
            booking.balance_due_amount,
        )
        return booking

    booking.paid_amount = booking.total_inc_gst
    booking.payment_status = PaymentStatus.PAID
    if booking.status is BookingStatus.BOOKING_PENDING_PAYMENT:
        await transition(
            session,
            booking,
            BookingStatus.BOOKED_CONFIRMED,
            note="Payment received, booking confirmed",
            outbox=outbox,
            now=now,
        )
    return booking


async def record_payment_failed(session: AsyncSession, reference: str) -> BookingModel:
    """No state change: the booking waits for a retry or operator follow-up."""
    booking = await get_booking_or_404(session, reference)
    logger.warning(
        "Payment failed for booking %s (status %s)",
        booking.booking_number,
        booking.status.value,
    )
    return booking


async def record_internal_costing(
    session: AsyncSession, reference: str, internal_cost_ex_gst: int
) -> BookingModel:
    booking = await get_booking_or_404(session, reference, for_update=True)
    quote = await QuoteRepository(session).get_by_id(booking.quote_id)
    if quote is None:
        raise NotFound("Quote not found")
    booking.internal_cost_ex_gst = internal_cost_ex_gst
    booking.internal_margin_ex_gst = quote.subtotal_ex_gst - internal_cost_ex_gst
    return booking


async def status_history(
    session: AsyncSession, booking: BookingModel
) -> list[BookingStatusHistoryModel]:
    return await BookingRepository(session).get_history(booking.id)
