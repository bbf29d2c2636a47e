"""
Quote lifecycle
===============

``create_quote``: dedup addresses / vehicle -> price -> next per-day number
-> persist with a 7-day expiry and the breakdown snapshot.

Quotes are never updated.  A changed request gets a new quote.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.config import settings
from src.domain.distance import PostcodeDistanceEstimator
from src.domain.entities import QUOTE_PREFIX, business_day, ensure_utc, format_reference, utcnow
from src.domain.enums import QuoteSource, TransportType
from src.domain.pricing import PricingEngine, PricingRequest
from src.infrastructure.models import AddressModel, QuoteModel, VehicleModel
from src.infrastructure.repositories import (
    AddressRepository,
    QuoteRepository,
    SequenceRepository,
    VehicleRepository,
)
from src.services.schemas import AddressIn, QuoteCreateRequest, VehicleIn

logger = logging.getLogger(__name__)

QUOTE_SEQUENCE = "quote"


def default_engine() -> PricingEngine:
    return PricingEngine(
        distance_estimator=PostcodeDistanceEstimator(
            min_distance_km=settings.min_distance_km
        ),
        min_base_price=settings.min_base_price,
        gst_rate=settings.gst_rate,
        deposit_rate=settings.deposit_rate,
    )


def is_expired(quote: QuoteModel, now: Optional[datetime] = None) -> bool:
    return ensure_utc(quote.expires_at) <= (now or utcnow())


async def resolve_address(session: AsyncSession, payload: AddressIn) -> AddressModel:
    return await AddressRepository(session).get_or_create(
        address=payload.address,
        suburb=payload.suburb,
        postcode=payload.postcode,
        state=payload.state,
        contact_name=payload.contact_name,
        contact_phone=payload.contact_phone,
    )


async def resolve_vehicle(
    session: AsyncSession, payload: VehicleIn, transport_type: TransportType
) -> VehicleModel:
    return await VehicleRepository(session).get_or_create(
        vehicle_type=payload.vehicle_type,
        make=payload.make,
        model=payload.model,
        year=payload.year,
        is_running=payload.is_running,
        transport_type=transport_type,
    )


async def next_reference(
    session: AsyncSession, sequence: str, prefix: str, now: datetime
) -> str:
    day = business_day(now, settings.business_timezone)
    value = await SequenceRepository(session).next_value(sequence, day)
    return format_reference(prefix, day, value)


async def create_quote(
    session: AsyncSession,
    body: QuoteCreateRequest,
    *,
    customer_id: Optional[int] = None,
    source: QuoteSource = QuoteSource.WEB,
    engine: Optional[PricingEngine] = None,
    now: Optional[datetime] = None,
) -> QuoteModel:
    now = now or utcnow()
    engine = engine or default_engine()

    # Price first: bad input must not leave address / vehicle rows behind
    breakdown = engine.calculate(
        PricingRequest(
            pickup_postcode=body.pickup_address.postcode,
            delivery_postcode=body.dropoff_address.postcode,
            vehicle_type=body.vehicle.vehicle_type,
            is_running=body.vehicle.is_running,
            transport_type=body.transport_type,
            add_ons=body.add_ons,
        )
    )

    pickup = await resolve_address(session, body.pickup_address)
    dropoff = await resolve_address(session, body.dropoff_address)
    vehicle = await resolve_vehicle(session, body.vehicle, body.transport_type)

    quote = QuoteModel(
        quote_number=await next_reference(session, QUOTE_SEQUENCE, QUOTE_PREFIX, now),
        customer_id=customer_id,
        pickup_address_id=pickup.id,
        dropoff_address_id=dropoff.id,
        vehicle_id=vehicle.id,
        preferred_pickup_date=body.preferred_pickup_date,
        transport_type=body.transport_type,
        distance_km=breakdown.distance_km,
        duration_estimate_days_min=breakdown.delivery_timeframe.min_days,
        duration_estimate_days_max=breakdown.delivery_timeframe.max_days,
        pickup_window_days_min=breakdown.pickup_window.min_days,
        pickup_window_days_max=breakdown.pickup_window.max_days,
        subtotal_ex_gst=breakdown.subtotal,
        gst_amount=breakdown.gst,
        total_inc_gst=breakdown.total_price,
        currency="AUD",
        expires_at=now + timedelta(days=settings.quote_validity_days),
        pricing_breakdown=breakdown.snapshot(),
        source=source,
        created_at=now,
    )
    quote = await QuoteRepository(session).create(quote)
    logger.info(
        "Quote %s created: total %d AUD inc GST (%s)",
        quote.quote_number,
        quote.total_inc_gst,
        source.value,
    )
    return quote
