"""Quote creation: numbering, expiry, dedup and price snapshot."""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import func, select

from src.domain.enums import QuoteSource, TransportType, VehicleType
from src.domain.errors import InvalidInput
from src.infrastructure.models import AddressModel, QuoteModel, VehicleModel
from src.infrastructure.repositories import SequenceRepository
from src.services.quotes import create_quote, is_expired
from tests.conftest import make_quote_request

# 09:00 in Sydney on 19 Oct 2026
MORNING = datetime(2026, 10, 18, 22, 0, tzinfo=timezone.utc)


async def _count(session, model) -> int:
    return (await session.execute(select(func.count()).select_from(model))).scalar_one()


@pytest.mark.asyncio
async def test_quote_numbers_increase_within_a_day(db_session):
    numbers = [
        (await create_quote(db_session, make_quote_request(), now=MORNING)).quote_number
        for _ in range(3)
    ]
    assert numbers == [
        "QT-20261019-0001",
        "QT-20261019-0002",
        "QT-20261019-0003",
    ]


@pytest.mark.asyncio
async def test_quote_numbers_reset_on_new_day(db_session):
    await create_quote(db_session, make_quote_request(), now=MORNING)
    await create_quote(db_session, make_quote_request(), now=MORNING)
    tomorrow = await create_quote(
        db_session, make_quote_request(), now=MORNING + timedelta(days=1)
    )
    assert tomorrow.quote_number == "QT-20261020-0001"


@pytest.mark.asyncio
async def test_sequences_are_independent_per_name(db_session):
    repo = SequenceRepository(db_session)
    assert await repo.next_value("quote", "20261019") == 1
    assert await repo.next_value("booking", "20261019") == 1
    assert await repo.next_value("quote", "20261019") == 2


@pytest.mark.asyncio
async def test_quote_priced_and_stored(db_session, users):
    quote = await create_quote(
        db_session,
        make_quote_request(add_ons={"insurance": True}),
        customer_id=users.customer.id,
        now=MORNING,
    )
    assert quote.customer_id == users.customer.id
    assert quote.distance_km == 100.0
    assert quote.subtotal_ex_gst == 450  # 300 floor + 150 insurance
    assert quote.gst_amount == 45
    assert quote.total_inc_gst == 495
    assert quote.currency == "AUD"
    assert quote.source == QuoteSource.WEB
    assert quote.pricing_breakdown["add_ons"] == {"insurance": 150}
    assert (quote.pickup_window_days_min, quote.pickup_window_days_max) == (2, 3)
    assert (quote.duration_estimate_days_min, quote.duration_estimate_days_max) == (1, 2)


@pytest.mark.asyncio
async def test_quote_expires_after_seven_days(db_session):
    quote = await create_quote(db_session, make_quote_request(), now=MORNING)
    assert quote.expires_at == MORNING + timedelta(days=7)
    assert not is_expired(quote, MORNING + timedelta(days=6, hours=23))
    assert is_expired(quote, MORNING + timedelta(days=7))


@pytest.mark.asyncio
async def test_addresses_and_vehicles_are_deduplicated(db_session):
    await create_quote(db_session, make_quote_request(), now=MORNING)
    await create_quote(db_session, make_quote_request(), now=MORNING)
    assert await _count(db_session, AddressModel) == 2
    assert await _count(db_session, VehicleModel) == 1

    await create_quote(
        db_session,
        make_quote_request(
            vehicle_type=VehicleType.SUV, transport_type=TransportType.ENCLOSED
        ),
        now=MORNING,
    )
    assert await _count(db_session, VehicleModel) == 2


@pytest.mark.asyncio
async def test_invalid_postcode_leaves_nothing_behind(db_session):
    with pytest.raises(InvalidInput):
        await create_quote(
            db_session, make_quote_request(pickup_postcode="ABC"), now=MORNING
        )
    assert await _count(db_session, AddressModel) == 0
    assert await _count(db_session, QuoteModel) == 0
