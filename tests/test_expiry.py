"""Quote-expiry sweep: repository delete and the locked worker cycle."""

from datetime import date, datetime, timedelta, timezone
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from src.infrastructure.models import QuoteModel
from src.infrastructure.repositories import QuoteRepository
from src.services.bookings import create_booking
from src.services.quotes import create_quote, is_expired
from src.services.schemas import BookingCreateRequest
from src.workers.quote_expiry import run_expiry_cycle
from tests.conftest import TestSessionFactory, make_quote_request

CREATED = datetime(2026, 10, 1, 0, 0, tzinfo=timezone.utc)


async def _quote_numbers(session) -> set[str]:
    result = await session.execute(select(QuoteModel.quote_number))
    return set(result.scalars().all())


async def _seed(db_session, users):
    """One stale unbooked quote, one stale booked quote, one fresh quote."""
    stale = await create_quote(db_session, make_quote_request(), now=CREATED)
    booked = await create_quote(
        db_session, make_quote_request(), customer_id=users.customer.id, now=CREATED
    )
    await create_booking(
        db_session,
        BookingCreateRequest(
            quote_id=booked.id,
            pickup_window_start=date(2026, 10, 5),
            pickup_window_end=date(2026, 10, 6),
        ),
        customer=users.customer,
        now=CREATED + timedelta(days=1),
    )
    fresh = await create_quote(
        db_session, make_quote_request(), now=CREATED + timedelta(days=15)
    )
    await db_session.commit()
    return stale.quote_number, booked.quote_number, fresh.quote_number


@pytest.mark.asyncio
async def test_delete_expired_keeps_booked_and_fresh_quotes(db_session, users):
    stale, booked, fresh = await _seed(db_session, users)

    deleted = await QuoteRepository(db_session).delete_expired(
        CREATED + timedelta(days=16)
    )
    await db_session.commit()

    assert deleted == 1
    assert await _quote_numbers(db_session) == {booked, fresh}


@pytest.mark.asyncio
async def test_sweep_boundary_matches_is_expired(db_session):
    quote = await create_quote(db_session, make_quote_request(), now=CREATED)
    await db_session.commit()
    expires_at = CREATED + timedelta(days=7)
    repo = QuoteRepository(db_session)

    assert not is_expired(quote, expires_at - timedelta(seconds=1))
    assert await repo.delete_expired(expires_at - timedelta(seconds=1)) == 0

    assert is_expired(quote, expires_at)
    assert await repo.delete_expired(expires_at) == 1


@pytest.mark.asyncio
async def test_expiry_cycle_sweeps_under_lock(db_session, users):
    stale, booked, fresh = await _seed(db_session, users)
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=True)
    redis.eval = AsyncMock(return_value=1)

    with patch("src.workers.quote_expiry.get_redis", new=AsyncMock(return_value=redis)), patch(
        "src.workers.quote_expiry.async_session_factory", TestSessionFactory
    ), patch(
        "src.workers.quote_expiry.utcnow", return_value=CREATED + timedelta(days=16)
    ):
        assert await run_expiry_cycle() == 1

    redis.eval.assert_awaited_once()
    assert stale not in await _quote_numbers(db_session)


@pytest.mark.asyncio
async def test_expiry_cycle_skips_when_lock_held(db_session):
    redis = AsyncMock()
    redis.set = AsyncMock(return_value=None)

    with patch("src.workers.quote_expiry.get_redis", new=AsyncMock(return_value=redis)):
        assert await run_expiry_cycle() == 0
    redis.eval.assert_not_awaited()
