"""
Shared test fixtures.

Uses an in-memory SQLite database (via aiosqlite) so tests run without
Docker / PostgreSQL / Redis.  The production models are used as-is: the
partial unique index and the sequence upsert both have SQLite forms.
``StaticPool`` keeps every session on the one in-memory connection.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, AsyncGenerator
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import (
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import StaticPool

from src.api.dependencies import get_db, get_notifier, get_payment_gateway
from src.api.middleware import limiter
from src.config import settings
from src.domain.enums import TransportType, UserRole, VehicleType
from src.infrastructure.database import Base
from src.infrastructure.models import CarrierModel, UserModel
from src.infrastructure.notifier import Notifier
from src.services.schemas import AddressIn, QuoteCreateRequest, VehicleIn


# ── Test DB (SQLite in-memory) ────────────────────────────────────────

TEST_DB_URL = "sqlite+aiosqlite:///:memory:"
WEBHOOK_SECRET = "test-webhook-secret"

test_engine = create_async_engine(
    TEST_DB_URL,
    echo=False,
    poolclass=StaticPool,
    connect_args={"check_same_thread": False},
)
TestSessionFactory = async_sessionmaker(
    test_engine, class_=AsyncSession, expire_on_commit=False
)


class RecordingNotifier(Notifier):
    """Collects notifications instead of sending them."""

    def __init__(self) -> None:
        self.sent: list[tuple[str, str, dict[str, Any]]] = []

    async def notify(self, recipient, template, context):
        self.sent.append((recipient, template, context))


@dataclass
class Users:
    admin: UserModel
    customer: UserModel
    other_customer: UserModel
    driver: UserModel
    other_driver: UserModel
    carrier: CarrierModel


def make_quote_request(
    pickup_postcode: str = "2000",
    dropoff_postcode: str = "2010",
    vehicle_type: VehicleType = VehicleType.SEDAN,
    is_running: bool = True,
    transport_type: TransportType = TransportType.OPEN,
    add_ons: dict[str, bool] | None = None,
) -> QuoteCreateRequest:
    return QuoteCreateRequest(
        pickup_address=AddressIn(
            address="12 George St", suburb="Sydney", postcode=pickup_postcode, state="NSW"
        ),
        dropoff_address=AddressIn(
            address="1 Bay St", suburb="Glebe", postcode=dropoff_postcode, state="NSW"
        ),
        vehicle=VehicleIn(
            vehicle_type=vehicle_type,
            make="Toyota",
            model="Corolla",
            year="2020",
            is_running=is_running,
        ),
        preferred_pickup_date=date.today() + timedelta(days=5),
        transport_type=transport_type,
        add_ons=add_ons or {},
    )


# ── Fixtures ──────────────────────────────────────────────────────────


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create tables, yield a session, then drop everything."""
    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    async with TestSessionFactory() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)


@pytest_asyncio.fixture
async def users(db_session: AsyncSession) -> Users:
    admin = UserModel(name="Olivia Ops", email="ops@example.com", role=UserRole.ADMIN)
    customer = UserModel(name="Jack Wilson", email="jack@example.com", role=UserRole.CUSTOMER)
    other = UserModel(name="Noah Taylor", email="noah@example.com", role=UserRole.CUSTOMER)
    driver = UserModel(name="Liam Brown", email="liam@example.com", role=UserRole.DRIVER)
    other_driver = UserModel(name="Mia Kelly", email="mia@example.com", role=UserRole.DRIVER)
    carrier = CarrierModel(name="Southern Cross Car Carriers")
    db_session.add_all([admin, customer, other, driver, other_driver, carrier])
    await db_session.commit()
    return Users(admin, customer, other, driver, other_driver, carrier)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest_asyncio.fixture
async def client(
    db_session: AsyncSession, notifier: RecordingNotifier
) -> AsyncGenerator[AsyncClient, None]:
    """API client on the test database; workers and rate limits disabled."""
    from src.api.app import create_app

    async def _get_test_db():
        async with TestSessionFactory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    with patch("src.workers.quote_expiry.start_expiry_loop", new=AsyncMock()), patch(
        "src.workers.quote_expiry.stop_expiry_loop", new=AsyncMock()
    ), patch.object(settings, "payment_webhook_secret", WEBHOOK_SECRET):
        app = create_app()
        app.dependency_overrides[get_db] = _get_test_db
        app.dependency_overrides[get_notifier] = lambda: notifier
        app.dependency_overrides[get_payment_gateway] = lambda: None
        limiter.enabled = False

        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac

        limiter.enabled = True
