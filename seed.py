"""
Seed script -- populates the database with sample data for reviewers.

Run after migrations:
    python seed.py

Creates:
  - 1 admin, 3 customers and 3 drivers (use their ids in ``X-User-Id``)
  - 2 carriers
  - 4 sample quotes, one of them already expired
  - 2 sample bookings (one awaiting payment, one with a driver assigned)
"""

import asyncio
from datetime import date, timedelta

from sqlalchemy import text

from src.domain.entities import utcnow
from src.domain.enums import (
    BookingStatus,
    PaymentMethod,
    TransportType,
    UserRole,
    VehicleType,
)
from src.infrastructure.database import async_session_factory, engine
from src.infrastructure.models import CarrierModel, UserModel
from src.services.assignments import assign_driver
from src.services.bookings import create_booking, record_payment_succeeded, transition
from src.services.quotes import create_quote
from src.services.schemas import (
    AddressIn,
    BookingCreateRequest,
    QuoteCreateRequest,
    VehicleIn,
)


USERS = [
    {"name": "Olivia Chen", "email": "ops@example.com", "role": UserRole.ADMIN},
    {"name": "Jack Wilson", "email": "jack@example.com", "role": UserRole.CUSTOMER},
    {"name": "Charlotte Nguyen", "email": "charlotte@example.com", "role": UserRole.CUSTOMER},
    {"name": "Noah Taylor", "email": "noah@example.com", "role": UserRole.CUSTOMER},
    {"name": "Liam Brown", "email": "liam.driver@example.com", "role": UserRole.DRIVER},
    {"name": "Mia Kelly", "email": "mia.driver@example.com", "role": UserRole.DRIVER},
    {"name": "Ethan Walsh", "email": "ethan.driver@example.com", "role": UserRole.DRIVER},
]

CARRIERS = ["Southern Cross Car Carriers", "Harbour City Haulage"]

ADDRESSES = {
    "sydney": AddressIn(
        address="12 George St", suburb="Sydney", postcode="2000", state="NSW",
        contact_name="Jack Wilson", contact_phone="0400 000 001",
    ),
    "melbourne": AddressIn(
        address="8 Collins St", suburb="Melbourne", postcode="3000", state="VIC",
        contact_name="Depot Melbourne", contact_phone="03 9000 0000",
    ),
    "brisbane": AddressIn(
        address="40 Queen St", suburb="Brisbane City", postcode="4000", state="QLD",
    ),
    "parramatta": AddressIn(
        address="3 Church St", suburb="Parramatta", postcode="2150", state="NSW",
    ),
}

QUOTES = [
    # (customer index, pickup, dropoff, vehicle, transport, add-ons, age in days)
    (1, "sydney", "melbourne",
     VehicleIn(vehicle_type=VehicleType.SEDAN, make="Toyota", model="Camry", year="2019"),
     TransportType.OPEN, {"insurance": True}, 0),
    (2, "sydney", "brisbane",
     VehicleIn(vehicle_type=VehicleType.SUV, make="Mazda", model="CX-5", year="2021",
               is_running=False),
     TransportType.ENCLOSED, {}, 0),
    (3, "parramatta", "sydney",
     VehicleIn(vehicle_type=VehicleType.UTE, make="Ford", model="Ranger", year="2018"),
     TransportType.OPEN, {"expressDelivery": True}, 0),
    (3, "melbourne", "brisbane",
     VehicleIn(vehicle_type=VehicleType.VAN, make="Hyundai", model="iLoad", year="2016"),
     TransportType.OPEN, {}, 10),
]


async def seed():
    async with async_session_factory() as session:
        # Check if already seeded
        result = await session.execute(text("SELECT count(*) FROM users"))
        if result.scalar() > 0:
            print("Database already seeded. Skipping.")
            return

        # ── Users / carriers ──────────────────────────────────────────
        users = [UserModel(**u) for u in USERS]
        session.add_all(users)
        carriers = [CarrierModel(name=name) for name in CARRIERS]
        session.add_all(carriers)
        await session.flush()
        print(f"  Created {len(users)} users and {len(carriers)} carriers")
        admin, drivers = users[0], users[4:]

        # ── Quotes ────────────────────────────────────────────────────
        now = utcnow()
        quotes = []
        for customer_idx, pickup, dropoff, vehicle, transport, add_ons, age in QUOTES:
            quote = await create_quote(
                session,
                QuoteCreateRequest(
                    pickup_address=ADDRESSES[pickup],
                    dropoff_address=ADDRESSES[dropoff],
                    vehicle=vehicle,
                    preferred_pickup_date=date.today() + timedelta(days=7),
                    transport_type=transport,
                    add_ons=add_ons,
                ),
                customer_id=users[customer_idx].id,
                now=now - timedelta(days=age),
            )
            quotes.append(quote)
        print(f"  Created {len(quotes)} quotes (1 expired)")

        # ── Bookings ──────────────────────────────────────────────────
        window_start = date.today() + timedelta(days=7)
        pending = await create_booking(
            session,
            BookingCreateRequest(
                quote_id=quotes[0].id,
                pickup_window_start=window_start,
                pickup_window_end=window_start + timedelta(days=2),
                special_instructions="Keys with building reception",
            ),
            customer=users[1],
        )
        dispatched = await create_booking(
            session,
            BookingCreateRequest(
                quote_id=quotes[1].id,
                pickup_window_start=window_start,
                pickup_window_end=window_start + timedelta(days=3),
                payment_method=PaymentMethod.FULL,
            ),
            customer=users[2],
        )
        await record_payment_succeeded(
            session, dispatched.booking_number, PaymentMethod.FULL
        )
        await transition(
            session,
            dispatched,
            BookingStatus.AWAITING_DRIVER_ASSIGNMENT,
            note="Ready for dispatch",
        )
        await assign_driver(
            session,
            dispatched.booking_number,
            drivers[0].id,
            admin=admin,
            carrier_id=carriers[0].id,
        )
        print(
            f"  Created bookings {pending.booking_number} "
            f"(tracking {pending.tracking_token}) and {dispatched.booking_number}"
        )

        await session.commit()
        print("\nSeed complete!")


async def main():
    print("Seeding database...")
    await seed()
    await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
