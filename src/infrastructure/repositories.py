"""
Repository Pattern -- abstracts DB access so domain logic stays DB-agnostic.

Each repository receives an ``AsyncSession`` (unit-of-work) and exposes
domain-relevant queries only.  Repositories never commit; uniqueness
violations surface as ``ConflictError`` and the caller's unit of work is
rolled back by ``get_db``.
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, or_, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from .models import (
    AddressModel,
    BookingModel,
    BookingStatusHistoryModel,
    DailySequenceModel,
    JobAssignmentModel,
    QuoteModel,
    UserModel,
    VehicleModel,
)
from src.domain.enums import (
    ACTIVE_JOB_STATUSES,
    BOOKING_FORWARD_ORDER,
    BookingStatus,
    TransportType,
    VehicleType,
)
from src.domain.errors import ConflictError


class SequenceRepository:
    """Per-(name, day) counters incremented atomically in the database."""

    def __init__(self, session: AsyncSession):
        self.session = session

    async def next_value(self, name: str, day: str) -> int:
        """INSERT .. ON CONFLICT DO UPDATE SET value = value + 1 RETURNING value."""
        table = DailySequenceModel.__table__
        dialect = self.session.get_bind().dialect.name
        insert = pg_insert if dialect == "postgresql" else sqlite_insert

        stmt = (
            insert(table)
            .values(name=name, day=day, value=1)
            .on_conflict_do_update(
                index_elements=[table.c.name, table.c.day],
                set_={"value": table.c.value + 1},
            )
            .returning(table.c.value)
        )
        result = await self.session.execute(stmt)
        return result.scalar_one()


class UserRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_by_id(self, user_id: int) -> Optional[UserModel]:
        return await self.session.get(UserModel, user_id)


class AddressRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_or_create(
        self,
        *,
        address: str,
        suburb: str,
        postcode: str,
        state: str,
        contact_name: str | None = None,
        contact_phone: str | None = None,
    ) -> AddressModel:
        """Exact-match dedup; no case or whitespace folding."""
        result = await self.session.execute(
            select(AddressModel)
            .where(
                AddressModel.address == address,
                AddressModel.suburb == suburb,
                AddressModel.postcode == postcode,
                AddressModel.state == state,
            )
            .order_by(AddressModel.id)
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        record = AddressModel(
            address=address,
            suburb=suburb,
            postcode=postcode,
            state=state,
            contact_name=contact_name,
            contact_phone=contact_phone,
        )
        self.session.add(record)
        await self.session.flush()
        return record

    async def get_by_id(self, address_id: int) -> Optional[AddressModel]:
        return await self.session.get(AddressModel, address_id)


class VehicleRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def get_or_create(
        self,
        *,
        vehicle_type: VehicleType,
        make: str,
        model: str,
        year: str,
        is_running: bool,
        transport_type: TransportType,
    ) -> VehicleModel:
        result = await self.session.execute(
            select(VehicleModel)
            .where(
                VehicleModel.vehicle_type == vehicle_type,
                VehicleModel.make == make,
                VehicleModel.model == model,
                VehicleModel.year == year,
                VehicleModel.is_running.is_(is_running),
                VehicleModel.transport_type == transport_type,
            )
            .order_by(VehicleModel.id)
            .limit(1)
        )
        existing = result.scalar_one_or_none()
        if existing:
            return existing

        record = VehicleModel(
            vehicle_type=vehicle_type,
            make=make,
            model=model,
            year=year,
            is_running=is_running,
            transport_type=transport_type,
        )
        self.session.add(record)
        await self.session.flush()
        return record


class QuoteRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, quote: QuoteModel) -> QuoteModel:
        self.session.add(quote)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                f"Quote number {quote.quote_number} is already taken"
            ) from exc
        return quote

    async def get_by_id(self, quote_id: int) -> Optional[QuoteModel]:
        return await self.session.get(QuoteModel, quote_id)

    async def get_by_number(self, quote_number: str) -> Optional[QuoteModel]:
        result = await self.session.execute(
            select(QuoteModel).where(QuoteModel.quote_number == quote_number)
        )
        return result.scalar_one_or_none()

    async def delete_expired(self, now: datetime) -> int:
        """Delete expired quotes that no booking references.  Returns the count.

        Same boundary as ``is_expired``: a quote is gone at its ``expires_at``.
        """
        booked = select(BookingModel.quote_id)
        result = await self.session.execute(
            delete(QuoteModel)
            .where(QuoteModel.expires_at <= now)
            .where(QuoteModel.id.not_in(booked))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount or 0


class BookingRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, booking: BookingModel) -> BookingModel:
        self.session.add(booking)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "Booking could not be created: quote already booked or "
                "reference already taken"
            ) from exc
        return booking

    async def get_by_id(self, booking_id: int) -> Optional[BookingModel]:
        return await self.session.get(BookingModel, booking_id)

    async def get_by_quote_id(self, quote_id: int) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel).where(BookingModel.quote_id == quote_id)
        )
        return result.scalar_one_or_none()

    async def get_by_reference(
        self, reference: str, *, for_update: bool = False
    ) -> Optional[BookingModel]:
        """Look up by booking number or public tracking token."""
        query = select(BookingModel).where(
            or_(
                BookingModel.booking_number == reference,
                BookingModel.tracking_token == reference,
            )
        )
        if for_update:
            # SELECT ... FOR UPDATE so status + history are written under a row lock
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()

    async def get_for_update(self, booking_id: int) -> Optional[BookingModel]:
        result = await self.session.execute(
            select(BookingModel)
            .where(BookingModel.id == booking_id)
            .with_for_update()
        )
        return result.scalar_one_or_none()

    async def list_recent(
        self, status: BookingStatus | None = None, limit: int = 100
    ) -> list[BookingModel]:
        query = select(BookingModel).order_by(
            BookingModel.created_at.desc(), BookingModel.id.desc()
        )
        if status is not None:
            query = query.where(BookingModel.status == status)
        result = await self.session.execute(query.limit(limit))
        return list(result.scalars().all())

    async def append_history(
        self, entry: BookingStatusHistoryModel
    ) -> BookingStatusHistoryModel:
        self.session.add(entry)
        await self.session.flush()
        return entry

    async def get_history(self, booking_id: int) -> list[BookingStatusHistoryModel]:
        result = await self.session.execute(
            select(BookingStatusHistoryModel)
            .where(BookingStatusHistoryModel.booking_id == booking_id)
            .order_by(
                BookingStatusHistoryModel.changed_at,
                BookingStatusHistoryModel.id,
            )
        )
        return list(result.scalars().all())

    async def last_forward_status(self, booking_id: int) -> Optional[BookingStatus]:
        """Most recent history status outside the exception states."""
        result = await self.session.execute(
            select(BookingStatusHistoryModel.status)
            .where(
                BookingStatusHistoryModel.booking_id == booking_id,
                BookingStatusHistoryModel.status.in_(list(BOOKING_FORWARD_ORDER)),
            )
            .order_by(
                BookingStatusHistoryModel.changed_at.desc(),
                BookingStatusHistoryModel.id.desc(),
            )
            .limit(1)
        )
        return result.scalar_one_or_none()


class JobAssignmentRepository:
    def __init__(self, session: AsyncSession):
        self.session = session

    async def create(self, assignment: JobAssignmentModel) -> JobAssignmentModel:
        """Insert; the partial unique index rejects a second active assignment."""
        self.session.add(assignment)
        try:
            await self.session.flush()
        except IntegrityError as exc:
            raise ConflictError(
                "An active driver assignment already exists for this booking"
            ) from exc
        return assignment

    async def get_by_id(self, assignment_id: int) -> Optional[JobAssignmentModel]:
        return await self.session.get(JobAssignmentModel, assignment_id)

    async def get_for_update(self, assignment_id: int) -> Optional[JobAssignmentModel]:
        # populate_existing so a row cached in this session is re-read under the lock
        result = await self.session.execute(
            select(JobAssignmentModel)
            .where(JobAssignmentModel.id == assignment_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        return result.scalar_one_or_none()

    async def get_active_for_booking(
        self, booking_id: int
    ) -> Optional[JobAssignmentModel]:
        result = await self.session.execute(
            select(JobAssignmentModel).where(
                JobAssignmentModel.booking_id == booking_id,
                JobAssignmentModel.status.in_(list(ACTIVE_JOB_STATUSES)),
            )
        )
        return result.scalar_one_or_none()

    async def list_recent(self, limit: int = 100) -> list[JobAssignmentModel]:
        result = await self.session.execute(
            select(JobAssignmentModel)
            .order_by(JobAssignmentModel.assigned_at.desc(), JobAssignmentModel.id.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_for_driver(self, driver_id: int) -> list[JobAssignmentModel]:
        result = await self.session.execute(
            select(JobAssignmentModel)
            .where(JobAssignmentModel.driver_id == driver_id)
            .order_by(JobAssignmentModel.assigned_at.desc(), JobAssignmentModel.id.desc())
        )
        return list(result.scalars().all())
