"""
Driver job assignments
======================

At most one *active* (``assigned`` / ``accepted``) assignment per booking.
The guarantee comes from the partial unique index on ``job_assignments``,
checked by the database at insert time, so two admins racing to assign the
same booking get exactly one success and one ``ConflictError``.

Rows from this module never leave it as ORM objects: callers receive
``JobAssignmentView``, which has no carrier field.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession

from src.domain.entities import is_active_job, next_job_status, utcnow
from src.domain.enums import AssignmentOutcome, BookingStatus, JobStatus, UserRole
from src.domain.errors import InvalidInput, InvalidStateTransition, NotFound
from src.infrastructure.models import BookingModel, JobAssignmentModel, UserModel
from src.infrastructure.repositories import (
    BookingRepository,
    JobAssignmentRepository,
    UserRepository,
)
from src.services.bookings import get_booking_or_404, load_timeline, transition
from src.services.notifications import Outbox
from src.services.schemas import JobAssignmentView

logger = logging.getLogger(__name__)


async def to_view(session: AsyncSession, assignment: JobAssignmentModel) -> JobAssignmentView:
    booking = await BookingRepository(session).get_by_id(assignment.booking_id)
    users = UserRepository(session)
    driver = await users.get_by_id(assignment.driver_id)
    admin = await users.get_by_id(assignment.assigned_by_admin_id)
    return JobAssignmentView(
        id=assignment.id,
        booking_id=assignment.booking_id,
        booking_number=booking.booking_number,
        driver_id=assignment.driver_id,
        driver_name=driver.name,
        assigned_by_admin_id=assignment.assigned_by_admin_id,
        assigned_by_admin_name=admin.name,
        assigned_at=assignment.assigned_at,
        status=assignment.status,
    )


async def _release_booking(
    session: AsyncSession,
    booking_id: int,
    note: str,
    outbox: Optional[Outbox],
    now: datetime,
) -> None:
    """Put a booking back in the dispatch queue once its driver is gone."""
    booking = await BookingRepository(session).get_for_update(booking_id)
    if booking is None or booking.status is not BookingStatus.DRIVER_ASSIGNED:
        return
    await transition(
        session,
        booking,
        BookingStatus.AWAITING_DRIVER_ASSIGNMENT,
        note=note,
        outbox=outbox,
        now=now,
    )


async def assign_driver(
    session: AsyncSession,
    booking_reference: str,
    driver_id: int,
    *,
    admin: UserModel,
    carrier_id: Optional[int] = None,
    outbox: Optional[Outbox] = None,
    now: Optional[datetime] = None,
) -> JobAssignmentView:
    now = now or utcnow()
    booking: BookingModel = await get_booking_or_404(
        session, booking_reference, for_update=True
    )

    driver = await UserRepository(session).get_by_id(driver_id)
    if driver is None or driver.role is not UserRole.DRIVER:
        raise InvalidInput(f"User {driver_id} is not a driver")

    already_assigned = booking.status is BookingStatus.DRIVER_ASSIGNED
    timeline = await load_timeline(session, booking)
    if not already_assigned and not timeline.can_transition_to(BookingStatus.DRIVER_ASSIGNED):
        raise InvalidStateTransition(
            booking.status.value, BookingStatus.DRIVER_ASSIGNED.value
        )

    assignment = await JobAssignmentRepository(session).create(
        JobAssignmentModel(
            booking_id=booking.id,
            carrier_id=carrier_id,
            driver_id=driver.id,
            assigned_by_admin_id=admin.id,
            assigned_at=now,
            status=JobStatus.ASSIGNED,
            created_at=now,
        )
    )

    if not already_assigned:
        await transition(
            session,
            booking,
            BookingStatus.DRIVER_ASSIGNED,
            note=f"Driver {driver.name} assigned",
            outbox=outbox,
            now=now,
        )
    logger.info(
        "Assignment %d: driver %d -> booking %s (by admin %d)",
        assignment.id,
        driver.id,
        booking.booking_number,
        admin.id,
    )
    return await to_view(session, assignment)


async def _lock_assignment(
    session: AsyncSession, assignment_id: int
) -> JobAssignmentModel:
    """Read the row under FOR UPDATE so the status checked is the status written over."""
    assignment = await JobAssignmentRepository(session).get_for_update(assignment_id)
    if assignment is None:
        raise NotFound("Assignment not found")
    return assignment


async def respond_to_assignment(
    session: AsyncSession,
    assignment_id: int,
    *,
    driver: UserModel,
    outcome: AssignmentOutcome,
    outbox: Optional[Outbox] = None,
    now: Optional[datetime] = None,
) -> JobAssignmentView:
    """Driver accepts or rejects.  A rejection does not create a replacement."""
    now = now or utcnow()
    assignment = await _lock_assignment(session, assignment_id)
    if assignment.driver_id != driver.id:
        raise NotFound("Assignment not found")

    target = JobStatus(outcome.value)
    assignment.status = next_job_status(JobStatus(assignment.status), target)
    assignment.updated_at = now
    await session.flush()

    if target is JobStatus.REJECTED:
        await _release_booking(
            session,
            assignment.booking_id,
            f"Driver {driver.name} declined the job",
            outbox,
            now,
        )
    logger.info("Assignment %d %s by driver %d", assignment.id, target.value, driver.id)
    return await to_view(session, assignment)


async def cancel_assignment(
    session: AsyncSession,
    assignment_id: int,
    *,
    admin: UserModel,
    outbox: Optional[Outbox] = None,
    now: Optional[datetime] = None,
) -> JobAssignmentView:
    now = now or utcnow()
    assignment = await _lock_assignment(session, assignment_id)
    if not is_active_job(JobStatus(assignment.status)):
        raise InvalidStateTransition(assignment.status.value, JobStatus.CANCELLED.value)

    assignment.status = JobStatus.CANCELLED
    assignment.updated_at = now
    await session.flush()

    await _release_booking(
        session,
        assignment.booking_id,
        "Driver assignment cancelled by operations",
        outbox,
        now,
    )
    logger.info("Assignment %d cancelled by admin %d", assignment.id, admin.id)
    return await to_view(session, assignment)


async def list_assignments(session: AsyncSession, limit: int = 100) -> list[JobAssignmentView]:
    return [
        await to_view(session, a)
        for a in await JobAssignmentRepository(session).list_recent(limit)
    ]


async def list_driver_assignments(
    session: AsyncSession, driver: UserModel
) -> list[JobAssignmentView]:
    return [
        await to_view(session, a)
        for a in await JobAssignmentRepository(session).list_for_driver(driver.id)
    ]
