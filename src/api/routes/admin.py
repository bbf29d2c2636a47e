"""
Admin / operations endpoints
============================

GET   /api/v1/admin/bookings                        -- recent bookings (?status=)
PATCH /api/v1/admin/bookings/{reference}/status     -- lifecycle transition
PUT   /api/v1/admin/bookings/{reference}/costing    -- internal cost / margin
GET   /api/v1/admin/job-assignments                 -- recent assignments
POST  /api/v1/admin/job-assignments                 -- assign a driver
POST  /api/v1/admin/job-assignments/{id}/cancel     -- withdraw an assignment
GET   /api/v1/admin/health                          -- simple health check
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, Response
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_outbox, require_admin
from src.api.middleware import limiter
from src.api.schemas import (
    AdminBookingSummary,
    AssignDriverRequest,
    CostingRequest,
    HealthResponse,
    StatusChangeResponse,
    StatusUpdateRequest,
    StatusUpdateResponse,
)
from src.config import settings
from src.domain.enums import BookingStatus
from src.infrastructure.models import UserModel
from src.infrastructure.repositories import BookingRepository
from src.services.assignments import assign_driver, cancel_assignment, list_assignments
from src.services.bookings import get_booking_or_404, record_internal_costing, transition
from src.services.notifications import Outbox
from src.services.schemas import JobAssignmentView

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get(
    "/bookings",
    response_model=list[AdminBookingSummary],
    summary="List recent bookings",
)
@limiter.limit(settings.rate_limit)
async def list_bookings(
    request: Request,
    status: Optional[BookingStatus] = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
):
    return await BookingRepository(db).list_recent(status=status, limit=limit)


@router.patch(
    "/bookings/{reference}/status",
    response_model=StatusUpdateResponse,
    summary="Move a booking to a new status",
    description=(
        "Validated against the booking transition table.  Disallowed moves "
        "(including anything out of a terminal status) return 409."
    ),
)
@limiter.limit(settings.rate_limit)
async def update_status(
    request: Request,
    reference: str,
    body: StatusUpdateRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    outbox: Outbox = Depends(get_outbox),
):
    booking = await get_booking_or_404(db, reference, for_update=True)
    entry = await transition(db, booking, body.status, note=body.note, outbox=outbox)
    return StatusUpdateResponse(
        booking_number=booking.booking_number,
        status=booking.status,
        history_entry=StatusChangeResponse.model_validate(entry),
    )


@router.put(
    "/bookings/{reference}/costing",
    status_code=204,
    summary="Record internal cost (margin is derived)",
)
@limiter.limit(settings.rate_limit)
async def put_costing(
    request: Request,
    reference: str,
    body: CostingRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
):
    await record_internal_costing(db, reference, body.internal_cost_ex_gst)
    return Response(status_code=204)


@router.get(
    "/job-assignments",
    response_model=list[JobAssignmentView],
    summary="List recent driver assignments",
)
@limiter.limit(settings.rate_limit)
async def get_assignments(
    request: Request,
    limit: int = Query(100, ge=1, le=500),
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
):
    return await list_assignments(db, limit=limit)


@router.post(
    "/job-assignments",
    status_code=201,
    response_model=JobAssignmentView,
    summary="Assign a driver to a booking",
    responses={409: {"description": "Booking already has an active assignment"}},
)
@limiter.limit(settings.rate_limit)
async def post_assignment(
    request: Request,
    body: AssignDriverRequest,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    outbox: Outbox = Depends(get_outbox),
):
    return await assign_driver(
        db,
        body.booking_reference,
        body.driver_id,
        admin=admin,
        carrier_id=body.carrier_id,
        outbox=outbox,
    )


@router.post(
    "/job-assignments/{assignment_id}/cancel",
    response_model=JobAssignmentView,
    summary="Cancel an active assignment",
)
@limiter.limit(settings.rate_limit)
async def post_cancel_assignment(
    request: Request,
    assignment_id: int,
    db: AsyncSession = Depends(get_db),
    admin: UserModel = Depends(require_admin),
    outbox: Outbox = Depends(get_outbox),
):
    return await cancel_assignment(db, assignment_id, admin=admin, outbox=outbox)


@router.get("/health", response_model=HealthResponse, summary="Health check")
async def health():
    return HealthResponse()
