"""
Driver endpoints
================

GET  /api/v1/driver/job-assignments               -- the caller's jobs
POST /api/v1/driver/job-assignments/{id}/respond  -- accept or reject
"""

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from src.api.dependencies import get_db, get_outbox, require_driver
from src.api.middleware import limiter
from src.api.schemas import AssignmentResponseRequest
from src.config import settings
from src.infrastructure.models import UserModel
from src.services.assignments import list_driver_assignments, respond_to_assignment
from src.services.notifications import Outbox
from src.services.schemas import JobAssignmentView

router = APIRouter(prefix="/driver", tags=["driver"])


@router.get(
    "/job-assignments",
    response_model=list[JobAssignmentView],
    summary="List my job assignments",
)
@limiter.limit(settings.rate_limit)
async def my_assignments(
    request: Request,
    db: AsyncSession = Depends(get_db),
    driver: UserModel = Depends(require_driver),
):
    return await list_driver_assignments(db, driver)


@router.post(
    "/job-assignments/{assignment_id}/respond",
    response_model=JobAssignmentView,
    summary="Accept or reject a job",
    description=(
        "Only ``assigned`` jobs can be answered.  Rejecting frees the booking "
        "for a new assignment; no replacement is created automatically."
    ),
)
@limiter.limit(settings.rate_limit)
async def respond(
    request: Request,
    assignment_id: int,
    body: AssignmentResponseRequest,
    db: AsyncSession = Depends(get_db),
    driver: UserModel = Depends(require_driver),
    outbox: Outbox = Depends(get_outbox),
):
    return await respond_to_assignment(
        db, assignment_id, driver=driver, outcome=body.outcome, outbox=outbox
    )
