"""
Domain entities with business logic.

Patterns used
-------------
- **State Pattern** on ``BookingTimeline``: enforces the booking lifecycle
  table (``BOOKING_TRANSITIONS``), emits exactly one ``StatusChange`` per
  transition and stamps the pickup / delivery milestones once.
- ``next_job_status`` does the same for driver job assignments.
- ``format_reference`` renders the day-sequenced ``QT-`` / ``BK-`` numbers.

Nothing here touches the database; the services copy the results onto the
ORM rows inside a single transaction.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional
from zoneinfo import ZoneInfo

from .enums import (
    ACTIVE_JOB_STATUSES,
    BOOKING_TRANSITIONS,
    FORWARD_POSITION,
    HOLD_STATUSES,
    JOB_TRANSITIONS,
    TERMINAL_BOOKING_STATUSES,
    BookingStatus,
    JobStatus,
)
from .errors import InvalidStateTransition

QUOTE_PREFIX = "QT"
BOOKING_PREFIX = "BK"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive timestamps (e.g. read back from SQLite) as UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def business_day(at: datetime, tz_name: str) -> str:
    """Calendar day of *at* in the business time zone, as ``YYYYMMDD``."""
    return ensure_utc(at).astimezone(ZoneInfo(tz_name)).strftime("%Y%m%d")


def format_reference(prefix: str, day: str, sequence: int) -> str:
    """``format_reference("QT", "20261019", 7) -> "QT-20261019-0007"``."""
    return f"{prefix}-{day}-{sequence:04d}"


# ── Value Object ──────────────────────────────────────────────────────


@dataclass(frozen=True)
class StatusChange:
    status: BookingStatus
    timestamp: datetime
    note: str


# ── Entities ──────────────────────────────────────────────────────────


@dataclass
class BookingTimeline:
    status: BookingStatus = BookingStatus.QUOTE_CREATED
    actual_pickup_at: Optional[datetime] = None
    actual_delivery_at: Optional[datetime] = None
    # last forward status reached; a hold never resumes behind it
    resume_floor: Optional[BookingStatus] = None

    def __post_init__(self) -> None:
        if self.resume_floor is None and self.status in FORWARD_POSITION:
            self.resume_floor = self.status

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_BOOKING_STATUSES

    def can_transition_to(self, new_status: BookingStatus) -> bool:
        if new_status not in BOOKING_TRANSITIONS.get(self.status, frozenset()):
            return False
        if (
            self.status in HOLD_STATUSES
            and new_status in FORWARD_POSITION
            and self.resume_floor is not None
        ):
            return FORWARD_POSITION[new_status] >= FORWARD_POSITION[self.resume_floor]
        return True

    def transition_to(
        self,
        new_status: BookingStatus,
        at: datetime,
        note: Optional[str] = None,
    ) -> StatusChange:
        """Move to *new_status* if the transition is legal, else raise."""
        if not self.can_transition_to(new_status):
            raise InvalidStateTransition(self.status.value, new_status.value)

        self.status = new_status
        if new_status in FORWARD_POSITION:
            self.resume_floor = new_status
        if new_status is BookingStatus.PICKED_UP and self.actual_pickup_at is None:
            self.actual_pickup_at = at
        if new_status is BookingStatus.DELIVERED and self.actual_delivery_at is None:
            self.actual_delivery_at = at

        return StatusChange(
            status=new_status,
            timestamp=at,
            note=note or f"Status updated to {new_status.value}",
        )


def next_job_status(current: JobStatus, target: JobStatus) -> JobStatus:
    if target not in JOB_TRANSITIONS.get(current, frozenset()):
        raise InvalidStateTransition(current.value, target.value)
    return target


def is_active_job(status: JobStatus) -> bool:
    return status in ACTIVE_JOB_STATUSES
