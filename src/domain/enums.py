"""Domain enumerations and state-transition rules."""

import enum


class VehicleType(str, enum.Enum):
    SEDAN = "sedan"
    SUV = "suv"
    UTE = "ute"
    VAN = "van"
    LIGHT_TRUCK = "light-truck"
    BIKE = "bike"


class TransportType(str, enum.Enum):
    OPEN = "open"
    ENCLOSED = "enclosed"


class UserRole(str, enum.Enum):
    CUSTOMER = "customer"
    ADMIN = "admin"
    DRIVER = "driver"


class QuoteSource(str, enum.Enum):
    WEB = "web"
    ADMIN = "admin"


class SourceChannel(str, enum.Enum):
    NEXTTRANSPORT = "nexttransport"
    INTRAFFIC = "intraffic"
    DEALER = "dealer"
    FLEET = "fleet"


class PaymentMethod(str, enum.Enum):
    FULL = "full"
    DEPOSIT = "deposit"


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    REFUNDED = "refunded"


class PaymentOutcome(str, enum.Enum):
    SUCCEEDED = "succeeded"
    FAILED = "failed"


class BookingStatus(str, enum.Enum):
    QUOTE_CREATED = "quote_created"
    BOOKING_PENDING_PAYMENT = "booking_pending_payment"
    BOOKED_CONFIRMED = "booked_confirmed"
    AWAITING_DRIVER_ASSIGNMENT = "awaiting_driver_assignment"
    DRIVER_ASSIGNED = "driver_assigned"
    DRIVER_EN_ROUTE = "driver_en_route"
    PICKED_UP = "picked_up"
    IN_DEPOT = "in_depot"
    IN_TRANSIT = "in_transit"
    DELIVERED = "delivered"
    # exception / side states
    CANCELLED = "cancelled"
    REFUNDED = "refunded"
    ON_HOLD_CUSTOMER = "on_hold_customer"
    ON_HOLD_OPERATIONS = "on_hold_operations"
    FAILED_PICKUP = "failed_pickup"
    FAILED_DELIVERY = "failed_delivery"
    REBOOK_REQUIRED = "rebook_required"


class JobStatus(str, enum.Enum):
    ASSIGNED = "assigned"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"


class AssignmentOutcome(str, enum.Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


# ── Booking lifecycle ─────────────────────────────────────────────────

BOOKING_FORWARD_ORDER: tuple[BookingStatus, ...] = (
    BookingStatus.QUOTE_CREATED,
    BookingStatus.BOOKING_PENDING_PAYMENT,
    BookingStatus.BOOKED_CONFIRMED,
    BookingStatus.AWAITING_DRIVER_ASSIGNMENT,
    BookingStatus.DRIVER_ASSIGNED,
    BookingStatus.DRIVER_EN_ROUTE,
    BookingStatus.PICKED_UP,
    BookingStatus.IN_DEPOT,
    BookingStatus.IN_TRANSIT,
    BookingStatus.DELIVERED,
)

# Position of each forward status; exception states have none
FORWARD_POSITION: dict[BookingStatus, int] = {
    status: idx for idx, status in enumerate(BOOKING_FORWARD_ORDER)
}

TERMINAL_BOOKING_STATUSES = frozenset(
    {BookingStatus.DELIVERED, BookingStatus.CANCELLED, BookingStatus.REFUNDED}
)

HOLD_STATUSES = frozenset(
    {BookingStatus.ON_HOLD_CUSTOMER, BookingStatus.ON_HOLD_OPERATIONS}
)


def _forward_from(status: BookingStatus) -> frozenset[BookingStatus]:
    """All forward states strictly after *status*."""
    idx = BOOKING_FORWARD_ORDER.index(status)
    return frozenset(BOOKING_FORWARD_ORDER[idx + 1:])


def _forward_between(first: BookingStatus, last: BookingStatus) -> frozenset[BookingStatus]:
    start = BOOKING_FORWARD_ORDER.index(first)
    end = BOOKING_FORWARD_ORDER.index(last)
    return frozenset(BOOKING_FORWARD_ORDER[start:end + 1])


_PRE_PICKUP_PAID = _forward_between(
    BookingStatus.BOOKED_CONFIRMED, BookingStatus.DRIVER_EN_ROUTE
)
_PICKUP_STAGE = frozenset({BookingStatus.DRIVER_ASSIGNED, BookingStatus.DRIVER_EN_ROUTE})
_LINEHAUL_STAGE = frozenset(
    {BookingStatus.PICKED_UP, BookingStatus.IN_DEPOT, BookingStatus.IN_TRANSIT}
)
_RESUMABLE = _forward_between(
    BookingStatus.BOOKING_PENDING_PAYMENT, BookingStatus.DELIVERED
)


def _build_booking_transitions() -> dict[BookingStatus, frozenset[BookingStatus]]:
    table: dict[BookingStatus, frozenset[BookingStatus]] = {
        BookingStatus.QUOTE_CREATED: frozenset(
            {BookingStatus.BOOKING_PENDING_PAYMENT, BookingStatus.CANCELLED}
        ),
    }

    for status in BOOKING_FORWARD_ORDER[1:-1]:
        allowed = set(_forward_from(status))
        allowed |= HOLD_STATUSES | {BookingStatus.CANCELLED}
        if status is not BookingStatus.BOOKING_PENDING_PAYMENT:
            allowed.add(BookingStatus.REBOOK_REQUIRED)
        if status in _PRE_PICKUP_PAID:
            allowed.add(BookingStatus.REFUNDED)
        if status in _PICKUP_STAGE:
            allowed.add(BookingStatus.FAILED_PICKUP)
        if status in _LINEHAUL_STAGE:
            allowed.add(BookingStatus.FAILED_DELIVERY)
        table[status] = frozenset(allowed)

    # driver rejected or assignment cancelled
    table[BookingStatus.DRIVER_ASSIGNED] |= {BookingStatus.AWAITING_DRIVER_ASSIGNMENT}

    exception_exits = HOLD_STATUSES | {
        BookingStatus.CANCELLED,
        BookingStatus.REFUNDED,
        BookingStatus.REBOOK_REQUIRED,
    }
    # how far back a hold may resume depends on history; BookingTimeline checks it
    for hold in HOLD_STATUSES:
        table[hold] = frozenset((_RESUMABLE | exception_exits) - {hold})

    table[BookingStatus.FAILED_PICKUP] = frozenset(
        {
            BookingStatus.AWAITING_DRIVER_ASSIGNMENT,
            BookingStatus.DRIVER_ASSIGNED,
            BookingStatus.DRIVER_EN_ROUTE,
        }
        | exception_exits
    )
    table[BookingStatus.FAILED_DELIVERY] = frozenset(
        {
            BookingStatus.IN_DEPOT,
            BookingStatus.IN_TRANSIT,
            BookingStatus.DELIVERED,
            BookingStatus.REBOOK_REQUIRED,
            BookingStatus.CANCELLED,
        }
        | HOLD_STATUSES
    )
    table[BookingStatus.REBOOK_REQUIRED] = frozenset(
        {BookingStatus.AWAITING_DRIVER_ASSIGNMENT, BookingStatus.DRIVER_ASSIGNED}
        | HOLD_STATUSES
        | {BookingStatus.CANCELLED, BookingStatus.REFUNDED}
    )

    for terminal in TERMINAL_BOOKING_STATUSES:
        table[terminal] = frozenset()
    return table


# State machine: maps current status -> set of valid next statuses
BOOKING_TRANSITIONS: dict[BookingStatus, frozenset[BookingStatus]] = (
    _build_booking_transitions()
)


# ── Job assignment lifecycle ──────────────────────────────────────────

ACTIVE_JOB_STATUSES = frozenset({JobStatus.ASSIGNED, JobStatus.ACCEPTED})

JOB_TRANSITIONS: dict[JobStatus, frozenset[JobStatus]] = {
    JobStatus.ASSIGNED: frozenset(
        {JobStatus.ACCEPTED, JobStatus.REJECTED, JobStatus.CANCELLED}
    ),
    JobStatus.ACCEPTED: frozenset({JobStatus.CANCELLED}),
    JobStatus.REJECTED: frozenset(),
    JobStatus.CANCELLED: frozenset(),
}
