"""
SQLAlchemy ORM models  (PostgreSQL in production, SQLite in tests).

Tables
------
* ``users``                    -- customers, admins and drivers
* ``carriers``                 -- subcontracted carriers (internal only)
* ``addresses`` / ``vehicles`` -- deduplicated quote inputs
* ``daily_sequences``          -- atomic per-day counters for QT-/BK- numbers
* ``quotes``                   -- priced offers, immutable after insert
* ``bookings``                 -- orders converted from a quote
* ``booking_status_history``   -- append-only status log
* ``job_assignments``          -- driver assignments

Constraints
-----------
* **Unique** ``quote_number``, ``booking_number``, ``tracking_token`` and
  ``bookings.quote_id`` (a quote converts at most once).
* **Partial unique** index on ``job_assignments.booking_id`` where the status
  is ``assigned`` or ``accepted``: at most one active assignment per booking,
  enforced at write time.
"""

import enum

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    func,
    text,
)

from .database import Base
from src.domain.entities import utcnow
from src.domain.enums import (
    BookingStatus,
    JobStatus,
    PaymentMethod,
    PaymentStatus,
    QuoteSource,
    SourceChannel,
    TransportType,
    UserRole,
    VehicleType,
)


def _enum(enum_cls: type[enum.Enum]) -> Enum:
    """Store enum *values* (``"light-truck"``), not member names."""
    return Enum(
        enum_cls,
        name=enum_cls.__name__.lower(),
        values_callable=lambda members: [m.value for m in members],
    )


class UserModel(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(120), nullable=False)
    email = Column(String(255), unique=True, nullable=False)
    phone = Column(String(40), nullable=True)
    role = Column(_enum(UserRole), default=UserRole.CUSTOMER, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class CarrierModel(Base):
    __tablename__ = "carriers"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String(160), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())


class AddressModel(Base):
    __tablename__ = "addresses"

    id = Column(Integer, primary_key=True, autoincrement=True)
    address = Column(String(255), nullable=False)
    suburb = Column(String(120), nullable=False)
    postcode = Column(String(10), nullable=False)
    state = Column(String(10), nullable=False)
    contact_name = Column(String(120), nullable=True)
    contact_phone = Column(String(40), nullable=True)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_addresses_postcode_state", "postcode", "state"),
    )


class VehicleModel(Base):
    __tablename__ = "vehicles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    vehicle_type = Column(_enum(VehicleType), nullable=False)
    make = Column(String(80), nullable=False)
    model = Column(String(80), nullable=False)
    year = Column(String(4), nullable=False)
    is_running = Column(Boolean, default=True, nullable=False)
    transport_type = Column(_enum(TransportType), nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_vehicles_type", "vehicle_type"),
        Index("idx_vehicles_transport", "transport_type"),
    )


class DailySequenceModel(Base):
    __tablename__ = "daily_sequences"

    name = Column(String(20), primary_key=True)
    day = Column(String(8), primary_key=True)  # YYYYMMDD, business time zone
    value = Column(Integer, nullable=False, default=0)


class QuoteModel(Base):
    __tablename__ = "quotes"

    id = Column(Integer, primary_key=True, autoincrement=True)
    quote_number = Column(String(20), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    pickup_address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    dropoff_address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    preferred_pickup_date = Column(Date, nullable=False)
    transport_type = Column(_enum(TransportType), nullable=False)

    distance_km = Column(Float, nullable=False)
    duration_estimate_days_min = Column(Integer, nullable=False)
    duration_estimate_days_max = Column(Integer, nullable=False)
    pickup_window_days_min = Column(Integer, nullable=False)
    pickup_window_days_max = Column(Integer, nullable=False)

    # Whole AUD
    subtotal_ex_gst = Column(Integer, nullable=False)
    gst_amount = Column(Integer, nullable=False)
    total_inc_gst = Column(Integer, nullable=False)
    currency = Column(String(3), default="AUD", nullable=False)

    expires_at = Column(DateTime(timezone=True), nullable=False)
    pricing_breakdown = Column(JSON, nullable=False, default=dict)
    source = Column(_enum(QuoteSource), default=QuoteSource.WEB, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())

    __table_args__ = (
        Index("idx_quotes_expires", "expires_at"),
        Index("idx_quotes_customer_created", "customer_id", "created_at"),
        Index("idx_quotes_source", "source"),
    )


class BookingModel(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_number = Column(String(20), unique=True, nullable=False)
    quote_id = Column(Integer, ForeignKey("quotes.id"), unique=True, nullable=False)
    customer_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    status = Column(
        _enum(BookingStatus),
        default=BookingStatus.BOOKING_PENDING_PAYMENT,
        nullable=False,
    )

    pickup_address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    dropoff_address_id = Column(Integer, ForeignKey("addresses.id"), nullable=False)
    vehicle_id = Column(Integer, ForeignKey("vehicles.id"), nullable=False)
    pickup_window_start = Column(Date, nullable=False)
    pickup_window_end = Column(Date, nullable=False)
    special_instructions = Column(Text, default="", nullable=False)

    # Frozen from the quote (whole AUD)
    total_inc_gst = Column(Integer, nullable=False)
    deposit_required_amount = Column(Integer, nullable=False)
    balance_due_amount = Column(Integer, nullable=False)

    payment_method = Column(_enum(PaymentMethod), nullable=False)
    payment_status = Column(
        _enum(PaymentStatus), default=PaymentStatus.PENDING, nullable=False
    )
    paid_amount = Column(Integer, default=0, nullable=False)
    payment_intent_id = Column(String(120), nullable=True)

    # Public tracking handle; random, never derived from booking_number
    tracking_token = Column(String(64), unique=True, nullable=False)
    source_channel = Column(
        _enum(SourceChannel), default=SourceChannel.NEXTTRANSPORT, nullable=False
    )

    # Internal only -- never part of any response schema
    internal_cost_ex_gst = Column(Integer, nullable=True)
    internal_margin_ex_gst = Column(Integer, nullable=True)

    actual_pickup_at = Column(DateTime(timezone=True), nullable=True)
    actual_delivery_at = Column(DateTime(timezone=True), nullable=True)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_bookings_status", "status"),
        Index("idx_bookings_customer", "customer_id"),
        Index("idx_bookings_created", "created_at"),
    )


class BookingStatusHistoryModel(Base):
    __tablename__ = "booking_status_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    status = Column(_enum(BookingStatus), nullable=False)
    note = Column(Text, nullable=False, default="")
    changed_at = Column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_status_history_booking", "booking_id", "changed_at"),
    )


_ACTIVE_ASSIGNMENT = text("status IN ('assigned', 'accepted')")


class JobAssignmentModel(Base):
    __tablename__ = "job_assignments"

    id = Column(Integer, primary_key=True, autoincrement=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), nullable=False)
    carrier_id = Column(Integer, ForeignKey("carriers.id"), nullable=True)
    driver_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_by_admin_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    assigned_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
    status = Column(_enum(JobStatus), default=JobStatus.ASSIGNED, nullable=False)

    created_at = Column(DateTime(timezone=True), default=utcnow, server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True),
        default=utcnow,
        onupdate=utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("idx_job_assignments_booking_status", "booking_id", "status"),
        Index("idx_job_assignments_driver", "driver_id", "status", "assigned_at"),
        Index("idx_job_assignments_admin", "assigned_by_admin_id", "assigned_at"),
        Index(
            "uq_job_assignments_active_booking",
            "booking_id",
            unique=True,
            postgresql_where=_ACTIVE_ASSIGNMENT,
            sqlite_where=_ACTIVE_ASSIGNMENT,
        ),
    )
