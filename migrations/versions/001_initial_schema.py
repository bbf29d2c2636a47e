"""Initial schema: users, quotes, bookings, status history, job assignments.

Revision ID: 001
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _enum(name: str, *values: str) -> postgresql.ENUM:
    # Shared by several tables; created once in upgrade()
    return postgresql.ENUM(*values, name=name, create_type=False)


USER_ROLE = _enum("userrole", "customer", "admin", "driver")
VEHICLE_TYPE = _enum(
    "vehicletype", "sedan", "suv", "ute", "van", "light-truck", "bike"
)
TRANSPORT_TYPE = _enum("transporttype", "open", "enclosed")
QUOTE_SOURCE = _enum("quotesource", "web", "admin")
SOURCE_CHANNEL = _enum("sourcechannel", "nexttransport", "intraffic", "dealer", "fleet")
PAYMENT_METHOD = _enum("paymentmethod", "full", "deposit")
PAYMENT_STATUS = _enum("paymentstatus", "pending", "partial", "paid", "refunded")
BOOKING_STATUS = _enum(
    "bookingstatus",
    "quote_created",
    "booking_pending_payment",
    "booked_confirmed",
    "awaiting_driver_assignment",
    "driver_assigned",
    "driver_en_route",
    "picked_up",
    "in_depot",
    "in_transit",
    "delivered",
    "cancelled",
    "refunded",
    "on_hold_customer",
    "on_hold_operations",
    "failed_pickup",
    "failed_delivery",
    "rebook_required",
)
JOB_STATUS = _enum("jobstatus", "assigned", "accepted", "rejected", "cancelled")

ALL_ENUMS = [
    USER_ROLE,
    VEHICLE_TYPE,
    TRANSPORT_TYPE,
    QUOTE_SOURCE,
    SOURCE_CHANNEL,
    PAYMENT_METHOD,
    PAYMENT_STATUS,
    BOOKING_STATUS,
    JOB_STATUS,
]


def _timestamps(*, updated: bool = False) -> list[sa.Column]:
    columns = [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
        )
    ]
    if updated:
        columns.append(
            sa.Column(
                "updated_at",
                sa.DateTime(timezone=True),
                server_default=sa.func.now(),
            )
        )
    return columns


def upgrade() -> None:
    bind = op.get_bind()
    for enum_type in ALL_ENUMS:
        enum_type.create(bind, checkfirst=True)

    # ── users / carriers ──────────────────────────────────────────────
    op.create_table(
        "users",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("email", sa.String(255), unique=True, nullable=False),
        sa.Column("phone", sa.String(40), nullable=True),
        sa.Column("role", USER_ROLE, nullable=False, server_default="customer"),
        *_timestamps(),
    )
    op.create_table(
        "carriers",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(160), nullable=False),
        *_timestamps(),
    )

    # ── addresses / vehicles ──────────────────────────────────────────
    op.create_table(
        "addresses",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("address", sa.String(255), nullable=False),
        sa.Column("suburb", sa.String(120), nullable=False),
        sa.Column("postcode", sa.String(10), nullable=False),
        sa.Column("state", sa.String(10), nullable=False),
        sa.Column("contact_name", sa.String(120), nullable=True),
        sa.Column("contact_phone", sa.String(40), nullable=True),
        *_timestamps(),
    )
    op.create_index(
        "idx_addresses_postcode_state", "addresses", ["postcode", "state"]
    )

    op.create_table(
        "vehicles",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("vehicle_type", VEHICLE_TYPE, nullable=False),
        sa.Column("make", sa.String(80), nullable=False),
        sa.Column("model", sa.String(80), nullable=False),
        sa.Column("year", sa.String(4), nullable=False),
        sa.Column("is_running", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("transport_type", TRANSPORT_TYPE, nullable=False),
        *_timestamps(),
    )
    op.create_index("idx_vehicles_type", "vehicles", ["vehicle_type"])
    op.create_index("idx_vehicles_transport", "vehicles", ["transport_type"])

    # ── daily_sequences ───────────────────────────────────────────────
    op.create_table(
        "daily_sequences",
        sa.Column("name", sa.String(20), primary_key=True),
        sa.Column("day", sa.String(8), primary_key=True),
        sa.Column("value", sa.Integer, nullable=False, server_default="0"),
    )

    # ── quotes ────────────────────────────────────────────────────────
    op.create_table(
        "quotes",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("quote_number", sa.String(20), unique=True, nullable=False),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=True),
        sa.Column(
            "pickup_address_id", sa.Integer, sa.ForeignKey("addresses.id"), nullable=False
        ),
        sa.Column(
            "dropoff_address_id", sa.Integer, sa.ForeignKey("addresses.id"), nullable=False
        ),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("preferred_pickup_date", sa.Date, nullable=False),
        sa.Column("transport_type", TRANSPORT_TYPE, nullable=False),
        sa.Column("distance_km", sa.Float, nullable=False),
        sa.Column("duration_estimate_days_min", sa.Integer, nullable=False),
        sa.Column("duration_estimate_days_max", sa.Integer, nullable=False),
        sa.Column("pickup_window_days_min", sa.Integer, nullable=False),
        sa.Column("pickup_window_days_max", sa.Integer, nullable=False),
        sa.Column("subtotal_ex_gst", sa.Integer, nullable=False),
        sa.Column("gst_amount", sa.Integer, nullable=False),
        sa.Column("total_inc_gst", sa.Integer, nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="AUD"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("pricing_breakdown", sa.JSON, nullable=False),
        sa.Column("source", QUOTE_SOURCE, nullable=False, server_default="web"),
        *_timestamps(),
    )
    op.create_index("idx_quotes_expires", "quotes", ["expires_at"])
    op.create_index(
        "idx_quotes_customer_created", "quotes", ["customer_id", "created_at"]
    )
    op.create_index("idx_quotes_source", "quotes", ["source"])

    # ── bookings ──────────────────────────────────────────────────────
    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column("booking_number", sa.String(20), unique=True, nullable=False),
        sa.Column(
            "quote_id", sa.Integer, sa.ForeignKey("quotes.id"), unique=True, nullable=False
        ),
        sa.Column("customer_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "status",
            BOOKING_STATUS,
            nullable=False,
            server_default="booking_pending_payment",
        ),
        sa.Column(
            "pickup_address_id", sa.Integer, sa.ForeignKey("addresses.id"), nullable=False
        ),
        sa.Column(
            "dropoff_address_id", sa.Integer, sa.ForeignKey("addresses.id"), nullable=False
        ),
        sa.Column("vehicle_id", sa.Integer, sa.ForeignKey("vehicles.id"), nullable=False),
        sa.Column("pickup_window_start", sa.Date, nullable=False),
        sa.Column("pickup_window_end", sa.Date, nullable=False),
        sa.Column("special_instructions", sa.Text, nullable=False, server_default=""),
        sa.Column("total_inc_gst", sa.Integer, nullable=False),
        sa.Column("deposit_required_amount", sa.Integer, nullable=False),
        sa.Column("balance_due_amount", sa.Integer, nullable=False),
        sa.Column("payment_method", PAYMENT_METHOD, nullable=False),
        sa.Column(
            "payment_status", PAYMENT_STATUS, nullable=False, server_default="pending"
        ),
        sa.Column("paid_amount", sa.Integer, nullable=False, server_default="0"),
        sa.Column("payment_intent_id", sa.String(120), nullable=True),
        sa.Column("tracking_token", sa.String(64), unique=True, nullable=False),
        sa.Column(
            "source_channel",
            SOURCE_CHANNEL,
            nullable=False,
            server_default="nexttransport",
        ),
        sa.Column("internal_cost_ex_gst", sa.Integer, nullable=True),
        sa.Column("internal_margin_ex_gst", sa.Integer, nullable=True),
        sa.Column("actual_pickup_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("actual_delivery_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(updated=True),
    )
    op.create_index("idx_bookings_status", "bookings", ["status"])
    op.create_index("idx_bookings_customer", "bookings", ["customer_id"])
    op.create_index("idx_bookings_created", "bookings", ["created_at"])

    # ── booking_status_history (append-only) ──────────────────────────
    op.create_table(
        "booking_status_history",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False
        ),
        sa.Column("status", BOOKING_STATUS, nullable=False),
        sa.Column("note", sa.Text, nullable=False, server_default=""),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index(
        "idx_status_history_booking",
        "booking_status_history",
        ["booking_id", "changed_at"],
    )

    # ── job_assignments ───────────────────────────────────────────────
    op.create_table(
        "job_assignments",
        sa.Column("id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "booking_id", sa.Integer, sa.ForeignKey("bookings.id"), nullable=False
        ),
        sa.Column(
            "carrier_id", sa.Integer, sa.ForeignKey("carriers.id"), nullable=True
        ),
        sa.Column("driver_id", sa.Integer, sa.ForeignKey("users.id"), nullable=False),
        sa.Column(
            "assigned_by_admin_id",
            sa.Integer,
            sa.ForeignKey("users.id"),
            nullable=False,
        ),
        sa.Column("assigned_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("status", JOB_STATUS, nullable=False, server_default="assigned"),
        *_timestamps(updated=True),
    )
    op.create_index(
        "idx_job_assignments_booking_status",
        "job_assignments",
        ["booking_id", "status"],
    )
    op.create_index(
        "idx_job_assignments_driver",
        "job_assignments",
        ["driver_id", "status", "assigned_at"],
    )
    op.create_index(
        "idx_job_assignments_admin",
        "job_assignments",
        ["assigned_by_admin_id", "assigned_at"],
    )
    # At most one active (assigned / accepted) assignment per booking
    op.create_index(
        "uq_job_assignments_active_booking",
        "job_assignments",
        ["booking_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('assigned', 'accepted')"),
    )


def downgrade() -> None:
    op.drop_table("job_assignments")
    op.drop_table("booking_status_history")
    op.drop_table("bookings")
    op.drop_table("quotes")
    op.drop_table("daily_sequences")
    op.drop_table("vehicles")
    op.drop_table("addresses")
    op.drop_table("carriers")
    op.drop_table("users")
    bind = op.get_bind()
    for enum_type in reversed(ALL_ENUMS):
        enum_type.drop(bind, checkfirst=True)
