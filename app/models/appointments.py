"""Appointments table model using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    Uuid,
    text,
)

from app.models.types import UTCDateTime, utc_now

# Metadata for all tables
metadata = MetaData()

LIVE_STATUS_CLAUSE = "status NOT IN ('cancelled', 'no_show')"

# Appointments table
appointments = Table(
    "appointments",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Ownership / references (non-owning, by id)
    Column("clinic_id", Uuid, nullable=False, index=True),
    Column("patient_id", Uuid, nullable=False, index=True),
    Column("provider_id", Uuid, nullable=False, index=True),
    Column("appointment_type_id", Uuid, nullable=False, index=True),
    # Schedule
    Column("scheduled_start", UTCDateTime, nullable=False),
    Column("scheduled_end", UTCDateTime, nullable=False),
    # Buffers in effect when booked
    Column("buffer_before", Integer, nullable=False, default=0),
    Column("buffer_after", Integer, nullable=False, default=0),
    # Realized timeline
    Column("actual_start", UTCDateTime),
    Column("actual_end", UTCDateTime),
    Column("checked_in_at", UTCDateTime),
    Column("completed_at", UTCDateTime),
    Column("cancelled_at", UTCDateTime),
    # Derived, recomputed on every status transition
    Column("duration", Integer),
    Column("wait_time", Integer),
    # Status management
    Column("status", String(20), nullable=False, default="scheduled"),
    Column("priority", String(20), nullable=False, default="routine"),
    Column("notes", Text),
    Column("cancellation_reason", Text),
    # Append-only
    Column("reschedule_history", JSON, nullable=False, default=list),
    # Audit fields
    Column("created_by", Uuid, nullable=False),
    Column("created_at", UTCDateTime, nullable=False, default=utc_now),
    Column("updated_at", UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now),
    # Constraints
    CheckConstraint("scheduled_end > scheduled_start", name="appointments_time_order_check"),
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'checked_in', 'in_progress', "
        "'completed', 'cancelled', 'no_show')",
        name="appointments_status_check",
    ),
    CheckConstraint(
        "priority IN ('routine', 'urgent', 'emergency')",
        name="appointments_priority_check",
    ),
    # Provider availability lookups
    Index(
        "idx_appointments_provider_schedule",
        "provider_id",
        "scheduled_start",
        "scheduled_end",
        "status",
    ),
    # Clinic calendar views
    Index("idx_appointments_clinic_schedule", "clinic_id", "scheduled_start", "status"),
    # Last line of defence against two live bookings at the same start
    Index(
        "uq_appointments_provider_start_live",
        "provider_id",
        "scheduled_start",
        unique=True,
        postgresql_where=text(LIVE_STATUS_CLAUSE),
        sqlite_where=text(LIVE_STATUS_CLAUSE),
    ),
)
