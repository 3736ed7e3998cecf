"""Appointment type (service / treatment) table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    Numeric,
    String,
    Table,
    Text,
    Uuid,
)

from app.models.types import UTCDateTime, utc_now

metadata = MetaData()

appointment_types = Table(
    "appointment_types",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    Column("clinic_id", Uuid, nullable=False),
    Column("name", String(100), nullable=False),
    Column("description", Text),
    Column("category", String(20), nullable=False, default="consultation"),
    Column("color", String(7), nullable=False, default="#3B82F6"),
    Column("price", Numeric(10, 2)),
    # Policy
    Column("duration", Integer, nullable=False),
    # NULL buffers fall back to the provider defaults
    Column("buffer_before", Integer),
    Column("buffer_after", Integer),
    Column("requires_approval", Boolean, nullable=False, default=False),
    Column("allow_online_booking", Boolean, nullable=False, default=True),
    Column("is_active", Boolean, nullable=False, default=True),
    # Audit fields
    Column("created_at", UTCDateTime, nullable=False, default=utc_now),
    Column("updated_at", UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now),
    # Constraints
    CheckConstraint("duration BETWEEN 15 AND 480", name="appointment_types_duration_check"),
    CheckConstraint(
        "category IN ('consultation', 'cleaning', 'treatment', 'surgery', 'emergency')",
        name="appointment_types_category_check",
    ),
    Index("idx_appointment_types_clinic_active", "clinic_id", "is_active"),
)
