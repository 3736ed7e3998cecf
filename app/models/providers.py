"""Provider (dentist / hygienist) table using SQLAlchemy Core."""

from uuid import uuid4

from sqlalchemy import (
    JSON,
    Boolean,
    CheckConstraint,
    Column,
    Index,
    Integer,
    MetaData,
    String,
    Table,
    Uuid,
)

from app.models.types import UTCDateTime, utc_now

metadata = MetaData()

providers = Table(
    "providers",
    metadata,
    Column("id", Uuid, primary_key=True, default=uuid4),
    # Tenant partition
    Column("clinic_id", Uuid, nullable=False),
    Column("name", String(100), nullable=False),
    Column("email", String(255)),
    Column("phone", String(20)),
    Column("specialties", JSON),
    Column("license_number", String(50)),
    Column("is_active", Boolean, nullable=False, default=True),
    # Scheduling configuration
    Column("working_hours", JSON, nullable=False),
    # Example: {"monday": {"start": "08:00", "end": "18:00", "is_working": true}, ...}
    Column("timezone", String(64), nullable=False, default="America/Sao_Paulo"),
    Column("buffer_before", Integer, nullable=False, default=15),
    Column("buffer_after", Integer, nullable=False, default=15),
    Column("appointment_type_ids", JSON, nullable=False, default=list),
    # Example: ["3f1c...", "9a0e..."]
    # Audit fields
    Column("created_at", UTCDateTime, nullable=False, default=utc_now),
    Column("updated_at", UTCDateTime, nullable=False, default=utc_now, onupdate=utc_now),
    # Constraints
    CheckConstraint("buffer_before BETWEEN 0 AND 60", name="providers_buffer_before_check"),
    CheckConstraint("buffer_after BETWEEN 0 AND 60", name="providers_buffer_after_check"),
    Index("idx_providers_clinic_active", "clinic_id", "is_active"),
)
