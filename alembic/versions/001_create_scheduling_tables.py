"""Create scheduling tables - providers, appointment types, appointments.

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""

from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

LIVE_STATUS_CLAUSE = "status NOT IN ('cancelled', 'no_show')"


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            postgresql.TIMESTAMP(timezone=True),
            server_default=sa.text("NOW()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    # Enable pgcrypto extension
    op.execute('CREATE EXTENSION IF NOT EXISTS "pgcrypto"')

    # Providers
    op.create_table(
        "providers",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("clinic_id", postgresql.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=True),
        sa.Column("phone", sa.String(length=20), nullable=True),
        sa.Column("specialties", postgresql.JSON(astext_type=sa.Text()), nullable=True),
        sa.Column("license_number", sa.String(length=50), nullable=True),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        sa.Column("working_hours", postgresql.JSON(astext_type=sa.Text()), nullable=False),
        sa.Column(
            "timezone",
            sa.String(length=64),
            server_default=sa.text("'America/Sao_Paulo'"),
            nullable=False,
        ),
        sa.Column("buffer_before", sa.Integer(), server_default=sa.text("15"), nullable=False),
        sa.Column("buffer_after", sa.Integer(), server_default=sa.text("15"), nullable=False),
        sa.Column(
            "appointment_type_ids",
            postgresql.JSON(astext_type=sa.Text()),
            server_default=sa.text("'[]'"),
            nullable=False,
        ),
        *_timestamps(),
        sa.CheckConstraint("buffer_before BETWEEN 0 AND 60", name="providers_buffer_before_check"),
        sa.CheckConstraint("buffer_after BETWEEN 0 AND 60", name="providers_buffer_after_check"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("idx_providers_clinic_active", "providers", ["clinic_id", "is_active"])

    # Appointment types
    op.create_table(
        "appointment_types",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("clinic_id", postgresql.UUID(), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column(
            "category",
            sa.String(length=20),
            server_default=sa.text("'consultation'"),
            nullable=False,
        ),
        sa.Column("color", sa.String(length=7), server_default=sa.text("'#3B82F6'"), nullable=False),
        sa.Column("price", sa.Numeric(precision=10, scale=2), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=False),
        sa.Column("buffer_before", sa.Integer(), nullable=True),
        sa.Column("buffer_after", sa.Integer(), nullable=True),
        sa.Column(
            "requires_approval", sa.Boolean(), server_default=sa.text("false"), nullable=False
        ),
        sa.Column(
            "allow_online_booking", sa.Boolean(), server_default=sa.text("true"), nullable=False
        ),
        sa.Column("is_active", sa.Boolean(), server_default=sa.text("true"), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("duration BETWEEN 15 AND 480", name="appointment_types_duration_check"),
        sa.CheckConstraint(
            "category IN ('consultation', 'cleaning', 'treatment', 'surgery', 'emergency')",
            name="appointment_types_category_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_appointment_types_clinic_active", "appointment_types", ["clinic_id", "is_active"]
    )

    # Appointments
    op.create_table(
        "appointments",
        sa.Column(
            "id", postgresql.UUID(), server_default=sa.text("gen_random_uuid()"), nullable=False
        ),
        sa.Column("clinic_id", postgresql.UUID(), nullable=False),
        sa.Column("patient_id", postgresql.UUID(), nullable=False),
        sa.Column("provider_id", postgresql.UUID(), nullable=False),
        sa.Column("appointment_type_id", postgresql.UUID(), nullable=False),
        sa.Column("scheduled_start", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("scheduled_end", postgresql.TIMESTAMP(timezone=True), nullable=False),
        sa.Column("buffer_before", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("buffer_after", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("actual_start", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("actual_end", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("checked_in_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("completed_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("cancelled_at", postgresql.TIMESTAMP(timezone=True), nullable=True),
        sa.Column("duration", sa.Integer(), nullable=True),
        sa.Column("wait_time", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=20), server_default="scheduled", nullable=False),
        sa.Column("priority", sa.String(length=20), server_default="routine", nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("cancellation_reason", sa.Text(), nullable=True),
        sa.Column(
            "reschedule_history",
            postgresql.JSON(astext_type=sa.Text()),
            server_default=sa.text("'[]'"),
            nullable=False,
        ),
        sa.Column("created_by", postgresql.UUID(), nullable=False),
        *_timestamps(),
        sa.CheckConstraint("scheduled_end > scheduled_start", name="appointments_time_order_check"),
        sa.CheckConstraint(
            "status IN ('scheduled', 'confirmed', 'checked_in', 'in_progress', "
            "'completed', 'cancelled', 'no_show')",
            name="appointments_status_check",
        ),
        sa.CheckConstraint(
            "priority IN ('routine', 'urgent', 'emergency')",
            name="appointments_priority_check",
        ),
        sa.PrimaryKeyConstraint("id"),
    )

    # Create indexes
    op.create_index("ix_appointments_clinic_id", "appointments", ["clinic_id"])
    op.create_index("ix_appointments_patient_id", "appointments", ["patient_id"])
    op.create_index("ix_appointments_provider_id", "appointments", ["provider_id"])
    op.create_index("ix_appointments_appointment_type_id", "appointments", ["appointment_type_id"])
    op.create_index(
        "idx_appointments_provider_schedule",
        "appointments",
        ["provider_id", "scheduled_start", "scheduled_end", "status"],
    )
    op.create_index(
        "idx_appointments_clinic_schedule",
        "appointments",
        ["clinic_id", "scheduled_start", "status"],
    )
    op.create_index(
        "uq_appointments_provider_start_live",
        "appointments",
        ["provider_id", "scheduled_start"],
        unique=True,
        postgresql_where=sa.text(LIVE_STATUS_CLAUSE),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    # Drop indexes
    op.drop_index("uq_appointments_provider_start_live", table_name="appointments")
    op.drop_index("idx_appointments_clinic_schedule", table_name="appointments")
    op.drop_index("idx_appointments_provider_schedule", table_name="appointments")
    op.drop_index("ix_appointments_appointment_type_id", table_name="appointments")
    op.drop_index("ix_appointments_provider_id", table_name="appointments")
    op.drop_index("ix_appointments_patient_id", table_name="appointments")
    op.drop_index("ix_appointments_clinic_id", table_name="appointments")
    op.drop_index("idx_appointment_types_clinic_active", table_name="appointment_types")
    op.drop_index("idx_providers_clinic_active", table_name="providers")

    # Drop tables
    op.drop_table("appointments")
    op.drop_table("appointment_types")
    op.drop_table("providers")
