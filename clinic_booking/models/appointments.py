"""Appointments table model using SQLAlchemy Core."""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Index, Table, Text, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID

from clinic_booking.models.base import metadata

appointments = Table(
    "appointments",
    metadata,
    Column(
        "id",
        UUID(as_uuid=True),
        primary_key=True,
        server_default=text("gen_random_uuid()"),
    ),
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    ),
    # Slot start; the end is always scheduled_at + slot duration
    Column("scheduled_at", TIMESTAMP(timezone=True), nullable=False, index=True),
    Column(
        "status",
        Text,
        nullable=False,
        server_default="scheduled",
        index=True,
    ),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    Column("updated_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
    CheckConstraint(
        "status IN ('scheduled', 'confirmed', 'cancelled', 'completed', 'no_show')",
        name="appointments_status_check",
    ),
)

# One active appointment per slot, whatever the application checked beforehand
ACTIVE_SLOT_INDEX = "uq_appointments_active_slot"

Index(
    ACTIVE_SLOT_INDEX,
    appointments.c.scheduled_at,
    unique=True,
    postgresql_where=text("status <> 'cancelled'"),
)
