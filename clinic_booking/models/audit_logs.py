"""Audit log table model using SQLAlchemy Core."""

from sqlalchemy import Column, ForeignKey, Table, text
from sqlalchemy.dialects.postgresql import JSONB, TIMESTAMP, UUID, VARCHAR

from clinic_booking.models.base import metadata

audit_logs = Table(
    "audit_logs",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column(
        "patient_id",
        UUID(as_uuid=True),
        ForeignKey("patients.id", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
        index=True,
    ),
    Column("action", VARCHAR(100), nullable=False, index=True),
    Column("payload", JSONB, nullable=True),
    Column(
        "created_at",
        TIMESTAMP(timezone=True),
        nullable=False,
        server_default=text("NOW()"),
        index=True,
    ),
)
