"""Patient model definition using SQLAlchemy Core."""

from sqlalchemy import Column, Table, text
from sqlalchemy.dialects.postgresql import TIMESTAMP, UUID, VARCHAR

from clinic_booking.models.base import metadata

patients = Table(
    "patients",
    metadata,
    Column("id", UUID(as_uuid=True), primary_key=True, server_default=text("gen_random_uuid()")),
    Column("phone", VARCHAR(20), nullable=False, unique=True),
    Column("name", VARCHAR(255), nullable=False),
    # LGPD consent tracking; booking requires it
    Column("consent_given_at", TIMESTAMP(timezone=True), nullable=True),
    Column("created_at", TIMESTAMP(timezone=True), nullable=False, server_default=text("NOW()")),
)
