"""Patient data access."""

from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID

from sqlalchemy import insert, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from clinic_booking.core.exceptions import NotFoundException
from clinic_booking.models.patients import patients
from clinic_booking.schemas.patients import Patient, PatientCreate


class PatientRepository(ABC):
    """Contract for patient persistence."""

    @abstractmethod
    async def create(self, data: PatientCreate) -> Patient:
        """Insert a patient record."""

    @abstractmethod
    async def find_by_id(self, patient_id: UUID) -> Patient | None:
        """Get patient by ID."""

    @abstractmethod
    async def update_consent(self, patient_id: UUID, consent_given_at: datetime) -> Patient:
        """Set the consent timestamp."""


class SqlPatientRepository(PatientRepository):
    """Patient repository backed by PostgreSQL."""

    def __init__(self, db: AsyncSession):
        """Initialize repository with database session."""
        self.db = db

    async def create(self, data: PatientCreate) -> Patient:
        stmt = insert(patients).values(**data.model_dump()).returning(patients)
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()
        return Patient.model_validate(dict(row._mapping))

    async def find_by_id(self, patient_id: UUID) -> Patient | None:
        result = await self.db.execute(select(patients).where(patients.c.id == patient_id))
        row = result.fetchone()

        if not row:
            return None

        return Patient.model_validate(dict(row._mapping))

    async def update_consent(self, patient_id: UUID, consent_given_at: datetime) -> Patient:
        stmt = (
            update(patients)
            .where(patients.c.id == patient_id)
            .values(consent_given_at=consent_given_at)
            .returning(patients)
        )
        result = await self.db.execute(stmt)
        row = result.fetchone()
        await self.db.commit()

        if not row:
            raise NotFoundException("Patient not found")

        return Patient.model_validate(dict(row._mapping))
