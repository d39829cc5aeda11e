"""Patient schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field


class Patient(BaseModel):
    """Patient as seen by the scheduling core."""

    id: UUID
    name: str
    phone: str
    consent_given_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}

    @property
    def has_consent(self) -> bool:
        return self.consent_given_at is not None


class PatientCreate(BaseModel):
    """Schema for inserting a patient record."""

    name: str = Field(..., min_length=1, max_length=255)
    phone: str = Field(..., min_length=7, max_length=20)
    consent_given_at: datetime | None = None
