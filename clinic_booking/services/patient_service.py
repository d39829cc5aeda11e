"""Patient lookups used by the scheduling core."""

from datetime import datetime
from uuid import UUID

import structlog

from clinic_booking.core.exceptions import NotFoundException
from clinic_booking.repositories.patient_repository import PatientRepository
from clinic_booking.schemas.patients import Patient
from clinic_booking.services.audit_service import AuditLog

logger = structlog.get_logger()


class PatientService:
    """Service for patient operations."""

    def __init__(self, repository: PatientRepository, audit_log: AuditLog):
        """Initialize service with its collaborators."""
        self.repository = repository
        self.audit_log = audit_log

    async def find_patient_by_id(self, patient_id: UUID) -> Patient:
        """
        Get patient by ID.

        Raises:
            NotFoundException: If patient not found
        """
        patient = await self.repository.find_by_id(patient_id)

        if not patient:
            logger.warning("patient_not_found", patient_id=str(patient_id))
            raise NotFoundException("Patient not found")

        return patient

    async def update_consent(self, patient_id: UUID, consent_given_at: datetime) -> Patient:
        """Record the patient's consent for data processing."""
        await self.find_patient_by_id(patient_id)
        patient = await self.repository.update_consent(patient_id, consent_given_at)

        try:
            await self.audit_log.record(
                patient.id, "UPDATE_CONSENT", {"consent_given_at": consent_given_at}
            )
        except Exception as e:
            logger.error(
                "audit_log_failed",
                patient_id=str(patient_id),
                action="UPDATE_CONSENT",
                error=str(e),
            )

        logger.info("patient_consent_updated", patient_id=str(patient_id))
        return patient
