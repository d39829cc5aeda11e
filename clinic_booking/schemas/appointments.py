"""Appointment schemas for request/response validation."""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field


class AppointmentStatus(str, Enum):
    """
    Appointment status enumeration.

    Valid transitions:
    - scheduled -> confirmed, cancelled, no_show
    - confirmed -> completed, cancelled, no_show

    cancelled, completed and no_show are terminal.
    """

    SCHEDULED = "scheduled"
    CONFIRMED = "confirmed"
    CANCELLED = "cancelled"
    COMPLETED = "completed"
    NO_SHOW = "no_show"

    @property
    def is_terminal(self) -> bool:
        return not STATUS_TRANSITIONS[self]

    @property
    def is_active(self) -> bool:
        """Active appointments hold their slot."""
        return self is not AppointmentStatus.CANCELLED

    def can_transition_to(self, target: "AppointmentStatus") -> bool:
        return target in STATUS_TRANSITIONS[self]


STATUS_TRANSITIONS: dict[AppointmentStatus, frozenset[AppointmentStatus]] = {
    AppointmentStatus.SCHEDULED: frozenset(
        {AppointmentStatus.CONFIRMED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CONFIRMED: frozenset(
        {AppointmentStatus.COMPLETED, AppointmentStatus.CANCELLED, AppointmentStatus.NO_SHOW}
    ),
    AppointmentStatus.CANCELLED: frozenset(),
    AppointmentStatus.COMPLETED: frozenset(),
    AppointmentStatus.NO_SHOW: frozenset(),
}


class Appointment(BaseModel):
    """Appointment as stored."""

    id: UUID
    patient_id: UUID
    scheduled_at: datetime
    status: AppointmentStatus
    created_at: datetime
    updated_at: datetime

    model_config = {"from_attributes": True}


class AppointmentCreate(BaseModel):
    """Schema for booking a new appointment."""

    patient_id: UUID
    scheduled_at: datetime


class AppointmentReschedule(BaseModel):
    """Schema for moving an appointment to another slot."""

    scheduled_at: datetime


class AppointmentCancel(BaseModel):
    """Schema for cancelling an appointment."""

    reason: str = Field(..., min_length=1, max_length=500)


class AppointmentStatusUpdate(BaseModel):
    """Schema for updating appointment status."""

    status: AppointmentStatus


class AppointmentResponse(Appointment):
    """Schema for appointment response."""

    end_at: datetime | None = None


class AppointmentListResponse(BaseModel):
    """Schema for appointment list response."""

    total: int
    items: list[AppointmentResponse]


class TimeSlotResponse(BaseModel):
    """A single bookable slot."""

    start_time: datetime
    end_time: datetime

    model_config = {"from_attributes": True}


class AvailabilityResponse(BaseModel):
    """Schema for availability of a single date."""

    date: date
    slots: list[TimeSlotResponse]
