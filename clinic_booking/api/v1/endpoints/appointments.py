"""Appointment endpoints."""

from datetime import date
from uuid import UUID

from fastapi import APIRouter, Query, status

from clinic_booking.core.exceptions import NotFoundException
from clinic_booking.dependencies import AppointmentServiceDep, SlotCalculatorDep
from clinic_booking.scheduling.slots import SlotCalculator
from clinic_booking.schemas.appointments import (
    Appointment,
    AppointmentCancel,
    AppointmentCreate,
    AppointmentListResponse,
    AppointmentReschedule,
    AppointmentResponse,
    AppointmentStatusUpdate,
    AvailabilityResponse,
    TimeSlotResponse,
)

router = APIRouter()


def to_response(appointment: Appointment, slots: SlotCalculator) -> AppointmentResponse:
    slot = slots.slot_starting_at(appointment.scheduled_at)
    return AppointmentResponse(
        **appointment.model_dump(),
        end_at=slot.end_time,
    )


@router.get(
    "/availability",
    response_model=AvailabilityResponse,
    status_code=status.HTTP_200_OK,
    summary="List free slots for a date",
)
async def check_availability(
    service: AppointmentServiceDep,
    day: date = Query(..., alias="date", description="Clinic-local date, YYYY-MM-DD"),
) -> AvailabilityResponse:
    """
    List the free slots of a date.

    Non-Saturdays, holidays and past dates have no slots.
    """
    slots = await service.check_availability(day)
    return AvailabilityResponse(
        date=day,
        slots=[TimeSlotResponse.model_validate(slot) for slot in slots],
    )


@router.post(
    "/",
    response_model=AppointmentResponse,
    status_code=status.HTTP_201_CREATED,
    summary="Book appointment",
)
async def book_appointment(
    data: AppointmentCreate,
    service: AppointmentServiceDep,
    slots: SlotCalculatorDep,
) -> AppointmentResponse:
    """
    Book an appointment for a patient.

    Args:
        data: Patient and slot start
        service: Appointment service
        slots: Slot calculator

    Returns:
        Created appointment
    """
    appointment = await service.book(data.patient_id, data.scheduled_at)
    return to_response(appointment, slots)


@router.get(
    "/",
    response_model=AppointmentListResponse,
    status_code=status.HTTP_200_OK,
    summary="List appointments of a patient",
)
async def list_patient_appointments(
    service: AppointmentServiceDep,
    slots: SlotCalculatorDep,
    patient_id: UUID = Query(...),
) -> AppointmentListResponse:
    """List every appointment of a patient, latest first."""
    items = [to_response(item, slots) for item in await service.find_by_patient_id(patient_id)]
    return AppointmentListResponse(total=len(items), items=items)


@router.get(
    "/{appointment_id}",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Get appointment by ID",
)
async def get_appointment(
    appointment_id: UUID,
    service: AppointmentServiceDep,
    slots: SlotCalculatorDep,
) -> AppointmentResponse:
    """
    Get a specific appointment by ID.

    Raises:
        NotFoundException: If appointment not found
    """
    appointment = await service.find_by_id(appointment_id)

    if not appointment:
        raise NotFoundException("Appointment not found")

    return to_response(appointment, slots)


@router.put(
    "/{appointment_id}/reschedule",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Reschedule appointment",
)
async def reschedule_appointment(
    appointment_id: UUID,
    data: AppointmentReschedule,
    service: AppointmentServiceDep,
    slots: SlotCalculatorDep,
) -> AppointmentResponse:
    """Move an appointment to another slot."""
    appointment = await service.reschedule(appointment_id, data.scheduled_at)
    return to_response(appointment, slots)


@router.post(
    "/{appointment_id}/cancel",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Cancel appointment",
)
async def cancel_appointment(
    appointment_id: UUID,
    data: AppointmentCancel,
    service: AppointmentServiceDep,
    slots: SlotCalculatorDep,
) -> AppointmentResponse:
    """Cancel an appointment outside the cancellation window."""
    appointment = await service.cancel(appointment_id, data.reason)
    return to_response(appointment, slots)


@router.patch(
    "/{appointment_id}/status",
    response_model=AppointmentResponse,
    status_code=status.HTTP_200_OK,
    summary="Update appointment status",
)
async def update_appointment_status(
    appointment_id: UUID,
    data: AppointmentStatusUpdate,
    service: AppointmentServiceDep,
    slots: SlotCalculatorDep,
) -> AppointmentResponse:
    """
    Update appointment status (e.g., confirm, complete, no-show).

    Args:
        appointment_id: Appointment ID
        data: Status update data
        service: Appointment service
        slots: Slot calculator

    Returns:
        Updated appointment
    """
    appointment = await service.update_status(appointment_id, data.status)
    return to_response(appointment, slots)
