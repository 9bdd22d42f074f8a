from fastapi import APIRouter, Depends, Query, status
from typing import Optional

from ...api.deps import (
    get_current_patient_id, get_scheduling_service,
    require_doctor, require_patient, unwrap
)
from ...services.appointment_service import SchedulingService
from ...schemas.appointment import (
    AppointmentCreate, AppointmentListResponse, AppointmentResponse,
    AppointmentStatusUpdate, AppointmentUpdate
)
from ...schemas.auth import MessageResponse
from .doctors import parse_day

router = APIRouter(prefix="/appointments", tags=["Appointments"])

@router.get("", response_model=AppointmentListResponse)
def list_doctor_appointments(
    date: str = Query(..., description="YYYY-MM-DD"),
    patient_name: Optional[str] = Query(None),
    token: str = Depends(require_doctor),
    scheduling: SchedulingService = Depends(get_scheduling_service)
):
    """The calling doctor's appointments for one day."""
    day = parse_day(date)
    appointments = unwrap(scheduling.list_for_doctor(patient_name, day, token))
    return AppointmentListResponse(appointments=appointments, count=len(appointments))

@router.post("", response_model=AppointmentResponse, status_code=status.HTTP_201_CREATED)
def book_appointment(
    appointment_data: AppointmentCreate,
    patient_id: int = Depends(get_current_patient_id),
    scheduling: SchedulingService = Depends(get_scheduling_service)
):
    """Book a slot with a doctor for the calling patient."""
    unwrap(scheduling.validate(appointment_data.doctor_id, appointment_data.appointment_time))
    appointment = unwrap(scheduling.book(
        patient_id, appointment_data.doctor_id, appointment_data.appointment_time
    ))
    return scheduling.describe(appointment)

@router.put("/{appointment_id}", response_model=AppointmentResponse)
def update_appointment(
    appointment_id: int,
    appointment_data: AppointmentUpdate,
    patient_id: int = Depends(get_current_patient_id),
    scheduling: SchedulingService = Depends(get_scheduling_service)
):
    appointment = unwrap(scheduling.update(
        appointment_id,
        appointment_data.doctor_id,
        appointment_data.appointment_time,
        patient_id=patient_id,
    ))
    return scheduling.describe(appointment)

@router.delete("/{appointment_id}", response_model=MessageResponse)
def cancel_appointment(
    appointment_id: int,
    token: str = Depends(require_patient),
    scheduling: SchedulingService = Depends(get_scheduling_service)
):
    result = scheduling.cancel(appointment_id, token)
    unwrap(result)
    return MessageResponse(message=result.message)

@router.patch("/{appointment_id}/status", response_model=AppointmentResponse)
def change_appointment_status(
    appointment_id: int,
    status_data: AppointmentStatusUpdate,
    _: str = Depends(require_doctor),
    scheduling: SchedulingService = Depends(get_scheduling_service)
):
    appointment = unwrap(scheduling.change_status(appointment_id, status_data.status))
    return scheduling.describe(appointment)
