from datetime import date, datetime, time
from typing import List, Optional
from pydantic import BaseModel, field_validator

from ..models.appointment import AppointmentStatus

def _require_future(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone().replace(tzinfo=None)
    if value <= datetime.now():
        raise ValueError("Appointments must be scheduled in the future.")
    return value

class AppointmentCreate(BaseModel):
    doctor_id: int
    appointment_time: datetime

    @field_validator("appointment_time")
    @classmethod
    def validate_appointment_time(cls, value: datetime) -> datetime:
        return _require_future(value)

class AppointmentUpdate(AppointmentCreate):
    pass

class AppointmentStatusUpdate(BaseModel):
    status: AppointmentStatus

class AppointmentResponse(BaseModel):
    id: int
    doctor_id: int
    doctor_name: Optional[str] = None
    patient_id: int
    patient_name: Optional[str] = None
    patient_email: Optional[str] = None
    patient_phone: Optional[str] = None
    patient_address: Optional[str] = None
    appointment_time: datetime
    status: int
    appointment_date: date
    time_of_day: time
    end_time: datetime

class AppointmentListResponse(BaseModel):
    appointments: List[AppointmentResponse]
    count: int
