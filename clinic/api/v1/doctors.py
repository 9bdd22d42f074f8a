from datetime import date
from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import require_admin, require_doctor_or_patient, unwrap
from ...services.availability_service import AvailabilityService, format_slot
from ...services.doctor_service import DoctorService
from ...schemas.auth import MessageResponse
from ...schemas.doctor import (
    AvailabilityResponse, DoctorCreate, DoctorListResponse,
    DoctorResponse, DoctorUpdate
)

router = APIRouter(prefix="/doctors", tags=["Doctors"])

INVALID_DATE_MESSAGE = "Invalid date format. Use ISO-8601 (YYYY-MM-DD)"

def parse_day(value: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=INVALID_DATE_MESSAGE)

def _listing(doctors) -> DoctorListResponse:
    return DoctorListResponse(
        doctors=[DoctorResponse.model_validate(doctor) for doctor in doctors],
        count=len(doctors),
    )

@router.get("", response_model=DoctorListResponse)
def list_doctors(db: Session = Depends(get_db)):
    """List all doctors."""
    return _listing(unwrap(DoctorService(db).list_doctors()))

@router.get("/filter", response_model=DoctorListResponse)
def filter_doctors(
    name: Optional[str] = Query(None),
    specialty: Optional[str] = Query(None),
    time: Optional[str] = Query(None, description="AM, PM or any"),
    db: Session = Depends(get_db)
):
    """Filter doctors by name, specialty and working period."""
    return _listing(unwrap(DoctorService(db).filter_doctors(name, specialty, time)))

@router.post("", response_model=DoctorResponse, status_code=status.HTTP_201_CREATED)
def add_doctor(
    doctor_data: DoctorCreate,
    db: Session = Depends(get_db),
    _: str = Depends(require_admin)
):
    return unwrap(DoctorService(db).save(doctor_data))

@router.put("/{doctor_id}", response_model=DoctorResponse)
def update_doctor(
    doctor_id: int,
    doctor_data: DoctorUpdate,
    db: Session = Depends(get_db),
    _: str = Depends(require_admin)
):
    return unwrap(DoctorService(db).update(doctor_id, doctor_data))

@router.delete("/{doctor_id}", response_model=MessageResponse)
def delete_doctor(
    doctor_id: int,
    db: Session = Depends(get_db),
    _: str = Depends(require_admin)
):
    """Delete a doctor and every appointment booked with them."""
    result = DoctorService(db).delete(doctor_id)
    unwrap(result)
    return MessageResponse(message=result.message)

@router.get("/{doctor_id}/availability/{day}", response_model=AvailabilityResponse)
def doctor_availability(
    doctor_id: int,
    day: str,
    db: Session = Depends(get_db),
    _: str = Depends(require_doctor_or_patient)
):
    """Free half-hour slots for a doctor on the given date."""
    parsed = parse_day(day)
    slots = AvailabilityService(db).availability(doctor_id, parsed)
    return AvailabilityResponse(
        doctor_id=doctor_id,
        date=parsed,
        availability=[format_slot(slot) for slot in slots],
        count=len(slots),
    )
