from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session
from typing import Optional

from ...core.database import get_db
from ...api.deps import get_current_patient_id, unwrap
from ...services.patient_service import PatientService
from ...schemas.appointment import AppointmentListResponse
from ...schemas.patient import PatientCreate, PatientResponse

router = APIRouter(prefix="/patients", tags=["Patients"])

@router.post("", response_model=PatientResponse, status_code=status.HTTP_201_CREATED)
def signup(patient_data: PatientCreate, db: Session = Depends(get_db)):
    """Register a new patient."""
    return unwrap(PatientService(db).register(patient_data))

@router.get("/me", response_model=PatientResponse)
def get_my_details(
    patient_id: int = Depends(get_current_patient_id),
    db: Session = Depends(get_db)
):
    return unwrap(PatientService(db).details(patient_id))

@router.get("/appointments", response_model=AppointmentListResponse)
def get_my_appointments(
    condition: Optional[str] = Query(None, description="past or future"),
    name: Optional[str] = Query(None, description="Doctor name"),
    patient_id: int = Depends(get_current_patient_id),
    db: Session = Depends(get_db)
):
    """List the caller's appointments, optionally filtered."""
    appointments = unwrap(PatientService(db).appointments(patient_id, condition, name))
    return AppointmentListResponse(appointments=appointments, count=len(appointments))
