from fastapi import APIRouter, Depends, status

from ...api.deps import get_prescription_service, require_doctor, unwrap
from ...services.prescription_service import PrescriptionService
from ...schemas.prescription import Prescription, PrescriptionCreate, PrescriptionListResponse

router = APIRouter(prefix="/prescriptions", tags=["Prescriptions"])

@router.post("", response_model=Prescription, status_code=status.HTTP_201_CREATED)
def add_prescription(
    prescription_data: PrescriptionCreate,
    _: str = Depends(require_doctor),
    service: PrescriptionService = Depends(get_prescription_service)
):
    """Record a prescription and mark its appointment completed."""
    return unwrap(service.record(prescription_data))

@router.get("/{appointment_id}", response_model=PrescriptionListResponse)
def get_prescriptions(
    appointment_id: int,
    _: str = Depends(require_doctor),
    service: PrescriptionService = Depends(get_prescription_service)
):
    prescriptions = unwrap(service.get(appointment_id))
    return PrescriptionListResponse(prescriptions=prescriptions, count=len(prescriptions))
