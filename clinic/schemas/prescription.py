from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field

class PrescriptionCreate(BaseModel):
    appointment_id: int
    patient_name: str = Field(..., min_length=3, max_length=100)
    medication: str = Field(..., min_length=3, max_length=100)
    dosage: str = Field(..., min_length=1, max_length=100)
    doctor_notes: Optional[str] = Field(None, max_length=200)

class Prescription(PrescriptionCreate):
    """A prescription document as kept in the document store."""
    id: str
    created_at: datetime

class PrescriptionListResponse(BaseModel):
    prescriptions: List[Prescription]
    count: int
