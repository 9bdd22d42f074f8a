from datetime import date
from typing import List, Optional
from pydantic import BaseModel, Field, field_validator

def _normalize_email(value: str) -> str:
    normalized = value.strip().lower()
    if "@" not in normalized:
        raise ValueError("A valid email address is required.")
    return normalized

class DoctorCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    specialty: str = Field(..., min_length=1, max_length=100)
    email: str
    password: str = Field(..., min_length=6)
    phone: Optional[str] = Field(None, max_length=20)
    available_times: List[str] = Field(default_factory=list)

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: str) -> str:
        return _normalize_email(value)

class DoctorUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    specialty: Optional[str] = Field(None, min_length=1, max_length=100)
    email: Optional[str] = None
    password: Optional[str] = Field(None, min_length=6)
    phone: Optional[str] = Field(None, max_length=20)
    available_times: Optional[List[str]] = None

    @field_validator("email")
    @classmethod
    def validate_email(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return None
        return _normalize_email(value)

class DoctorResponse(BaseModel):
    id: int
    name: str
    specialty: str
    email: str
    phone: Optional[str] = None
    available_times: List[str] = Field(default_factory=list)

    class Config:
        from_attributes = True

class DoctorListResponse(BaseModel):
    doctors: List[DoctorResponse]
    count: int

class AvailabilityResponse(BaseModel):
    doctor_id: int
    date: date
    availability: List[str]
    count: int
