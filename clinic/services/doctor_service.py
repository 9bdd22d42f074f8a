from datetime import datetime, time
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..core.database import transaction
from ..core.outcomes import Outcome, ServiceResult
from ..core.security import hash_password
from ..models import Appointment, Doctor
from ..schemas.doctor import DoctorCreate, DoctorUpdate

logger = logging.getLogger(__name__)

NOON = time(12, 0)
NO_FILTER = "any"

def _range_start(entry: str) -> Optional[time]:
    """Start time of a free-text range like "09:00-12:00", or None if unreadable."""
    start = entry.split("-")[0].strip()
    try:
        return datetime.strptime(start, "%H:%M").time()
    except ValueError:
        return None

def works_during(doctor: Doctor, period: str) -> bool:
    """True when any of the doctor's ranges starts in the given half of the day."""
    target = period.upper()
    for entry in doctor.available_times or []:
        start = _range_start(entry)
        if start is None:
            continue
        if target == "AM" and start < NOON:
            return True
        if target == "PM" and start >= NOON:
            return True
    return False

def _active(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    value = value.strip()
    if not value or value.lower() == NO_FILTER:
        return None
    return value

class DoctorService:
    def __init__(self, db: Session):
        self.db = db

    def list_doctors(self) -> ServiceResult:
        try:
            doctors = self.db.query(Doctor).order_by(Doctor.id).all()
        except SQLAlchemyError:
            logger.exception("Failed to list doctors")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error fetching doctors")
        return ServiceResult.success("Doctors retrieved successfully", doctors)

    def filter_doctors(
        self,
        name: Optional[str] = None,
        specialty: Optional[str] = None,
        period: Optional[str] = None
    ) -> ServiceResult:
        """Filter by name substring, exact specialty and AM/PM working period.

        Each criterion is optional and ``"any"`` disables it. Name and
        specialty matching ignore case.
        """
        name, specialty, period = _active(name), _active(specialty), _active(period)
        if period is not None and period.upper() not in ("AM", "PM"):
            return ServiceResult.failure(Outcome.INVALID_INPUT, "Invalid time filter. Use 'AM' or 'PM'")

        try:
            query = self.db.query(Doctor)
            if name:
                query = query.filter(func.lower(Doctor.name).contains(name.lower()))
            if specialty:
                query = query.filter(func.lower(Doctor.specialty) == specialty.lower())
            doctors = query.order_by(Doctor.id).all()
        except SQLAlchemyError:
            logger.exception("Failed to filter doctors")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error filtering doctors")

        if period:
            doctors = [doctor for doctor in doctors if works_during(doctor, period)]

        return ServiceResult.success("Doctors retrieved successfully", doctors)

    def save(self, doctor_data: DoctorCreate) -> ServiceResult:
        """Add a new doctor."""
        try:
            if self.db.query(Doctor.id).filter(Doctor.email == doctor_data.email).first():
                return ServiceResult.failure(Outcome.CONFLICT, "Doctor with this email already exists")

            doctor = Doctor(
                name=doctor_data.name,
                specialty=doctor_data.specialty,
                email=doctor_data.email,
                password_hash=hash_password(doctor_data.password),
                phone=doctor_data.phone,
                available_times=list(doctor_data.available_times),
            )
            with transaction(self.db):
                self.db.add(doctor)
        except IntegrityError:
            return ServiceResult.failure(Outcome.CONFLICT, "Doctor with this email already exists")
        except SQLAlchemyError:
            logger.exception("Failed to save doctor")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error saving doctor")

        self.db.refresh(doctor)
        logger.info(f"Doctor added: {doctor.email}")
        return ServiceResult.created("Doctor added successfully", doctor)

    def update(self, doctor_id: int, doctor_data: DoctorUpdate) -> ServiceResult:
        """Update the given fields of an existing doctor."""
        changes = doctor_data.model_dump(exclude_unset=True)
        try:
            doctor = self.db.get(Doctor, doctor_id)
            if doctor is None:
                return ServiceResult.failure(Outcome.NOT_FOUND, "Doctor not found")

            email = changes.get("email")
            if email and email != doctor.email:
                taken = self.db.query(Doctor.id).filter(Doctor.email == email).first()
                if taken:
                    return ServiceResult.failure(Outcome.CONFLICT, "Doctor with this email already exists")

            password = changes.pop("password", None)
            with transaction(self.db):
                for field, value in changes.items():
                    if value is not None:
                        setattr(doctor, field, value)
                if password:
                    doctor.password_hash = hash_password(password)
        except IntegrityError:
            return ServiceResult.failure(Outcome.CONFLICT, "Doctor with this email already exists")
        except SQLAlchemyError:
            logger.exception(f"Failed to update doctor {doctor_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error updating doctor")

        self.db.refresh(doctor)
        return ServiceResult.success("Doctor updated successfully", doctor)

    def delete(self, doctor_id: int) -> ServiceResult:
        """Delete a doctor together with all of their appointments."""
        try:
            doctor = self.db.get(Doctor, doctor_id)
            if doctor is None:
                return ServiceResult.failure(Outcome.NOT_FOUND, "Doctor not found")

            with transaction(self.db):
                removed = (
                    self.db.query(Appointment)
                    .filter(Appointment.doctor_id == doctor_id)
                    .delete(synchronize_session=False)
                )
                self.db.delete(doctor)
        except SQLAlchemyError:
            logger.exception(f"Failed to delete doctor {doctor_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error deleting doctor")

        logger.info(f"Doctor {doctor_id} deleted with {removed} appointment(s)")
        return ServiceResult.success("Doctor deleted successfully")
