from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional
import logging

from ..core.database import transaction
from ..core.outcomes import Outcome, ServiceResult
from ..core.security import hash_password
from ..models import Appointment, AppointmentStatus, Doctor, Patient
from ..schemas.patient import PatientCreate
from .appointment_service import build_responses
from .credential_store import CredentialStore

logger = logging.getLogger(__name__)

# Completed appointments count as past, scheduled ones as upcoming
CONDITION_STATUS = {
    "past": AppointmentStatus.COMPLETED,
    "future": AppointmentStatus.SCHEDULED,
}

DUPLICATE_PATIENT_MESSAGE = "Patient with email id or phone no already exist"

class PatientService:
    def __init__(self, db: Session):
        self.db = db
        self.store = CredentialStore(db)

    def register(self, patient_data: PatientCreate) -> ServiceResult:
        """Sign up a new patient; email and phone must both be unused."""
        try:
            if self.store.patient_exists(patient_data.email, patient_data.phone):
                return ServiceResult.failure(Outcome.CONFLICT, DUPLICATE_PATIENT_MESSAGE)

            patient = Patient(
                name=patient_data.name,
                email=patient_data.email,
                password_hash=hash_password(patient_data.password),
                phone=patient_data.phone,
                address=patient_data.address,
            )
            with transaction(self.db):
                self.db.add(patient)
        except IntegrityError:
            return ServiceResult.failure(Outcome.CONFLICT, DUPLICATE_PATIENT_MESSAGE)
        except SQLAlchemyError:
            logger.exception("Failed to register patient")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Internal server error")

        self.db.refresh(patient)
        logger.info(f"Patient registered: {patient.email}")
        return ServiceResult.created("Signup successful", patient)

    def details(self, patient_id: int) -> ServiceResult:
        try:
            patient = self.store.find_patient(patient_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load patient {patient_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error fetching patient details")

        if patient is None:
            return ServiceResult.failure(Outcome.NOT_FOUND, "Patient not found")
        return ServiceResult.success("Patient retrieved successfully", patient)

    def appointments(
        self,
        patient_id: int,
        condition: Optional[str] = None,
        doctor_name: Optional[str] = None
    ) -> ServiceResult:
        """The patient's appointments, optionally narrowed.

        ``condition`` is ``past`` or ``future``; ``doctor_name`` is a
        case-insensitive substring of the doctor's name.
        """
        status = None
        if condition:
            status = CONDITION_STATUS.get(condition.strip().lower())
            if status is None:
                return ServiceResult.failure(
                    Outcome.INVALID_INPUT,
                    "Invalid condition. Use 'past' or 'future'"
                )

        try:
            query = self.db.query(Appointment).filter(Appointment.patient_id == patient_id)
            if status is not None:
                query = query.filter(Appointment.status == status.value)
            if doctor_name and doctor_name.strip():
                query = query.join(Doctor, Doctor.id == Appointment.doctor_id).filter(
                    func.lower(Doctor.name).contains(doctor_name.strip().lower())
                )
            appointments = query.order_by(Appointment.appointment_time).all()
            responses = build_responses(self.store, appointments)
        except SQLAlchemyError:
            logger.exception(f"Failed to fetch appointments for patient {patient_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error fetching appointments")

        return ServiceResult.success("Appointments retrieved successfully", responses)
