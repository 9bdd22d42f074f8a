from datetime import date, datetime
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Dict, Iterable, List, Optional
import logging

from ..core.database import transaction
from ..core.outcomes import Outcome, ServiceResult
from ..models import Appointment, AppointmentStatus, Doctor, Patient
from ..schemas.appointment import AppointmentResponse
from .availability_service import AvailabilityService, day_bounds
from .credential_store import CredentialStore
from .role_resolver import RoleResolver

logger = logging.getLogger(__name__)

STORAGE_ERROR_MESSAGE = "An internal error occurred while processing the appointment"

def build_responses(store: CredentialStore, appointments: Iterable[Appointment]) -> List[AppointmentResponse]:
    """Flatten appointments into response objects with doctor and patient details.

    Doctors and patients are fetched once each by id.
    """
    doctors: Dict[int, Optional[Doctor]] = {}
    patients: Dict[int, Optional[Patient]] = {}
    responses = []

    for appointment in appointments:
        if appointment.doctor_id not in doctors:
            doctors[appointment.doctor_id] = store.find_doctor(appointment.doctor_id)
        if appointment.patient_id not in patients:
            patients[appointment.patient_id] = store.find_patient(appointment.patient_id)
        doctor = doctors[appointment.doctor_id]
        patient = patients[appointment.patient_id]

        responses.append(AppointmentResponse(
            id=appointment.id,
            doctor_id=appointment.doctor_id,
            doctor_name=doctor.name if doctor else None,
            patient_id=appointment.patient_id,
            patient_name=patient.name if patient else None,
            patient_email=patient.email if patient else None,
            patient_phone=patient.phone if patient else None,
            patient_address=patient.address if patient else None,
            appointment_time=appointment.appointment_time,
            status=appointment.status,
            appointment_date=appointment.appointment_date,
            time_of_day=appointment.time_of_day,
            end_time=appointment.end_time,
        ))

    return responses

class SchedulingService:
    """Validates, books, updates, cancels and completes appointments.

    Appointments move from SCHEDULED to COMPLETED through ``change_status``
    or are removed outright by ``cancel``. Each write runs in its own
    transaction; storage errors come back as ``STORAGE_FAILURE``.
    """

    def __init__(self, db: Session, resolver: RoleResolver):
        self.db = db
        self.resolver = resolver
        self.store = CredentialStore(db)
        self.availability = AvailabilityService(db)

    def validate(
        self,
        doctor_id: int,
        appointment_time: datetime,
        exclude_appointment_id: Optional[int] = None
    ) -> ServiceResult:
        """Check that the doctor exists and the exact slot is free."""
        try:
            doctor = self.store.find_doctor(doctor_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to look up doctor {doctor_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        if doctor is None:
            return ServiceResult.failure(Outcome.DOCTOR_NOT_FOUND, "Doctor not found")

        free_slots = self.availability.availability(
            doctor_id, appointment_time.date(), exclude_appointment_id
        )
        if appointment_time.time() not in free_slots:
            return ServiceResult.failure(
                Outcome.SLOT_UNAVAILABLE,
                "Appointment time is not available"
            )

        return ServiceResult.success("Appointment time is available")

    def book(self, patient_id: int, doctor_id: int, appointment_time: datetime) -> ServiceResult:
        """Persist an appointment that has already passed ``validate``."""
        appointment = Appointment(
            doctor_id=doctor_id,
            patient_id=patient_id,
            appointment_time=appointment_time,
            status=AppointmentStatus.SCHEDULED.value,
        )
        try:
            with transaction(self.db):
                self.db.add(appointment)
            self.db.refresh(appointment)
        except IntegrityError:
            logger.warning(f"Slot {appointment_time} for doctor {doctor_id} was taken concurrently")
            return ServiceResult.failure(
                Outcome.SLOT_UNAVAILABLE,
                "Appointment time is not available"
            )
        except SQLAlchemyError:
            logger.exception("Failed to book appointment")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        logger.info(f"Appointment {appointment.id} booked for patient {patient_id} with doctor {doctor_id}")
        return ServiceResult.created("Appointment booked successfully", appointment)

    def update(
        self,
        appointment_id: int,
        doctor_id: int,
        appointment_time: datetime,
        patient_id: Optional[int] = None
    ) -> ServiceResult:
        """Move an appointment to a new doctor and/or time.

        The appointment's own current slot does not count against it, so
        re-submitting an unchanged time succeeds. When ``patient_id`` is
        given only that patient may move the appointment.
        """
        try:
            appointment = self.db.get(Appointment, appointment_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load appointment {appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        if appointment is None:
            return ServiceResult.failure(Outcome.NOT_FOUND, "Appointment not found")

        if patient_id is not None and appointment.patient_id != patient_id:
            return ServiceResult.failure(
                Outcome.FORBIDDEN,
                "You can only update your own appointments"
            )

        check = self.validate(doctor_id, appointment_time, exclude_appointment_id=appointment_id)
        if not check.ok:
            return check

        try:
            with transaction(self.db):
                appointment.doctor_id = doctor_id
                appointment.appointment_time = appointment_time
            self.db.refresh(appointment)
        except IntegrityError:
            logger.warning(f"Slot {appointment_time} for doctor {doctor_id} was taken concurrently")
            return ServiceResult.failure(
                Outcome.SLOT_UNAVAILABLE,
                "Appointment time is not available"
            )
        except SQLAlchemyError:
            logger.exception(f"Failed to update appointment {appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        return ServiceResult.success("Appointment updated successfully", appointment)

    def cancel(self, appointment_id: int, token: str) -> ServiceResult:
        """Delete an appointment on behalf of the patient who owns it."""
        try:
            appointment = self.db.get(Appointment, appointment_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load appointment {appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        if appointment is None:
            return ServiceResult.failure(Outcome.NOT_FOUND, "Appointment not found")

        patient_id = self.resolver.resolve_patient_id(token)
        if patient_id is None:
            return ServiceResult.failure(Outcome.INVALID_CREDENTIAL, "Invalid or expired token")

        if appointment.patient_id != patient_id:
            logger.warning(f"Patient {patient_id} tried to cancel appointment {appointment_id}")
            return ServiceResult.failure(
                Outcome.FORBIDDEN,
                "You can only cancel your own appointments"
            )

        try:
            with transaction(self.db):
                self.db.delete(appointment)
        except SQLAlchemyError:
            logger.exception(f"Failed to cancel appointment {appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        logger.info(f"Appointment {appointment_id} cancelled by patient {patient_id}")
        return ServiceResult.success("Appointment cancelled successfully")

    def change_status(self, appointment_id: int, new_status: int) -> ServiceResult:
        """Overwrite the status without checking the transition."""
        try:
            appointment = self.db.get(Appointment, appointment_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load appointment {appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        if appointment is None:
            return ServiceResult.failure(Outcome.NOT_FOUND, "Appointment not found")

        try:
            with transaction(self.db):
                appointment.status = int(new_status)
        except SQLAlchemyError:
            logger.exception(f"Failed to update status of appointment {appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        return ServiceResult.success("Appointment status updated successfully", appointment)

    def list_for_doctor(self, patient_name: Optional[str], day: date, token: str) -> ServiceResult:
        """The calling doctor's appointments on ``day``, optionally narrowed by patient name."""
        doctor_id = self.resolver.resolve_doctor_id(token)
        if doctor_id is None:
            return ServiceResult.failure(Outcome.INVALID_CREDENTIAL, "Invalid or expired token")

        start, end = day_bounds(day)
        try:
            appointments = (
                self.db.query(Appointment)
                .filter(
                    Appointment.doctor_id == doctor_id,
                    Appointment.appointment_time >= start,
                    Appointment.appointment_time <= end,
                )
                .order_by(Appointment.appointment_time)
                .all()
            )
            responses = build_responses(self.store, appointments)
        except SQLAlchemyError:
            logger.exception(f"Failed to list appointments for doctor {doctor_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, STORAGE_ERROR_MESSAGE)

        # Name filtering happens after the fetch
        needle = (patient_name or "").strip().lower()
        if needle:
            responses = [
                item for item in responses
                if item.patient_name and needle in item.patient_name.lower()
            ]

        return ServiceResult.success("Appointments retrieved successfully", responses)

    def describe(self, appointment: Appointment) -> AppointmentResponse:
        return build_responses(self.store, [appointment])[0]
