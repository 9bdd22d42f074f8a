from datetime import datetime
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import List
import logging
import uuid

import redis
from redis.exceptions import RedisError

from ..core.outcomes import Outcome, ServiceResult
from ..models import Appointment, AppointmentStatus
from ..schemas.prescription import Prescription, PrescriptionCreate
from .appointment_service import SchedulingService

logger = logging.getLogger(__name__)

class PrescriptionStore:
    """Prescription documents kept in Redis, one JSON list per appointment."""

    def __init__(self, client: redis.Redis, prefix: str = "prescriptions"):
        self.client = client
        self.prefix = prefix

    def _get_key(self, appointment_id: int) -> str:
        return f"{self.prefix}:{appointment_id}"

    def _get_claim_key(self, appointment_id: int) -> str:
        return f"{self.prefix}:{appointment_id}:claim"

    def find(self, appointment_id: int) -> List[Prescription]:
        raw = self.client.lrange(self._get_key(appointment_id), 0, -1)
        return [Prescription.model_validate_json(item) for item in raw]

    def add(self, prescription: Prescription) -> None:
        self.client.rpush(self._get_key(prescription.appointment_id), prescription.model_dump_json())

    def save(self, data: PrescriptionCreate) -> ServiceResult:
        """Store a prescription unless the appointment already has one.

        The claim key is taken with ``SET NX`` before the document is written,
        so of two concurrent saves only one gets to write.
        """
        prescription = Prescription(
            id=uuid.uuid4().hex,
            created_at=datetime.now(),
            **data.model_dump(),
        )
        try:
            claimed = self.client.set(
                self._get_claim_key(data.appointment_id), prescription.id, nx=True
            )
            if not claimed:
                return ServiceResult.failure(
                    Outcome.CONFLICT,
                    "Prescription already exists for this appointment"
                )
            self.add(prescription)
        except RedisError:
            logger.exception("Error saving prescription")
            self.remove(data.appointment_id, prescription.id)
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error saving prescription")

        logger.info(f"Prescription {prescription.id} saved for appointment {data.appointment_id}")
        return ServiceResult.created("Prescription saved", prescription)

    def remove(self, appointment_id: int, prescription_id: str) -> bool:
        """Drop one saved prescription and release the appointment's claim if it holds it."""
        key = self._get_key(appointment_id)
        claim_key = self._get_claim_key(appointment_id)
        try:
            for item in self.client.lrange(key, 0, -1):
                if Prescription.model_validate_json(item).id == prescription_id:
                    self.client.lrem(key, 1, item)
            if self.client.get(claim_key) == prescription_id:
                self.client.delete(claim_key)
        except RedisError:
            logger.exception(f"Error removing prescription {prescription_id}")
            return False
        return True

    def get(self, appointment_id: int) -> ServiceResult:
        try:
            prescriptions = self.find(appointment_id)
        except RedisError:
            logger.exception("Error retrieving prescription")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error retrieving prescription")

        if not prescriptions:
            return ServiceResult.failure(Outcome.NOT_FOUND, "No prescription found for this appointment")
        return ServiceResult.success("Prescriptions retrieved successfully", prescriptions)

class PrescriptionService:
    """Records a prescription and completes the appointment it belongs to."""

    def __init__(self, db: Session, store: PrescriptionStore, scheduling: SchedulingService):
        self.db = db
        self.store = store
        self.scheduling = scheduling

    def record(self, data: PrescriptionCreate) -> ServiceResult:
        try:
            appointment = self.db.get(Appointment, data.appointment_id)
        except SQLAlchemyError:
            logger.exception(f"Failed to load appointment {data.appointment_id}")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, "Error saving prescription")

        if appointment is None:
            return ServiceResult.failure(Outcome.NOT_FOUND, "Appointment not found")

        saved = self.store.save(data)
        if not saved.ok:
            return saved

        completed = self.scheduling.change_status(data.appointment_id, AppointmentStatus.COMPLETED)
        if not completed.ok:
            logger.error(
                f"Appointment {data.appointment_id} could not be completed, "
                f"withdrawing prescription: {completed.message}"
            )
            self.store.remove(data.appointment_id, saved.data.id)
            return completed

        return saved

    def get(self, appointment_id: int) -> ServiceResult:
        return self.store.get(appointment_id)
