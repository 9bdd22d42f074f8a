from sqlalchemy import or_
from sqlalchemy.orm import Session
from typing import Optional, Union

from ..core.security import UserRole
from ..models import Admin, Doctor, Patient

Identity = Union[Admin, Doctor, Patient]

class CredentialStore:
    """Lookups over the three role partitions.

    Admins are keyed by username, doctors and patients by email. The same
    identifier may exist in more than one partition.
    """

    def __init__(self, db: Session):
        self.db = db

    def find_admin(self, username: str) -> Optional[Admin]:
        return self.db.query(Admin).filter(Admin.username == username).first()

    def find_doctor_by_email(self, email: str) -> Optional[Doctor]:
        return self.db.query(Doctor).filter(Doctor.email == email).first()

    def find_patient_by_email(self, email: str) -> Optional[Patient]:
        return self.db.query(Patient).filter(Patient.email == email).first()

    def find_doctor(self, doctor_id: int) -> Optional[Doctor]:
        return self.db.get(Doctor, doctor_id)

    def find_patient(self, patient_id: int) -> Optional[Patient]:
        return self.db.get(Patient, patient_id)

    def find_identity(self, role: UserRole, identifier: str) -> Optional[Identity]:
        if role == UserRole.ADMIN:
            return self.find_admin(identifier)
        if role == UserRole.DOCTOR:
            return self.find_doctor_by_email(identifier)
        return self.find_patient_by_email(identifier)

    def patient_exists(self, email: str, phone: Optional[str]) -> bool:
        """True when a patient already uses this email or phone number."""
        criteria = [Patient.email == email]
        if phone:
            criteria.append(Patient.phone == phone)
        return self.db.query(Patient.id).filter(or_(*criteria)).first() is not None
