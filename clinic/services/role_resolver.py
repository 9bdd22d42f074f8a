from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from typing import Optional, Union
import logging

from ..core.security import CredentialError, TokenAuthority, UserRole
from .credential_store import CredentialStore

logger = logging.getLogger(__name__)

# Probe order for role inference; the first partition holding the subject wins
ROLE_PROBE_ORDER = (UserRole.ADMIN, UserRole.DOCTOR, UserRole.PATIENT)

class RoleResolver:
    """Maps a bearer token to a role and to the caller's own records.

    None of these methods raise: a token that fails verification, an
    unknown role name or a lookup error all come back as False / None.
    """

    def __init__(self, db: Session, authority: TokenAuthority):
        self.store = CredentialStore(db)
        self.authority = authority

    def _subject(self, token: str) -> Optional[str]:
        try:
            return self.authority.verify(token)
        except CredentialError as exc:
            logger.warning(f"Token validation failed: {exc}")
            return None

    def _holds(self, role: UserRole, subject: str) -> bool:
        try:
            return self.store.find_identity(role, subject) is not None
        except SQLAlchemyError:
            logger.exception(f"Failed to look up {role.value} identity")
            return False

    def resolve_role(self, token: str, claimed_role: Union[UserRole, str]) -> bool:
        """True when the token is valid and its subject exists as ``claimed_role``."""
        try:
            role = UserRole(str(getattr(claimed_role, "value", claimed_role)).lower())
        except ValueError:
            return False

        subject = self._subject(token)
        if subject is None:
            return False
        return self._holds(role, subject)

    def infer_role(self, token: str) -> Optional[UserRole]:
        subject = self._subject(token)
        if subject is None:
            return None
        for role in ROLE_PROBE_ORDER:
            if self._holds(role, subject):
                return role
        return None

    def resolve_doctor_id(self, token: str) -> Optional[int]:
        subject = self._subject(token)
        if subject is None:
            return None
        try:
            doctor = self.store.find_doctor_by_email(subject)
        except SQLAlchemyError:
            logger.exception("Failed to extract doctor id")
            return None
        return doctor.id if doctor else None

    def resolve_patient_id(self, token: str) -> Optional[int]:
        subject = self._subject(token)
        if subject is None:
            return None
        try:
            patient = self.store.find_patient_by_email(subject)
        except SQLAlchemyError:
            logger.exception("Failed to extract patient id")
            return None
        return patient.id if patient else None
