from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
import logging

from ..core.database import transaction
from ..core.outcomes import Outcome, ServiceResult
from ..core.security import TokenAuthority, UserRole, hash_password, verify_password
from ..models import Admin
from ..schemas.auth import LoginRequest, TokenResponse
from .credential_store import CredentialStore

logger = logging.getLogger(__name__)

class AuthService:
    def __init__(self, db: Session, authority: TokenAuthority):
        self.db = db
        self.authority = authority
        self.store = CredentialStore(db)

    def login(self, role: UserRole, credentials: LoginRequest) -> ServiceResult:
        """Check credentials against one role partition and issue a token."""
        identifier = credentials.identifier
        if role != UserRole.ADMIN:
            # Doctor and patient emails are stored lowercased
            identifier = identifier.lower()

        try:
            identity = self.store.find_identity(role, identifier)
        except SQLAlchemyError:
            logger.exception(f"Failed to look up {role.value} during login")
            return ServiceResult.failure(Outcome.STORAGE_FAILURE, f"Error validating {role.value}")

        if identity is None:
            logger.warning(f"Login attempt for unknown {role.value}: {identifier}")
            return ServiceResult.failure(
                Outcome.INVALID_CREDENTIAL,
                f"{role.value.capitalize()} not found"
            )

        if not verify_password(credentials.password, identity.password_hash):
            logger.warning(f"Invalid password for {role.value}: {identifier}")
            return ServiceResult.failure(Outcome.INVALID_CREDENTIAL, "Invalid credentials")

        token = self.authority.issue(identifier)
        logger.info(f"{role.value.capitalize()} logged in: {identifier}")
        return ServiceResult.success(
            "Login successful",
            TokenResponse(
                message="Login successful",
                token=token,
                expires_in=int(self.authority.config.lifetime.total_seconds()),
            ),
        )

    def ensure_admin(self, username: str, password: str) -> Admin:
        """Create the bootstrap admin account unless it already exists."""
        admin = self.store.find_admin(username)
        if admin:
            return admin

        admin = Admin(username=username, password_hash=hash_password(password))
        with transaction(self.db):
            self.db.add(admin)
        self.db.refresh(admin)
        logger.info(f"Created admin account: {username}")
        return admin
