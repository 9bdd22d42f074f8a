from datetime import datetime, timedelta, timezone
from typing import Callable
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from fastapi import HTTPException, status
from fastapi.security import HTTPBearer
from pydantic import BaseModel, ValidationError, field_validator
from enum import Enum
import logging

from .config import Settings

logger = logging.getLogger(__name__)

# Password hashing
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

# Bearer extraction; a missing header is rejected by the dependencies, not here
security = HTTPBearer(auto_error=False)

MIN_SECRET_KEY_BYTES = 32
REMAINING_LIFETIME_SENTINEL = -1.0

class UserRole(str, Enum):
    ADMIN = "admin"
    DOCTOR = "doctor"
    PATIENT = "patient"

# Password utilities
def verify_password(plain_password: str, hashed_password: str) -> bool:
    """Verify a plain password against its hash."""
    return pwd_context.verify(plain_password, hashed_password)

def hash_password(password: str) -> str:
    """Generate password hash."""
    return pwd_context.hash(password)

def utc_now() -> datetime:
    return datetime.now(timezone.utc)

# Token verification failures
class CredentialError(Exception):
    """Base class for bearer token verification failures."""

class ExpiredCredential(CredentialError):
    pass

class MalformedCredential(CredentialError):
    pass

class TokenConfig(BaseModel):
    """Signing key and token lifetime, fixed for the life of the process."""
    secret_key: str
    algorithm: str = "HS256"
    lifetime: timedelta

    class Config:
        frozen = True

    @field_validator("secret_key")
    @classmethod
    def validate_secret_key(cls, value: str) -> str:
        if len(value.encode("utf-8")) < MIN_SECRET_KEY_BYTES:
            raise ValueError(f"Signing key must be at least {MIN_SECRET_KEY_BYTES} bytes")
        return value

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenConfig":
        return cls(
            secret_key=settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
            lifetime=timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES),
        )

class TokenClaims(BaseModel):
    sub: str
    iat: int
    exp: int

class TokenAuthority:
    """Issues and verifies self-contained signed bearer tokens.

    A token carries only the subject identifier and its issue/expiry
    timestamps; the caller's role is worked out later against the
    credential store. Nothing is kept server-side.
    """

    def __init__(self, config: TokenConfig, clock: Callable[[], datetime] = utc_now):
        self.config = config
        self.clock = clock

    def issue(self, subject: str) -> str:
        """Create a signed token for ``subject``."""
        issued_at = int(self.clock().timestamp())
        payload = {
            "sub": subject,
            "iat": issued_at,
            "exp": issued_at + int(self.config.lifetime.total_seconds()),
        }
        return jwt.encode(payload, self.config.secret_key, algorithm=self.config.algorithm)

    def decode_claims(self, token: str) -> TokenClaims:
        """Check the signature and expiry and return the token's claims.

        Raises ``MalformedCredential`` for a bad signature or unreadable
        payload and ``ExpiredCredential`` once the clock is past ``exp``.
        """
        try:
            payload = jwt.decode(
                token,
                self.config.secret_key,
                algorithms=[self.config.algorithm],
                options={"verify_exp": False},
            )
            claims = TokenClaims(**payload)
        except ExpiredSignatureError as exc:
            raise ExpiredCredential("Token has expired") from exc
        except (JWTError, ValidationError, TypeError) as exc:
            raise MalformedCredential("Invalid token") from exc

        if self.clock().timestamp() > claims.exp:
            raise ExpiredCredential("Token has expired")
        return claims

    def verify(self, token: str) -> str:
        """Return the subject identifier of a valid, unexpired token."""
        return self.decode_claims(token).sub

    def remaining_lifetime(self, token: str) -> float:
        """Seconds left before expiry, or -1 once the token is unusable."""
        try:
            claims = self.decode_claims(token)
        except CredentialError as exc:
            logger.warning(f"Failed to compute token remaining time: {exc}")
            return REMAINING_LIFETIME_SENTINEL

        remaining = claims.exp - self.clock().timestamp()
        if remaining <= 0:
            return REMAINING_LIFETIME_SENTINEL
        return remaining

# Security exceptions
class AuthenticationError(HTTPException):
    def __init__(self, detail: str = "Could not validate credentials"):
        super().__init__(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=detail,
            headers={"WWW-Authenticate": "Bearer"},
        )
