from typing import Optional
from pydantic import BaseModel, field_validator

from ..core.security import UserRole

class LoginRequest(BaseModel):
    """Username for admins, email for doctors and patients."""
    identifier: str
    password: str

    @field_validator("identifier")
    @classmethod
    def normalize_identifier(cls, value: str) -> str:
        normalized = value.strip()
        if not normalized:
            raise ValueError("Identifier is required.")
        return normalized

class MessageResponse(BaseModel):
    message: str

class TokenResponse(BaseModel):
    message: str
    token: str
    token_type: str = "bearer"
    expires_in: int

class TokenStatusResponse(BaseModel):
    valid: bool
    subject: str
    role: Optional[UserRole] = None
    remaining_seconds: float
