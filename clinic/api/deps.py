from fastapi import Depends, HTTPException, Request
from fastapi.security import HTTPAuthorizationCredentials
from sqlalchemy.orm import Session
from typing import Any, Optional

from ..core.database import get_db, get_redis
from ..core.outcomes import ServiceResult
from ..core.security import security, AuthenticationError, TokenAuthority, UserRole
from ..services.appointment_service import SchedulingService
from ..services.prescription_service import PrescriptionService, PrescriptionStore
from ..services.role_resolver import RoleResolver

INVALID_TOKEN_MESSAGE = "Invalid or expired token"

def unwrap(result: ServiceResult) -> Any:
    """Return the payload of a successful result or raise the matching HTTP error."""
    if not result.ok:
        raise HTTPException(status_code=result.status_code, detail=result.message)
    return result.data

async def get_bearer_token(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> str:
    """Extract the raw token from an ``Authorization: Bearer`` header."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Missing or invalid Authorization header")
    return credentials.credentials

def get_token_authority(request: Request) -> TokenAuthority:
    return request.app.state.token_authority

def get_role_resolver(
    db: Session = Depends(get_db),
    authority: TokenAuthority = Depends(get_token_authority)
) -> RoleResolver:
    return RoleResolver(db, authority)

def get_scheduling_service(
    db: Session = Depends(get_db),
    resolver: RoleResolver = Depends(get_role_resolver)
) -> SchedulingService:
    return SchedulingService(db, resolver)

def get_prescription_service(
    db: Session = Depends(get_db),
    redis_client = Depends(get_redis),
    scheduling: SchedulingService = Depends(get_scheduling_service)
) -> PrescriptionService:
    return PrescriptionService(db, PrescriptionStore(redis_client), scheduling)

# Role-based access control dependencies
def require_role(*allowed_roles: UserRole):
    """Create a dependency that accepts a token resolving to any of ``allowed_roles``."""
    def role_checker(
        token: str = Depends(get_bearer_token),
        resolver: RoleResolver = Depends(get_role_resolver)
    ) -> str:
        if not any(resolver.resolve_role(token, role) for role in allowed_roles):
            raise AuthenticationError(INVALID_TOKEN_MESSAGE)
        return token

    return role_checker

require_admin = require_role(UserRole.ADMIN)
require_doctor = require_role(UserRole.DOCTOR)
require_patient = require_role(UserRole.PATIENT)
require_doctor_or_patient = require_role(UserRole.DOCTOR, UserRole.PATIENT)

def get_current_patient_id(
    token: str = Depends(require_patient),
    resolver: RoleResolver = Depends(get_role_resolver)
) -> int:
    """Numeric id of the patient the token belongs to."""
    patient_id = resolver.resolve_patient_id(token)
    if patient_id is None:
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)
    return patient_id
