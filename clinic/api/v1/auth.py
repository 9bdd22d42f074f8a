from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ...core.database import get_db
from ...core.security import (
    AuthenticationError, CredentialError, ExpiredCredential,
    TokenAuthority, UserRole
)
from ...api.deps import (
    INVALID_TOKEN_MESSAGE, get_bearer_token, get_role_resolver,
    get_token_authority, unwrap
)
from ...services.auth_service import AuthService
from ...services.role_resolver import RoleResolver
from ...schemas.auth import LoginRequest, MessageResponse, TokenResponse, TokenStatusResponse

router = APIRouter(prefix="/auth", tags=["Authentication"])

@router.post("/{role}/login", response_model=TokenResponse)
def login(
    role: UserRole,
    credentials: LoginRequest,
    db: Session = Depends(get_db),
    authority: TokenAuthority = Depends(get_token_authority)
):
    """Authenticate an admin (username) or a doctor/patient (email) and return a token."""
    return unwrap(AuthService(db, authority).login(role, credentials))

@router.get("/{role}/validate", response_model=MessageResponse)
def validate_token(
    role: UserRole,
    token: str = Depends(get_bearer_token),
    resolver: RoleResolver = Depends(get_role_resolver)
):
    """Check that the bearer token belongs to an existing user of ``role``."""
    if not resolver.resolve_role(token, role):
        raise AuthenticationError(INVALID_TOKEN_MESSAGE)
    return MessageResponse(message=f"Valid {role.value} token")

@router.post("/verify-token", response_model=TokenStatusResponse)
def verify_token(
    token: str = Depends(get_bearer_token),
    authority: TokenAuthority = Depends(get_token_authority),
    resolver: RoleResolver = Depends(get_role_resolver)
):
    """Describe a token: its subject, the role it resolves to and the time it has left."""
    try:
        claims = authority.decode_claims(token)
    except ExpiredCredential:
        raise AuthenticationError("Token has expired")
    except CredentialError:
        raise AuthenticationError("Invalid token")

    return TokenStatusResponse(
        valid=True,
        subject=claims.sub,
        role=resolver.infer_role(token),
        remaining_seconds=authority.remaining_lifetime(token),
    )
