# core/security.py
from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from sqlmodel import Session

from core.config import Settings, get_settings
from core.database import get_session
from core.errors import AuthError, AuthorizationError
from models.models import User

# Tokens are issued by the hosted identity provider; we only verify them.
bearer_scheme = HTTPBearer(auto_error=False)


# ========================================
# 🔑 Token Helpers
# ========================================
def decode_token(token: str, settings: Settings) -> Dict[str, Any]:
    """Verify an identity-provider JWT and return its claims."""
    options = {"verify_aud": settings.AUTH_JWT_AUDIENCE is not None}
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALGORITHM],
            audience=settings.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except JWTError:
        raise AuthError("Invalid or expired token")


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    settings: Settings = Depends(get_settings),
) -> Dict[str, Any]:
    if credentials is None or not credentials.credentials:
        raise AuthError("Missing access token")
    claims = decode_token(credentials.credentials, settings)
    if not claims.get("sub"):
        raise AuthError("Invalid token payload")
    return claims


# ========================================
# 👤 Authentication & Role Checks
# ========================================
def get_current_user(
    claims: Dict[str, Any] = Depends(get_token_claims),
    session: Session = Depends(get_session),
) -> User:
    """Load the caller's profile row for a verified token."""
    user = session.get(User, claims["sub"])
    if not user:
        raise AuthError("User profile not found. Please create your profile first.")
    if not user.is_active:
        raise AuthorizationError("Account is inactive")
    return user


def get_current_admin(current_user: User = Depends(get_current_user)) -> User:
    """Require a mess admin."""
    if not current_user.is_admin():
        raise AuthorizationError("Admin privileges required")
    if current_user.mess_id is None:
        raise AuthorizationError("Admin is not associated with any mess")
    return current_user


def ensure_same_mess(admin: User, mess_id: Optional[int]) -> None:
    if mess_id != admin.mess_id:
        raise AuthorizationError("Not authorized for this mess")
