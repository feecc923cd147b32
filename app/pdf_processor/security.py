"""
Authentication helpers.

Password hashing (bcrypt), bearer token issuing/validation (PyJWT) and the
FastAPI dependencies that enforce role-based access per route group.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone

import bcrypt
import jwt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from .config import Settings, get_settings
from .models_db import RoleName

logger = logging.getLogger(__name__)

JWT_ALGORITHM = "HS256"

# ============================================================
# PASSWORD HASHING
# ============================================================


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode(), bcrypt.gensalt()).decode()


def verify_password(password: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode(), hashed.encode())
    except ValueError:
        # Malformed stored hash
        logger.warning("Stored password hash could not be verified")
        return False


# ============================================================
# JWT
# ============================================================


def create_access_token(
    user_id: str,
    email: str,
    roles: list[str],
    settings: Settings | None = None,
    now: datetime | None = None,
) -> str:
    """
    Build a signed, time-limited bearer token.

    Args:
        user_id: Account id, stored in ``sub``.
        email: Account email.
        roles: Role names held by the account.
        settings: Signing configuration; defaults to the cached settings.
        now: Issue time; defaults to the current UTC time.

    Returns:
        The encoded JWT.
    """
    settings = settings or get_settings()
    issued_at = now or datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "roles": list(roles),
        "iss": settings.jwt_issuer,
        "aud": settings.jwt_audience,
        "iat": issued_at,
        "exp": issued_at + timedelta(minutes=settings.jwt_expiry_minutes),
    }
    return jwt.encode(payload, settings.jwt_key, algorithm=JWT_ALGORITHM)


def decode_access_token(token: str, settings: Settings | None = None) -> dict:
    """Validate signature, issuer, audience and expiry; 401 on any failure."""
    settings = settings or get_settings()
    try:
        return jwt.decode(
            token,
            settings.jwt_key,
            algorithms=[JWT_ALGORITHM],
            audience=settings.jwt_audience,
            issuer=settings.jwt_issuer,
            options={"require": ["exp", "sub"]},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Token expired")
    except jwt.InvalidTokenError:
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Invalid token")


# ============================================================
# REQUEST DEPENDENCIES
# ============================================================

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class CurrentUser:
    id: str
    email: str | None = None
    roles: list[str] = field(default_factory=list)

    def has_role(self, *roles: str) -> bool:
        return any(role in self.roles for role in roles)


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> CurrentUser:
    """Dependency: require a valid bearer token."""
    if credentials is None or credentials.scheme.lower() != "bearer":
        raise HTTPException(status.HTTP_401_UNAUTHORIZED, "Authentication required")

    payload = decode_access_token(credentials.credentials)
    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    return CurrentUser(id=payload["sub"], email=payload.get("email"), roles=list(roles))


def require_roles(*roles: str):
    """Dependency factory: require one of ``roles``."""

    def _dependency(user: CurrentUser = Depends(get_current_user)) -> CurrentUser:
        if not user.has_role(*roles):
            raise HTTPException(status.HTTP_403_FORBIDDEN, "Forbidden")
        return user

    return _dependency


require_admin = require_roles(RoleName.ADMIN.value)
