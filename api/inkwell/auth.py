from __future__ import annotations

import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

import jwt
from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from . import models
from .db import get_db
from .utils.roles import has_role, is_staff

# Security scheme for Bearer token
oauth2_scheme = HTTPBearer(auto_error=False)

# JWT Configuration
# Tokens are issued by the external identity provider with the same shared secret.
JWT_SECRET_KEY = os.getenv("JWT_SECRET_KEY")
if not JWT_SECRET_KEY:
    raise RuntimeError(
        "JWT_SECRET_KEY environment variable is required but not set. "
        "Use the JWT secret of your identity provider."
    )
# Validate minimum key length (256 bits = 32 bytes)
if len(JWT_SECRET_KEY) < 32:
    raise RuntimeError(
        "JWT_SECRET_KEY is too short. Must be at least 32 characters long."
    )
JWT_ALGORITHM = os.getenv("JWT_ALGORITHM", "HS256")
JWT_AUDIENCE = os.getenv("JWT_AUDIENCE") or None
JWT_ACCESS_TOKEN_EXPIRE_MINUTES = int(os.getenv("JWT_ACCESS_TOKEN_EXPIRE_MINUTES", "60"))


@dataclass
class Identity:
    """Verified claims of an external auth identity."""

    id: uuid.UUID
    email: str | None = None


@dataclass(frozen=True)
class AnonymousViewer:
    """A caller without a profile, known only by client IP (guest comments)."""

    ip: str


def create_access_token(identity_id: uuid.UUID, email: str | None = None, expires_in_seconds: int | None = None) -> str:
    """
    Create a JWT access token for an identity.

    Production tokens come from the identity provider; this is used by
    local tooling and tests, and mirrors the provider's claim layout.
    """
    if expires_in_seconds is None:
        expires_in_seconds = JWT_ACCESS_TOKEN_EXPIRE_MINUTES * 60

    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(identity_id),
        "exp": now + timedelta(seconds=expires_in_seconds),
        "iat": now,
    }
    if email:
        payload["email"] = email
    if JWT_AUDIENCE:
        payload["aud"] = JWT_AUDIENCE

    return jwt.encode(payload, JWT_SECRET_KEY, algorithm=JWT_ALGORITHM)


def decode_identity(token: str) -> Identity:
    """Verify a token and return its identity, raising 401 on any failure."""
    try:
        payload = jwt.decode(
            token,
            JWT_SECRET_KEY,
            algorithms=[JWT_ALGORITHM],
            audience=JWT_AUDIENCE,
            options={"verify_aud": JWT_AUDIENCE is not None},
        )
    except jwt.ExpiredSignatureError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Token expired"
        )
    except jwt.InvalidTokenError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token"
        )

    sub = payload.get("sub")
    if not sub:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token: missing sub"
        )
    try:
        identity_id = uuid.UUID(str(sub))
    except ValueError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid identity in token"
        )

    return Identity(id=identity_id, email=payload.get("email"))


async def get_current_identity(
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
) -> Identity:
    """Get the authenticated identity from the Bearer token (no profile required)."""
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Authentication required",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return decode_identity(credentials.credentials)


async def get_current_profile(
    identity: Identity = Depends(get_current_identity),
    db: Session = Depends(get_db),
) -> models.Profile:
    """
    Get the profile of the authenticated identity.

    Raises 403 when the identity has not created a profile yet.
    """
    profile = db.get(models.Profile, identity.id)
    if not profile:
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Profile required. Create one with PUT /profile/me"
        )
    return profile


async def get_current_profile_optional(
    credentials: HTTPAuthorizationCredentials | None = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> models.Profile | None:
    """
    Get current profile if authenticated, None otherwise.

    Used for endpoints that work differently for signed-in vs anonymous callers.
    """
    if credentials is None:
        return None

    try:
        identity = decode_identity(credentials.credentials)
    except HTTPException:
        return None
    return db.get(models.Profile, identity.id)


def require_role(role: str):
    """
    Dependency factory requiring at least ``role`` on the ladder.

    Usage: ``current = Depends(require_role("author"))``
    """

    async def _require(profile: models.Profile = Depends(get_current_profile)) -> models.Profile:
        if not has_role(profile, role):
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"{role.capitalize()} role required"
            )
        return profile

    return _require


def check_ownership(resource_owner_id: uuid.UUID | None, current: models.Profile) -> bool:
    """
    Check if the current profile may manage a resource.

    Returns True if the profile owns it or is an editor/admin.
    """
    if resource_owner_id is not None and resource_owner_id == current.id:
        return True
    return is_staff(current)


def require_ownership(resource_owner_id: uuid.UUID | None, current: models.Profile) -> None:
    """
    Require that the current profile owns a resource or is staff.

    Raises 403 Forbidden if not authorized.
    """
    if not check_ownership(resource_owner_id, current):
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="You don't have permission to access this resource"
        )


def get_client_ip(request: Request) -> str:
    """
    Best guess at the caller's address behind a reverse proxy.

    The left-most ``X-Forwarded-For`` entry wins, then ``X-Real-IP``, then
    the socket peer.
    """
    for header in ("X-Forwarded-For", "X-Real-IP"):
        value = request.headers.get(header)
        if value and value.split(",")[0].strip():
            return value.split(",")[0].strip()
    return request.client.host if request.client else "unknown"


async def get_viewer(
    request: Request,
    profile: models.Profile | None = Depends(get_current_profile_optional),
) -> models.Profile | AnonymousViewer:
    """
    Get the current profile or an anonymous viewer representation.

    Returns:
        - Profile if authenticated and onboarded
        - AnonymousViewer (keyed by client IP) otherwise
    """
    if profile is not None:
        return profile
    return AnonymousViewer(ip=get_client_ip(request))
