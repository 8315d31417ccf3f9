"""Bearer tokens for dashboard users.

Identity comes from an external provider. This module mints tokens for the
development login and checks the bearer token on every API request; the
claims carry the user id, email and dashboard role.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from fastapi import HTTPException, status
from jose import JWTError, jwt

from src.oneonone.config import get_settings

if TYPE_CHECKING:
    from src.oneonone.directory.schemas import User

ACCESS_TOKEN_TYPE = "access"


def create_access_token(data: dict, expires_delta: timedelta | None = None) -> str:
    """Sign `data` as an access token that expires after the configured lifetime."""
    settings = get_settings()
    now = datetime.now(timezone.utc)
    lifetime = expires_delta or timedelta(minutes=settings.JWT_ACCESS_TOKEN_EXPIRE_MINUTES)
    claims = {**data, "iat": now, "exp": now + lifetime, "type": ACCESS_TOKEN_TYPE}
    return jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def token_for_user(user: User, expires_delta: timedelta | None = None) -> str:
    return create_access_token(
        {"sub": str(user.id), "email": user.email, "role": user.role.value},
        expires_delta=expires_delta,
    )


def decode_claims(token: str) -> dict | None:
    """Claims of a correctly signed, unexpired token, or None."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        return None


def verify_token(token: str, token_type: str = ACCESS_TOKEN_TYPE) -> dict:
    """Decode a bearer token, requiring the expected type and a subject.

    Raises:
        HTTPException(401): If the token is invalid, expired, of the wrong
            type, or has no subject.
    """
    payload = decode_claims(token)
    if payload is None or payload.get("type") != token_type or not payload.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate credentials",
            headers={"WWW-Authenticate": "Bearer"},
        )
    return payload


def email_domain_allowed(email: str) -> bool:
    """True when the email belongs to ALLOWED_EMAIL_DOMAIN (or no domain is set)."""
    domain = get_settings().ALLOWED_EMAIL_DOMAIN.strip().lower()
    if not domain:
        return True
    return email.lower().endswith("@" + domain.lstrip("@"))
