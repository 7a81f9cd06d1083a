"""Security utilities for household-scoped JWT bearer tokens.

Human sign-in happens upstream; this service only needs to verify the
bearer token and extract the household it is scoped to.
"""

import hmac
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from finsync.config import settings


def create_access_token(household_id: UUID, expires_delta: timedelta | None = None) -> str:
    """
    Create a JWT access token scoped to a household.

    Args:
        household_id: Household ID to encode in token
        expires_delta: Optional custom expiration time

    Returns:
        Encoded JWT token string
    """
    if expires_delta is None:
        expires_delta = timedelta(minutes=settings.jwt_access_expire_minutes)

    expire = datetime.now(timezone.utc) + expires_delta
    to_encode = {
        "sub": str(household_id),
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def decode_token(token: str) -> dict[str, Any]:
    """
    Decode and verify a JWT token.

    Raises:
        JWTError: If token is invalid or expired
    """
    return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])


def get_household_id_from_token(token: str) -> UUID:
    """
    Extract the household ID from a JWT token.

    Raises:
        JWTError: If token is invalid, expired or not an access token
        ValueError: If the subject is not a valid UUID
    """
    payload = decode_token(token)
    if payload.get("type") != "access":
        raise JWTError("Token is not an access token")
    household_id = payload.get("sub")
    if household_id is None:
        raise JWTError("Token missing 'sub' claim")
    return UUID(household_id)


def verify_cron_secret(provided: str | None) -> bool:
    """Constant-time comparison of the cron trigger secret."""
    expected = settings.cron_secret
    if not expected or not provided:
        return False
    return hmac.compare_digest(provided.encode("utf-8"), expected.encode("utf-8"))
