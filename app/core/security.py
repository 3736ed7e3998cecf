"""Staff token handling.

Tokens are issued by the clinic's auth service. This API verifies them and
reads who is acting (``sub``) and for which clinic (``clinic_id``); every
scheduling query is scoped to that clinic.
"""

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any
from uuid import UUID

from jose import JWTError, jwt

from app.config import settings

TOKEN_TYPE = "access"


@dataclass(frozen=True)
class StaffClaims:
    """Authenticated caller: the staff user and the clinic (tenant) they act for."""

    user_id: UUID
    clinic_id: UUID


def create_access_token(
    data: dict[str, Any],
    expires_delta: timedelta | None = None,
) -> str:
    """
    Sign a staff access token.

    Used by tests and local tooling to mint tokens the auth service would issue.

    Args:
        data: Claims to encode (``sub`` and ``clinic_id`` expected)
        expires_delta: Lifetime, defaults to ACCESS_TOKEN_EXPIRE_MINUTES

    Returns:
        Encoded JWT
    """
    issued_at = datetime.now(UTC)
    lifetime = expires_delta or timedelta(minutes=settings.access_token_expire_minutes)

    claims = {**data, "iat": issued_at, "exp": issued_at + lifetime, "type": TOKEN_TYPE}
    return jwt.encode(claims, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_access_token(token: str) -> dict[str, Any] | None:
    """Verify signature, expiry and token type; None when any check fails."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        return None

    if payload.get("type") != TOKEN_TYPE:
        return None
    return payload


def read_staff_claims(token: str) -> StaffClaims | None:
    """
    Extract the caller and clinic from a token.

    Returns:
        The claims, or None when the token is invalid or either ID is
        missing or not a UUID
    """
    payload = decode_access_token(token)
    if payload is None:
        return None

    user_id = payload.get("sub")
    clinic_id = payload.get("clinic_id")
    if not isinstance(user_id, str) or not isinstance(clinic_id, str):
        return None

    try:
        return StaffClaims(user_id=UUID(user_id), clinic_id=UUID(clinic_id))
    except ValueError:
        return None
