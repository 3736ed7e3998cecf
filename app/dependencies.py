"""FastAPI dependencies."""

from typing import Annotated

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.exceptions import UnauthorizedException
from app.core.redis_client import CacheManager, get_cache_manager
from app.core.security import StaffClaims, read_staff_claims
from app.database import get_db

# Security
security = HTTPBearer()


async def get_current_user(
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
) -> StaffClaims:
    """
    Resolve the calling staff member and their clinic from the bearer token.

    Raises:
        UnauthorizedException: If the token is invalid, expired or lacks a clinic
    """
    claims = read_staff_claims(credentials.credentials)
    if claims is None:
        raise UnauthorizedException()
    return claims


# Type aliases for dependency injection
DatabaseSession = Annotated[AsyncSession, Depends(get_db)]
CurrentUser = Annotated[StaffClaims, Depends(get_current_user)]
Cache = Annotated[CacheManager | None, Depends(get_cache_manager)]
