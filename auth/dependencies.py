"""
FastAPI dependencies for authentication.

Provides ``db_session`` and ``get_current_user_id``.  The latter is the only
place a principal id comes from: routes never read a user id out of the
request body, query string or path.
"""

from __future__ import annotations

from typing import AsyncGenerator, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from auth.jwt import ACCESS, verify_token
from database.session import get_db_session
from utils.errors import Unauthenticated

_bearer_scheme = HTTPBearer(auto_error=False)


async def db_session(
    session: AsyncSession = Depends(get_db_session),
) -> AsyncGenerator[AsyncSession, None]:
    """Yield a DB session for route handlers."""
    yield session


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer_scheme),
) -> str:
    """
    Extract and verify the Bearer access token, returning the authenticated
    ``user_id`` (UUID string).
    """
    if credentials is None or not credentials.credentials:
        raise Unauthenticated()
    return verify_token(credentials.credentials, ACCESS)
