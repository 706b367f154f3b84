"""
Auth API routes: magic-link login, session refresh, profile.

Route prefix: /api/v1/auth
"""

from __future__ import annotations

import logging
import uuid
from datetime import time, timedelta
from typing import Any, Dict, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from fastapi import APIRouter, Depends, HTTPException, status
from pydantic import BaseModel, EmailStr, Field, field_validator
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from auth import mailer
from auth.dependencies import db_session, get_current_user_id
from auth.jwt import (
    MAGIC,
    REFRESH,
    create_access_token,
    create_magic_link_token,
    create_refresh_token,
    verify_token,
)
from auth.models import User
from config.settings import config
from utils.errors import Unauthenticated
from utils.timeutils import as_utc, utcnow

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# ── Request / response schemas ─────────────────────────────────────────


class MagicLinkRequest(BaseModel):
    email: EmailStr
    name: Optional[str] = Field(None, min_length=1, max_length=128)


class VerifyRequest(BaseModel):
    token: str = Field(..., min_length=1)


class RefreshRequest(BaseModel):
    refresh_token: str = Field(..., min_length=1)


class PreferencesRequest(BaseModel):
    timezone: Optional[str] = None
    work_day_start: Optional[time] = None
    work_day_end: Optional[time] = None

    @field_validator("timezone")
    @classmethod
    def _known_timezone(cls, value: Optional[str]) -> Optional[str]:
        if value is None:
            return value
        try:
            ZoneInfo(value)
        except (ZoneInfoNotFoundError, ValueError):
            raise ValueError(f"unknown timezone: {value}")
        return value


def _user_out(user: User) -> Dict[str, Any]:
    return {
        "id": str(user.user_id),
        "email": user.email,
        "name": user.display_name,
        "timezone": user.timezone,
        "work_day_start": user.work_day_start.isoformat() if user.work_day_start else None,
        "work_day_end": user.work_day_end.isoformat() if user.work_day_end else None,
    }


# ── Endpoints ──────────────────────────────────────────────────────────


@router.post("/magic-link")
async def request_magic_link(
    req: MagicLinkRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    """Create the user on first contact, then email a single-use login link."""
    result = await session.execute(select(User).where(User.email == req.email))
    user = result.scalar_one_or_none()

    if user is None:
        if not req.name:
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Name is required for new users.",
            )
        user = User(user_id=uuid.uuid4(), email=req.email, display_name=req.name)
        session.add(user)
        await session.flush()
        logger.info("Registered user %s", user.user_id)
    elif req.name and not user.display_name:
        user.display_name = req.name

    token = create_magic_link_token(str(user.user_id))
    user.magic_link_token = token
    user.magic_link_expires_at = utcnow() + timedelta(
        seconds=config.magic_link_expiry_seconds
    )
    await session.commit()

    link = f"{config.frontend_url.rstrip('/')}/magic-link/verify?token={token}"
    await mailer.send_magic_link(req.email, link)
    return {"message": "Magic link sent if email exists."}


@router.post("/magic-link/verify")
async def verify_magic_link(
    req: VerifyRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    """Consume a magic link and start a session."""
    invalid = Unauthenticated("Invalid or expired magic link")
    try:
        user_id = verify_token(req.token, MAGIC)
    except Unauthenticated:
        raise invalid

    user = await session.get(User, uuid.UUID(user_id))
    if (
        user is None
        or user.magic_link_token != req.token
        or user.magic_link_expires_at is None
        or as_utc(user.magic_link_expires_at) < utcnow()
    ):
        raise invalid

    user.magic_link_token = None
    user.magic_link_expires_at = None
    # Only the latest refresh token is stored, so this ends any older session.
    refresh_token = create_refresh_token(user_id)
    user.session_refresh_token = refresh_token
    await session.commit()

    logger.info("Magic link verified for user %s", user_id)
    return {
        "token": create_access_token(user_id),
        "refresh_token": refresh_token,
        "user": _user_out(user),
    }


@router.post("/refresh-token")
async def refresh_session(
    req: RefreshRequest,
    session: AsyncSession = Depends(db_session),
) -> Dict[str, str]:
    """Issue a new access token for the current session refresh token."""
    invalid = Unauthenticated("Invalid or expired refresh token")
    try:
        user_id = verify_token(req.refresh_token, REFRESH)
    except Unauthenticated:
        raise invalid

    user = await session.get(User, uuid.UUID(user_id))
    if user is None or user.session_refresh_token != req.refresh_token:
        raise invalid
    return {"token": create_access_token(user_id)}


@router.get("/me")
async def me(
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    user = await session.get(User, uuid.UUID(user_id))
    if user is None:
        raise Unauthenticated()
    return {"user": _user_out(user)}


@router.patch("/me/preferences")
async def update_preferences(
    req: PreferencesRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
) -> Dict[str, Any]:
    user = await session.get(User, uuid.UUID(user_id))
    if user is None:
        raise Unauthenticated()
    for field in req.model_fields_set:
        setattr(user, field, getattr(req, field))
    await session.flush()
    return {"user": _user_out(user)}
