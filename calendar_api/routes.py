"""
Calendar API routes.

Route prefix: /api/v1/calendar
"""

from __future__ import annotations

import logging
import uuid
from typing import Any, Dict, List

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from auth.dependencies import db_session, get_current_user_id
from calendar_api.schemas import (
    CheckConflictRequest,
    CreateEventRequest,
    DeleteEventRequest,
    EditEventRequest,
    FetchEventsRequest,
    RescheduleEventRequest,
)
from calendar_api.service import CalendarService
from connectors.client import CalendarClientFactory
from database.models import User

logger = logging.getLogger(__name__)

router = APIRouter(tags=["calendar"])


async def get_client_factory(
    session: AsyncSession = Depends(db_session),
) -> CalendarClientFactory:
    return CalendarClientFactory(session)


async def calendar_service(
    user_id: str = Depends(get_current_user_id),
    factory: CalendarClientFactory = Depends(get_client_factory),
) -> CalendarService:
    """Per-request service bound to a freshly built client for the caller."""
    client = await factory.get_client(user_id)
    return CalendarService(client)


@router.post("/check-conflict")
async def check_conflict(
    req: CheckConflictRequest,
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, Any]:
    return await service.check_conflict(req.start, req.end)


@router.post("/create-event")
async def create_event(
    req: CreateEventRequest,
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, Any]:
    return await service.create_event(req)


@router.post("/edit-event")
async def edit_event(
    req: EditEventRequest,
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, Any]:
    event = await service.edit_event(req.event_id, req.updates)
    return {"success": True, "event": event}


@router.delete("/delete-event")
async def delete_event(
    req: DeleteEventRequest,
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, Any]:
    return await service.delete_event(req.event_id)


@router.get("/events/{event_id}")
async def fetch_event(
    event_id: str,
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, Any]:
    return {"event": await service.fetch_event(event_id)}


@router.post("/fetch-events")
async def fetch_events(
    req: FetchEventsRequest,
    user_id: str = Depends(get_current_user_id),
    session: AsyncSession = Depends(db_session),
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, List[Dict[str, Any]]]:
    user_timezone = None
    if req.date is not None:
        user = await session.get(User, uuid.UUID(user_id))
        user_timezone = user.timezone if user else None
    return {"events": await service.fetch_events(req, user_timezone)}


@router.post("/reschedule-event")
async def reschedule_event(
    req: RescheduleEventRequest,
    service: CalendarService = Depends(calendar_service),
) -> Dict[str, Any]:
    event = await service.reschedule_event(req.event_id, req.new_start, req.new_end)
    return {"success": True, "event": event}
