"""
Calendar operations on the user's primary Google calendar.

Each method takes an already-built ``CalendarClient``; obtaining one goes
through ``CalendarClientFactory``, which runs the authorization gate and the
token manager first.
"""

from __future__ import annotations

import logging
import random
import time
from datetime import datetime
from typing import Any, Dict, List, Optional

from calendar_api.schemas import (
    CreateEventRequest,
    EventUpdates,
    FetchEventsRequest,
)
from connectors.client import CalendarClient
from utils.timeutils import as_utc, day_bounds_utc

logger = logging.getLogger(__name__)

_MEET_LOCATION = "google meet"


def _parse_event_time(value: Optional[Dict[str, Any]]) -> Optional[datetime]:
    """Timed events carry ``dateTime``; all-day events only ``date`` and are skipped."""
    if not value or not value.get("dateTime"):
        return None
    return as_utc(datetime.fromisoformat(value["dateTime"].replace("Z", "+00:00")))


def _is_meet(location: Optional[str]) -> bool:
    return isinstance(location, str) and location.strip().lower() == _MEET_LOCATION


class CalendarService:
    def __init__(self, client: CalendarClient):
        self.client = client

    async def check_conflict(self, start: datetime, end: datetime) -> Dict[str, Any]:
        """Return timed, non-cancelled events overlapping ``[start, end)``."""
        start, end = as_utc(start), as_utc(end)
        data = await self.client.list_events(
            timeMin=start.isoformat(),
            timeMax=end.isoformat(),
            singleEvents=True,
            orderBy="startTime",
        )

        conflicts: List[Dict[str, Any]] = []
        for event in data.get("items", []):
            if event.get("status") == "cancelled":
                continue
            event_start = _parse_event_time(event.get("start"))
            event_end = _parse_event_time(event.get("end"))
            if event_start is None or event_end is None:
                continue
            if event_start < end and start < event_end:
                conflicts.append(
                    {
                        "id": event.get("id"),
                        "summary": event.get("summary"),
                        "start": {"dateTime": event_start.isoformat()},
                        "end": {"dateTime": event_end.isoformat()},
                    }
                )

        return {"conflict": bool(conflicts), "conflicting_events": conflicts}

    async def create_event(self, req: CreateEventRequest) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "summary": req.title,
            "start": {"dateTime": as_utc(req.start_time).isoformat()},
            "end": {"dateTime": as_utc(req.end_time).isoformat()},
        }
        if req.description is not None:
            body["description"] = req.description
        if req.participants:
            body["attendees"] = [{"email": email} for email in req.participants]
        if req.reminders is not None:
            body["reminders"] = req.reminders.model_dump()

        conference_version = None
        if _is_meet(req.location):
            # "Google Meet" is a request for a video link, not a place
            body["conferenceData"] = {
                "createRequest": {
                    "requestId": f"meet-{int(time.time() * 1000)}-{random.randint(0, 9999)}",
                    "conferenceSolutionKey": {"type": "hangoutsMeet"},
                }
            }
            conference_version = 1
        elif req.location:
            body["location"] = req.location

        event = await self.client.insert_event(body, conference_data_version=conference_version)
        logger.info("Created event %s for user %s", event.get("id"), self.client.user_id)
        return {
            "success": True,
            "event_id": event.get("id"),
            "meet_link": event.get("hangoutLink"),
            "start_time": (event.get("start") or {}).get("dateTime"),
            "end_time": (event.get("end") or {}).get("dateTime"),
        }

    async def edit_event(self, event_id: str, updates: EventUpdates) -> Dict[str, Any]:
        return await self.client.patch_event(event_id, updates.to_patch_body())

    async def delete_event(self, event_id: str) -> Dict[str, Any]:
        await self.client.delete_event(event_id)
        logger.info("Deleted event %s for user %s", event_id, self.client.user_id)
        return {"success": True}

    async def fetch_event(self, event_id: str) -> Dict[str, Any]:
        return await self.client.get_event(event_id)

    async def fetch_events(
        self, req: FetchEventsRequest, user_timezone: Optional[str] = None
    ) -> List[Dict[str, Any]]:
        """
        List events.  ``req.date`` selects that whole day in the user's
        timezone and overrides ``time_min`` / ``time_max``.
        """
        params: Dict[str, Any] = {
            "singleEvents": True,
            "orderBy": "startTime",
            "maxResults": req.max_results,
        }
        time_min, time_max = req.time_min, req.time_max
        if req.date is not None:
            time_min, time_max = day_bounds_utc(req.date, user_timezone)
        if time_min is not None:
            params["timeMin"] = as_utc(time_min).isoformat()
        if time_max is not None:
            params["timeMax"] = as_utc(time_max).isoformat()
        if req.query:
            params["q"] = req.query

        data = await self.client.list_events(**params)
        return data.get("items", [])

    async def reschedule_event(
        self, event_id: str, new_start: datetime, new_end: datetime
    ) -> Dict[str, Any]:
        return await self.client.patch_event(
            event_id,
            {
                "start": {"dateTime": as_utc(new_start).isoformat()},
                "end": {"dateTime": as_utc(new_end).isoformat()},
            },
        )
