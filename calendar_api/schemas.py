"""
Request bodies for the calendar routes: one explicit model per operation.
"""

from __future__ import annotations

from datetime import date as date_type, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, EmailStr, Field, model_validator

from utils.timeutils import as_utc


class _TimeRange(BaseModel):
    @model_validator(mode="after")
    def _end_after_start(self):
        start, end = self._range()
        if start is not None and end is not None and as_utc(end) <= as_utc(start):
            raise ValueError("end must be after start")
        return self

    def _range(self):
        return None, None


class CheckConflictRequest(_TimeRange):
    start: datetime
    end: datetime

    def _range(self):
        return self.start, self.end


class Reminder(BaseModel):
    method: str = Field("popup", pattern="^(email|popup)$")
    minutes: int = Field(..., ge=0, le=40320)


class Reminders(BaseModel):
    useDefault: bool = False
    overrides: List[Reminder] = Field(default_factory=list)


class CreateEventRequest(_TimeRange):
    title: str = Field(..., min_length=1, max_length=1024)
    start_time: datetime
    end_time: datetime
    description: Optional[str] = None
    participants: List[EmailStr] = Field(default_factory=list)
    location: Optional[str] = None
    reminders: Optional[Reminders] = None

    def _range(self):
        return self.start_time, self.end_time


class EventUpdates(BaseModel):
    """Fields a caller may change on an existing event."""

    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = Field(None, min_length=1, max_length=1024)
    description: Optional[str] = None
    location: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    participants: Optional[List[EmailStr]] = None
    reminders: Optional[Reminders] = None

    def to_patch_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        fields = self.model_fields_set
        if "title" in fields:
            body["summary"] = self.title
        if "description" in fields:
            body["description"] = self.description
        if "location" in fields:
            body["location"] = self.location
        if "start_time" in fields and self.start_time is not None:
            body["start"] = {"dateTime": as_utc(self.start_time).isoformat()}
        if "end_time" in fields and self.end_time is not None:
            body["end"] = {"dateTime": as_utc(self.end_time).isoformat()}
        if "participants" in fields:
            body["attendees"] = [{"email": e} for e in self.participants or []]
        if "reminders" in fields and self.reminders is not None:
            body["reminders"] = self.reminders.model_dump()
        return body


class EditEventRequest(BaseModel):
    event_id: str = Field(..., min_length=1)
    updates: EventUpdates


class DeleteEventRequest(BaseModel):
    event_id: str = Field(..., min_length=1)


class RescheduleEventRequest(_TimeRange):
    event_id: str = Field(..., min_length=1)
    new_start: datetime
    new_end: datetime

    def _range(self):
        return self.new_start, self.new_end


class FetchEventsRequest(_TimeRange):
    time_min: Optional[datetime] = None
    time_max: Optional[datetime] = None
    date: Optional[date_type] = None
    max_results: int = Field(50, ge=1, le=2500)
    query: Optional[str] = None

    def _range(self):
        return self.time_min, self.time_max
