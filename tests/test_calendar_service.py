"""
Tests for calendar operations, with the remote client mocked out.
"""

from datetime import date, datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from pydantic import ValidationError

from calendar_api.schemas import (
    CheckConflictRequest,
    CreateEventRequest,
    EditEventRequest,
    EventUpdates,
    FetchEventsRequest,
)
from calendar_api.service import CalendarService
from utils.timeutils import day_bounds_utc


def _client(**methods):
    client = MagicMock()
    client.user_id = "u1"
    for name, value in methods.items():
        setattr(client, name, AsyncMock(return_value=value))
    return client


def _event(event_id, start, end, **extra):
    return {"id": event_id, "start": {"dateTime": start}, "end": {"dateTime": end}, **extra}


START = datetime(2025, 3, 10, 10, 0, tzinfo=timezone.utc)
END = datetime(2025, 3, 10, 11, 0, tzinfo=timezone.utc)


class TestCheckConflict:
    @pytest.mark.asyncio
    async def test_overlapping_event_is_a_conflict(self):
        client = _client(
            list_events={"items": [_event("e1", "2025-03-10T10:30:00Z", "2025-03-10T11:30:00Z")]}
        )
        result = await CalendarService(client).check_conflict(START, END)

        assert result["conflict"] is True
        assert [e["id"] for e in result["conflicting_events"]] == ["e1"]

    @pytest.mark.asyncio
    async def test_touching_events_do_not_conflict(self):
        client = _client(
            list_events={
                "items": [
                    _event("before", "2025-03-10T09:00:00Z", "2025-03-10T10:00:00Z"),
                    _event("after", "2025-03-10T11:00:00Z", "2025-03-10T12:00:00Z"),
                ]
            }
        )
        result = await CalendarService(client).check_conflict(START, END)
        assert result == {"conflict": False, "conflicting_events": []}

    @pytest.mark.asyncio
    async def test_cancelled_and_all_day_events_are_ignored(self):
        client = _client(
            list_events={
                "items": [
                    _event(
                        "gone",
                        "2025-03-10T10:00:00Z",
                        "2025-03-10T11:00:00Z",
                        status="cancelled",
                    ),
                    {"id": "holiday", "start": {"date": "2025-03-10"}, "end": {"date": "2025-03-11"}},
                ]
            }
        )
        result = await CalendarService(client).check_conflict(START, END)
        assert result["conflict"] is False

    @pytest.mark.asyncio
    async def test_offset_times_are_compared_in_utc(self):
        client = _client(
            list_events={
                "items": [_event("e1", "2025-03-10T11:30:00+01:00", "2025-03-10T12:30:00+01:00")]
            }
        )
        result = await CalendarService(client).check_conflict(START, END)
        assert result["conflict"] is True


class TestCreateEvent:
    @pytest.mark.asyncio
    async def test_google_meet_location_requests_conference(self):
        client = _client(
            insert_event={
                "id": "evt-1",
                "hangoutLink": "https://meet.google.com/abc",
                "start": {"dateTime": "2025-03-10T10:00:00Z"},
                "end": {"dateTime": "2025-03-10T11:00:00Z"},
            }
        )
        req = CreateEventRequest(
            title="Sync", start_time=START, end_time=END, location="Google Meet"
        )

        result = await CalendarService(client).create_event(req)

        body = client.insert_event.call_args.args[0]
        assert "location" not in body
        assert body["conferenceData"]["createRequest"]["conferenceSolutionKey"] == {
            "type": "hangoutsMeet"
        }
        assert client.insert_event.call_args.kwargs["conference_data_version"] == 1
        assert result["success"] is True
        assert result["event_id"] == "evt-1"
        assert result["meet_link"] == "https://meet.google.com/abc"

    @pytest.mark.asyncio
    async def test_plain_location_and_attendees(self):
        client = _client(insert_event={"id": "evt-2"})
        req = CreateEventRequest(
            title="Lunch",
            start_time=START,
            end_time=END,
            location="Cafe",
            participants=["bob@example.com"],
        )

        result = await CalendarService(client).create_event(req)

        body = client.insert_event.call_args.args[0]
        assert body["location"] == "Cafe"
        assert body["attendees"] == [{"email": "bob@example.com"}]
        assert client.insert_event.call_args.kwargs["conference_data_version"] is None
        assert result["meet_link"] is None

    def test_end_before_start_is_rejected(self):
        with pytest.raises(ValidationError):
            CreateEventRequest(title="Backwards", start_time=END, end_time=START)


class TestEditAndReschedule:
    def test_patch_body_contains_only_given_fields(self):
        updates = EventUpdates(title="Renamed", end_time=END)
        assert updates.to_patch_body() == {
            "summary": "Renamed",
            "end": {"dateTime": END.isoformat()},
        }

    def test_unknown_update_field_is_rejected(self):
        with pytest.raises(ValidationError):
            EditEventRequest(event_id="evt-1", updates={"colour": "red"})

    @pytest.mark.asyncio
    async def test_reschedule_patches_start_and_end(self):
        client = _client(patch_event={"id": "evt-1"})
        await CalendarService(client).reschedule_event("evt-1", START, END)

        client.patch_event.assert_awaited_once_with(
            "evt-1",
            {"start": {"dateTime": START.isoformat()}, "end": {"dateTime": END.isoformat()}},
        )

    @pytest.mark.asyncio
    async def test_delete(self):
        client = _client(delete_event=None)
        assert await CalendarService(client).delete_event("evt-1") == {"success": True}
        client.delete_event.assert_awaited_once_with("evt-1")


class TestFetchEvents:
    @pytest.mark.asyncio
    async def test_date_selects_whole_day_in_user_timezone(self):
        client = _client(list_events={"items": [{"id": "e1"}]})
        req = FetchEventsRequest(date=date(2025, 3, 10))

        events = await CalendarService(client).fetch_events(req, "America/New_York")

        params = client.list_events.call_args.kwargs
        assert params["timeMin"] == "2025-03-10T04:00:00+00:00"
        assert params["timeMax"] == "2025-03-11T04:00:00+00:00"
        assert events == [{"id": "e1"}]

    @pytest.mark.asyncio
    async def test_explicit_range_and_query(self):
        client = _client(list_events={})
        req = FetchEventsRequest(time_min=START, time_max=END, query="standup", max_results=5)

        events = await CalendarService(client).fetch_events(req)

        params = client.list_events.call_args.kwargs
        assert params["timeMin"] == START.isoformat()
        assert params["q"] == "standup"
        assert params["maxResults"] == 5
        assert events == []

    def test_day_bounds_default_to_utc(self):
        start, end = day_bounds_utc(date(2025, 3, 10), None)
        assert start == datetime(2025, 3, 10, tzinfo=timezone.utc)
        assert end == datetime(2025, 3, 11, tzinfo=timezone.utc)
