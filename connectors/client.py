"""
Delegated client factory.

``CalendarClientFactory.get_client(principal_id)`` resolves the caller's
Google integration, runs the token manager against it and returns a
:class:`CalendarClient` bound to the now-fresh access token.

Architecture:
  • A new ``CalendarClient`` is built for every request; nothing is cached
    across requests because the token may rotate at any time.
  • The client holds only an access token, so the Google SDK can never
    refresh behind our back; refresh is owned by ``connectors.token_manager``.
  • All sync ``googleapiclient`` calls are offloaded to a thread via
    ``asyncio.to_thread()`` so they never block the event loop.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Dict, Optional

from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError
from sqlalchemy.ext.asyncio import AsyncSession

from auth.gate import UserRef, authorize
from connectors.base import BaseConnector
from connectors.registry import ConnectorRegistry
from connectors.store import IntegrationStore
from connectors.token_manager import TokenRefresher
from utils.errors import ConfigurationError, EventNotFound, NotConnected, ProviderError

logger = logging.getLogger(__name__)

PROVIDER = "google"
PRIMARY_CALENDAR = "primary"


def _build_calendar_service(access_token: str) -> Any:
    creds = Credentials(token=access_token)
    return build("calendar", "v3", credentials=creds, cache_discovery=False)


class CalendarClient:
    """Request-scoped handle for remote calendar operations."""

    def __init__(
        self,
        user_id: str,
        access_token: str,
        *,
        service_builder: Callable[[str], Any] = _build_calendar_service,
    ):
        self.user_id = user_id
        self.access_token = access_token
        self._service_builder = service_builder
        self._service = None

    async def _events(self):
        if self._service is None:
            self._service = await asyncio.to_thread(self._service_builder, self.access_token)
        return self._service.events()

    async def _execute(self, request, op: str) -> Any:
        try:
            return await asyncio.to_thread(request.execute)
        except HttpError as exc:
            status = getattr(exc.resp, "status", None)
            logger.error("Calendar %s failed for user %s: %s", op, self.user_id, exc)
            if status in (404, 410):
                raise EventNotFound()
            raise ProviderError(upstream_status=status)

    async def list_events(self, **params: Any) -> Dict[str, Any]:
        events = await self._events()
        return await self._execute(
            events.list(calendarId=PRIMARY_CALENDAR, **params), "list"
        )

    async def insert_event(
        self, body: Dict[str, Any], conference_data_version: Optional[int] = None
    ) -> Dict[str, Any]:
        events = await self._events()
        kwargs: Dict[str, Any] = {"calendarId": PRIMARY_CALENDAR, "body": body}
        if conference_data_version is not None:
            kwargs["conferenceDataVersion"] = conference_data_version
        return await self._execute(events.insert(**kwargs), "insert")

    async def patch_event(self, event_id: str, body: Dict[str, Any]) -> Dict[str, Any]:
        events = await self._events()
        return await self._execute(
            events.patch(calendarId=PRIMARY_CALENDAR, eventId=event_id, body=body), "patch"
        )

    async def delete_event(self, event_id: str) -> None:
        events = await self._events()
        await self._execute(
            events.delete(calendarId=PRIMARY_CALENDAR, eventId=event_id), "delete"
        )

    async def get_event(self, event_id: str) -> Dict[str, Any]:
        events = await self._events()
        return await self._execute(
            events.get(calendarId=PRIMARY_CALENDAR, eventId=event_id), "get"
        )


class CalendarClientFactory:
    """Builds ``CalendarClient`` handles; every entry point passes the gate first."""

    def __init__(
        self,
        session: AsyncSession,
        *,
        connector: Optional[BaseConnector] = None,
        refresher: Optional[TokenRefresher] = None,
        service_builder: Callable[[str], Any] = _build_calendar_service,
    ):
        self.store = IntegrationStore(session)
        self.connector = connector or ConnectorRegistry().get(PROVIDER)
        self._refresher = refresher
        self._service_builder = service_builder

    def _get_refresher(self) -> TokenRefresher:
        if self._refresher is None:
            if self.connector is None:
                raise ConfigurationError("Google connector is not configured")
            self._refresher = TokenRefresher(self.store, self.connector)
        return self._refresher

    async def get_client(self, principal_id: Optional[UserRef]) -> CalendarClient:
        """Client for the authenticated principal's own calendar."""
        owner_id = authorize(principal_id, principal_id)
        return await self._build(owner_id)

    async def get_client_for_user(
        self, target_user_id: UserRef, calling_user_id: Optional[UserRef]
    ) -> CalendarClient:
        """Entry point for internal call sites that carry explicit ids."""
        owner_id = authorize(calling_user_id, target_user_id)
        return await self._build(owner_id)

    async def _build(self, owner_id: str) -> CalendarClient:
        integration = await self.store.find(owner_id, PROVIDER)
        if integration is None:
            raise NotConnected()

        await self._get_refresher().ensure_fresh(integration)
        return CalendarClient(
            owner_id,
            integration.access_token,
            service_builder=self._service_builder,
        )
