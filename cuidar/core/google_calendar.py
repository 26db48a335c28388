"""Thin async client for the Google Calendar v3 events API."""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime
from typing import Any
from urllib.parse import quote

import httpx

from cuidar.core.errors import ProviderRequestFailed
from cuidar.core.timeutils import to_rfc3339

CALENDAR_API_BASE = "https://www.googleapis.com/calendar/v3"
PRIMARY_EVENTS_URL = f"{CALENDAR_API_BASE}/calendars/primary/events"

logger = logging.getLogger(__name__)


class GoogleCalendarClient:
    """Perform event calls on the user's primary calendar with one access token."""

    def __init__(self, access_token: str):
        self._access_token = access_token

    async def list_events(self, time_min: datetime, time_max: datetime) -> list[dict[str, Any]]:
        """Return single (expanded) events in the range, ordered by start time."""

        params = {
            "timeMin": to_rfc3339(time_min),
            "timeMax": to_rfc3339(time_max),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        data = await self._authorized_request("GET", PRIMARY_EVENTS_URL, params=params)
        return list((data or {}).get("items") or [])

    async def get_event(self, event_id: str) -> dict[str, Any]:
        data = await self._authorized_request("GET", self._event_url(event_id))
        return data or {}

    async def insert_event(self, body: dict[str, Any]) -> dict[str, Any]:
        data = await self._authorized_request("POST", PRIMARY_EVENTS_URL, json=body)
        if not data or not data.get("id"):
            raise ProviderRequestFailed("Google Calendar did not return an event id")
        return data

    async def patch_event(self, event_id: str, body: dict[str, Any]) -> dict[str, Any]:
        data = await self._authorized_request("PATCH", self._event_url(event_id), json=body)
        return data or {}

    async def delete_event(self, event_id: str) -> None:
        await self._authorized_request("DELETE", self._event_url(event_id))

    @staticmethod
    def _event_url(event_id: str) -> str:
        return f"{PRIMARY_EVENTS_URL}/{quote(event_id, safe='')}"

    async def _authorized_request(
        self,
        method: str,
        url: str,
        *,
        params: dict[str, str] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any] | None:
        headers = {
            "Authorization": f"Bearer {self._access_token}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=10.0) as client:
                response = await client.request(
                    method, url, headers=headers, params=params, json=json
                )
        except httpx.HTTPError as exc:  # pragma: no cover - network failure
            logger.error("Google Calendar request failed", exc_info=exc)
            raise ProviderRequestFailed("Failed to communicate with Google Calendar") from exc

        if response.status_code >= 400:
            logger.error(
                "Google Calendar API error",
                extra={"method": method, "status_code": response.status_code, "body": response.text},
            )
            raise ProviderRequestFailed(status_code=response.status_code, body=response.text)

        if response.status_code == 204 or not response.content:
            return None
        return response.json()


CalendarClientFactory = Callable[[str], GoogleCalendarClient]


def get_calendar_client_factory() -> CalendarClientFactory:
    return GoogleCalendarClient
