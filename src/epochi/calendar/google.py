"""Google Calendar (v3 REST) gateway.

Uses a pre-issued OAuth access token. Obtaining and refreshing the token
happens outside Epochi.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any
from urllib.parse import quote

import httpx

from epochi.calendar.gateway import (
    CalendarError,
    CalendarEvent,
    CalendarNotAuthenticatedError,
    append_text,
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.googleapis.com/calendar/v3"
REQUEST_TIMEOUT = 30.0


class GoogleCalendarGateway:
    """Reads and annotates events on one Google calendar."""

    def __init__(
        self,
        access_token: str | None,
        calendar_id: str = "primary",
        base_url: str = DEFAULT_BASE_URL,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._access_token = access_token
        self._calendar_id = calendar_id
        self._base_url = base_url.rstrip("/")
        self._client = client

    @property
    def calendar_id(self) -> str:
        return self._calendar_id

    async def is_authenticated(self) -> bool:
        return bool(self._access_token)

    async def events_between(
        self, start: datetime, end: datetime
    ) -> list[CalendarEvent]:
        params: dict[str, Any] = {
            "timeMin": start.astimezone(UTC).isoformat(),
            "timeMax": end.astimezone(UTC).isoformat(),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        events: list[CalendarEvent] = []
        while True:
            data = await self._request("GET", self._events_url(), params=params)
            events.extend(_parse_event(item) for item in data.get("items", []))
            page_token = data.get("nextPageToken")
            if not page_token:
                break
            params["pageToken"] = page_token

        logger.debug(
            "calendar_events_fetched",
            extra={"calendar.id": self._calendar_id, "calendar.count": len(events)},
        )
        return events

    async def append_description(self, event_id: str, text: str) -> None:
        url = f"{self._events_url()}/{quote(event_id, safe='')}"
        existing = await self._request("GET", url)
        description = append_text(existing.get("description") or "", text)
        await self._request("PATCH", url, json={"description": description})
        logger.info("calendar_event_annotated", extra={"calendar.event_id": event_id})

    def _events_url(self) -> str:
        return f"{self._base_url}/calendars/{quote(self._calendar_id, safe='')}/events"

    async def _request(
        self,
        method: str,
        url: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        if not self._access_token:
            raise CalendarNotAuthenticatedError("No Google Calendar access token")

        headers = {"Authorization": f"Bearer {self._access_token}"}
        try:
            if self._client is not None:
                response = await self._client.request(
                    method, url, params=params, json=json, headers=headers
                )
            else:
                async with httpx.AsyncClient(timeout=REQUEST_TIMEOUT) as client:
                    response = await client.request(
                        method, url, params=params, json=json, headers=headers
                    )
        except httpx.HTTPError as e:
            raise CalendarError(f"Calendar request failed: {e}") from e

        if response.status_code in (401, 403):
            raise CalendarNotAuthenticatedError(
                f"Calendar rejected credentials: {response.status_code}"
            )
        if response.status_code >= 400:
            logger.error(
                "Calendar request failed: %d %s", response.status_code, response.text
            )
            raise CalendarError(f"Calendar request failed: {response.status_code}")

        return response.json()


def _parse_event(item: dict[str, Any]) -> CalendarEvent:
    start = item.get("start") or {}
    start_time: datetime | None = None
    if date_time := start.get("dateTime"):
        start_time = datetime.fromisoformat(date_time.replace("Z", "+00:00"))
    elif date := start.get("date"):
        # All-day events start at midnight UTC
        start_time = datetime.fromisoformat(date).replace(tzinfo=UTC)
    if start_time is not None:
        start_time = start_time.astimezone(UTC)

    return CalendarEvent(
        id=item["id"],
        title=item.get("summary") or "",
        start_time=start_time,
        description=item.get("description") or "",
    )
