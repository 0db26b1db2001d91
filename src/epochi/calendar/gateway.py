"""Calendar gateway interface and local implementations.

The scheduler only needs three things from a calendar: whether it may read
it, the events in a time window, and a way to append text to an event's
description. Remote calendars live in their own modules (see google.py).
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from filelock import FileLock

logger = logging.getLogger(__name__)


class CalendarError(Exception):
    """Calendar read or write failure."""


class CalendarNotAuthenticatedError(CalendarError):
    """The calendar cannot be accessed with the current credentials."""


@dataclass
class CalendarEvent:
    id: str
    title: str
    start_time: datetime | None
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "start_time": self.start_time.isoformat() if self.start_time else None,
            "description": self.description,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> CalendarEvent:
        start_time = None
        if raw_start := data.get("start_time"):
            start_time = datetime.fromisoformat(raw_start)
            if start_time.tzinfo is None:
                start_time = start_time.replace(tzinfo=UTC)
        return cls(
            id=str(data["id"]),
            title=data.get("title", ""),
            start_time=start_time,
            description=data.get("description") or "",
        )


@runtime_checkable
class CalendarGateway(Protocol):
    """Protocol for the calendar the scheduler watches."""

    async def is_authenticated(self) -> bool: ...

    async def events_between(
        self, start: datetime, end: datetime
    ) -> list[CalendarEvent]: ...

    async def append_description(self, event_id: str, text: str) -> None: ...


def append_text(description: str, text: str) -> str:
    """Append a block of text to a description, separated by a blank line."""
    return f"{description}\n\n{text}".strip()


def _in_window(event: CalendarEvent, start: datetime, end: datetime) -> bool:
    return event.start_time is not None and start <= event.start_time <= end


def _sort_key(event: CalendarEvent) -> datetime:
    return event.start_time or datetime.max.replace(tzinfo=UTC)


class MemoryCalendarGateway:
    """In-process calendar for tests and demos."""

    def __init__(
        self, events: list[CalendarEvent] | None = None, authenticated: bool = True
    ) -> None:
        self._events: dict[str, CalendarEvent] = {e.id: e for e in events or []}
        self.authenticated = authenticated

    def add_event(self, event: CalendarEvent) -> None:
        self._events[event.id] = event

    def get_event(self, event_id: str) -> CalendarEvent | None:
        return self._events.get(event_id)

    async def is_authenticated(self) -> bool:
        return self.authenticated

    async def events_between(
        self, start: datetime, end: datetime
    ) -> list[CalendarEvent]:
        events = [e for e in self._events.values() if _in_window(e, start, end)]
        return sorted(events, key=_sort_key)

    async def append_description(self, event_id: str, text: str) -> None:
        event = self._events.get(event_id)
        if event is None:
            raise CalendarError(f"Event not found: {event_id}")
        event.description = append_text(event.description, text)


class JsonCalendarGateway:
    """Calendar stored in a local JSON file.

    File format::

        {"events": [{"id": "...", "title": "...", "start_time": "...",
                     "description": "..."}]}

    The calendar counts as authenticated once the file exists.
    """

    def __init__(self, path: Path) -> None:
        self._path = path
        self._lock = FileLock(str(path) + ".lock")

    @property
    def path(self) -> Path:
        return self._path

    async def is_authenticated(self) -> bool:
        return self._path.exists()

    async def events_between(
        self, start: datetime, end: datetime
    ) -> list[CalendarEvent]:
        events = await asyncio.to_thread(self._load)
        return sorted((e for e in events if _in_window(e, start, end)), key=_sort_key)

    async def append_description(self, event_id: str, text: str) -> None:
        await asyncio.to_thread(self._append_sync, event_id, text)
        logger.debug("calendar_file_updated", extra={"calendar.event_id": event_id})

    def _load(self) -> list[CalendarEvent]:
        with self._lock:
            return self._read_unlocked()

    def _read_unlocked(self) -> list[CalendarEvent]:
        if not self._path.exists():
            raise CalendarNotAuthenticatedError(f"Calendar file not found: {self._path}")
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
            return [CalendarEvent.from_dict(item) for item in data.get("events", [])]
        except (OSError, json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            raise CalendarError(f"Invalid calendar file {self._path}: {e}") from e

    def _append_sync(self, event_id: str, text: str) -> None:
        with self._lock:
            events = self._read_unlocked()
            for event in events:
                if event.id == event_id:
                    event.description = append_text(event.description, text)
                    break
            else:
                raise CalendarError(f"Event not found: {event_id}")

            payload = {"events": [e.to_dict() for e in events]}
            tmp_path = self._path.with_suffix(self._path.suffix + ".tmp")
            tmp_path.write_text(json.dumps(payload, indent=2), encoding="utf-8")
            tmp_path.replace(self._path)
