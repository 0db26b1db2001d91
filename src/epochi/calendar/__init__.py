"""Calendar sources the scheduler watches."""

from epochi.calendar.gateway import (
    CalendarError,
    CalendarEvent,
    CalendarGateway,
    CalendarNotAuthenticatedError,
    JsonCalendarGateway,
    MemoryCalendarGateway,
)
from epochi.calendar.google import GoogleCalendarGateway
from epochi.calendar.notes import (
    EXECUTED_MARKER,
    FAILED_MARKER,
    format_executed_note,
    format_failed_note,
)

__all__ = [
    "EXECUTED_MARKER",
    "FAILED_MARKER",
    "CalendarError",
    "CalendarEvent",
    "CalendarGateway",
    "CalendarNotAuthenticatedError",
    "GoogleCalendarGateway",
    "JsonCalendarGateway",
    "MemoryCalendarGateway",
    "format_executed_note",
    "format_failed_note",
]
