"""Tests for calendar gateways and event notes."""

import json
from datetime import UTC, datetime, timedelta
from decimal import Decimal

import httpx
import pytest

from epochi.calendar import (
    EXECUTED_MARKER,
    FAILED_MARKER,
    CalendarError,
    CalendarEvent,
    CalendarNotAuthenticatedError,
    GoogleCalendarGateway,
    JsonCalendarGateway,
    MemoryCalendarGateway,
    format_executed_note,
    format_failed_note,
)
from epochi.execution import ExecutionResult
from epochi.intents import parse_title

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)
BASE_URL = "https://calendar.test/v3"


def _event(event_id: str, minutes: int, title: str = "Swap 1 ETH to USDC"):
    return CalendarEvent(
        id=event_id, title=title, start_time=NOW + timedelta(minutes=minutes)
    )


class TestCalendarEvent:
    """Tests for CalendarEvent serialization."""

    def test_round_trip(self):
        event = _event("e1", 5)
        assert CalendarEvent.from_dict(event.to_dict()) == event

    def test_naive_start_is_utc(self):
        event = CalendarEvent.from_dict(
            {"id": "e1", "title": "x", "start_time": "2026-01-15T12:00:00"}
        )
        assert event.start_time == NOW

    def test_missing_start(self):
        event = CalendarEvent.from_dict({"id": 7, "title": "x"})
        assert event.id == "7"
        assert event.start_time is None


class TestMemoryCalendarGateway:
    """Tests for the in-memory calendar."""

    @pytest.mark.asyncio
    async def test_window_is_inclusive_and_sorted(self):
        calendar = MemoryCalendarGateway(
            [_event("late", 60), _event("early", 0), _event("outside", 61)]
        )

        events = await calendar.events_between(NOW, NOW + timedelta(minutes=60))

        assert [e.id for e in events] == ["early", "late"]

    @pytest.mark.asyncio
    async def test_events_without_start_are_skipped(self):
        calendar = MemoryCalendarGateway(
            [CalendarEvent(id="e1", title="x", start_time=None)]
        )
        assert await calendar.events_between(NOW, NOW + timedelta(days=1)) == []

    @pytest.mark.asyncio
    async def test_append_description(self):
        calendar = MemoryCalendarGateway([_event("e1", 5)])

        await calendar.append_description("e1", "first")
        await calendar.append_description("e1", "second")

        assert calendar.get_event("e1").description == "first\n\nsecond"

    @pytest.mark.asyncio
    async def test_append_to_missing_event(self):
        calendar = MemoryCalendarGateway()
        with pytest.raises(CalendarError):
            await calendar.append_description("nope", "text")

    @pytest.mark.asyncio
    async def test_authentication_flag(self):
        assert await MemoryCalendarGateway().is_authenticated() is True
        assert await MemoryCalendarGateway(authenticated=False).is_authenticated() is False


class TestJsonCalendarGateway:
    """Tests for the JSON file calendar."""

    def _write(self, path, events):
        path.write_text(json.dumps({"events": [e.to_dict() for e in events]}))

    @pytest.mark.asyncio
    async def test_missing_file_is_unauthenticated(self, tmp_path):
        calendar = JsonCalendarGateway(tmp_path / "calendar.json")

        assert await calendar.is_authenticated() is False
        with pytest.raises(CalendarNotAuthenticatedError):
            await calendar.events_between(NOW, NOW + timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_reads_events_in_window(self, tmp_path):
        path = tmp_path / "calendar.json"
        self._write(path, [_event("e2", 30), _event("e1", 10), _event("e3", 120)])
        calendar = JsonCalendarGateway(path)

        events = await calendar.events_between(NOW, NOW + timedelta(hours=1))

        assert await calendar.is_authenticated() is True
        assert [e.id for e in events] == ["e1", "e2"]

    @pytest.mark.asyncio
    async def test_append_persists(self, tmp_path):
        path = tmp_path / "calendar.json"
        self._write(path, [_event("e1", 10)])
        calendar = JsonCalendarGateway(path)

        await calendar.append_description("e1", EXECUTED_MARKER)

        reloaded = JsonCalendarGateway(path)
        (event,) = await reloaded.events_between(NOW, NOW + timedelta(hours=1))
        assert EXECUTED_MARKER in event.description

    @pytest.mark.asyncio
    async def test_append_to_missing_event(self, tmp_path):
        path = tmp_path / "calendar.json"
        self._write(path, [_event("e1", 10)])

        with pytest.raises(CalendarError):
            await JsonCalendarGateway(path).append_description("nope", "text")

    @pytest.mark.asyncio
    async def test_invalid_file(self, tmp_path):
        path = tmp_path / "calendar.json"
        path.write_text("{not json")

        with pytest.raises(CalendarError):
            await JsonCalendarGateway(path).events_between(NOW, NOW)


class TestGoogleCalendarGateway:
    """Tests for the Google Calendar gateway against a mock transport."""

    def _gateway(self, handler, token: str | None = "token-123"):
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        return GoogleCalendarGateway(token, base_url=BASE_URL, client=client)

    @pytest.mark.asyncio
    async def test_lists_events_with_pagination(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if "pageToken" not in request.url.params:
                return httpx.Response(
                    200,
                    json={
                        "items": [
                            {
                                "id": "g1",
                                "summary": "Swap 1 ETH to USDC",
                                "start": {"dateTime": "2026-01-15T12:05:00Z"},
                            }
                        ],
                        "nextPageToken": "page-2",
                    },
                )
            return httpx.Response(
                200,
                json={
                    "items": [
                        {
                            "id": "g2",
                            "summary": "Offsite",
                            "description": "notes",
                            "start": {"date": "2026-01-16"},
                        }
                    ]
                },
            )

        gateway = self._gateway(handler)
        events = await gateway.events_between(NOW, NOW + timedelta(days=1))

        assert [e.id for e in events] == ["g1", "g2"]
        assert events[0].start_time == NOW + timedelta(minutes=5)
        assert events[1].start_time == datetime(2026, 1, 16, tzinfo=UTC)
        assert events[1].description == "notes"

        first = requests[0]
        assert first.headers["Authorization"] == "Bearer token-123"
        assert first.url.path == "/v3/calendars/primary/events"
        assert first.url.params["singleEvents"] == "true"
        assert first.url.params["orderBy"] == "startTime"
        assert requests[1].url.params["pageToken"] == "page-2"

    @pytest.mark.asyncio
    async def test_append_description_reads_then_patches(self):
        requests: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            requests.append(request)
            if request.method == "GET":
                return httpx.Response(200, json={"id": "g1", "description": "existing"})
            return httpx.Response(200, json={"id": "g1"})

        gateway = self._gateway(handler)
        await gateway.append_description("g1", "appended")

        assert [r.method for r in requests] == ["GET", "PATCH"]
        assert json.loads(requests[1].content) == {"description": "existing\n\nappended"}

    @pytest.mark.asyncio
    async def test_rejected_token(self):
        gateway = self._gateway(lambda request: httpx.Response(401))

        with pytest.raises(CalendarNotAuthenticatedError):
            await gateway.events_between(NOW, NOW + timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_server_error(self):
        gateway = self._gateway(lambda request: httpx.Response(500, text="boom"))

        with pytest.raises(CalendarError):
            await gateway.events_between(NOW, NOW + timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_transport_error(self):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("unreachable", request=request)

        gateway = self._gateway(handler)
        with pytest.raises(CalendarError):
            await gateway.events_between(NOW, NOW + timedelta(hours=1))

    @pytest.mark.asyncio
    async def test_without_token(self):
        gateway = self._gateway(lambda request: httpx.Response(200, json={}), token=None)

        assert await gateway.is_authenticated() is False
        with pytest.raises(CalendarNotAuthenticatedError):
            await gateway.events_between(NOW, NOW + timedelta(hours=1))


class TestNotes:
    """Tests for the calendar annotations."""

    def test_executed_swap_note(self):
        intent = parse_title("Swap 0.1 ETH to USDC", NOW, "e1")
        result = ExecutionResult(
            success=True,
            chain_tx_ref="0xabc",
            amount_received=Decimal("250"),
            audit_ref="0xledger",
        )

        note = format_executed_note(intent, result, NOW)

        assert note.startswith(EXECUTED_MARKER)
        assert "Transaction: 0xabc" in note
        assert "Received: 250 USDC" in note
        assert "Ledger record: 0xledger" in note
        assert f"Executed: {NOW.isoformat()}" in note

    def test_executed_transfer_note_prefers_explorer_url(self):
        intent = parse_title("Send 1 STT to 0x" + "1" * 40, NOW, "e2")
        result = ExecutionResult(
            success=True,
            chain_tx_ref="0xabc",
            amount_received=Decimal("1"),
            explorer_url="https://explorer.test/tx/0xabc",
        )

        note = format_executed_note(intent, result, NOW)

        assert "Transaction: https://explorer.test/tx/0xabc" in note
        assert "Received: 1 STT" in note
        assert "Ledger record" not in note

    def test_failed_note(self):
        note = format_failed_note("Insufficient balance for 5", 3, NOW)

        assert note.startswith(FAILED_MARKER)
        assert "Error: Insufficient balance for 5" in note
        assert "Attempts: 3" in note
