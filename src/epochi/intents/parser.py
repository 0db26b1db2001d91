"""Extract transaction intents from calendar event titles.

Recognized titles (case-insensitive):

    Swap 0.1 ETH to USDC          swap, verb form ("to", "for" or "->")
    0.1 ETH -> USDC               swap, arrow form
    0.1 ETH to USDC               swap, bare form
    Send 1 STT to 0x1111...1111   transfer to a 40-hex-digit address

Swap forms are tried first in the order above. Asset symbols must start with
a letter, which keeps a hex recipient address from ever being read as a swap
destination.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta
from decimal import Decimal, InvalidOperation
from typing import TYPE_CHECKING

from epochi.intents.types import IntentKind, ParsedIntent

if TYPE_CHECKING:
    from epochi.calendar.gateway import CalendarEvent

# Intents may be at most this far in the past when validated; covers clock
# skew and polling latency.
DUE_GRACE = timedelta(seconds=60)

_AMOUNT = r"(\d+\.?\d*)"
_ASSET = r"([A-Za-z]\w*)"

SWAP_PATTERNS: tuple[re.Pattern[str], ...] = (
    re.compile(rf"swap\s+{_AMOUNT}\s+{_ASSET}\s+(?:to|for|->)\s+{_ASSET}", re.I),
    re.compile(rf"{_AMOUNT}\s+{_ASSET}\s+->\s+{_ASSET}", re.I),
    re.compile(rf"{_AMOUNT}\s+{_ASSET}\s+to\s+{_ASSET}", re.I),
)

TRANSFER_PATTERN = re.compile(
    rf"(?:send|transfer)\s+{_AMOUNT}\s+{_ASSET}\s+to\s+(0x[a-fA-F0-9]{{40}})\b", re.I
)

ADDRESS_PATTERN = re.compile(r"^0x[a-fA-F0-9]{40}$")


def is_address(value: str) -> bool:
    """Check whether a value is a well-formed 40-hex-digit address."""
    return bool(ADDRESS_PATTERN.match(value))


def parse_title(
    title: str, start_time: datetime | None, event_id: str
) -> ParsedIntent:
    """Parse an event title into a ParsedIntent.

    Args:
        title: Free-text event title.
        start_time: Event start; becomes the intent's due time.
        event_id: Calendar event identifier.

    Returns:
        A ParsedIntent. Unrecognized titles come back with ``valid=False`` and
        kind ``unknown``.
    """
    if start_time is None:
        return ParsedIntent.invalid(
            kind=IntentKind.UNKNOWN,
            due_at=datetime.fromtimestamp(0, UTC),
            event_id=event_id,
            title=title,
            error="No start time found",
        )

    due_at = _as_utc(start_time)

    for pattern in SWAP_PATTERNS:
        match = pattern.search(title)
        if match:
            amount, from_asset, to_asset = match.groups()
            return ParsedIntent(
                valid=True,
                kind=IntentKind.SWAP,
                from_asset=from_asset.upper(),
                destination=to_asset.upper(),
                amount=amount,
                due_at=due_at,
                source_event_id=event_id,
                source_title=title,
            )

    match = TRANSFER_PATTERN.search(title)
    if match:
        amount, asset, address = match.groups()
        return ParsedIntent(
            valid=True,
            kind=IntentKind.TRANSFER,
            from_asset=asset.upper(),
            destination=address,
            amount=amount,
            due_at=due_at,
            source_event_id=event_id,
            source_title=title,
        )

    return ParsedIntent.invalid(
        kind=IntentKind.UNKNOWN,
        due_at=due_at,
        event_id=event_id,
        title=title,
        error="No recognized transaction pattern",
    )


def parse_event(event: CalendarEvent) -> ParsedIntent:
    """Parse a calendar event into a ParsedIntent."""
    return parse_title(event.title, event.start_time, event.id)


def parse_amount(amount: str) -> Decimal | None:
    """Parse an amount string, returning None when it is not a finite number."""
    try:
        value = Decimal(amount)
    except (InvalidOperation, TypeError, ValueError):
        return None
    if not value.is_finite():
        return None
    return value


def validate_intent(
    intent: ParsedIntent,
    now: datetime | None = None,
    grace: timedelta = DUE_GRACE,
) -> bool:
    """Check that an intent is executable.

    An intent is executable when it parsed, its amount is strictly positive,
    both asset fields are set, a transfer's destination is a well-formed
    address, and it is not due more than ``grace`` in the past.
    """
    if not intent.valid:
        return False

    amount = parse_amount(intent.amount)
    if amount is None or amount <= 0:
        return False

    if not intent.from_asset or not intent.destination:
        return False

    if intent.kind == IntentKind.TRANSFER and not is_address(intent.destination):
        return False

    now = now or datetime.now(UTC)
    return intent.due_at >= now - grace


def format_intent(intent: ParsedIntent) -> str:
    """Format an intent for display."""
    match intent.kind:
        case IntentKind.SWAP:
            return f"Swap {intent.amount} {intent.from_asset} -> {intent.destination}"
        case IntentKind.TRANSFER:
            return (
                f"Transfer {intent.amount} {intent.from_asset} to {intent.destination}"
            )
        case IntentKind.UNKNOWN:
            return "Unknown transaction"


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)
