"""Intent extraction from calendar event titles.

Public API:
- parse_title / parse_event: Title -> ParsedIntent
- validate_intent: Executability check with a due-time grace window
- format_intent: Human-readable summary

Types:
- IntentKind: swap | transfer | unknown
- ParsedIntent: Immutable parse result
"""

from epochi.intents.parser import (
    DUE_GRACE,
    format_intent,
    is_address,
    parse_amount,
    parse_event,
    parse_title,
    validate_intent,
)
from epochi.intents.types import IntentKind, ParsedIntent

__all__ = [
    "DUE_GRACE",
    "IntentKind",
    "ParsedIntent",
    "format_intent",
    "is_address",
    "parse_amount",
    "parse_event",
    "parse_title",
    "validate_intent",
]
