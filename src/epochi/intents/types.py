"""Intent types.

Public types:
- IntentKind: Tag for what a calendar event asks for
- ParsedIntent: Structured result of parsing one event title
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import StrEnum


class IntentKind(StrEnum):
    """What a calendar event title asks the engine to do."""

    SWAP = "swap"
    TRANSFER = "transfer"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ParsedIntent:
    """Structured transaction intent extracted from a calendar event.

    ``destination`` holds the destination asset symbol for swaps and the
    recipient address for transfers; use ``to_asset`` / ``to_address`` to read
    it for a specific kind.
    """

    valid: bool
    kind: IntentKind
    from_asset: str
    destination: str
    amount: str  # Literal numeric text from the title
    due_at: datetime
    source_event_id: str
    source_title: str
    error: str | None = None

    @property
    def to_asset(self) -> str | None:
        return self.destination if self.kind == IntentKind.SWAP else None

    @property
    def to_address(self) -> str | None:
        return self.destination if self.kind == IntentKind.TRANSFER else None

    @classmethod
    def invalid(
        cls,
        *,
        kind: IntentKind,
        due_at: datetime,
        event_id: str,
        title: str,
        error: str,
    ) -> ParsedIntent:
        return cls(
            valid=False,
            kind=kind,
            from_asset="",
            destination="",
            amount="",
            due_at=due_at,
            source_event_id=event_id,
            source_title=title,
            error=error,
        )
