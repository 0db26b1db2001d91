"""Append-only ledger gateways.

A ledger stores JSON payloads per schema, addressed by (owner, record id).
Records are never rewritten; appending under an existing id supersedes the
earlier record, and reads by key return the latest one.
"""

from __future__ import annotations

import asyncio
import hashlib
import json
import logging
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

from filelock import FileLock

logger = logging.getLogger(__name__)


class LedgerError(Exception):
    """Ledger read or append failure."""


class LedgerRecordNotFoundError(LedgerError):
    """A record that must exist was not found."""


@runtime_checkable
class LedgerGateway(Protocol):
    """Protocol for append-only, key-addressable record storage."""

    @property
    def publisher(self) -> str:
        """Identity records are appended under."""
        ...

    async def append(
        self, schema: str, record_id: str, payload: dict[str, Any]
    ) -> str:
        """Append a record and return its ledger reference."""
        ...

    async def get_by_key(
        self, schema: str, owner: str, record_id: str
    ) -> dict[str, Any] | None:
        """Get the latest record for an id, or None."""
        ...

    async def get_all_by_owner(self, schema: str, owner: str) -> list[dict[str, Any]]:
        """Get every record an owner appended for a schema, in append order."""
        ...


@dataclass
class _StoredRecord:
    ref: str
    owner: str
    record_id: str
    appended_at: str
    payload: dict[str, Any]

    def to_dict(self) -> dict[str, Any]:
        return {
            "ref": self.ref,
            "owner": self.owner,
            "record_id": self.record_id,
            "appended_at": self.appended_at,
            "payload": self.payload,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> _StoredRecord:
        return cls(
            ref=data["ref"],
            owner=data["owner"],
            record_id=data["record_id"],
            appended_at=data["appended_at"],
            payload=data["payload"],
        )


def _ledger_ref(schema: str, owner: str, record_id: str, sequence: int) -> str:
    payload = f"{schema}:{owner}:{record_id}:{sequence}".encode()
    return "0x" + hashlib.sha256(payload).hexdigest()


def _latest(records: list[_StoredRecord], owner: str, record_id: str) -> dict | None:
    for record in reversed(records):
        if record.owner == owner and record.record_id == record_id:
            return record.payload
    return None


class MemoryLedgerGateway:
    """In-process ledger for tests and single-run demos."""

    def __init__(self, publisher: str = "epochi") -> None:
        self._publisher = publisher
        self._records: dict[str, list[_StoredRecord]] = {}

    @property
    def publisher(self) -> str:
        return self._publisher

    async def append(
        self, schema: str, record_id: str, payload: dict[str, Any]
    ) -> str:
        records = self._records.setdefault(schema, [])
        ref = _ledger_ref(schema, self._publisher, record_id, len(records))
        records.append(
            _StoredRecord(
                ref=ref,
                owner=self._publisher,
                record_id=record_id,
                appended_at=datetime.now(UTC).isoformat(),
                payload=json.loads(json.dumps(payload, default=str)),
            )
        )
        return ref

    async def get_by_key(
        self, schema: str, owner: str, record_id: str
    ) -> dict[str, Any] | None:
        return _latest(self._records.get(schema, []), owner, record_id)

    async def get_all_by_owner(self, schema: str, owner: str) -> list[dict[str, Any]]:
        return [r.payload for r in self._records.get(schema, []) if r.owner == owner]


class JsonlLedgerGateway:
    """File-backed ledger with one JSONL file per schema.

    Appends and reads are serialized across processes with a file lock per
    schema. Lines that fail to parse are skipped on read.
    """

    def __init__(self, root: Path, publisher: str = "epochi") -> None:
        self._root = root
        self._publisher = publisher

    @property
    def publisher(self) -> str:
        return self._publisher

    @property
    def root(self) -> Path:
        return self._root

    def _schema_file(self, schema: str) -> Path:
        return self._root / f"{schema}.jsonl"

    def _lock(self, schema: str) -> FileLock:
        return FileLock(str(self._schema_file(schema)) + ".lock")

    async def append(
        self, schema: str, record_id: str, payload: dict[str, Any]
    ) -> str:
        return await asyncio.to_thread(self._append_sync, schema, record_id, payload)

    async def get_by_key(
        self, schema: str, owner: str, record_id: str
    ) -> dict[str, Any] | None:
        records = await asyncio.to_thread(self._read_sync, schema)
        return _latest(records, owner, record_id)

    async def get_all_by_owner(self, schema: str, owner: str) -> list[dict[str, Any]]:
        records = await asyncio.to_thread(self._read_sync, schema)
        return [r.payload for r in records if r.owner == owner]

    def _append_sync(
        self, schema: str, record_id: str, payload: dict[str, Any]
    ) -> str:
        path = self._schema_file(schema)
        try:
            self._root.mkdir(parents=True, exist_ok=True)
            with self._lock(schema):
                sequence = self._count_lines(path)
                record = _StoredRecord(
                    ref=_ledger_ref(schema, self._publisher, record_id, sequence),
                    owner=self._publisher,
                    record_id=record_id,
                    appended_at=datetime.now(UTC).isoformat(),
                    payload=payload,
                )
                with path.open("a", encoding="utf-8") as f:
                    f.write(json.dumps(record.to_dict(), default=str) + "\n")
        except OSError as e:
            raise LedgerError(f"Failed to append to {path}: {e}") from e

        logger.debug(
            "ledger_file_appended",
            extra={"ledger.schema": schema, "ledger.path": str(path)},
        )
        return record.ref

    def _read_sync(self, schema: str) -> list[_StoredRecord]:
        path = self._schema_file(schema)
        if not path.exists():
            return []

        try:
            with self._lock(schema):
                lines = path.read_text(encoding="utf-8").splitlines()
        except OSError as e:
            raise LedgerError(f"Failed to read {path}: {e}") from e

        records: list[_StoredRecord] = []
        for line in lines:
            if not line.strip():
                continue
            try:
                records.append(_StoredRecord.from_dict(json.loads(line)))
            except (json.JSONDecodeError, KeyError, TypeError):
                logger.debug("Skipping invalid ledger line: %s", line[:80])
        return records

    @staticmethod
    def _count_lines(path: Path) -> int:
        if not path.exists():
            return 0
        with path.open(encoding="utf-8") as f:
            return sum(1 for line in f if line.strip())
