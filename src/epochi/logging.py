"""Logging setup for Epochi.

Every entry point that runs the scheduler calls configure_logging() once.
Modules log event names (``intent_queued``, ``ledger_appended``) and put the
details in ``extra=`` under dotted keys::

    logger.info("intent_queued", extra={"intent.event_id": event.id})

The console shows the event name; the JSONL file keeps the details as nested
objects (``{"intent": {"event_id": ...}}``) so runs can be filtered with jq.

Levels:
- DEBUG: per-event parse decisions, ledger reads
- INFO: queued intents, executions, ledger appends, scheduler lifecycle
- WARNING: best-effort steps that failed (audit append, calendar annotation)
- ERROR: a tick crashed or an entry failed permanently

Wallet secrets and derived keys are never passed to a logger. SecretRedactor
masks the secret shapes that still show up in exception text or fields.
"""

import json
import logging
import os
import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from enum import Enum
from pathlib import Path
from typing import Any, TextIO

DEFAULT_LOG_RETENTION_DAYS = 7
LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")

# Secret shapes Epochi handles. Group 1, when present, is the part to mask.
DEFAULT_REDACT_PATTERNS: list[str] = [
    # Google OAuth access tokens
    r"\b(ya29\.[A-Za-z0-9_\-]{20,})",
    # ENV-style assignments: EPOCHI_WALLET_SECRET=... or ACCESS_TOKEN: ...
    r"\b[A-Z0-9_]+(?:KEY|TOKEN|SECRET|PASSWORD)\s*[=:]\s*([^\s\"']{8,})",
    # Namespace key material: private_key=0x...
    r"\bprivate_key\s*[=:]\s*['\"]?((?:0x)?[0-9a-fA-F]{64})",
    # Authorization headers sent to Google Calendar
    r"\bBearer\s+([A-Za-z0-9._\-+=]{20,})\b",
    # PEM private key blocks
    r"-----BEGIN [A-Z ]*PRIVATE KEY-----[\s\S]+?-----END [A-Z ]*PRIVATE KEY-----",
]

PEM_MARKER = "PRIVATE KEY-----"


def _mask(token: str) -> str:
    if len(token) < 12:
        return "***"
    return f"{token[:4]}...{token[-4:]}"


@dataclass
class SecretRedactor:
    """Masks secrets in log text.

    Tokens keep their first and last four characters so two log lines can be
    matched to the same credential. Addresses and transaction references are
    public and pass through unchanged.
    """

    patterns: tuple[re.Pattern[str], ...] = ()
    enabled: bool = True

    def __post_init__(self) -> None:
        if not self.patterns:
            self.patterns = tuple(
                re.compile(p, re.IGNORECASE) for p in DEFAULT_REDACT_PATTERNS
            )

    def redact(self, text: str) -> str:
        if not self.enabled or not text:
            return text
        for pattern in self.patterns:
            text = pattern.sub(self._replace, text)
        return text

    def redact_value(self, value: Any) -> Any:
        """Redact a structured log field, keeping JSON-native types."""
        match value:
            case str():
                return self.redact(value)
            case bool() | int() | float() | None:
                return value
            case Decimal():
                return str(value)
            case datetime():
                return value.isoformat()
            case Enum():
                return self.redact_value(value.value)
            case dict():
                return {str(k): self.redact_value(v) for k, v in value.items()}
            case list() | tuple() | set():
                return [self.redact_value(v) for v in value]
        return self.redact(str(value))

    def _replace(self, match: re.Match[str]) -> str:
        full = match.group(0)
        if full.endswith(PEM_MARKER):
            header = full.split("\n", 1)[0]
            footer = full.rsplit("\n", 1)[-1]
            return f"{header}\n...redacted...\n{footer}"

        if not match.lastindex:
            return _mask(full)
        start, end = match.span(1)
        offset = match.start()
        token = match.group(1)
        return full[: start - offset] + _mask(token) + full[end - offset :]


_redactor = SecretRedactor()


def prune_old_logs(
    logs_dir: Path,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
) -> int:
    """Delete ``*.jsonl`` files not modified within the retention period.

    Returns:
        Number of files deleted.
    """
    if not logs_dir.is_dir():
        return 0

    cutoff = time.time() - retention_days * 86400
    deleted = 0
    for path in logs_dir.glob("*.jsonl"):
        try:
            if path.stat().st_mtime < cutoff:
                path.unlink()
                deleted += 1
        except OSError:
            continue
    return deleted


def _component_for(logger_name: str) -> str:
    root, _, rest = logger_name.partition(".")
    if root == "epochi" and rest:
        return rest.split(".", 1)[0]
    return root


# Attributes every LogRecord carries; anything else came in through extra=
_RESERVED_RECORD_ATTRS = frozenset(
    logging.LogRecord("", 0, "", 0, "", None, None).__dict__
) | {"message", "asctime", "component"}


def structured_fields(record: logging.LogRecord) -> dict[str, Any]:
    """Group a record's dotted ``extra`` keys into nested objects.

    ``{"intent.event_id": "e1", "error.message": "boom", "attempt": 2}``
    becomes ``{"intent": {"event_id": "e1"}, "error": {"message": "boom"},
    "attempt": 2}``. Values are redacted one by one.
    """
    fields: dict[str, Any] = {}
    for key, value in record.__dict__.items():
        if key in _RESERVED_RECORD_ATTRS or key.startswith("_"):
            continue
        target = fields
        *groups, leaf = key.split(".")
        for group in groups:
            node = target.setdefault(group, {})
            if not isinstance(node, dict):
                # A plain key already took this name; keep the dotted form
                target = fields
                leaf = key
                break
            target = node
        target[leaf] = _redactor.redact_value(value)
    return fields


class JSONLHandler(logging.Handler):
    """Writes one JSON object per record to ``<logs_dir>/YYYY-MM-DD.jsonl``.

    Entries look like::

        {"ts": "...", "level": "INFO", "component": "scheduling",
         "logger": "epochi.scheduling.scheduler", "event": "intent_queued",
         "fields": {"intent": {"event_id": "evt-1", "due_at": "..."}}}

    The file is chosen from the record's own timestamp (UTC), and files older
    than ``retention_days`` are pruned whenever a new day's file is opened.
    """

    def __init__(
        self,
        logs_dir: Path,
        retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
    ):
        super().__init__()
        logs_dir.mkdir(parents=True, exist_ok=True)
        self._logs_dir = logs_dir
        self._retention_days = retention_days
        self._day: str | None = None
        self._stream: TextIO | None = None

    def _stream_for(self, day: str) -> TextIO:
        if self._stream is None or day != self._day:
            if self._stream is not None:
                self._stream.close()
            self._stream = (self._logs_dir / f"{day}.jsonl").open("a", encoding="utf-8")
            self._day = day
            prune_old_logs(self._logs_dir, self._retention_days)
        return self._stream

    def emit(self, record: logging.LogRecord) -> None:
        try:
            created = datetime.fromtimestamp(record.created, UTC)
            entry: dict[str, Any] = {
                "ts": created.isoformat(),
                "level": record.levelname,
                "component": _component_for(record.name),
                "logger": record.name,
                "event": _redactor.redact(record.getMessage()),
            }
            fields = structured_fields(record)
            if fields:
                entry["fields"] = fields
            if record.exc_info:
                formatter = self.formatter or logging.Formatter()
                entry["exception"] = _redactor.redact(
                    formatter.formatException(record.exc_info)
                )

            stream = self._stream_for(created.strftime("%Y-%m-%d"))
            stream.write(json.dumps(entry, ensure_ascii=False) + "\n")
            stream.flush()
        except Exception:
            self.handleError(record)

    def close(self) -> None:
        if self._stream is not None:
            self._stream.close()
            self._stream = None
        super().close()


class ComponentFormatter(logging.Formatter):
    """Adds ``%(component)s``: the package under ``epochi`` that logged.

    ``epochi.scheduling.scheduler`` becomes ``scheduling``; third-party
    loggers keep their top-level name (``httpx``).
    """

    def format(self, record: logging.LogRecord) -> str:
        record.component = _component_for(record.name)
        return super().format(record)


# Request-per-call clients that are chatty at INFO
NOISY_LOGGERS = ("httpx", "httpcore", "filelock")


def _resolve_level(level: str | None) -> int:
    if level is None:
        level = os.environ.get("EPOCHI_LOG_LEVEL", "INFO").upper()
    if level not in LEVELS:
        level = "INFO"
    return logging.getLevelName(level)


def _console_handler(use_rich: bool) -> logging.Handler:
    if use_rich:
        from rich.logging import RichHandler

        handler: logging.Handler = RichHandler(
            show_path=False,
            show_time=True,
            markup=False,
        )
        handler.setFormatter(ComponentFormatter("%(component)s | %(message)s"))
        return handler

    handler = logging.StreamHandler()
    handler.setFormatter(
        ComponentFormatter(
            "%(asctime)s %(levelname)-7s %(component)s | %(message)s",
            datefmt="%H:%M:%S",
        )
    )
    return handler


def configure_logging(
    level: str | None = None,
    use_rich: bool = False,
    log_to_file: bool = False,
    retention_days: int = DEFAULT_LOG_RETENTION_DAYS,
) -> None:
    """Install Epochi's handlers on the root logger.

    Args:
        level: DEBUG, INFO, WARNING or ERROR. Defaults to ``EPOCHI_LOG_LEVEL``,
            then INFO.
        use_rich: Log to the console through Rich (``epochi serve``).
        log_to_file: Also write JSONL files under ``$EPOCHI_HOME/logs``.
        retention_days: Days of JSONL files to keep.
    """
    from epochi.config.paths import get_logs_path

    log_level = _resolve_level(level)
    handlers = [_console_handler(use_rich)]
    if log_to_file:
        file_handler = JSONLHandler(get_logs_path(), retention_days=retention_days)
        file_handler.setLevel(log_level)
        handlers.append(file_handler)

    logging.basicConfig(level=log_level, handlers=handlers, force=True)
    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)
