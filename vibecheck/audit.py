"""Audit trail for the daily queue lifecycle.

One line per event, appended to a plain text file::

    2026-02-19T10:00:00Z [COMPLETE] user=u1 queue=5f1c... mood=bright rated=8

A logger can be bound to the user and day an operation runs for, so every
line that operation writes carries them without each call site repeating
them. Operation names are a closed set; a typo raises instead of writing a
line nobody greps for.
"""

import json
import threading
from datetime import datetime, timezone
from pathlib import Path
from typing import Literal, get_args

Operation = Literal[
    # Queue building
    "QUEUE_EXISTS",
    "QUEUE_BUILD",
    "QUEUE_BUILD_FAILED",
    "QUEUE_RACE",
    "NO_CREDENTIAL",
    "SOURCE_FAILED",
    "LOOKUP_FAILED",
    # Mutations
    "RATE",
    "SKIP",
    "SKIP_FAILED",
    # Completion
    "COMPLETE",
    "COMPLETE_FAILED",
    "PLAYLIST",
    "DUPLICATE_COMPLETION",
    "PLAYLIST_FAILED",
]

OPERATIONS: frozenset[str] = frozenset(get_args(Operation))

# Appends from worker threads must not interleave
_append_lock = threading.Lock()


def format_value(value: str | int | float | bool) -> str:
    """Render a field value; anything with whitespace, quotes or ``=`` is JSON-quoted."""
    if isinstance(value, bool):
        return "true" if value else "false"
    text = str(value)
    if not text or any(c.isspace() or c in '"=' for c in text):
        return json.dumps(text)
    return text


def format_line(operation: str, fields: dict, when: datetime | None = None) -> str:
    """Build one audit line (without the trailing newline). None fields are dropped."""
    when = when or datetime.now(timezone.utc)
    head = f"{when.strftime('%Y-%m-%dT%H:%M:%SZ')} [{operation}]"
    pairs = [f"{key}={format_value(value)}" for key, value in fields.items() if value is not None]
    return " ".join([head, *pairs])


class AuditLogger:
    """Appends lifecycle events to an audit file."""

    def __init__(self, log_path: Path, **context: str | int | None) -> None:
        self.log_path = Path(log_path)
        self.context = context

    def bind(self, **context: str | int | None) -> "AuditLogger":
        """A logger on the same file whose lines start with ``context``."""
        return AuditLogger(self.log_path, **{**self.context, **context})

    def log(self, operation: Operation, **fields: str | int | float | bool | None) -> None:
        """Append one event line.

        Raises:
            ValueError: ``operation`` is not a known lifecycle operation.
        """
        if operation not in OPERATIONS:
            raise ValueError(f"Unknown audit operation: {operation}")

        line = format_line(operation, {**self.context, **fields})
        with _append_lock:
            self.log_path.parent.mkdir(parents=True, exist_ok=True)
            with open(self.log_path, "a") as f:
                f.write(line + "\n")


def audit_event(audit: AuditLogger | None, operation: Operation, **fields) -> None:
    """Log to ``audit`` when one is configured."""
    if audit is not None:
        audit.log(operation, **fields)


def bind_audit(audit: AuditLogger | None, **context) -> AuditLogger | None:
    """Bind ``audit`` to ``context``, passing None through."""
    return audit.bind(**context) if audit is not None else None
