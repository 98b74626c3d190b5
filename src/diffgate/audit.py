"""Review audit log.

One JSON line per gate call: invocation and session ids, target path,
mutation kind, outcome, reason, decision and explain rounds. Enabled by
``DIFF_REVIEW_AUDIT_LOG``.

Design notes:
- Append-only; the parent directory is created on first write.
- Write failures raise ``AuditLogError``. The gate logs them and keeps the
  review result unchanged.
"""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from .errors import AuditLogError, sanitize_exception
from .types import ReviewAuditEntry


class AuditLogger(Protocol):
    """Receives one entry per gate call."""

    def log(self, entry: ReviewAuditEntry) -> None:
        ...


class JsonlAuditLogger:
    """Appends review audit entries to a JSONL file."""

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)

    def log(self, entry: ReviewAuditEntry) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("a", encoding="utf-8") as handle:
                handle.write(entry.to_json_line() + "\n")
        except OSError as exc:
            raise AuditLogError(f"cannot write audit log: {sanitize_exception(exc)}") from exc
