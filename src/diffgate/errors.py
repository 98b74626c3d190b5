"""Exception types for diffgate."""

from __future__ import annotations


class DiffGateError(Exception):
    """Base exception for all diffgate errors."""


class ConfigError(DiffGateError):
    """Raised when gate settings are invalid."""


class PayloadError(DiffGateError):
    """Raised when a gate payload cannot be decoded."""


class SnapshotError(DiffGateError):
    """Raised when the original or proposed content cannot be materialized."""


class LockError(DiffGateError):
    """Raised when the review lock marker cannot be managed."""


class SurfaceUnavailableError(DiffGateError):
    """Raised when a review surface cannot be opened in this environment."""


class ReviewStateError(DiffGateError):
    """Raised on an illegal review session state transition."""


class AuditLogError(DiffGateError):
    """Raised when audit logging fails."""


def sanitize_exception(exc: Exception) -> str:
    """Return a safe error message without filesystem paths."""
    if isinstance(exc, OSError):
        parts: list[str] = [exc.__class__.__name__]
        if exc.errno is not None:
            parts.append(f"errno={exc.errno}")
        if exc.strerror:
            parts.append(exc.strerror)
        return " ".join(parts).strip()
    return str(exc)
