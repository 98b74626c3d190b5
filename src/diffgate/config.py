"""Gate settings with environment overrides.

Design notes:
- Every timing constant is a field so tests can shrink it; only the
  activation delay is meant to be tuned by users.
- Durations are seconds except the activation delay, which keeps the
  millisecond unit of its environment variable.
"""

from __future__ import annotations

import os
import tempfile
from pathlib import Path
from typing import Mapping

from pydantic import BaseModel, Field, ValidationError

from .errors import ConfigError

DEFAULT_ACTIVATION_DELAY_MS: int = 1500
DEFAULT_DECISION_TIMEOUT: float = 120.0
DEFAULT_LOCK_STALE_AFTER: float = 120.0
DEFAULT_POLL_INTERVAL: float = 1.0

_ENV_FIELDS: dict[str, str] = {
    "DIFF_REVIEW_DELAY": "activation_delay_ms",
    "DIFF_REVIEW_TIMEOUT": "decision_timeout",
    "DIFF_REVIEW_LOCK_STALE": "lock_stale_after",
    "DIFF_REVIEW_POLL_INTERVAL": "poll_interval",
    "DIFF_REVIEW_ROOT": "root",
    "DIFF_REVIEW_AUDIT_LOG": "audit_log",
    "DIFF_REVIEW_EXPLAIN_CMD": "explain_command",
}


def _default_root() -> Path:
    return Path(tempfile.gettempdir()) / "diffgate-review"


class GateSettings(BaseModel):
    """Runtime configuration of the review gate."""

    model_config = {"frozen": True}

    activation_delay_ms: int = Field(default=DEFAULT_ACTIVATION_DELAY_MS, ge=0)
    decision_timeout: float = Field(default=DEFAULT_DECISION_TIMEOUT, gt=0)
    lock_stale_after: float = Field(default=DEFAULT_LOCK_STALE_AFTER, gt=0)
    poll_interval: float = Field(default=DEFAULT_POLL_INTERVAL, gt=0)
    lock_retry_interval: float = Field(default=0.2, gt=0)
    settle_delay: float = Field(default=0.2, ge=0)
    root: Path = Field(default_factory=_default_root)
    audit_log: Path | None = None
    explain_command: str | None = None

    @property
    def activation_delay(self) -> float:
        """Guard window length in seconds."""
        return self.activation_delay_ms / 1000.0

    @property
    def lock_path(self) -> Path:
        return self.root / "popup.lock"

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None, **overrides: object) -> "GateSettings":
        """Build settings from DIFF_REVIEW_* variables; explicit overrides win."""
        env = os.environ if environ is None else environ
        values: dict[str, object] = {}
        for var, field_name in _ENV_FIELDS.items():
            raw = env.get(var)
            if raw is None or not raw.strip():
                continue
            values[field_name] = raw.strip()
        values.update(overrides)
        try:
            return cls(**values)
        except ValidationError as exc:
            raise ConfigError(f"invalid gate settings: {exc}") from exc
