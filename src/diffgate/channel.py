"""Decision signal channel shared between the gate and the review surface.

The review surface runs in another process and reports the chosen action by
writing a single value into an invocation-scoped file. The gate polls that
file at a fixed interval up to an overall timeout.

File format: the decision on the first line, optionally followed by the
epoch timestamp at which it was recorded. Without a timestamp line the
file's modification time is used.
"""

from __future__ import annotations

import logging
import os
from pathlib import Path

from pydantic import BaseModel

from .clock import Clock

_logger = logging.getLogger(__name__)


class DecisionSignal(BaseModel):
    """Raw value read from the channel and when it was recorded."""

    model_config = {"frozen": True}

    value: str
    recorded_at: float


class SignalChannel:
    """Single-value, file-backed signal for one invocation."""

    def __init__(self, path: Path) -> None:
        self.path = path

    def clear(self) -> None:
        self.path.unlink(missing_ok=True)

    def write(self, value: str, at: float | None = None) -> None:
        """Record a value atomically, replacing any previous one."""
        lines = [value]
        if at is not None:
            lines.append(repr(float(at)))
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text("\n".join(lines) + "\n", encoding="utf-8")
        os.replace(tmp, self.path)

    def read(self) -> DecisionSignal | None:
        """Return the recorded signal, or None while nothing has been written."""
        try:
            text = self.path.read_text(encoding="utf-8")
            mtime = self.path.stat().st_mtime
        except FileNotFoundError:
            return None
        lines = text.splitlines()
        if not lines or not lines[0].strip():
            return None
        recorded_at = mtime
        if len(lines) > 1:
            try:
                recorded_at = float(lines[1].strip())
            except ValueError:
                pass
        return DecisionSignal(value=lines[0].strip(), recorded_at=recorded_at)

    def wait(
        self,
        clock: Clock,
        *,
        timeout: float,
        poll_interval: float,
    ) -> DecisionSignal | None:
        """Poll until a signal arrives or ``timeout`` elapses (then None)."""
        deadline = clock.now() + timeout
        while True:
            signal = self.read()
            if signal is not None:
                return signal
            if clock.now() >= deadline:
                return None
            clock.sleep(poll_interval)
