"""Demo: review an edit to a scratch file.

Run inside tmux to get the Neovim popup. Set DIFFGATE_AUTO_APPROVE=1 to use a
headless surface that approves once the keys unlock (for CI/demo runs).
"""

from __future__ import annotations

import os
import tempfile
import time
from pathlib import Path

from diffgate import GateSettings, ReviewGate
from diffgate.channel import SignalChannel
from diffgate.reporter import emit
from diffgate.surfaces import SurfaceConfig


class AutoApproveSurface:
    """Headless review surface that approves once the keys unlock."""

    def unavailable_reason(self) -> str | None:
        return None

    def open(self, config: SurfaceConfig) -> None:
        print(f"[auto-approving {config.display_path}]")
        unlocks_at = time.time() + config.activation_delay_ms / 1000
        SignalChannel(config.signal_path).write("approve", at=unlocks_at)


def main() -> int:
    workdir = Path(tempfile.mkdtemp(prefix="diffgate-demo-"))
    target = workdir / "greeting.py"
    target.write_text('print("hello")\n', encoding="utf-8")

    surface = AutoApproveSurface() if os.getenv("DIFFGATE_AUTO_APPROVE") == "1" else None
    gate = ReviewGate(GateSettings.from_env(), review_surface=surface)
    result = gate.review(
        {
            "tool": "edit",
            "file_path": str(target),
            "old_string": '"hello"',
            "new_string": '"hello, reviewer"',
            "cwd": str(workdir),
            "session_id": "demo",
        }
    )
    print(f"outcome: {result.outcome.value} ({result.reason})")
    return emit(result)


if __name__ == "__main__":
    raise SystemExit(main())
