from __future__ import annotations

from pathlib import Path
from typing import Callable

import pytest

from diffgate.channel import SignalChannel
from diffgate.config import GateSettings
from diffgate.errors import SurfaceUnavailableError
from diffgate.surfaces.adapter import SurfaceConfig
from diffgate.types import Invocation

_ENV_VARS = (
    "TMUX",
    "OPENCODE_SESSION_ID",
    "DIFF_REVIEW_DELAY",
    "DIFF_REVIEW_TIMEOUT",
    "DIFF_REVIEW_LOCK_STALE",
    "DIFF_REVIEW_POLL_INTERVAL",
    "DIFF_REVIEW_ROOT",
    "DIFF_REVIEW_AUDIT_LOG",
    "DIFF_REVIEW_EXPLAIN_CMD",
)


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep the developer's tmux session and overrides out of the tests."""
    for var in _ENV_VARS:
        monkeypatch.delenv(var, raising=False)


class FakeClock:
    """Clock whose sleeps advance time instantly."""

    def __init__(self, start: float = 1_700_000_000.0) -> None:
        self.current = start
        self.sleeps: list[float] = []

    def now(self) -> float:
        return self.current

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.current += seconds

    def advance(self, seconds: float) -> None:
        self.current += seconds


class ScriptedReviewSurface:
    """Review surface replaying scripted key presses.

    Each step is ``(value, press_after)``: the reviewer waits ``press_after``
    seconds after the surface opens, then records ``value`` (None records
    nothing). Once the script runs out nothing more is recorded.
    """

    def __init__(
        self,
        clock: FakeClock,
        steps: list[tuple[str | None, float]] | None = None,
        *,
        unavailable: str | None = None,
        fail_on_open: Exception | None = None,
    ) -> None:
        self.clock = clock
        self.steps = list(steps or [])
        self.unavailable = unavailable
        self.fail_on_open = fail_on_open
        self.configs: list[SurfaceConfig] = []
        self.shown: list[list[bytes]] = []

    def unavailable_reason(self) -> str | None:
        return self.unavailable

    def open(self, config: SurfaceConfig) -> None:
        self.configs.append(config)
        self.shown.append([buffer.path.read_bytes() for buffer in config.buffers])
        if self.fail_on_open is not None:
            raise self.fail_on_open
        if not self.steps:
            return
        value, press_after = self.steps.pop(0)
        self.clock.advance(press_after)
        if value is not None:
            SignalChannel(config.signal_path).write(value, at=self.clock.now())


class BrokenReviewSurface(ScriptedReviewSurface):
    def open(self, config: SurfaceConfig) -> None:
        self.configs.append(config)
        raise SurfaceUnavailableError("review popup exited with status 1")


class StubFeedbackSurface:
    def __init__(self, text: str | None) -> None:
        self.text = text
        self.calls: list[str] = []

    def collect(self, invocation: Invocation) -> str | None:
        self.calls.append(invocation.id)
        return self.text


class StubExplainSurface:
    def __init__(self) -> None:
        self.diffs: list[str] = []

    def show(self, invocation: Invocation, diff_path: Path) -> None:
        self.diffs.append(diff_path.read_text(encoding="utf-8"))


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def settings(tmp_path: Path) -> GateSettings:
    return GateSettings(root=tmp_path / "review")


@pytest.fixture
def scripted_surface(clock: FakeClock) -> Callable[..., ScriptedReviewSurface]:
    def make(steps: list[tuple[str | None, float]] | None = None, **kwargs: object) -> ScriptedReviewSurface:
        return ScriptedReviewSurface(clock, steps, **kwargs)  # type: ignore[arg-type]

    return make


@pytest.fixture
def broken_surface(clock: FakeClock) -> BrokenReviewSurface:
    return BrokenReviewSurface(clock)


@pytest.fixture
def feedback_surface() -> Callable[[str | None], StubFeedbackSurface]:
    return StubFeedbackSurface


@pytest.fixture
def explain_surface() -> StubExplainSurface:
    return StubExplainSurface()
