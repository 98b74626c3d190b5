"""Review session state machine.

States and transitions::

    IDLE -> PRESENTING -> AWAITING_DECISION -> RESOLVED
                 ^                |
                 +-- EXPLAINING <-+

AWAITING_DECISION also returns straight to PRESENTING when the signal was
recorded before the keys unlocked.

Design notes:
- A review surface that cannot be opened resolves the session as approved
  (fail open). This is an availability choice, not a security policy.
- No signal within ``decision_timeout`` resolves as ``timeout``, which the
  reporter also treats as success.
- Explanation rounds are unbounded; each one reopens the surface on the
  same snapshots.
- A signal recorded inside the guard window is never taken as a decision;
  the surface is presented again so the reviewer can still decide.
"""

from __future__ import annotations

import logging

from .channel import SignalChannel
from .clock import SYSTEM_CLOCK, Clock
from .config import GateSettings
from .errors import ReviewStateError, SurfaceUnavailableError, sanitize_exception
from .snapshots import SnapshotManager
from .surfaces.adapter import GuardWindow, build_surface_config
from .surfaces.base import ExplainSurface, FeedbackSurface, ReviewSurface
from .types import Decision, Invocation, ReviewResolution, ReviewState

_logger = logging.getLogger(__name__)

TRANSITIONS: dict[ReviewState, frozenset[ReviewState]] = {
    ReviewState.IDLE: frozenset({ReviewState.PRESENTING}),
    ReviewState.PRESENTING: frozenset({ReviewState.AWAITING_DECISION, ReviewState.RESOLVED}),
    ReviewState.AWAITING_DECISION: frozenset(
        {ReviewState.PRESENTING, ReviewState.EXPLAINING, ReviewState.RESOLVED}
    ),
    ReviewState.EXPLAINING: frozenset({ReviewState.PRESENTING}),
    ReviewState.RESOLVED: frozenset(),
}


class ReviewController:
    """Drives one invocation from first presentation to a terminal decision."""

    def __init__(
        self,
        invocation: Invocation,
        *,
        review_surface: ReviewSurface,
        feedback_surface: FeedbackSurface,
        explain_surface: ExplainSurface,
        snapshots: SnapshotManager,
        settings: GateSettings,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.invocation = invocation
        self.review_surface = review_surface
        self.feedback_surface = feedback_surface
        self.explain_surface = explain_surface
        self.snapshots = snapshots
        self.settings = settings
        self.clock = clock
        self.channel = SignalChannel(invocation.signal_path)
        self.explain_rounds = 0
        self.guard: GuardWindow | None = None

    @property
    def state(self) -> ReviewState:
        return self.invocation.state

    def run(self) -> ReviewResolution:
        """Present the change until a terminal decision is reached."""
        self._transition(ReviewState.PRESENTING)
        while True:
            try:
                self._present()
            except SurfaceUnavailableError as exc:
                _logger.warning("review surface unavailable, allowing change: %s", exc)
                return self._resolve(Decision.APPROVE, surface_unavailable=True)

            self._transition(ReviewState.AWAITING_DECISION)
            decision = self._await_decision()
            if decision is None:
                self._transition(ReviewState.PRESENTING)
                continue
            _logger.debug("invocation %s decided %s", self.invocation.id, decision.value)

            if decision is Decision.EXPLAIN:
                self._transition(ReviewState.EXPLAINING)
                self._explain()
                self._transition(ReviewState.PRESENTING)
                continue
            if decision is Decision.FEEDBACK:
                return self._resolve(decision, feedback=self.feedback_surface.collect(self.invocation))
            return self._resolve(decision)

    def _present(self) -> None:
        self.channel.clear()
        config = build_surface_config(
            self.invocation, activation_delay_ms=self.settings.activation_delay_ms
        )
        self.guard = GuardWindow(
            opened_at=self.clock.now(), activation_delay=self.settings.activation_delay
        )
        self.review_surface.open(config)

    def _await_decision(self) -> Decision | None:
        """Next decision, or None when the surface must be presented again."""
        assert self.guard is not None
        self.clock.sleep(self.settings.settle_delay)
        signal = self.channel.wait(
            self.clock,
            timeout=self.settings.decision_timeout,
            poll_interval=self.settings.poll_interval,
        )
        if signal is None:
            _logger.info("no decision within %.0fs, treating as timeout", self.settings.decision_timeout)
            return Decision.TIMEOUT
        if not self.guard.is_unlocked(signal.recorded_at):
            _logger.info(
                "ignoring %r recorded %.3fs before keys unlocked, presenting again",
                signal.value,
                self.guard.unlocks_at - signal.recorded_at,
            )
            return None
        decision = Decision.parse(signal.value)
        if decision is None or decision is Decision.TIMEOUT:
            _logger.warning("unrecognized decision signal %r, treating as cancel", signal.value)
            return Decision.CANCEL
        return decision

    def _explain(self) -> None:
        self.explain_rounds += 1
        try:
            diff_path = self.snapshots.write_diff(self.invocation)
            self.explain_surface.show(self.invocation, diff_path)
        except SurfaceUnavailableError as exc:
            _logger.warning("explanation unavailable: %s", exc)
        except OSError as exc:
            _logger.warning("cannot render diff: %s", sanitize_exception(exc))

    def _resolve(
        self,
        decision: Decision,
        *,
        feedback: str | None = None,
        surface_unavailable: bool = False,
    ) -> ReviewResolution:
        self._transition(ReviewState.RESOLVED)
        return ReviewResolution(
            decision=decision,
            feedback=feedback,
            explain_rounds=self.explain_rounds,
            surface_unavailable=surface_unavailable,
        )

    def _transition(self, target: ReviewState) -> None:
        current = self.invocation.state
        if target not in TRANSITIONS[current]:
            raise ReviewStateError(f"illegal transition {current.value} -> {target.value}")
        self.invocation.state = target
