"""Human-approval gate for file mutations proposed by a coding agent.

Flow per call: parse payload -> check the review environment -> capture
snapshots -> take the system-wide review lock -> run the review session ->
release the lock and erase the workspace -> report.

Design notes:
- Nothing to review (no path, unknown tool) and an unavailable review
  environment both allow the mutation; the latter logs a warning.
- A target that cannot be read is a setup failure: no review is shown and
  the result is ``GateOutcome.ERROR``.
- Audit logging is best-effort and never changes the result.
"""

from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Any, Mapping

from .audit import AuditLogger, JsonlAuditLogger
from .clock import SYSTEM_CLOCK, Clock
from .config import GateSettings
from .controller import ReviewController
from .errors import AuditLogError, LockError, SnapshotError
from .lock import ReviewLock, review_lock
from .parser import load_payload, parse_mutation
from .reporter import allowed, setup_failed, to_result
from .snapshots import SnapshotManager
from .surfaces.base import ExplainSurface, FeedbackSurface, ReviewSurface
from .surfaces.tmux import TmuxExplainSurface, TmuxFeedbackSurface, TmuxReviewSurface
from .types import GatePayload, GateResult, MutationDescriptor, ReviewAuditEntry

_logger = logging.getLogger(__name__)

DEFAULT_SESSION_ID = "default"


class ReviewGate:
    """Blocks a proposed file mutation until a human decides on it."""

    def __init__(
        self,
        settings: GateSettings | None = None,
        *,
        review_surface: ReviewSurface | None = None,
        feedback_surface: FeedbackSurface | None = None,
        explain_surface: ExplainSurface | None = None,
        lock: ReviewLock | None = None,
        audit_logger: AuditLogger | None = None,
        clock: Clock = SYSTEM_CLOCK,
    ) -> None:
        self.settings = settings if settings is not None else GateSettings.from_env()
        self.review_surface = review_surface if review_surface is not None else TmuxReviewSurface()
        self.feedback_surface = (
            feedback_surface if feedback_surface is not None else TmuxFeedbackSurface()
        )
        self.explain_surface = (
            explain_surface if explain_surface is not None else TmuxExplainSurface()
        )
        self.clock = clock
        self.lock = lock if lock is not None else review_lock(
            self.settings.lock_path,
            stale_after=self.settings.lock_stale_after,
            retry_interval=self.settings.lock_retry_interval,
            clock=clock,
        )
        if audit_logger is None and self.settings.audit_log is not None:
            audit_logger = JsonlAuditLogger(self.settings.audit_log)
        self.audit_logger = audit_logger
        self.snapshots = SnapshotManager(self.settings.root)

    def review(self, payload: GatePayload | Mapping[str, Any] | str) -> GateResult:
        """Run one gate call. Raises PayloadError on an undecodable payload."""
        if not isinstance(payload, GatePayload):
            payload = load_payload(payload)
        mutation = parse_mutation(payload)
        if mutation is None:
            return allowed("no_review")

        reason = self.review_surface.unavailable_reason()
        if reason is not None:
            _logger.warning("%s, skipping review of %s", reason, mutation.display_path)
            result = allowed("environment_unavailable")
            self._audit(result, mutation)
            return result

        session_id = (
            payload.session_id or os.environ.get("OPENCODE_SESSION_ID") or DEFAULT_SESSION_ID
        )
        invocation_id: str | None = None
        explain_rounds = 0
        try:
            with self.snapshots.materialize(mutation, session_id) as invocation:
                invocation_id = invocation.id
                if invocation.original_path.read_bytes() == invocation.proposed_path.read_bytes():
                    _logger.info("proposed content for %s equals the original", mutation.display_path)
                with self.lock:
                    controller = ReviewController(
                        invocation,
                        review_surface=self.review_surface,
                        feedback_surface=self.feedback_surface,
                        explain_surface=self.explain_surface,
                        snapshots=self.snapshots,
                        settings=self.settings,
                        clock=self.clock,
                    )
                    resolution = controller.run()
                explain_rounds = resolution.explain_rounds
                result = to_result(resolution)
        except (SnapshotError, LockError) as exc:
            _logger.debug("review setup failed for %s", mutation.display_path, exc_info=True)
            result = setup_failed(f"diffgate: {exc}")

        self._audit(
            result,
            mutation,
            invocation_id=invocation_id,
            session_id=session_id,
            explain_rounds=explain_rounds,
        )
        return result

    def _audit(
        self,
        result: GateResult,
        mutation: MutationDescriptor,
        *,
        invocation_id: str | None = None,
        session_id: str | None = None,
        explain_rounds: int = 0,
    ) -> None:
        if self.audit_logger is None:
            return
        entry = ReviewAuditEntry(
            timestamp=datetime.now(timezone.utc),
            invocation_id=invocation_id,
            session_id=session_id,
            file_path=str(mutation.target_path),
            kind=mutation.kind,
            outcome=result.outcome,
            reason=result.reason,
            decision=result.decision,
            explain_rounds=explain_rounds,
            message=result.message,
        )
        try:
            self.audit_logger.log(entry)
        except AuditLogError as exc:
            _logger.warning("%s", exc)
