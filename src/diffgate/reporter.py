"""Map review resolutions onto the gate's pass/fail contract."""

from __future__ import annotations

import sys
from typing import TextIO

from .types import Decision, GateOutcome, GateResult, ReviewResolution

FEEDBACK_MESSAGE = "User rejected this change with feedback: {feedback}"
GENERIC_FEEDBACK_MESSAGE = "User rejected this change. Please try a different approach."
CANCEL_MESSAGE = "User cancelled this change."


def to_result(resolution: ReviewResolution) -> GateResult:
    """Success for approve/timeout; rejection with a reason for everything else."""
    decision = resolution.decision
    if decision is Decision.APPROVE:
        reason = "surface_unavailable" if resolution.surface_unavailable else "approved"
        return GateResult(outcome=GateOutcome.ALLOW, reason=reason, decision=decision)
    if decision is Decision.TIMEOUT:
        return GateResult(outcome=GateOutcome.ALLOW, reason="timeout", decision=decision)
    if decision is Decision.FEEDBACK:
        feedback = (resolution.feedback or "").strip()
        message = FEEDBACK_MESSAGE.format(feedback=feedback) if feedback else GENERIC_FEEDBACK_MESSAGE
        return GateResult(
            outcome=GateOutcome.REJECT, reason="feedback", message=message, decision=decision
        )
    return GateResult(
        outcome=GateOutcome.REJECT, reason="cancelled", message=CANCEL_MESSAGE, decision=decision
    )


def allowed(reason: str) -> GateResult:
    """Success without a human decision (nothing to review, environment unavailable)."""
    return GateResult(outcome=GateOutcome.ALLOW, reason=reason)


def setup_failed(message: str) -> GateResult:
    return GateResult(outcome=GateOutcome.ERROR, reason="setup_failed", message=message)


def emit(result: GateResult, stream: TextIO | None = None) -> int:
    """Write the rejection or error message to the error channel; return the exit code."""
    if not result.allowed and result.message:
        out = stream if stream is not None else sys.stderr
        out.write(result.message + "\n")
        out.flush()
    return result.exit_code
