"""Tests for typed models."""

from __future__ import annotations

from datetime import datetime, timezone
import json
from pathlib import Path

import pytest
from pydantic import ValidationError

from diffgate.types import (
    Decision,
    GateOutcome,
    GatePayload,
    GateResult,
    MutationDescriptor,
    MutationKind,
    ReplaceStrategy,
    ReviewAuditEntry,
)


def test_decision_parse() -> None:
    assert Decision.parse(" approve\n") is Decision.APPROVE
    assert Decision.parse("explain") is Decision.EXPLAIN
    assert Decision.parse("maybe") is None


def test_payload_none_values_become_empty() -> None:
    payload = GatePayload.model_validate({"tool": "write", "file_path": "/a", "content": None})
    assert payload.content == ""


def test_payload_accepts_tool_name_and_session_alias() -> None:
    payload = GatePayload.model_validate({"tool_name": "edit", "sessionID": "s1"})
    assert payload.tool == "edit"
    assert payload.session_id == "s1"


def test_payload_ignores_unknown_fields() -> None:
    payload = GatePayload.model_validate({"tool": "edit", "replace_all": True})
    assert payload.tool == "edit"


def test_descriptor_requires_absolute_path() -> None:
    with pytest.raises(ValidationError, match="absolute"):
        MutationDescriptor(
            kind=MutationKind.CREATE,
            strategy=ReplaceStrategy.FULL,
            target_path=Path("relative.py"),
        )


def test_descriptor_is_frozen(tmp_path: Path) -> None:
    descriptor = MutationDescriptor(
        kind=MutationKind.CREATE, strategy=ReplaceStrategy.FULL, target_path=tmp_path / "a.py"
    )
    with pytest.raises(ValidationError):
        descriptor.full_content = "x"  # type: ignore[misc]


@pytest.mark.parametrize(
    ("outcome", "code"),
    [(GateOutcome.ALLOW, 0), (GateOutcome.REJECT, 2), (GateOutcome.ERROR, 1)],
)
def test_gate_result_exit_codes(outcome: GateOutcome, code: int) -> None:
    result = GateResult(outcome=outcome, reason="r")
    assert result.exit_code == code
    assert result.allowed is (outcome is GateOutcome.ALLOW)


def test_audit_entry_requires_timezone() -> None:
    with pytest.raises(ValidationError, match="timezone-aware"):
        ReviewAuditEntry(
            timestamp=datetime(2026, 1, 1),
            file_path="/a",
            outcome=GateOutcome.ALLOW,
            reason="approved",
        )


def test_audit_entry_json_line_truncates_message() -> None:
    entry = ReviewAuditEntry(
        timestamp=datetime(2026, 1, 1, tzinfo=timezone.utc),
        file_path="/a",
        kind=MutationKind.MODIFY,
        outcome=GateOutcome.REJECT,
        reason="feedback",
        decision=Decision.FEEDBACK,
        message="x" * 300,
    )

    data = json.loads(entry.to_json_line())

    assert data["outcome"] == "reject"
    assert data["decision"] == "feedback"
    assert len(data["message"]) == 200
    assert data["message"].endswith("...")
    assert "invocation_id" not in data
