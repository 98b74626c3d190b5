"""Typed models for diffgate."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
import json
from pathlib import Path
from typing import Any

from pydantic import AliasChoices, BaseModel, Field, field_validator


class MutationKind(str, Enum):
    """Kind of change an agent proposes for a file."""

    CREATE = "create"
    MODIFY = "modify"


class ReplaceStrategy(str, Enum):
    """How the proposed content is derived from the payload."""

    FULL = "full"
    FRAGMENT = "fragment"


class Decision(str, Enum):
    """Terminal input resolving one review round."""

    APPROVE = "approve"
    FEEDBACK = "feedback"
    EXPLAIN = "explain"
    CANCEL = "cancel"
    TIMEOUT = "timeout"

    @classmethod
    def parse(cls, value: str) -> "Decision | None":
        try:
            return cls(value.strip())
        except ValueError:
            return None


class ReviewState(str, Enum):
    """Lifecycle of a review session."""

    IDLE = "idle"
    PRESENTING = "presenting"
    AWAITING_DECISION = "awaiting_decision"
    EXPLAINING = "explaining"
    RESOLVED = "resolved"


class GateOutcome(str, Enum):
    """Pass/fail contract handed back to the calling agent runtime."""

    ALLOW = "allow"
    REJECT = "reject"
    ERROR = "error"


class GatePayload(BaseModel):
    """Raw tool-call payload received by the gate."""

    model_config = {"populate_by_name": True, "extra": "ignore"}

    tool: str = Field(default="", validation_alias=AliasChoices("tool", "tool_name"))
    file_path: str = Field(default="", validation_alias=AliasChoices("file_path", "filePath"))
    old_string: str = Field(default="", validation_alias=AliasChoices("old_string", "oldString"))
    new_string: str = Field(default="", validation_alias=AliasChoices("new_string", "newString"))
    content: str = ""
    cwd: str = ""
    session_id: str = Field(default="", validation_alias=AliasChoices("session_id", "sessionID"))

    @field_validator("*", mode="before")
    @classmethod
    def _none_to_empty(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value


class MutationDescriptor(BaseModel):
    """Normalized description of one proposed file change."""

    model_config = {"frozen": True}

    kind: MutationKind
    strategy: ReplaceStrategy
    target_path: Path
    working_dir: Path | None = None
    before_fragment: str = ""
    after_fragment: str = ""
    full_content: str = ""

    @field_validator("target_path")
    @classmethod
    def _target_absolute(cls, value: Path) -> Path:
        if not value.is_absolute():
            raise ValueError("target_path must be absolute")
        return value

    @property
    def display_path(self) -> str:
        """Target path relative to the working directory when it lives inside it."""
        if self.working_dir is not None:
            try:
                return self.target_path.relative_to(self.working_dir).as_posix()
            except ValueError:
                pass
        return str(self.target_path)

    @property
    def extension(self) -> str:
        return self.target_path.suffix


class Invocation(BaseModel):
    """One gate call covering exactly one mutation."""

    id: str
    session_id: str
    mutation: MutationDescriptor
    workspace: Path
    original_path: Path
    proposed_path: Path
    state: ReviewState = ReviewState.IDLE

    @property
    def signal_path(self) -> Path:
        return self.workspace / "signal"

    @property
    def feedback_path(self) -> Path:
        return self.workspace / "feedback.txt"

    @property
    def diff_path(self) -> Path:
        return self.workspace / "changes.diff"

    @property
    def script_path(self) -> Path:
        return self.workspace / "review.vim"

    @property
    def is_new_file(self) -> bool:
        return self.mutation.kind is MutationKind.CREATE


class ReviewResolution(BaseModel):
    """Terminal state of a review session."""

    model_config = {"frozen": True}

    decision: Decision
    feedback: str | None = None
    explain_rounds: int = 0
    surface_unavailable: bool = False


class GateResult(BaseModel):
    """Tagged result of a gate call."""

    model_config = {"frozen": True}

    outcome: GateOutcome
    reason: str
    message: str | None = None
    decision: Decision | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome is GateOutcome.ALLOW

    @property
    def exit_code(self) -> int:
        """Process exit code understood by hook-based agent runtimes."""
        if self.outcome is GateOutcome.ALLOW:
            return 0
        if self.outcome is GateOutcome.REJECT:
            return 2
        return 1


class ReviewAuditEntry(BaseModel):
    """Audit log entry for JSONL output, one per gate call."""

    timestamp: datetime
    invocation_id: str | None = None
    session_id: str | None = None
    file_path: str
    kind: MutationKind | None = None
    outcome: GateOutcome
    reason: str
    decision: Decision | None = None
    explain_rounds: int = 0
    message: str | None = None

    @field_validator("timestamp")
    @classmethod
    def _timestamp_timezone_aware(cls, value: datetime) -> datetime:
        if value.tzinfo is None or value.tzinfo.utcoffset(value) is None:
            raise ValueError("timestamp must be timezone-aware")
        return value

    @field_validator("message", mode="before")
    @classmethod
    def _truncate_message(cls, value: str | None) -> str | None:
        if value is None:
            return None
        if len(value) > 200:
            return value[:197] + "..."
        return value

    def to_json_line(self) -> str:
        """Render the entry as a single JSON line."""
        return json.dumps(self.model_dump(mode="json", exclude_none=True))
