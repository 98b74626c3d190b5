"""diffgate public API."""

from .clock import Clock, SystemClock
from .config import GateSettings
from .controller import ReviewController
from .errors import (
    AuditLogError,
    ConfigError,
    DiffGateError,
    LockError,
    PayloadError,
    ReviewStateError,
    SnapshotError,
    SurfaceUnavailableError,
)
from .gate import ReviewGate
from .lock import LockHolder, ReviewLock, review_lock
from .parser import load_payload, parse_mutation
from .snapshots import SnapshotManager, apply_fragment, unified_diff
from .types import (
    Decision,
    GateOutcome,
    GatePayload,
    GateResult,
    Invocation,
    MutationDescriptor,
    MutationKind,
    ReplaceStrategy,
    ReviewResolution,
    ReviewState,
)

__all__ = (
    # Gate
    "ReviewGate",
    "ReviewController",
    "GateSettings",
    # Types
    "Decision",
    "GateOutcome",
    "GatePayload",
    "GateResult",
    "Invocation",
    "MutationDescriptor",
    "MutationKind",
    "ReplaceStrategy",
    "ReviewResolution",
    "ReviewState",
    # Parsing and snapshots
    "load_payload",
    "parse_mutation",
    "SnapshotManager",
    "apply_fragment",
    "unified_diff",
    # Lock
    "LockHolder",
    "ReviewLock",
    "review_lock",
    # Time
    "Clock",
    "SystemClock",
    # Errors
    "DiffGateError",
    "ConfigError",
    "PayloadError",
    "SnapshotError",
    "LockError",
    "SurfaceUnavailableError",
    "ReviewStateError",
    "AuditLogError",
)
