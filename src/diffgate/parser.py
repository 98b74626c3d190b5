"""Normalize tool-call payloads into mutation descriptors."""

from __future__ import annotations

import json
import os.path
from pathlib import Path
from typing import Any, Mapping

from pydantic import ValidationError

from .errors import PayloadError
from .types import GatePayload, MutationDescriptor, MutationKind, ReplaceStrategy

_STRATEGIES: dict[str, ReplaceStrategy] = {
    "write": ReplaceStrategy.FULL,
    "edit": ReplaceStrategy.FRAGMENT,
}


def load_payload(raw: str | Mapping[str, Any]) -> GatePayload:
    """Decode a JSON document (or an already decoded mapping) into a payload."""
    data: Any = raw
    if isinstance(raw, str):
        if not raw.strip():
            return GatePayload()
        try:
            data = json.loads(raw)
        except json.JSONDecodeError as exc:
            raise PayloadError(f"payload is not valid JSON: {exc}") from exc
    if not isinstance(data, Mapping):
        raise PayloadError("payload must be a JSON object")
    try:
        return GatePayload.model_validate(dict(data))
    except ValidationError as exc:
        raise PayloadError(f"invalid payload: {exc}") from exc


def parse_mutation(payload: GatePayload) -> MutationDescriptor | None:
    """Return the proposed mutation, or None when there is nothing to review."""
    if not payload.file_path:
        return None
    strategy = _STRATEGIES.get(payload.tool.strip().lower())
    if strategy is None:
        return None

    working_dir = Path(payload.cwd).expanduser() if payload.cwd else None
    target = Path(payload.file_path).expanduser()
    if not target.is_absolute():
        target = (working_dir or Path.cwd()) / target
    target = Path(_normalize(target))
    if working_dir is not None:
        working_dir = Path(_normalize(working_dir.absolute()))

    kind = MutationKind.MODIFY if target.exists() else MutationKind.CREATE

    return MutationDescriptor(
        kind=kind,
        strategy=strategy,
        target_path=target,
        working_dir=working_dir,
        before_fragment=payload.old_string,
        after_fragment=payload.new_string,
        full_content=payload.content,
    )


def _normalize(path: Path) -> str:
    # Lexical only; symlinks in the target path are left alone.
    return os.path.normpath(str(path))
