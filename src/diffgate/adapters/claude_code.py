"""Claude Code ``PreToolUse`` hook adapter.

Claude Code pipes a JSON document describing the pending tool call to the
hook's stdin. Exit status 2 blocks the call and feeds stderr back to the
agent, which matches the gate's own exit contract.
"""

from __future__ import annotations

from typing import Any, Mapping

from ..types import GatePayload

_TOOL_NAMES: dict[str, str] = {
    "Write": "write",
    "Edit": "edit",
}


def payload_from_hook(data: Mapping[str, Any]) -> GatePayload:
    """Build a gate payload; tools other than Write/Edit map to no review."""
    tool_input = data.get("tool_input")
    if not isinstance(tool_input, Mapping):
        tool_input = {}
    return GatePayload(
        tool=_TOOL_NAMES.get(str(data.get("tool_name") or ""), ""),
        file_path=tool_input.get("file_path") or "",
        old_string=tool_input.get("old_string") or "",
        new_string=tool_input.get("new_string") or "",
        content=tool_input.get("content") or "",
        cwd=data.get("cwd") or "",
        session_id=data.get("session_id") or "",
    )
