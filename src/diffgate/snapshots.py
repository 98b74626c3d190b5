"""Materialize original and proposed snapshots into an invocation workspace.

Design notes:
- Snapshots are bytes; fragments are UTF-8 encoded before substitution so
  files in other encodings pass through untouched outside the match.
- Fragment substitution is literal and replaces the first occurrence only.
- The workspace is removed when the ``materialize`` context exits, on
  every exit path.
"""

from __future__ import annotations

import difflib
import itertools
import logging
import os
import shutil
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .errors import SnapshotError, sanitize_exception
from .types import Invocation, MutationDescriptor, MutationKind, ReplaceStrategy

_logger = logging.getLogger(__name__)

_SEQUENCE = itertools.count(1)

_NO_NEWLINE = "\\ No newline at end of file\n"


def apply_fragment(original: bytes, before: str, after: str) -> bytes:
    """Replace the first literal occurrence of ``before`` with ``after``.

    An empty or absent ``before`` fragment leaves the content unchanged.
    """
    if not before:
        return original
    needle = before.encode("utf-8")
    if needle not in original:
        return original
    return original.replace(needle, after.encode("utf-8"), 1)


def read_original(mutation: MutationDescriptor) -> bytes:
    """Current on-disk content of the target; empty when it does not exist yet.

    Raises SnapshotError for a target that exists but cannot be read.
    """
    if mutation.kind is MutationKind.CREATE:
        return b""
    try:
        return mutation.target_path.read_bytes()
    except FileNotFoundError:
        return b""
    except OSError as exc:
        raise SnapshotError(
            f"cannot read {mutation.display_path}: {sanitize_exception(exc)}"
        ) from exc


def propose(mutation: MutationDescriptor, original: bytes) -> bytes:
    """Content the target would hold after the mutation is applied."""
    if mutation.strategy is ReplaceStrategy.FULL:
        return mutation.full_content.encode("utf-8")
    return apply_fragment(original, mutation.before_fragment, mutation.after_fragment)


def unified_diff(original: bytes, proposed: bytes, display_path: str) -> str:
    """Render a unified diff labelled with the display path."""
    old_lines = _split(original)
    new_lines = _split(proposed)
    out: list[str] = []
    for line in difflib.unified_diff(
        old_lines,
        new_lines,
        fromfile=f"original: {display_path}",
        tofile=f"proposed: {display_path}",
    ):
        out.append(line)
        if not line.endswith("\n"):
            out.append("\n" + _NO_NEWLINE)
    return "".join(out)


def _split(content: bytes) -> list[str]:
    return content.decode("utf-8", errors="replace").splitlines(keepends=True)


class SnapshotManager:
    """Owns the per-invocation workspaces below ``root``."""

    def __init__(self, root: Path) -> None:
        self.root = root

    def new_invocation_id(self, session_id: str) -> str:
        return f"{session_id}:{os.getpid()}-{next(_SEQUENCE)}"

    @contextmanager
    def materialize(self, mutation: MutationDescriptor, session_id: str) -> Iterator[Invocation]:
        """Capture both snapshots and yield the invocation that owns them."""
        original = read_original(mutation)
        proposed = propose(mutation, original)

        invocation_id = self.new_invocation_id(session_id)
        session_dir = self.root / _safe_component(session_id)
        workspace = session_dir / invocation_id.rsplit(":", 1)[1]
        try:
            if workspace.exists():
                shutil.rmtree(workspace)
            workspace.mkdir(parents=True)
            suffix = mutation.extension
            original_path = workspace / f"original{suffix}"
            proposed_path = workspace / f"proposed{suffix}"
            original_path.write_bytes(original)
            proposed_path.write_bytes(proposed)
        except OSError as exc:
            shutil.rmtree(workspace, ignore_errors=True)
            raise SnapshotError(f"cannot prepare review workspace: {sanitize_exception(exc)}") from exc

        invocation = Invocation(
            id=invocation_id,
            session_id=session_id,
            mutation=mutation,
            workspace=workspace,
            original_path=original_path,
            proposed_path=proposed_path,
        )
        _logger.debug("materialized %s for %s", invocation.id, mutation.display_path)
        try:
            yield invocation
        finally:
            shutil.rmtree(workspace, ignore_errors=True)
            try:
                session_dir.rmdir()
            except OSError:
                pass

    def write_diff(self, invocation: Invocation) -> Path:
        """Write the unified diff of the invocation's snapshots into its workspace."""
        text = unified_diff(
            invocation.original_path.read_bytes(),
            invocation.proposed_path.read_bytes(),
            invocation.mutation.display_path,
        )
        invocation.diff_path.write_text(text, encoding="utf-8")
        return invocation.diff_path


def _safe_component(value: str) -> str:
    cleaned = "".join(ch if ch.isalnum() or ch in "-_." else "_" for ch in value)
    return cleaned.strip(".") or "default"
