"""Command-line interface for diffgate."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

from .adapters.claude_code import payload_from_hook
from .config import GateSettings
from .errors import DiffGateError
from .gate import ReviewGate
from .lock import ReviewLock
from .parser import load_payload
from .reporter import emit
from .surfaces.prompts import prompt_feedback, show_explanation
from .types import GatePayload


def _configure_logging(verbose: bool) -> None:
    handler = RichHandler(
        console=Console(stderr=True),
        show_time=False,
        show_path=False,
        markup=False,
    )
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        handlers=[handler],
        force=True,
    )


def _parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="diffgate", add_help=True)
    parser.add_argument("-v", "--verbose", action="store_true", help="Log debug output to stderr")
    subparsers = parser.add_subparsers(dest="command", required=True)

    review_parser = subparsers.add_parser(
        "review", help="Review a proposed write/edit (exit 0 allow, 2 reject)"
    )
    review_parser.add_argument(
        "payload_path",
        nargs="?",
        type=Path,
        help="Path to the JSON payload (default: read stdin)",
    )

    subparsers.add_parser("hook", help="Run as a Claude Code PreToolUse hook (payload on stdin)")

    feedback_parser = subparsers.add_parser("feedback", help="Prompt for rejection feedback")
    feedback_parser.add_argument("output", type=Path, help="File receiving the feedback text")

    explain_parser = subparsers.add_parser("explain", help="Show a rendered diff")
    explain_parser.add_argument("diff_path", type=Path, help="Unified diff file")
    explain_parser.add_argument("display_path", help="Path shown in the header")
    explain_parser.add_argument(
        "--no-wait", dest="wait", action="store_false", help="Do not wait for Enter"
    )

    subparsers.add_parser("unlock", help="Remove the review lock regardless of its holder")
    subparsers.add_parser("status", help="Show who holds the review lock")

    return parser.parse_args(argv)


def _read_json(path: Path | None) -> str:
    if path is None or str(path) == "-":
        return sys.stdin.read()
    return path.read_text(encoding="utf-8")


def _run_gate(payload: GatePayload) -> int:
    gate = ReviewGate(GateSettings.from_env())
    return emit(gate.review(payload))


def _cmd_review(payload_path: Path | None) -> int:
    try:
        raw = _read_json(payload_path)
    except OSError as exc:
        print(f"diffgate: cannot read payload: {exc}", file=sys.stderr)
        return 1
    return _run_gate(load_payload(raw))


def _cmd_hook() -> int:
    raw = sys.stdin.read()
    if not raw.strip():
        return 0
    try:
        data = json.loads(raw)
    except json.JSONDecodeError as exc:
        print(f"diffgate: hook input is not valid JSON: {exc}", file=sys.stderr)
        return 1
    if not isinstance(data, dict):
        return 0
    return _run_gate(payload_from_hook(data))


def _cmd_explain(diff_path: Path, display_path: str, wait: bool) -> int:
    settings = GateSettings.from_env()
    try:
        return show_explanation(
            diff_path,
            display_path,
            explain_command=settings.explain_command,
            wait=wait,
        )
    except FileNotFoundError:
        print("diff file not found", file=sys.stderr)
        return 1


def _cmd_unlock() -> int:
    settings = GateSettings.from_env()
    lock = ReviewLock(settings.lock_path)
    if lock.force_release():
        print(f"removed review lock {settings.lock_path}")
    else:
        print("review lock not held")
    return 0


def _cmd_status() -> int:
    settings = GateSettings.from_env()
    lock = ReviewLock(settings.lock_path)
    age = lock.age()
    if age is None:
        print("review lock not held")
        return 0
    holder = lock.holder()
    pid = holder.pid if holder is not None else "unknown"
    stale = " (stale)" if age > settings.lock_stale_after else ""
    print(f"review lock held by pid {pid} for {age:.0f}s{stale}")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = _parse_args(sys.argv[1:] if argv is None else argv)
    _configure_logging(args.verbose)
    try:
        if args.command == "review":
            return _cmd_review(args.payload_path)
        if args.command == "hook":
            return _cmd_hook()
        if args.command == "feedback":
            return prompt_feedback(args.output)
        if args.command == "explain":
            return _cmd_explain(args.diff_path, args.display_path, args.wait)
        if args.command == "unlock":
            return _cmd_unlock()
        if args.command == "status":
            return _cmd_status()
    except DiffGateError as exc:
        print(f"diffgate: {exc}", file=sys.stderr)
        return 1
    print("unknown command", file=sys.stderr)
    return 1


if __name__ == "__main__":
    sys.exit(main())
