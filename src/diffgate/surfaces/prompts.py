"""Terminal prompts run inside the feedback and explanation popups."""

from __future__ import annotations

import logging
import shlex
import subprocess
from pathlib import Path

from rich.console import Console
from rich.markdown import Markdown
from rich.markup import escape
from rich.prompt import Prompt
from rich.syntax import Syntax

from ..errors import sanitize_exception

_logger = logging.getLogger(__name__)

EXPLAIN_TIMEOUT_SECONDS = 120

_EXPLAIN_PROMPT = (
    "An automated coding agent proposes the following change to {path}. "
    "Explain briefly what it does and point out anything risky. "
    "The unified diff is the source of truth.\n\n{diff}"
)


def prompt_feedback(output: Path, console: Console | None = None) -> int:
    """Ask for rejection feedback and write it to ``output``.

    Nothing is written when the reviewer enters no text or aborts.
    """
    console = console or Console()
    console.print("[bold yellow]Reject with feedback[/bold yellow]")
    console.print("[dim]What should be done differently? (Enter to submit, Ctrl-C to skip)[/dim]")
    try:
        text = Prompt.ask("Feedback", default="", show_default=False, console=console)
    except (KeyboardInterrupt, EOFError):
        return 0
    text = text.strip()
    if text:
        output.write_text(text + "\n", encoding="utf-8")
    return 0


def diff_stats(diff_text: str) -> tuple[int, int]:
    """Count added and removed lines of a unified diff."""
    added = removed = 0
    for line in diff_text.splitlines():
        if line.startswith("+") and not line.startswith("+++"):
            added += 1
        elif line.startswith("-") and not line.startswith("---"):
            removed += 1
    return added, removed


def render_diff(diff_text: str) -> Syntax:
    return Syntax(diff_text, "diff", theme="ansi_dark", word_wrap=True)


def run_explainer(command: str, diff_text: str, display_path: str) -> str | None:
    """Feed the diff to an external explainer command and return its output."""
    prompt = _EXPLAIN_PROMPT.format(path=display_path, diff=diff_text)
    try:
        completed = subprocess.run(
            shlex.split(command),
            input=prompt,
            capture_output=True,
            text=True,
            check=False,
            timeout=EXPLAIN_TIMEOUT_SECONDS,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        _logger.warning("explain command failed: %s", sanitize_exception(exc))
        return None
    if completed.returncode != 0:
        _logger.warning("explain command exited with status %s", completed.returncode)
        return None
    return completed.stdout.strip() or None


def show_explanation(
    diff_path: Path,
    display_path: str,
    *,
    explain_command: str | None = None,
    console: Console | None = None,
    wait: bool = True,
) -> int:
    """Render the change and wait for the reviewer to return to the diff."""
    console = console or Console()
    diff_text = diff_path.read_text(encoding="utf-8")
    added, removed = diff_stats(diff_text)

    console.rule(f"[bold]Changes to {escape(display_path)}[/bold]")
    console.print(f"[green]+{added}[/green] [red]-{removed}[/red]")
    if not diff_text.strip():
        console.print("[dim]No changes: the proposed content equals the original.[/dim]")
    else:
        console.print(render_diff(diff_text))

    if explain_command and diff_text.strip():
        with console.status("Asking for an explanation..."):
            explanation = run_explainer(explain_command, diff_text, display_path)
        if explanation:
            console.rule("[bold]Explanation[/bold]")
            console.print(Markdown(explanation))

    if wait:
        try:
            Prompt.ask(
                "[dim]Press Enter to return to the review[/dim]",
                default="",
                show_default=False,
                console=console,
            )
        except (KeyboardInterrupt, EOFError):
            pass
    return 0
