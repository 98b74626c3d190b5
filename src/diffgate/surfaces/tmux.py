"""tmux popup surfaces.

The review surface is a Neovim diff opened in a ``tmux display-popup``; the
feedback and explanation surfaces run this package's own terminal prompts in
smaller popups. Each call blocks until the popup is dismissed.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess
import sys
from pathlib import Path
from typing import Callable, Mapping

from ..errors import SurfaceUnavailableError, sanitize_exception
from ..types import Invocation
from .adapter import SurfaceConfig, editor_command, write_editor_script

_logger = logging.getLogger(__name__)

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]


def check_environment(
    environ: Mapping[str, str] | None = None,
    *,
    editor: str = "nvim",
    which: Callable[[str], str | None] = shutil.which,
) -> str | None:
    """Return what is missing for popup review, or None if everything is there."""
    env = os.environ if environ is None else environ
    if not env.get("TMUX"):
        return "not running inside tmux"
    if which("tmux") is None:
        return "tmux is required but not found"
    if which(editor) is None:
        return f"{editor} is required but not found"
    return None


def popup_command(argv: list[str], *, width: str, height: str) -> list[str]:
    return ["tmux", "display-popup", "-E", "-w", width, "-h", height, shlex.join(argv)]


def _self_command(*args: str) -> list[str]:
    return [sys.executable, "-m", "diffgate", *args]


class _Popup:
    def __init__(self, width: str, height: str, runner: Runner | None) -> None:
        self.width = width
        self.height = height
        self._runner = runner or subprocess.run

    def run(self, argv: list[str]) -> int:
        command = popup_command(argv, width=self.width, height=self.height)
        _logger.debug("opening popup: %s", command)
        try:
            completed = self._runner(command, check=False, stderr=subprocess.DEVNULL)
        except OSError as exc:
            raise SurfaceUnavailableError(f"cannot start tmux: {sanitize_exception(exc)}") from exc
        return completed.returncode


class TmuxReviewSurface:
    """Neovim diff in a 90% tmux popup."""

    def __init__(
        self,
        *,
        editor: str = "nvim",
        width: str = "90%",
        height: str = "90%",
        runner: Runner | None = None,
        environ: Mapping[str, str] | None = None,
    ) -> None:
        self.editor = editor
        self.environ = environ
        self._popup = _Popup(width, height, runner)

    def unavailable_reason(self) -> str | None:
        return check_environment(self.environ, editor=self.editor)

    def open(self, config: SurfaceConfig) -> None:
        try:
            write_editor_script(config)
        except OSError as exc:
            raise SurfaceUnavailableError(
                f"cannot write editor script: {sanitize_exception(exc)}"
            ) from exc
        code = self._popup.run(editor_command(config, self.editor))
        if code != 0:
            raise SurfaceUnavailableError(f"review popup exited with status {code}")


class TmuxFeedbackSurface:
    """Small popup asking why the change was rejected."""

    def __init__(self, *, width: str = "70%", height: str = "20%", runner: Runner | None = None) -> None:
        self._popup = _Popup(width, height, runner)

    def collect(self, invocation: Invocation) -> str | None:
        path = invocation.feedback_path
        path.unlink(missing_ok=True)
        try:
            code = self._popup.run(_self_command("feedback", str(path)))
        except SurfaceUnavailableError as exc:
            _logger.warning("feedback prompt unavailable: %s", exc)
            return None
        if code != 0:
            _logger.warning("feedback prompt exited with status %s", code)
            return None
        try:
            text = path.read_text(encoding="utf-8").strip()
        except FileNotFoundError:
            return None
        return text or None


class TmuxExplainSurface:
    """Popup rendering the diff and, when configured, an explanation of it."""

    def __init__(self, *, width: str = "80%", height: str = "80%", runner: Runner | None = None) -> None:
        self._popup = _Popup(width, height, runner)

    def show(self, invocation: Invocation, diff_path: Path) -> None:
        code = self._popup.run(
            _self_command("explain", str(diff_path), invocation.mutation.display_path)
        )
        if code != 0:
            raise SurfaceUnavailableError(f"explanation popup exited with status {code}")
