"""Surface interfaces for diffgate."""

from __future__ import annotations

from pathlib import Path
from typing import Protocol

from ..types import Invocation
from .adapter import SurfaceConfig


class ReviewSurface(Protocol):
    """Modal surface showing the change and recording a decision."""

    def unavailable_reason(self) -> str | None:
        """Why the surface cannot be shown here, or None when it can."""
        ...

    def open(self, config: SurfaceConfig) -> None:
        """Show the change and block until dismissed.

        Raises SurfaceUnavailableError when the surface cannot be opened.
        """
        ...


class FeedbackSurface(Protocol):
    """Prompt collecting free-text rejection feedback."""

    def collect(self, invocation: Invocation) -> str | None:
        """Return the reviewer's text, or None when nothing was entered."""
        ...


class ExplainSurface(Protocol):
    """Display explaining the diff of an invocation."""

    def show(self, invocation: Invocation, diff_path: Path) -> None:
        ...
