"""Review, feedback and explanation surfaces."""

from .adapter import (
    DEFAULT_BINDINGS,
    BufferSpec,
    GuardWindow,
    KeyBinding,
    SurfaceConfig,
    build_surface_config,
    editor_command,
    render_editor_script,
)
from .base import ExplainSurface, FeedbackSurface, ReviewSurface
from .tmux import (
    TmuxExplainSurface,
    TmuxFeedbackSurface,
    TmuxReviewSurface,
    check_environment,
)

__all__ = [
    "DEFAULT_BINDINGS",
    "BufferSpec",
    "GuardWindow",
    "KeyBinding",
    "SurfaceConfig",
    "build_surface_config",
    "editor_command",
    "render_editor_script",
    "ReviewSurface",
    "FeedbackSurface",
    "ExplainSurface",
    "TmuxReviewSurface",
    "TmuxFeedbackSurface",
    "TmuxExplainSurface",
    "check_environment",
]
