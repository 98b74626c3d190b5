"""Tests for the surface adapter and the tmux surfaces."""

from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Any, Iterator

import pytest

from diffgate.errors import SurfaceUnavailableError
from diffgate.snapshots import SnapshotManager
from diffgate.surfaces.adapter import (
    GuardWindow,
    build_surface_config,
    editor_command,
    render_editor_script,
)
from diffgate.surfaces.tmux import (
    TmuxExplainSurface,
    TmuxFeedbackSurface,
    TmuxReviewSurface,
    check_environment,
    popup_command,
)
from diffgate.types import Decision, Invocation, MutationDescriptor, MutationKind, ReplaceStrategy


class RecordingRunner:
    """Stands in for subprocess.run."""

    def __init__(self, returncode: int = 0, on_run: Any = None) -> None:
        self.returncode = returncode
        self.on_run = on_run
        self.commands: list[list[str]] = []

    def __call__(self, command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[bytes]:
        self.commands.append(command)
        if self.on_run is not None:
            self.on_run(command)
        return subprocess.CompletedProcess(command, self.returncode)


def _mutation(tmp_path: Path, kind: MutationKind) -> MutationDescriptor:
    target = tmp_path / "proj" / "it's.py"
    target.parent.mkdir(parents=True, exist_ok=True)
    if kind is MutationKind.MODIFY:
        target.write_text("a = 1\n", encoding="utf-8")
        return MutationDescriptor(
            kind=kind,
            strategy=ReplaceStrategy.FRAGMENT,
            target_path=target,
            working_dir=tmp_path / "proj",
            before_fragment="1",
            after_fragment="2",
        )
    return MutationDescriptor(
        kind=kind,
        strategy=ReplaceStrategy.FULL,
        target_path=target,
        working_dir=tmp_path / "proj",
        full_content="b = 2\n",
    )


@pytest.fixture
def modify_invocation(tmp_path: Path) -> Iterator[Invocation]:
    with SnapshotManager(tmp_path / "review").materialize(
        _mutation(tmp_path, MutationKind.MODIFY), "sess"
    ) as invocation:
        yield invocation


@pytest.fixture
def create_invocation(tmp_path: Path) -> Iterator[Invocation]:
    with SnapshotManager(tmp_path / "review").materialize(
        _mutation(tmp_path, MutationKind.CREATE), "sess"
    ) as invocation:
        yield invocation


def test_modify_config_has_two_labelled_buffers(modify_invocation: Invocation) -> None:
    config = build_surface_config(modify_invocation, activation_delay_ms=1500)

    assert config.diff_mode
    assert [b.label for b in config.buffers] == ["ORIGINAL", "PROPOSED"]
    assert config.buffers[0].path == modify_invocation.original_path
    assert config.buffers[1].path == modify_invocation.proposed_path
    assert config.buffers[0].name.endswith(".orig")
    assert config.display_path == "it's.py"
    assert [b.decision for b in config.bindings] == [
        Decision.APPROVE,
        Decision.FEEDBACK,
        Decision.EXPLAIN,
        Decision.CANCEL,
    ]


def test_create_config_has_single_new_file_buffer(create_invocation: Invocation) -> None:
    config = build_surface_config(create_invocation, activation_delay_ms=0)

    assert not config.diff_mode
    assert [b.label for b in config.buffers] == ["NEW FILE"]
    assert config.buffers[0].path == create_invocation.proposed_path


def test_editor_command(modify_invocation: Invocation, create_invocation: Invocation) -> None:
    diff = build_surface_config(modify_invocation, activation_delay_ms=1500)
    single = build_surface_config(create_invocation, activation_delay_ms=1500)

    assert editor_command(diff)[:2] == ["nvim", "-nd"]
    assert editor_command(diff)[-2:] == ["-S", str(modify_invocation.script_path)]
    assert editor_command(single) == [
        "nvim",
        "-nR",
        str(create_invocation.proposed_path),
        "-S",
        str(create_invocation.script_path),
    ]


def test_script_guards_keys_until_delay(modify_invocation: Invocation) -> None:
    config = build_surface_config(modify_invocation, activation_delay_ms=2500)
    script = render_editor_script(config)

    locked = script.split("function! DiffgateBindLocked()")[1].split("endfunction")[0]
    assert "nnoremap <buffer> <CR> :call DiffgateGuarded('approve')<CR>" in locked
    assert "nnoremap <buffer> r <Nop>" in locked
    assert "nnoremap <buffer> e <Nop>" in locked
    assert "nnoremap <buffer> q <Nop>" in locked

    active = script.split("function! DiffgateBindActive()")[1].split("endfunction")[0]
    for key, value in (("<CR>", "approve"), ("r", "feedback"), ("e", "explain"), ("q", "cancel")):
        assert f"nnoremap <buffer> {key} :call DiffgateSignal('{value}')<CR>" in active

    assert "let g:diffgate_activation_delay = 2500" in script
    assert "timer_start(g:diffgate_activation_delay, 'DiffgateActivateKeys')" in script
    assert "Keys locked, review the diff first..." in script
    assert f"let g:diffgate_signal_file = '{modify_invocation.signal_path}'" in script


def test_script_escapes_quotes_and_percent(modify_invocation: Invocation) -> None:
    script = render_editor_script(build_surface_config(modify_invocation, activation_delay_ms=0))

    assert "'  ORIGINAL '" in script
    assert "it''s.py" in script
    assert "it's.py" not in script.replace("it''s.py", "")


def test_guard_window() -> None:
    guard = GuardWindow(opened_at=100.0, activation_delay=1.5)

    assert guard.unlocks_at == 101.5
    assert not guard.is_unlocked(101.4)
    assert guard.is_unlocked(101.5)


def test_check_environment() -> None:
    def which_all(name: str) -> str:
        return f"/usr/bin/{name}"

    assert check_environment({}, which=which_all) == "not running inside tmux"
    assert check_environment({"TMUX": "/tmp/tmux-0/default,1,0"}, which=which_all) is None
    assert check_environment({"TMUX": "x"}, which=lambda name: None) == "tmux is required but not found"
    assert (
        check_environment({"TMUX": "x"}, which=lambda name: None if name == "nvim" else name)
        == "nvim is required but not found"
    )


def test_popup_command_quotes_argv() -> None:
    command = popup_command(["nvim", "-nd", "a b", "c"], width="90%", height="90%")
    assert command == ["tmux", "display-popup", "-E", "-w", "90%", "-h", "90%", "nvim -nd 'a b' c"]


def test_review_surface_writes_script_and_opens_popup(modify_invocation: Invocation) -> None:
    runner = RecordingRunner()
    surface = TmuxReviewSurface(runner=runner, environ={"TMUX": "x"})
    config = build_surface_config(modify_invocation, activation_delay_ms=1500)

    surface.open(config)

    assert modify_invocation.script_path.exists()
    assert runner.commands[0][:3] == ["tmux", "display-popup", "-E"]
    assert "nvim -nd" in runner.commands[0][-1]


def test_review_surface_failure_is_unavailable(modify_invocation: Invocation) -> None:
    surface = TmuxReviewSurface(runner=RecordingRunner(returncode=1))

    with pytest.raises(SurfaceUnavailableError, match="status 1"):
        surface.open(build_surface_config(modify_invocation, activation_delay_ms=0))


def test_review_surface_missing_tmux_is_unavailable(modify_invocation: Invocation) -> None:
    def missing(command: list[str], **kwargs: Any) -> subprocess.CompletedProcess[bytes]:
        raise FileNotFoundError(2, "No such file or directory")

    surface = TmuxReviewSurface(runner=missing)

    with pytest.raises(SurfaceUnavailableError, match="cannot start tmux"):
        surface.open(build_surface_config(modify_invocation, activation_delay_ms=0))


def test_feedback_surface_reads_text(modify_invocation: Invocation) -> None:
    def type_feedback(command: list[str]) -> None:
        modify_invocation.feedback_path.write_text("  wrong approach\n", encoding="utf-8")

    runner = RecordingRunner(on_run=type_feedback)
    text = TmuxFeedbackSurface(runner=runner).collect(modify_invocation)

    assert text == "wrong approach"
    assert "feedback" in runner.commands[0][-1]
    assert str(modify_invocation.feedback_path) in runner.commands[0][-1]


def test_feedback_surface_without_text(modify_invocation: Invocation) -> None:
    assert TmuxFeedbackSurface(runner=RecordingRunner()).collect(modify_invocation) is None


def test_feedback_surface_failure_returns_none(modify_invocation: Invocation) -> None:
    def type_then_fail(command: list[str]) -> None:
        modify_invocation.feedback_path.write_text("ignored", encoding="utf-8")

    runner = RecordingRunner(returncode=1, on_run=type_then_fail)
    assert TmuxFeedbackSurface(runner=runner).collect(modify_invocation) is None


def test_explain_surface(modify_invocation: Invocation) -> None:
    runner = RecordingRunner()
    diff_path = modify_invocation.diff_path
    TmuxExplainSurface(runner=runner).show(modify_invocation, diff_path)

    assert runner.commands[0][4:7] == ["80%", "-h", "80%"]
    assert "explain" in runner.commands[0][-1]

    with pytest.raises(SurfaceUnavailableError):
        TmuxExplainSurface(runner=RecordingRunner(returncode=3)).show(modify_invocation, diff_path)
