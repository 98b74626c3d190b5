"""Translate an invocation into the configuration of the review surface.

Design notes:
- All four decision keys are bound as soon as the editor starts. Until the
  activation delay elapses only approve does anything, and all it does is
  echo a "keys locked" notice. This keeps keystrokes that arrive while the
  popup grabs focus from turning into an instant approval.
- The editor reports the chosen action by writing it to the signal file and
  quitting; the gate polls that file.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import BaseModel

from ..types import Decision, Invocation

LOCKED_NOTICE = "Keys locked, review the diff first..."
LOCKED_STATUS = " Keys locked, reviewing... "


class BufferSpec(BaseModel):
    """One read-only buffer shown by the review surface."""

    model_config = {"frozen": True}

    label: str
    path: Path
    name: str


class KeyBinding(BaseModel):
    """A key that records a decision once the guard window has passed."""

    model_config = {"frozen": True}

    key: str
    decision: Decision
    label: str
    notice_when_locked: bool = False


class GuardWindow(BaseModel):
    """Interval after the surface opens during which no decision is accepted."""

    model_config = {"frozen": True}

    opened_at: float
    activation_delay: float

    @property
    def unlocks_at(self) -> float:
        return self.opened_at + self.activation_delay

    def is_unlocked(self, at: float) -> bool:
        return at >= self.unlocks_at


class SurfaceConfig(BaseModel):
    """Everything an external review surface needs for one round."""

    model_config = {"frozen": True}

    display_path: str
    target_path: str
    working_dir: str | None
    signal_path: Path
    script_path: Path
    buffers: tuple[BufferSpec, ...]
    bindings: tuple[KeyBinding, ...]
    activation_delay_ms: int
    locked_notice: str = LOCKED_NOTICE
    locked_status: str = LOCKED_STATUS

    @property
    def diff_mode(self) -> bool:
        return len(self.buffers) == 2

    @property
    def unlocked_status(self) -> str:
        return "  ".join(f"{_key_name(b.key)} {b.label}" for b in self.bindings) + " "


DEFAULT_BINDINGS: tuple[KeyBinding, ...] = (
    KeyBinding(key="<CR>", decision=Decision.APPROVE, label="Approve", notice_when_locked=True),
    KeyBinding(key="r", decision=Decision.FEEDBACK, label="Redo"),
    KeyBinding(key="e", decision=Decision.EXPLAIN, label="?Explain"),
    KeyBinding(key="q", decision=Decision.CANCEL, label="Cancel"),
)


def build_surface_config(
    invocation: Invocation,
    *,
    activation_delay_ms: int,
    bindings: tuple[KeyBinding, ...] = DEFAULT_BINDINGS,
) -> SurfaceConfig:
    """Two labelled buffers for a modification, one for a new file."""
    mutation = invocation.mutation
    target = str(mutation.target_path)
    if invocation.is_new_file:
        buffers: tuple[BufferSpec, ...] = (
            BufferSpec(label="NEW FILE", path=invocation.proposed_path, name=target),
        )
    else:
        buffers = (
            BufferSpec(label="ORIGINAL", path=invocation.original_path, name=target + ".orig"),
            BufferSpec(label="PROPOSED", path=invocation.proposed_path, name=target),
        )
    return SurfaceConfig(
        display_path=mutation.display_path,
        target_path=target,
        working_dir=str(mutation.working_dir) if mutation.working_dir is not None else None,
        signal_path=invocation.signal_path,
        script_path=invocation.script_path,
        buffers=buffers,
        bindings=bindings,
        activation_delay_ms=activation_delay_ms,
    )


def editor_command(config: SurfaceConfig, editor: str = "nvim") -> list[str]:
    """Editor argv: diff mode for two buffers, read-only view for one."""
    paths = [str(buffer.path) for buffer in config.buffers]
    flags = "-nd" if config.diff_mode else "-nR"
    return [editor, flags, *paths, "-S", str(config.script_path)]


def render_editor_script(config: SurfaceConfig) -> str:
    """Vim script wiring the guarded key bindings, labels and status line."""
    keys = ", ".join(f"{_key_name(b.key)}={b.decision.value}" for b in config.bindings)
    lines = [
        f'" diffgate review: {keys}',
        f"let g:diffgate_signal_file = {_vim_str(str(config.signal_path))}",
        f"let g:diffgate_cwd = {_vim_str(config.working_dir or '')}",
        "let g:diffgate_keys_active = 0",
        f"let g:diffgate_activation_delay = {int(config.activation_delay_ms)}",
        "",
        "function! DiffgateSignal(decision)",
        "    call writefile([a:decision], g:diffgate_signal_file)",
        "    sleep 100m",
        "    qa!",
        "endfunction",
        "",
        "function! DiffgateGuarded(decision)",
        "    if !g:diffgate_keys_active",
        f"        echo {_vim_str(config.locked_notice)}",
        "    else",
        "        call DiffgateSignal(a:decision)",
        "    endif",
        "endfunction",
        "",
        "function! DiffgateBindLocked()",
    ]
    for binding in config.bindings:
        if binding.notice_when_locked:
            lines.append(
                f"    nnoremap <buffer> {binding.key} "
                f":call DiffgateGuarded('{binding.decision.value}')<CR>"
            )
        else:
            lines.append(f"    nnoremap <buffer> {binding.key} <Nop>")
    lines += ["endfunction", "", "function! DiffgateBindActive()"]
    for binding in config.bindings:
        lines.append(
            f"    nnoremap <buffer> {binding.key} "
            f":call DiffgateSignal('{binding.decision.value}')<CR>"
        )
    lines += [
        "endfunction",
        "",
        "function! DiffgateEachWindow(func)",
        "    let l:current = winnr()",
        "    execute 'windo call ' . a:func . '()'",
        "    execute l:current . 'wincmd w'",
        "endfunction",
        "",
        "function! DiffgateActivateKeys(timer)",
        "    let g:diffgate_keys_active = 1",
        "    call DiffgateEachWindow('DiffgateBindActive')",
        "    redrawtabline",
        "    redraw",
        "endfunction",
        "",
        "set showtabline=2",
        "function! DiffgateTabline()",
        f"    let tl = '%#TabLineSel# DIFF REVIEW %#TabLine#| ' . {_vim_str(_statusline_escape(config.display_path))} . ' %='",
        "    if g:diffgate_keys_active",
        f"        let tl .= '%#TabLineSel#' . {_vim_str(_statusline_escape(config.unlocked_status))}",
        "    else",
        f"        let tl .= '%#ErrorMsg#' . {_vim_str(_statusline_escape(config.locked_status))}",
        "    endif",
        "    return tl",
        "endfunction",
        "set tabline=%!DiffgateTabline()",
        "",
        "function! s:DiffgateSetup()",
        "    if !empty(g:diffgate_cwd)",
        "        execute 'lcd ' . fnameescape(g:diffgate_cwd)",
        "    endif",
    ]
    for index, buffer in enumerate(config.buffers, start=1):
        lines += [
            f"    {index}wincmd w",
            f"    silent! execute 'file ' . fnameescape({_vim_str(buffer.name)})",
            "    setlocal nomodified",
            "    filetype detect",
            f"    let &l:winbar = {_vim_str('  ' + buffer.label + ' ')}",
            "    setlocal nomodifiable",
        ]
        if not config.diff_mode:
            lines.append("    setlocal wrap linebreak number cursorline")
    lines += [
        "    call DiffgateEachWindow('DiffgateBindLocked')",
        "    call timer_start(g:diffgate_activation_delay, 'DiffgateActivateKeys')",
        "endfunction",
        "autocmd VimEnter * call s:DiffgateSetup()",
        "",
    ]
    return "\n".join(lines)


def write_editor_script(config: SurfaceConfig) -> Path:
    config.script_path.write_text(render_editor_script(config), encoding="utf-8")
    return config.script_path


def _vim_str(value: str) -> str:
    return "'" + value.replace("'", "''") + "'"


def _statusline_escape(value: str) -> str:
    return value.replace("%", "%%")


def _key_name(key: str) -> str:
    return "Enter" if key == "<CR>" else key
