"""Editor launch helper for jumping to a failure location.

Runs ``$EDITOR +line file`` while temporarily leaving raw/alternate-screen TUI mode.
Returns an error message string instead of raising for UI-friendly handling.
"""

from __future__ import annotations

import os
import shlex
import subprocess
from typing import Callable

from .diagnostics import SourceLocation


def editor_command(editor: str, location: SourceLocation) -> list[str]:
    return [*shlex.split(editor), f"+{location.line}", str(location.path)]


def launch_editor(
    location: SourceLocation,
    disable_tui_mode: Callable[[], None],
    enable_tui_mode: Callable[[], None],
) -> str | None:
    editor_env = os.environ.get("VISUAL", "").strip() or os.environ.get("EDITOR", "").strip()
    if not editor_env:
        return "Cannot edit: $EDITOR is not set."
    cmd = editor_command(editor_env, location)
    if len(cmd) <= 2:
        return "Cannot edit: $EDITOR is empty."

    disable_tui_mode()
    try:
        subprocess.run(cmd, check=False)
    except OSError as exc:
        return f"Failed to launch editor: {exc}"
    finally:
        enable_tui_mode()
    return None
