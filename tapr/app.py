"""Runtime composition for tapr.

Wires the run controller, key bindings, preview, and rendering into the
interactive loop, and provides the plain report used without a terminal.
"""

from __future__ import annotations

import logging
import shutil
import sys
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import TextIO

from .diagnostics import extract_locations, first_location, SourceLocation
from .editor import launch_editor
from .failures import FailureEntry
from .input import read_key
from .keymap import CommandHandlers, KeyComboRegistry, build_key_registry
from .preview import build_source_preview
from .render import (
    RenderContext,
    TreeRow,
    build_tree_rows,
    compute_left_width,
    failure_detail_lines,
    render_frame,
    status_text,
    summary_lines,
)
from .runner import RunController, RunSnapshot
from .state import AppState
from .terminal import TerminalController

logger = logging.getLogger(__name__)

KEY_TIMEOUT_MS = 100
STATUS_MESSAGE_SECONDS = 3.0
PREVIEW_MIN_ROWS = 5


@dataclass(frozen=True)
class ViewOptions:
    location_query: str
    style: str
    preview: bool
    no_color: bool = False
    base_dir: Path | None = None


class TapRunnerApp:
    """Interactive session state layered over one ``RunController``."""

    def __init__(
        self,
        controller: RunController,
        options: ViewOptions,
        terminal: TerminalController | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.controller = controller
        self.options = options
        self.terminal = terminal
        self.state = AppState()
        self._clock = clock
        self._rows: list[TreeRow] = []
        self._row_by_path: dict[tuple[int, ...], int] = {}
        self._rows_snapshot: RunSnapshot | None = None
        self.registry: KeyComboRegistry = build_key_registry(
            CommandHandlers(
                relaunch=self.relaunch,
                quit=self.quit,
                select_next=self.select_next,
                select_previous=self.select_previous,
                unselect=self.unselect,
                edit_location=self.edit_location,
                toggle_help=self.toggle_help,
            )
        )

    # Commands

    def relaunch(self) -> bool:
        if self.controller.request_run():
            self.state.dirty = True
            return True
        self.set_status_message("run already in progress")
        return False

    def quit(self) -> bool:
        self.state.quit_requested = True
        return True

    def select_next(self) -> bool:
        moved = self.controller.cursor.select_next()
        self.state.dirty = self.state.dirty or moved
        return moved

    def select_previous(self) -> bool:
        moved = self.controller.cursor.select_previous()
        self.state.dirty = self.state.dirty or moved
        return moved

    def unselect(self) -> bool:
        moved = self.controller.cursor.unselect()
        self.state.dirty = self.state.dirty or moved
        return moved

    def toggle_help(self) -> bool:
        self.state.show_help = not self.state.show_help
        self.state.dirty = True
        return True

    def edit_location(self) -> bool:
        location = self.selected_location()
        if location is None:
            self.set_status_message("no source location for this failure")
            return False
        if self.terminal is None:
            return False
        error = launch_editor(location, self.terminal.disable_tui_mode, self.terminal.enable_tui_mode)
        if error:
            self.set_status_message(error)
        self.state.dirty = True
        return error is None

    def set_status_message(self, message: str) -> None:
        self.state.status_message = message
        self.state.status_message_until = self._clock() + STATUS_MESSAGE_SECONDS
        self.state.dirty = True

    # Derived view data

    def rows(self) -> list[TreeRow]:
        snapshot = self.controller.snapshot
        if snapshot is not self._rows_snapshot:
            self._rows_snapshot = snapshot
            self._rows = build_tree_rows(self.controller.tree)
            self._row_by_path = {row.path: idx for idx, row in enumerate(self._rows)}
            self.state.row_start = 0
        return self._rows

    def selected_failure(self) -> FailureEntry | None:
        return self.controller.selected_failure()

    def selected_row(self) -> int | None:
        entry = self.selected_failure()
        if entry is None:
            return None
        self.rows()
        return self._row_by_path.get(entry.path)

    def selected_location(self) -> SourceLocation | None:
        entry = self.selected_failure()
        if entry is None:
            return None
        return first_location(entry.summary.diagnostics, self.options.location_query, self.options.base_dir)

    def detail_lines(self, rows: int, width: int = 40) -> list[str]:
        entry = self.selected_failure()
        if entry is None:
            return summary_lines(
                self.controller.phase,
                self.controller.snapshot,
                self.controller.failure,
                width,
            )
        locations = extract_locations(entry.summary.diagnostics, self.options.location_query)
        location = self.selected_location()
        preview = None
        if location is not None and self.options.preview:
            detail_rows = len(failure_detail_lines(entry, None, locations, self.options.style, self.options.no_color))
            preview_rows = max(PREVIEW_MIN_ROWS, rows - detail_rows - 1)
            preview = build_source_preview(location, preview_rows, self.options.style, self.options.no_color)
        return failure_detail_lines(entry, preview, locations, self.options.style, self.options.no_color)

    def scroll_to_selection(self, content_rows: int) -> None:
        rows = self.rows()
        selected = self.selected_row()
        start = self.state.row_start
        if selected is not None:
            if selected < start:
                start = selected
            elif selected >= start + content_rows:
                start = selected - content_rows + 1
        start = max(0, min(start, max(0, len(rows) - content_rows)))
        if start != self.state.row_start:
            self.state.row_start = start
            self.state.dirty = True

    def build_context(self, columns: int, lines: int) -> RenderContext:
        content_rows = max(1, lines - 1)
        self.scroll_to_selection(content_rows)
        return RenderContext(
            rows=self.rows(),
            row_start=self.state.row_start,
            selected_row=self.selected_row(),
            width=columns,
            height=lines,
            status=status_text(
                self.controller.phase,
                self.controller.run_number,
                self.controller.snapshot,
                self.controller.stale,
                self.controller.cursor.selected,
                self.state.status_message,
            ),
            detail_lines=self.detail_lines(content_rows, max(1, columns - compute_left_width(columns) - 1)),
            show_help=self.state.show_help,
        )

    # Loop

    def tick(self) -> None:
        """Consume worker results and expire the status message."""
        if self.controller.poll():
            self.state.dirty = True
        if self.state.status_message and self._clock() >= self.state.status_message_until:
            self.state.status_message = ""
            self.state.status_message_until = 0.0
            self.state.dirty = True

    def handle_key(self, key: str) -> bool:
        """Dispatch one key token; returns whether the loop should stop."""
        if self.state.skip_next_lf and key == "ENTER_LF":
            self.state.skip_next_lf = False
            return False
        self.state.skip_next_lf = key == "ENTER_CR"
        if key in {"ENTER_CR", "ENTER_LF"}:
            key = "ENTER"
        self.registry.dispatch(key)
        return self.state.quit_requested

    def run(self, stdin_fd: int) -> None:
        """Run the interactive loop until a quit command."""
        assert self.terminal is not None
        self.controller.request_run()
        last_size = None
        with self.terminal.raw_mode():
            while True:
                self.tick()
                term = shutil.get_terminal_size((80, 24))
                if term != last_size:
                    last_size = term
                    self.state.dirty = True
                if self.state.dirty:
                    # Clear first so a render that triggers relayout is not lost.
                    self.state.dirty = False
                    render_frame(self.build_context(term.columns, term.lines))
                try:
                    key = read_key(stdin_fd, timeout_ms=KEY_TIMEOUT_MS)
                except KeyboardInterrupt:
                    continue
                if key == "":
                    continue
                if self.handle_key(key):
                    break


def write_report(controller: RunController, out: TextIO, location_query: str) -> int:
    """Print a plain summary of the latest cycle; returns an exit status."""
    failure = controller.failure
    if failure is not None:
        out.write(f"tapr: {failure.kind.value}: {failure.message}\n")
        if failure.detail:
            out.write(failure.detail.rstrip("\n") + "\n")
        return 1

    snapshot = controller.snapshot
    if snapshot is None:
        out.write("tapr: no results\n")
        return 1

    counts = snapshot.counts
    out.write(f"{counts.passed} passed, {counts.failed} failed, {counts.skipped} skipped, {counts.todo} todo\n")
    for entry in snapshot.failures:
        locations = extract_locations(entry.summary.diagnostics, location_query)
        suffix = f" ({', '.join(locations)})" if locations else ""
        description = f" - {entry.summary.description}" if entry.summary.description else ""
        out.write(f"not ok {entry.label}{description}{suffix}\n")
    for anomaly in snapshot.anomalies:
        out.write(f"warning: {anomaly}\n")
    return 1 if snapshot.failures else 0


def run_once(controller: RunController, location_query: str, out: TextIO | None = None) -> int:
    """Run a single cycle synchronously and report it."""
    controller.request_run()
    controller.wait()
    return write_report(controller, out if out is not None else sys.stdout, location_query)


def run_interactive(controller: RunController, options: ViewOptions) -> None:
    stdin_fd = sys.stdin.fileno()
    terminal = TerminalController(stdin_fd=stdin_fd, stdout_fd=sys.stdout.fileno())
    app = TapRunnerApp(controller, options, terminal=terminal)
    logger.info("starting interactive session")
    app.run(stdin_fd)


__all__ = [
    "TapRunnerApp",
    "ViewOptions",
    "run_interactive",
    "run_once",
    "write_report",
]
