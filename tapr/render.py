"""Rendering for the split result-tree/detail terminal view.

Builds complete ANSI frames from a ``RenderContext`` without touching
runtime state; ``render_frame`` is the only function that writes.
"""

from __future__ import annotations

import os
import sys
from dataclasses import dataclass, field

from .ansi import clip_ansi_line, fit_ansi_line
from .failures import FailureEntry
from .highlight import DEFAULT_STYLE, colorize_yaml, sanitize_terminal_text
from .preview import SourcePreview
from .runner import RunFailure, RunPhase, RunSnapshot
from .tap import DirectiveKind, ResultTree, SubtestNode, TestPoint

PASS_MARK = "\033[32m✔\033[0m"
FAIL_MARK = "\033[31m✘\033[0m"
SKIP_STYLE = "\033[2;33m"
HEADING_STYLE = "\033[1;38;5;81m"
DIM_STYLE = "\033[2m"
ERROR_STYLE = "\033[1;31m"
RESET = "\033[0m"
DIVIDER = "\033[2m│\033[0m"
INDENT = "  "
GRID_PASS_CELL = "\033[42m \033[0m"
GRID_FAIL_CELL = "\033[41m \033[0m"
GRID_MAX_ROWS = 3

HELP_LINES: tuple[str, ...] = (
    f"{HEADING_STYLE}KEYS{RESET}",
    "\033[38;5;229mj/n/Down\033[0m next failure",
    "\033[38;5;229mk/p/Up\033[0m previous failure",
    "\033[38;5;229mEsc/u\033[0m unselect",
    "\033[38;5;229mr\033[0m relaunch  \033[38;5;229me\033[0m edit location",
    "\033[38;5;229m?\033[0m help  \033[38;5;229mq\033[0m quit",
)

PHASE_LABELS: dict[RunPhase, str] = {
    RunPhase.IDLE: "idle",
    RunPhase.BUILDING: "building…",
    RunPhase.RUNNING: "running…",
    RunPhase.PARSING: "parsing…",
    RunPhase.READY: "ready",
    RunPhase.FAILED: "failed",
}


@dataclass(frozen=True)
class TreeRow:
    depth: int
    path: tuple[int, ...]
    text: str
    failed: bool
    is_subtest: bool


def _directive_suffix(point: TestPoint) -> str:
    if point.directive is None:
        return ""
    label = "SKIP" if point.directive.kind is DirectiveKind.SKIP else "TODO"
    reason = f" {point.directive.reason}" if point.directive.reason else ""
    return f" {SKIP_STYLE}# {label}{reason}{RESET}"


def _point_text(point: TestPoint) -> str:
    mark = FAIL_MARK if point.failed else PASS_MARK
    description = sanitize_terminal_text(point.description)
    label = f"{point.number} - {description}" if description else str(point.number)
    return f"{mark} {label}{_directive_suffix(point)}"


def build_tree_rows(tree: ResultTree) -> list[TreeRow]:
    """Flatten the tree depth-first; subtests show before their children."""
    rows: list[TreeRow] = []
    for path, node in tree.walk():
        depth = len(path) - 1
        if isinstance(node, SubtestNode):
            mark = FAIL_MARK if node.failed else PASS_MARK
            name = sanitize_terminal_text(node.name) or "(subtest)"
            text = f"{INDENT * depth}{mark} \033[1m{name}\033[0m{_directive_suffix(node.rollup_point)}"
            rows.append(TreeRow(depth, path, text, node.failed, True))
        else:
            rows.append(TreeRow(depth, path, INDENT * depth + _point_text(node), node.failed, False))
    return rows


def compute_left_width(columns: int) -> int:
    if columns < 40:
        return max(1, columns // 2)
    return max(24, min(columns - 30, (columns * 2) // 5))


def build_status_line(left_text: str, width: int, right_text: str = "│ ? Help") -> str:
    usable = max(1, width - 1)
    if usable <= len(right_text):
        return right_text[-usable:]
    left_limit = max(0, usable - len(right_text) - 1)
    left = left_text[:left_limit]
    gap = " " * (usable - len(left) - len(right_text))
    return f"{left}{gap}{right_text}"


def status_text(
    phase: RunPhase,
    run_number: int,
    snapshot: RunSnapshot | None,
    stale: bool,
    selected: int | None,
    status_message: str = "",
) -> str:
    parts = [f"tapr #{run_number} {PHASE_LABELS[phase]}"]
    if snapshot is not None:
        counts = snapshot.counts
        parts.append(f"{counts.passed} passed, {counts.failed} failed")
        if counts.skipped or counts.todo:
            parts.append(f"{counts.skipped} skipped, {counts.todo} todo")
        if snapshot.failures:
            position = "-" if selected is None else str(selected + 1)
            parts.append(f"failure {position}/{len(snapshot.failures)}")
        if snapshot.anomalies:
            parts.append(f"{len(snapshot.anomalies)} parse warnings")
        if snapshot.exit_status != 0:
            parts.append(f"exit {snapshot.exit_status}")
    if stale:
        parts.append("STALE")
    if status_message:
        parts.append(status_message)
    return " │ ".join(parts)


def failure_detail_lines(
    entry: FailureEntry,
    preview: SourcePreview | None,
    locations: list[str],
    style: str = DEFAULT_STYLE,
    no_color: bool = False,
) -> list[str]:
    point = entry.summary
    out = [f"{HEADING_STYLE}{sanitize_terminal_text(entry.label)}{RESET}", _point_text(point)]
    if point.diagnostics is not None:
        out.append("")
        text = point.diagnostics.text
        rendered = sanitize_terminal_text(text) if no_color else colorize_yaml(text, style)
        out.extend(rendered.rstrip("\n").split("\n"))
    if locations:
        out.append("")
        out.extend(f"{DIM_STYLE}at{RESET} {sanitize_terminal_text(location)}" for location in locations)
    if preview is not None:
        out.append("")
        if preview.error:
            out.append(f"{ERROR_STYLE}{sanitize_terminal_text(preview.error)}{RESET}")
        out.extend(preview.lines)
    return out


def outcome_grid_lines(tree: ResultTree, width: int, max_rows: int = GRID_MAX_ROWS) -> list[str]:
    """One colored cell per leaf point, wrapped at ``width`` columns.

    When the points need more than ``max_rows`` rows the last three cells
    become ``...``.
    """
    cells = [
        GRID_FAIL_CELL if node.failed else GRID_PASS_CELL
        for _path, node in tree.walk()
        if isinstance(node, TestPoint)
    ]
    width = max(1, width)
    capacity = width * max(1, max_rows)
    if len(cells) > capacity:
        cells = cells[: max(0, capacity - 3)] + ["."] * min(3, capacity)
    return ["".join(cells[start : start + width]) for start in range(0, len(cells), width)]


def summary_lines(
    phase: RunPhase,
    snapshot: RunSnapshot | None,
    failure: RunFailure | None,
    width: int = 40,
) -> list[str]:
    out: list[str] = []
    if failure is not None:
        out.append(f"{ERROR_STYLE}{failure.kind.value}: {sanitize_terminal_text(failure.message)}{RESET}")
        if failure.detail:
            out.extend(sanitize_terminal_text(failure.detail).split("\n"))
        if snapshot is not None:
            out.append("")
            out.append(f"{DIM_STYLE}showing results from run #{snapshot.run_number}{RESET}")
        out.append("")
    if snapshot is None:
        if failure is None:
            out.append(f"{DIM_STYLE}{PHASE_LABELS[phase]}{RESET}")
        return out

    counts = snapshot.counts
    out.append(f"{HEADING_STYLE}Run #{snapshot.run_number}{RESET}")
    out.extend(outcome_grid_lines(snapshot.tree, width))
    out.append(f"{counts.passed} passed, {counts.failed} failed, {counts.skipped} skipped, {counts.todo} todo")
    if snapshot.tree.plan is not None:
        out.append(f"plan: {snapshot.tree.plan.expected_count} test(s)")
    out.append(f"exit status: {snapshot.exit_status}")
    if snapshot.failures:
        out.append("")
        out.append(f"{HEADING_STYLE}Failures{RESET}")
        out.extend(f"{FAIL_MARK} {sanitize_terminal_text(entry.label)}" for entry in snapshot.failures)
    if snapshot.anomalies:
        out.append("")
        out.append(f"{HEADING_STYLE}Parse warnings{RESET}")
        out.extend(sanitize_terminal_text(str(anomaly)) for anomaly in snapshot.anomalies)
    if snapshot.stderr_tail and not snapshot.tree.children:
        out.append("")
        out.append(f"{HEADING_STYLE}stderr{RESET}")
        out.extend(sanitize_terminal_text(snapshot.stderr_tail).split("\n"))
    return out


@dataclass
class RenderContext:
    rows: list[TreeRow]
    row_start: int
    selected_row: int | None
    width: int
    height: int
    status: str
    detail_lines: list[str] = field(default_factory=list)
    show_help: bool = False


def selected_with_ansi(text: str) -> str:
    """Apply selection styling without discarding existing ANSI colors."""
    if not text:
        return text
    return "\033[7m" + text.replace("\033[0m", "\033[0;7m") + "\033[0m"


def build_frame(context: RenderContext) -> str:
    width = max(1, context.width)
    content_rows = max(1, context.height - 1)
    left_width = compute_left_width(width)
    right_width = max(1, width - left_width - 1)
    right_lines = list(HELP_LINES) if context.show_help else context.detail_lines

    out: list[str] = ["\033[H\033[J"]
    for screen_row in range(content_rows):
        row_idx = context.row_start + screen_row
        left = ""
        if 0 <= row_idx < len(context.rows):
            left = fit_ansi_line(context.rows[row_idx].text, left_width)
            if row_idx == context.selected_row:
                left = selected_with_ansi(left)
        else:
            left = " " * left_width
        out.append(left)
        out.append(DIVIDER)
        if screen_row < len(right_lines):
            right = clip_ansi_line(right_lines[screen_row], right_width)
            out.append(right)
            if "\033" in right:
                out.append(RESET)
        out.append("\r\n")

    out.append("\033[7m")
    out.append(build_status_line(context.status, width))
    out.append(RESET)
    return "".join(out)


def render_frame(context: RenderContext) -> None:
    os.write(sys.stdout.fileno(), build_frame(context).encode("utf-8", errors="replace"))
