"""Build a nested ``ResultTree`` from classified TAP lines.

Nesting is tracked with an explicit stack of open subtests keyed by indentation,
so depth is unbounded and anomalies attach to the node being built.
Malformed input never aborts the build; only undecodable bytes do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace

from .lexer import LineKind, TapLine, tokenize
from .model import (
    DiagnosticBlock,
    Node,
    Outcome,
    ParseAnomaly,
    Plan,
    ResultTree,
    SubtestNode,
    TestPoint,
)

logger = logging.getLogger(__name__)


class TapEncodingError(ValueError):
    """Raised when captured output cannot be decoded as UTF-8 text."""


@dataclass
class _OpenNode:
    name: str
    marker_indent: int
    line_number: int
    body_indent: int | None = None
    plan: Plan | None = None
    children: list[Node] = field(default_factory=list)
    anomalies: list[ParseAnomaly] = field(default_factory=list)
    last_number: int = 0
    # Marker sits at the body column (TAP 14) rather than the parent column.
    inline_marker: bool = False

    def closing_limit(self) -> int:
        """Closing lines must indent strictly less than this column."""
        if self.body_indent is not None:
            return self.body_indent
        if self.inline_marker:
            return self.marker_indent
        return self.marker_indent + 1

    def note(self, line_number: int, message: str) -> None:
        self.anomalies.append(ParseAnomaly(line_number, message))

    def point_count(self) -> int:
        return len(self.children)


@dataclass
class _DiagnosticCapture:
    target: _OpenNode | None
    line_number: int
    indent: int
    lines: list[str] = field(default_factory=list)

    def text(self) -> str:
        out: list[str] = []
        for raw in self.lines:
            line = raw.rstrip("\r")
            strip = 0
            while strip < self.indent and strip < len(line) and line[strip] in " \t":
                strip += 1
            out.append(line[strip:])
        return "\n".join(out)


def _check_plan(node: _OpenNode, label: str) -> None:
    if node.plan is None:
        return
    expected = node.plan.expected_count
    actual = node.point_count()
    if expected != actual:
        node.note(
            node.line_number,
            f"{label} planned {expected} test(s) but {actual} ran",
        )


class TreeBuilder:
    """Stateful consumer of ``TapLine`` values producing one ``ResultTree``."""

    def __init__(self) -> None:
        self._root = _OpenNode(name="", marker_indent=-1, line_number=1)
        self._stack: list[_OpenNode] = [self._root]
        self._version: int | None = None
        self._capture: _DiagnosticCapture | None = None
        # Node whose last child may still receive a diagnostic block.
        self._diagnostic_target: _OpenNode | None = None
        self._last_line_number = 0

    def feed(self, line: TapLine) -> None:
        self._last_line_number = line.line_number
        if self._capture is not None:
            if line.kind is LineKind.YAML_END:
                self._finish_capture()
            else:
                self._capture.lines.append(line.raw)
            return

        if line.kind is LineKind.BLANK:
            return

        if line.kind is LineKind.YAML_START:
            if self._diagnostic_target is None:
                self._stack[-1].note(line.line_number, "stray '---' without a preceding test point")
                return
            self._start_capture(line)
            return

        self._diagnostic_target = None
        current = self._stack[-1]

        if line.kind is LineKind.SUBTEST:
            self._stack.append(
                _OpenNode(
                    name=line.name,
                    marker_indent=line.indent,
                    line_number=line.line_number,
                    inline_marker=self._marker_is_inline(current, line.indent),
                )
            )
        elif line.kind is LineKind.POINT:
            self._feed_point(line)
        elif line.kind is LineKind.PLAN:
            self._maybe_open_implicit_subtest(line)
            current = self._stack[-1]
            self._track_indent(current, line)
            plan = Plan(start=line.plan_start, end=line.plan_end, skip_reason=line.plan_skip_reason)
            if line.plan_end < line.plan_start - 1:
                current.note(line.line_number, f"invalid plan {line.body!r}")
            if current.plan is not None:
                current.note(line.line_number, "duplicate plan; the later one is used")
            current.plan = plan
        elif line.kind is LineKind.VERSION:
            if current is self._root and self._version is None:
                self._version = line.version
        elif line.kind is LineKind.YAML_END:
            current.note(line.line_number, "'...' without an open diagnostic block")
        elif line.kind is LineKind.UNKNOWN:
            current.note(line.line_number, f"unrecognized line {line.body!r}")

    def _feed_point(self, line: TapLine) -> None:
        closing_idx = self._closing_frame_index(line)
        if closing_idx is not None:
            while len(self._stack) - 1 > closing_idx:
                self._force_close(line.line_number)
            self._close_subtest(line)
            return

        self._maybe_open_implicit_subtest(line)
        current = self._stack[-1]
        self._track_indent(current, line)
        current.children.append(self._point_from_line(current, line))
        self._diagnostic_target = current

    def _closing_frame_index(self, line: TapLine) -> int | None:
        for idx in range(len(self._stack) - 1, 0, -1):
            frame = self._stack[idx]
            if line.indent >= frame.closing_limit():
                continue
            if frame.name:
                matches = frame.name == line.description
            else:
                # Unnamed subtests have nothing to match, so they need a real dedent.
                matches = frame.body_indent is not None or line.indent < frame.marker_indent
            if matches:
                return idx

        # A dedent back to the marker column still closes the innermost
        # subtest when the summary line carries a different name.
        innermost = self._stack[-1]
        if (
            innermost is not self._root
            and innermost.body_indent is not None
            and line.indent < innermost.body_indent
            and line.indent <= innermost.marker_indent
        ):
            innermost.note(
                line.line_number,
                f"subtest {innermost.name!r} closed by {line.description!r}",
            )
            return len(self._stack) - 1
        return None

    def _marker_is_inline(self, parent: _OpenNode, indent: int) -> bool:
        """True when a subtest marker is indented past its parent's child column."""
        if parent.body_indent is not None:
            return indent > parent.body_indent
        if parent is self._root:
            return indent > 0
        # A node-tap marker directly under another marker sits at the parent body column.
        return parent.inline_marker and indent > parent.marker_indent

    def _maybe_open_implicit_subtest(self, line: TapLine) -> None:
        """Open an unnamed subtest for bare indented points (TAP 14 style)."""
        current = self._stack[-1]
        if current.body_indent is None or line.indent <= current.body_indent:
            return
        self._stack.append(
            _OpenNode(name="", marker_indent=current.body_indent, line_number=line.line_number)
        )

    def _track_indent(self, frame: _OpenNode, line: TapLine) -> None:
        if frame.body_indent is None:
            frame.body_indent = line.indent
            return
        if line.indent < frame.body_indent:
            if frame is not self._root:
                frame.note(line.line_number, "line is less indented than its subtest body")
            frame.body_indent = line.indent

    def _point_from_line(self, frame: _OpenNode, line: TapLine) -> TestPoint:
        number = line.number if line.number is not None else frame.last_number + 1
        frame.last_number = number
        assert line.outcome is not None
        return TestPoint(
            number=number,
            description=line.description,
            outcome=line.outcome,
            directive=line.directive,
            line_number=line.line_number,
        )

    def _close_subtest(self, line: TapLine) -> None:
        frame = self._stack.pop()
        parent = self._stack[-1]
        self._track_indent(parent, line)
        rollup = self._point_from_line(parent, line)
        name = frame.name or line.description
        _check_plan(frame, f"subtest {name!r}")
        parent.children.append(
            SubtestNode(
                name=name,
                plan=frame.plan,
                children=tuple(frame.children),
                rollup_point=rollup,
                anomalies=tuple(frame.anomalies),
            )
        )
        self._diagnostic_target = parent

    def _force_close(self, line_number: int) -> None:
        frame = self._stack.pop()
        parent = self._stack[-1]
        label = frame.name or "(unnamed)"
        frame.note(line_number, f"unterminated subtest {label!r}")
        _check_plan(frame, f"subtest {label!r}")
        # No closing line was seen: the partial subtest summarizes as failing.
        rollup = TestPoint(
            number=parent.last_number + 1,
            description=frame.name,
            outcome=Outcome.NOT_OK,
            line_number=frame.line_number,
        )
        parent.last_number = rollup.number
        parent.children.append(
            SubtestNode(
                name=frame.name,
                plan=frame.plan,
                children=tuple(frame.children),
                rollup_point=rollup,
                anomalies=tuple(frame.anomalies),
            )
        )

    def _start_capture(self, line: TapLine) -> None:
        self._capture = _DiagnosticCapture(
            target=self._diagnostic_target,
            line_number=line.line_number,
            indent=line.indent,
        )
        self._diagnostic_target = None

    def _finish_capture(self) -> None:
        capture = self._capture
        self._capture = None
        if capture is None or capture.target is None or not capture.target.children:
            return
        block = DiagnosticBlock(text=capture.text(), line_number=capture.line_number)
        children = capture.target.children
        last = children[-1]
        if isinstance(last, SubtestNode):
            children[-1] = replace(last, rollup_point=replace(last.rollup_point, diagnostics=block))
        else:
            children[-1] = replace(last, diagnostics=block)

    def finish(self) -> ResultTree:
        if self._capture is not None:
            owner = self._capture.target or self._stack[-1]
            owner.note(self._capture.line_number, "unterminated diagnostic block")
            self._finish_capture()
        while len(self._stack) > 1:
            self._force_close(self._last_line_number)
        _check_plan(self._root, "test run")
        return ResultTree(
            version=self._version,
            plan=self._root.plan,
            children=tuple(self._root.children),
            anomalies=tuple(self._root.anomalies),
        )


def decode_output(data: bytes | str) -> str:
    if isinstance(data, str):
        text = data
    else:
        try:
            text = data.decode("utf-8")
        except UnicodeDecodeError as exc:
            raise TapEncodingError(f"test output is not valid UTF-8: {exc}") from exc
    return text.lstrip("\ufeff")


def parse_tap(data: bytes | str) -> ResultTree:
    """Parse complete TAP output into a best-effort ``ResultTree``.

    Raises ``TapEncodingError`` when ``data`` is bytes that are not UTF-8.
    Every other problem is recorded as a ``ParseAnomaly`` on the tree.
    """
    text = decode_output(data)
    builder = TreeBuilder()
    for line in tokenize(text):
        builder.feed(line)
    tree = builder.finish()
    anomalies = tree.all_anomalies()
    if anomalies:
        logger.debug("parsed TAP with %d anomalies", len(anomalies))
    return tree
