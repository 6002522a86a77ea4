"""Line classification for TAP output.

Each raw line becomes one ``TapLine`` carrying its kind and indentation.
The lexer has no memory; nesting is resolved by the tree builder.
"""

from __future__ import annotations

import re
from collections.abc import Iterator
from dataclasses import dataclass
from enum import Enum

from .model import Directive, DirectiveKind, Outcome


class LineKind(Enum):
    VERSION = "version"
    PLAN = "plan"
    POINT = "point"
    SUBTEST = "subtest"
    YAML_START = "yaml_start"
    YAML_END = "yaml_end"
    COMMENT = "comment"
    BLANK = "blank"
    UNKNOWN = "unknown"


_VERSION_RE = re.compile(r"^TAP version (\d+)\s*$", re.IGNORECASE)
_PLAN_RE = re.compile(r"^(\d+)\.\.(\d+)\s*(?:#\s*(.*))?$")
_POINT_RE = re.compile(r"^(not ok|ok)(?=\s|$)\s*(\d+)?\s*(.*)$")
_SUBTEST_RE = re.compile(r"^#\s*Subtest(?::\s*(.*?))?\s*$")
_DIRECTIVE_RE = re.compile(r"^(skip|todo)\S*\s*(.*)$", re.IGNORECASE | re.DOTALL)
_SKIP_PLAN_RE = re.compile(r"^skip\S*\s*(.*)$", re.IGNORECASE)


@dataclass(frozen=True)
class TapLine:
    kind: LineKind
    line_number: int
    indent: int
    body: str
    raw: str
    outcome: Outcome | None = None
    number: int | None = None
    description: str = ""
    directive: Directive | None = None
    plan_start: int = 0
    plan_end: int = 0
    plan_skip_reason: str = ""
    name: str = ""
    version: int | None = None


def _split_unescaped_hash(text: str) -> tuple[str, str | None]:
    """Split at the first ``#`` not preceded by a backslash.

    Returns the unescaped head and the raw tail after ``#`` (or ``None``).
    """
    head: list[str] = []
    idx = 0
    while idx < len(text):
        ch = text[idx]
        if ch == "\\" and idx + 1 < len(text) and text[idx + 1] in "#\\":
            head.append(text[idx + 1])
            idx += 2
            continue
        if ch == "#":
            return "".join(head), text[idx + 1 :]
        head.append(ch)
        idx += 1
    return "".join(head), None


def parse_point_tail(tail: str) -> tuple[str, Directive | None]:
    """Parse everything after ``ok <n>`` into description and directive."""
    head, comment = _split_unescaped_hash(tail)
    description = head.strip()
    if description.startswith("- "):
        description = description[2:].lstrip()
    elif description == "-":
        description = ""

    directive: Directive | None = None
    if comment is not None:
        match = _DIRECTIVE_RE.match(comment.strip())
        if match:
            kind = DirectiveKind.SKIP if match.group(1).lower() == "skip" else DirectiveKind.TODO
            directive = Directive(kind=kind, reason=match.group(2).strip())
    return description, directive


def classify_line(raw: str, line_number: int) -> TapLine:
    line = raw.rstrip("\r\n")
    body = line.lstrip()
    indent = len(line) - len(body)
    body = body.rstrip()

    if not body:
        return TapLine(LineKind.BLANK, line_number, indent, body, raw)

    match = _POINT_RE.match(body)
    if match:
        description, directive = parse_point_tail(match.group(3))
        return TapLine(
            LineKind.POINT,
            line_number,
            indent,
            body,
            raw,
            outcome=Outcome.NOT_OK if match.group(1) == "not ok" else Outcome.OK,
            number=int(match.group(2)) if match.group(2) is not None else None,
            description=description,
            directive=directive,
        )

    match = _PLAN_RE.match(body)
    if match:
        skip_reason = ""
        if match.group(3):
            skip_match = _SKIP_PLAN_RE.match(match.group(3).strip())
            if skip_match:
                skip_reason = skip_match.group(1).strip()
        return TapLine(
            LineKind.PLAN,
            line_number,
            indent,
            body,
            raw,
            plan_start=int(match.group(1)),
            plan_end=int(match.group(2)),
            plan_skip_reason=skip_reason,
        )

    if body == "---":
        return TapLine(LineKind.YAML_START, line_number, indent, body, raw)
    if body == "...":
        return TapLine(LineKind.YAML_END, line_number, indent, body, raw)

    match = _SUBTEST_RE.match(body)
    if match:
        return TapLine(LineKind.SUBTEST, line_number, indent, body, raw, name=(match.group(1) or "").strip())

    if body.startswith("#"):
        return TapLine(LineKind.COMMENT, line_number, indent, body, raw)

    match = _VERSION_RE.match(body)
    if match:
        return TapLine(LineKind.VERSION, line_number, indent, body, raw, version=int(match.group(1)))

    return TapLine(LineKind.UNKNOWN, line_number, indent, body, raw)


def tokenize(text: str) -> Iterator[TapLine]:
    """Classify every line of ``text``; line numbers are 1-based."""
    for line_number, raw in enumerate(text.split("\n"), start=1):
        yield classify_line(raw, line_number)
