"""Immutable result model for one parsed TAP run.

Points and subtests are frozen once the builder closes them.
A run's tree is replaced wholesale, never edited in place.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, field
from enum import Enum
from typing import Union


class Outcome(Enum):
    OK = "ok"
    NOT_OK = "not ok"


class DirectiveKind(Enum):
    SKIP = "SKIP"
    TODO = "TODO"


@dataclass(frozen=True)
class Directive:
    kind: DirectiveKind
    reason: str = ""


@dataclass(frozen=True)
class Plan:
    """A ``start..end`` plan line; informational only."""

    start: int
    end: int
    skip_reason: str = ""

    @property
    def expected_count(self) -> int:
        return max(0, self.end - self.start + 1)


@dataclass(frozen=True)
class DiagnosticBlock:
    """Verbatim YAML text captured between ``---`` and ``...``.

    ``line_number`` is the 1-based line of the opening ``---``.
    """

    text: str
    line_number: int


@dataclass(frozen=True)
class ParseAnomaly:
    line_number: int
    message: str

    def __str__(self) -> str:
        return f"line {self.line_number}: {self.message}"


@dataclass(frozen=True)
class TestPoint:
    number: int
    description: str
    outcome: Outcome
    directive: Directive | None = None
    diagnostics: DiagnosticBlock | None = None
    line_number: int = 0

    # Keep pytest from collecting this class when imported into test modules.
    __test__ = False

    @property
    def failed(self) -> bool:
        return self.outcome is Outcome.NOT_OK


@dataclass(frozen=True)
class SubtestNode:
    """A nested group summarized by its parent-level rollup point.

    The rollup outcome is authoritative; it is never recomputed from children.
    """

    name: str
    plan: Plan | None
    children: tuple[Node, ...]
    rollup_point: TestPoint
    anomalies: tuple[ParseAnomaly, ...] = ()

    @property
    def failed(self) -> bool:
        return self.rollup_point.failed


Node = Union[TestPoint, SubtestNode]


@dataclass(frozen=True)
class TreeCounts:
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    todo: int = 0

    @property
    def total(self) -> int:
        return self.passed + self.failed


@dataclass(frozen=True)
class ResultTree:
    version: int | None
    plan: Plan | None
    children: tuple[Node, ...]
    anomalies: tuple[ParseAnomaly, ...] = field(default=())

    def walk(self) -> Iterator[tuple[tuple[int, ...], Node]]:
        """Yield ``(path, node)`` depth-first, children in declaration order."""
        stack: list[tuple[tuple[int, ...], Node]] = [
            ((idx,), child) for idx, child in reversed(list(enumerate(self.children)))
        ]
        while stack:
            path, node = stack.pop()
            yield path, node
            if isinstance(node, SubtestNode):
                stack.extend(
                    (path + (idx,), child)
                    for idx, child in reversed(list(enumerate(node.children)))
                )

    def all_anomalies(self) -> list[ParseAnomaly]:
        """Collect anomalies attached anywhere in the tree, ordered by line."""
        out = list(self.anomalies)
        for _path, node in self.walk():
            if isinstance(node, SubtestNode):
                out.extend(node.anomalies)
        return sorted(out, key=lambda anomaly: anomaly.line_number)

    def count_points(self) -> TreeCounts:
        """Count leaf points; subtest rollups are not counted as points."""
        passed = failed = skipped = todo = 0
        for _path, node in self.walk():
            if isinstance(node, SubtestNode):
                continue
            if node.failed:
                failed += 1
            else:
                passed += 1
            if node.directive is not None:
                if node.directive.kind is DirectiveKind.SKIP:
                    skipped += 1
                else:
                    todo += 1
        return TreeCounts(passed=passed, failed=failed, skipped=skipped, todo=todo)


EMPTY_TREE = ResultTree(version=None, plan=None, children=())
