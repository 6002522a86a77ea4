"""Failure index derived from a finished ``ResultTree``.

Entries point at the innermost failing leaves in on-screen order.
The index is always rebuilt from the tree and never edited.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass

from .tap.model import Node, ResultTree, SubtestNode, TestPoint


@dataclass(frozen=True)
class FailureEntry:
    """One navigable failure.

    ``path`` holds child indices from the root to the failing node and
    ``trail`` the names of the subtests along that path.
    """

    path: tuple[int, ...]
    summary: TestPoint
    trail: tuple[str, ...] = ()
    is_rollup: bool = False

    @property
    def label(self) -> str:
        tail = self.summary.description if self.is_rollup else str(self.summary.number)
        return "/".join((*self.trail, tail))


@dataclass
class _Frame:
    children: Iterator[tuple[int, Node]]
    prefix: tuple[int, ...]
    trail: tuple[str, ...]
    subtest: SubtestNode | None = None
    parent_trail: tuple[str, ...] = ()
    entries_before: int = 0


def build_failure_index(tree: ResultTree) -> tuple[FailureEntry, ...]:
    """Return failing leaves depth-first, children in declaration order.

    A failing subtest contributes itself only when none of its descendants
    were indexed.
    """
    out: list[FailureEntry] = []
    stack = [_Frame(children=iter(enumerate(tree.children)), prefix=(), trail=())]
    while stack:
        frame = stack[-1]
        step = next(frame.children, None)
        if step is None:
            stack.pop()
            subtest = frame.subtest
            if subtest is not None and subtest.failed and len(out) == frame.entries_before:
                out.append(
                    FailureEntry(
                        path=frame.prefix,
                        summary=subtest.rollup_point,
                        trail=frame.parent_trail,
                        is_rollup=True,
                    )
                )
            continue

        idx, child = step
        path = frame.prefix + (idx,)
        if isinstance(child, SubtestNode):
            stack.append(
                _Frame(
                    children=iter(enumerate(child.children)),
                    prefix=path,
                    trail=frame.trail + (child.name,),
                    subtest=child,
                    parent_trail=frame.trail,
                    entries_before=len(out),
                )
            )
        elif child.failed:
            out.append(FailureEntry(path=path, summary=child, trail=frame.trail))
    return tuple(out)


def resolve_path(tree: ResultTree, path: tuple[int, ...]) -> Node | None:
    """Follow ``path`` from the root; ``None`` when it does not exist."""
    children = tree.children
    node: Node | None = None
    for idx in path:
        if not 0 <= idx < len(children):
            return None
        node = children[idx]
        children = node.children if isinstance(node, SubtestNode) else ()
    return node
