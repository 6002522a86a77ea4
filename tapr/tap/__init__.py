"""TAP parsing: line lexer, tree builder, and the immutable result model."""

from __future__ import annotations

from .builder import TapEncodingError, TreeBuilder, parse_tap
from .lexer import LineKind, TapLine, classify_line, tokenize
from .model import (
    EMPTY_TREE,
    DiagnosticBlock,
    Directive,
    DirectiveKind,
    Node,
    Outcome,
    ParseAnomaly,
    Plan,
    ResultTree,
    SubtestNode,
    TestPoint,
    TreeCounts,
)

__all__ = [
    "EMPTY_TREE",
    "DiagnosticBlock",
    "Directive",
    "DirectiveKind",
    "LineKind",
    "Node",
    "Outcome",
    "ParseAnomaly",
    "Plan",
    "ResultTree",
    "SubtestNode",
    "TapEncodingError",
    "TapLine",
    "TestPoint",
    "TreeBuilder",
    "TreeCounts",
    "classify_line",
    "parse_tap",
    "tokenize",
]
