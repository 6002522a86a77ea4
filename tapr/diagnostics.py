"""Diagnostic YAML loading and ``file:line`` location extraction.

Blocks stay raw text in the result tree; they are parsed here on demand.
Queries are jq programs such as ``.failure.location``.
"""

from __future__ import annotations

import functools
import json
import logging
from dataclasses import dataclass
from pathlib import Path

import jq
import yaml

from .tap.model import DiagnosticBlock

logger = logging.getLogger(__name__)

DEFAULT_LOCATION_QUERY = ".failure.location"


class QueryError(ValueError):
    """Raised for a location query that cannot be compiled."""


@dataclass(frozen=True)
class SourceLocation:
    path: Path
    line: int

    def __str__(self) -> str:
        return f"{self.path}:{self.line}"


@functools.lru_cache(maxsize=32)
def compile_query(expression: str):
    """Compile a jq program, e.g. ``.failure.location`` or ``.at | "\\(.file):\\(.line)"``."""
    text = expression.strip()
    if not text:
        raise QueryError("empty location query")
    try:
        return jq.compile(text)
    except ValueError as exc:
        raise QueryError(f"invalid location query {expression!r}: {exc}") from exc


def _as_json(document: object) -> object:
    # YAML may produce dates and other values jq cannot take directly.
    return json.loads(json.dumps(document, default=str))


def query_document(document: object, expression: str) -> list[object]:
    """Evaluate ``expression`` against a parsed document.

    ``null`` outputs are dropped. A runtime jq error, such as indexing a
    string, yields no results.
    """
    program = compile_query(expression)
    try:
        values = program.input_value(_as_json(document)).all()
    except ValueError as exc:
        logger.debug("location query %r failed: %s", expression, exc)
        return []
    return [value for value in values if value is not None]


def load_diagnostic_document(block: DiagnosticBlock) -> object | None:
    """Parse a diagnostic block as YAML; ``None`` when it is not valid YAML."""
    try:
        return yaml.safe_load(block.text)
    except yaml.YAMLError as exc:
        logger.debug("diagnostic block at line %d is not valid YAML: %s", block.line_number, exc)
        return None


def _location_text(value: object) -> str | None:
    if isinstance(value, (str, int, float)) and not isinstance(value, bool):
        return str(value)
    # node-tap style ``at: {file: ..., line: ...}`` mappings.
    if isinstance(value, dict):
        file_value = value.get("file")
        line_value = value.get("line")
        if isinstance(file_value, str) and isinstance(line_value, int) and not isinstance(line_value, bool):
            return f"{file_value}:{line_value}"
    return None


def extract_locations(block: DiagnosticBlock | None, expression: str = DEFAULT_LOCATION_QUERY) -> list[str]:
    """Return every location string the query yields for ``block``."""
    if block is None:
        return []
    document = load_diagnostic_document(block)
    if document is None:
        return []
    out: list[str] = []
    for value in query_document(document, expression):
        text = _location_text(value)
        if text:
            out.append(text)
    return out


def parse_location(text: str, base: Path | None = None) -> SourceLocation | None:
    """Split ``file:line`` (optionally ``file:line:column``) into a location."""
    parts = text.strip().rsplit(":", 2)
    if len(parts) == 3 and parts[1].isdigit() and parts[2].isdigit():
        file_part, line_part = parts[0], parts[1]
    else:
        parts = text.strip().rsplit(":", 1)
        if len(parts) != 2 or not parts[1].isdigit():
            return None
        file_part, line_part = parts
    if not file_part:
        return None
    path = Path(file_part)
    if base is not None and not path.is_absolute():
        path = base / path
    return SourceLocation(path=path, line=max(1, int(line_part)))


def first_location(
    block: DiagnosticBlock | None,
    expression: str = DEFAULT_LOCATION_QUERY,
    base: Path | None = None,
) -> SourceLocation | None:
    """First parseable location for a block, or ``None``."""
    for text in extract_locations(block, expression):
        location = parse_location(text, base)
        if location is not None:
            return location
    return None
