"""Source preview around a failure location.

Colorized files are cached by path, mtime and style so moving between
failures in the same file does not re-highlight it.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from dataclasses import dataclass
from pathlib import Path

from .diagnostics import SourceLocation
from .highlight import DEFAULT_STYLE, colorize_source, read_text, sanitize_terminal_text

logger = logging.getLogger(__name__)

PREVIEW_CACHE_MAX = 32
TARGET_LINE_MARKER = "\033[1;38;5;203m>\033[0m"

_CACHE: OrderedDict[tuple[str, int, str, bool], list[str]] = OrderedDict()


@dataclass(frozen=True)
class SourcePreview:
    location: SourceLocation
    lines: list[str]
    error: str = ""


def _cache_get(key: tuple[str, int, str, bool]) -> list[str] | None:
    cached = _CACHE.get(key)
    if cached is not None:
        _CACHE.move_to_end(key)
    return cached


def _cache_put(key: tuple[str, int, str, bool], value: list[str]) -> None:
    _CACHE[key] = value
    _CACHE.move_to_end(key)
    while len(_CACHE) > PREVIEW_CACHE_MAX:
        _CACHE.popitem(last=False)


def clear_preview_cache() -> None:
    _CACHE.clear()


def _source_lines(path: Path, style: str, no_color: bool) -> list[str]:
    stat = path.stat()
    key = (str(path.resolve()), stat.st_mtime_ns, style, no_color)
    cached = _cache_get(key)
    if cached is not None:
        return cached
    source = read_text(path)
    rendered = sanitize_terminal_text(source) if no_color else colorize_source(source, path, style)
    lines = rendered.split("\n")
    if lines and lines[-1] == "":
        lines.pop()
    _cache_put(key, lines)
    return lines


def build_source_preview(
    location: SourceLocation,
    rows: int,
    style: str = DEFAULT_STYLE,
    no_color: bool = False,
) -> SourcePreview:
    """Return up to ``rows`` numbered lines with the target line centered.

    Unreadable files produce an empty preview carrying an error message.
    """
    try:
        lines = _source_lines(location.path, style, no_color)
    except OSError as exc:
        logger.debug("cannot preview %s: %s", location.path, exc)
        return SourcePreview(location=location, lines=[], error=f"cannot read {location.path}: {exc.strerror or exc}")

    if not lines or rows <= 0:
        return SourcePreview(location=location, lines=[])

    target = min(location.line, len(lines))
    first = max(1, target - rows // 2)
    last = min(len(lines), first + rows - 1)
    first = max(1, last - rows + 1)
    number_width = len(str(last))
    out: list[str] = []
    for number in range(first, last + 1):
        marker = TARGET_LINE_MARKER if number == location.line else " "
        out.append(f"{marker}\033[2m{number:>{number_width}}\033[0m {lines[number - 1]}")
    return SourcePreview(location=location, lines=out)
