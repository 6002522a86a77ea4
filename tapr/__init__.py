"""tapr: run a TAP-producing test command and browse its failures.

``main`` is the programmatic CLI entry point and returns an exit status.
"""

from __future__ import annotations


def main(*args, **kwargs):
    """Lazily import the CLI so ``import tapr`` stays cheap."""
    from .cli import main as _main

    return _main(*args, **kwargs)


__all__ = ["main"]
