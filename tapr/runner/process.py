"""Blocking process execution for build and test commands.

Commands run to completion with stdout/stderr captured and stdin detached.
A command that cannot be started raises ``SpawnError``; exit codes never do.
"""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


class SpawnError(RuntimeError):
    """A command could not be started at all."""

    def __init__(self, argv: tuple[str, ...], reason: str) -> None:
        super().__init__(f"cannot run {shlex.join(argv)!r}: {reason}")
        self.argv = argv
        self.reason = reason


@dataclass(frozen=True)
class CommandResult:
    argv: tuple[str, ...]
    returncode: int
    stdout: bytes
    stderr: bytes

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0

    def output_tail(self, max_lines: int = 20) -> str:
        """Last lines of combined output, decoded leniently for display."""
        text = (self.stdout + self.stderr).decode("utf-8", errors="replace")
        lines = text.rstrip("\n").splitlines()
        return "\n".join(lines[-max_lines:])


def split_command(text: str) -> tuple[str, ...]:
    """Split a shell-style command string into argv (no shell is involved)."""
    return tuple(shlex.split(text))


def run_command(argv: tuple[str, ...] | list[str], cwd: Path | None = None) -> CommandResult:
    """Run ``argv`` to completion and capture both output streams."""
    command = tuple(argv)
    if not command:
        raise SpawnError(command, "empty command")
    logger.info("running %s", shlex.join(command))
    try:
        proc = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd is not None else None,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            check=False,
        )
    except OSError as exc:
        logger.warning("failed to start %s: %s", command[0], exc)
        raise SpawnError(command, exc.strerror or str(exc)) from exc
    logger.info("%s exited with status %d", command[0], proc.returncode)
    return CommandResult(
        argv=command,
        returncode=proc.returncode,
        stdout=proc.stdout,
        stderr=proc.stderr,
    )
