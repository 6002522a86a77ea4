"""Process execution and the run/relaunch controller."""

from __future__ import annotations

from .controller import (
    FailureKind,
    RunController,
    RunFailure,
    RunPhase,
    RunSnapshot,
    start_daemon_thread,
)
from .process import CommandResult, SpawnError, run_command, split_command

__all__ = [
    "CommandResult",
    "FailureKind",
    "RunController",
    "RunFailure",
    "RunPhase",
    "RunSnapshot",
    "SpawnError",
    "run_command",
    "split_command",
    "start_daemon_thread",
]
