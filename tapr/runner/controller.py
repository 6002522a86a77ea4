"""Run/relaunch state machine tying process execution to UI refresh.

One cycle (optional build, test, parse) runs on a worker thread at a time.
The worker reports through a queue that the UI thread drains once per tick,
so the published snapshot only ever changes on the UI thread.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from functools import partial
from pathlib import Path
from queue import Empty, Queue
from typing import Union

from ..failures import FailureEntry, build_failure_index
from ..navigation import NavigationCursor
from ..tap import EMPTY_TREE, ParseAnomaly, ResultTree, TapEncodingError, TreeCounts, parse_tap
from .process import CommandResult, SpawnError, run_command

logger = logging.getLogger(__name__)


class RunPhase(Enum):
    IDLE = "idle"
    BUILDING = "building"
    RUNNING = "running"
    PARSING = "parsing"
    READY = "ready"
    FAILED = "failed"


ACCEPTS_RELAUNCH = frozenset({RunPhase.IDLE, RunPhase.READY, RunPhase.FAILED})


class FailureKind(Enum):
    SPAWN_ERROR = "spawn error"
    BUILD_FAILED = "build failed"
    ENCODING_ERROR = "encoding error"
    INTERNAL_ERROR = "internal error"


@dataclass(frozen=True)
class RunFailure:
    kind: FailureKind
    message: str
    detail: str = ""


@dataclass(frozen=True)
class RunSnapshot:
    """Everything published by one successful cycle, swapped as one value."""

    run_number: int
    tree: ResultTree
    failures: tuple[FailureEntry, ...]
    anomalies: tuple[ParseAnomaly, ...]
    counts: TreeCounts
    exit_status: int
    stderr_tail: str
    finished_at: float


@dataclass(frozen=True)
class _PhaseChanged:
    run_number: int
    phase: RunPhase


@dataclass(frozen=True)
class _CycleDone:
    run_number: int
    snapshot: RunSnapshot | None = None
    failure: RunFailure | None = None


_Event = Union[_PhaseChanged, _CycleDone]

CommandRunner = Callable[..., CommandResult]
WorkerStarter = Callable[[Callable[[], None]], None]


def start_daemon_thread(target: Callable[[], None]) -> None:
    worker = threading.Thread(target=target, name="tapr-run-cycle", daemon=True)
    worker.start()


class RunController:
    """Owns the current snapshot, the failure cursor, and the cycle lifecycle."""

    def __init__(
        self,
        test_command: tuple[str, ...],
        build_command: tuple[str, ...] | None = None,
        *,
        cwd: Path | None = None,
        runner: CommandRunner = run_command,
        start_worker: WorkerStarter = start_daemon_thread,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._test_command = tuple(test_command)
        self._build_command = tuple(build_command) if build_command else None
        self._cwd = cwd
        self._runner = runner
        self._start_worker = start_worker
        self._clock = clock
        self._events: Queue[_Event] = Queue()
        self._phase = RunPhase.IDLE
        self._run_number = 0
        self._snapshot: RunSnapshot | None = None
        self._failure: RunFailure | None = None
        self.cursor = NavigationCursor()

    @property
    def phase(self) -> RunPhase:
        return self._phase

    @property
    def busy(self) -> bool:
        return self._phase not in ACCEPTS_RELAUNCH

    @property
    def run_number(self) -> int:
        return self._run_number

    @property
    def snapshot(self) -> RunSnapshot | None:
        return self._snapshot

    @property
    def failure(self) -> RunFailure | None:
        """Why the latest cycle failed; cleared by the next successful one."""
        return self._failure

    @property
    def stale(self) -> bool:
        """True when an older snapshot is shown after a failed cycle."""
        return self._phase is RunPhase.FAILED and self._snapshot is not None

    @property
    def tree(self) -> ResultTree:
        return self._snapshot.tree if self._snapshot is not None else EMPTY_TREE

    @property
    def failures(self) -> tuple[FailureEntry, ...]:
        return self._snapshot.failures if self._snapshot is not None else ()

    def selected_failure(self) -> FailureEntry | None:
        selected = self.cursor.selected
        failures = self.failures
        if selected is None or not 0 <= selected < len(failures):
            return None
        return failures[selected]

    def request_run(self) -> bool:
        """Start a cycle unless one is already in flight."""
        if self.busy:
            logger.debug("relaunch ignored while %s", self._phase.value)
            return False
        self._run_number += 1
        self._phase = RunPhase.BUILDING if self._build_command else RunPhase.RUNNING
        logger.info("starting run %d", self._run_number)
        self._start_worker(partial(self._run_cycle, self._run_number))
        return True

    def poll(self) -> bool:
        """Apply queued worker events; returns whether anything changed."""
        changed = False
        while True:
            try:
                event = self._events.get_nowait()
            except Empty:
                break
            changed = self._apply(event) or changed
        return changed

    def wait(self, timeout: float | None = None) -> bool:
        """Block until the current cycle finishes; ``False`` on timeout."""
        deadline = None if timeout is None else time.monotonic() + timeout
        while self.busy:
            remaining = None if deadline is None else deadline - time.monotonic()
            if remaining is not None and remaining <= 0:
                return False
            try:
                event = self._events.get(timeout=remaining)
            except Empty:
                return False
            self._apply(event)
        return True

    def _apply(self, event: _Event) -> bool:
        if event.run_number != self._run_number:
            return False
        if isinstance(event, _PhaseChanged):
            if not self.busy or event.phase is self._phase:
                return False
            self._phase = event.phase
            return True

        if event.snapshot is not None:
            # The cursor belongs to the previous failure index; drop it.
            self._snapshot = event.snapshot
            self._failure = None
            self._phase = RunPhase.READY
            self.cursor.reset(len(event.snapshot.failures))
            logger.info(
                "run %d ready: %d failing of %d",
                event.run_number,
                event.snapshot.counts.failed,
                event.snapshot.counts.total,
            )
        else:
            self._failure = event.failure
            self._phase = RunPhase.FAILED
            if event.failure is not None:
                logger.warning("run %d failed: %s", event.run_number, event.failure.message)
        return True

    def _post_phase(self, run_number: int, phase: RunPhase) -> None:
        self._events.put(_PhaseChanged(run_number=run_number, phase=phase))

    def _run_cycle(self, run_number: int) -> None:
        try:
            done = self._execute(run_number)
        except Exception as exc:
            logger.exception("run %d crashed", run_number)
            done = _CycleDone(
                run_number=run_number,
                failure=RunFailure(FailureKind.INTERNAL_ERROR, f"run crashed: {exc}"),
            )
        self._events.put(done)

    def _execute(self, run_number: int) -> _CycleDone:
        if self._build_command:
            self._post_phase(run_number, RunPhase.BUILDING)
            try:
                build = self._runner(self._build_command, cwd=self._cwd)
            except SpawnError as exc:
                return _CycleDone(run_number, failure=RunFailure(FailureKind.SPAWN_ERROR, str(exc)))
            if not build.succeeded:
                return _CycleDone(
                    run_number,
                    failure=RunFailure(
                        FailureKind.BUILD_FAILED,
                        f"build exited with status {build.returncode}",
                        detail=build.output_tail(),
                    ),
                )

        self._post_phase(run_number, RunPhase.RUNNING)
        try:
            result = self._runner(self._test_command, cwd=self._cwd)
        except SpawnError as exc:
            return _CycleDone(run_number, failure=RunFailure(FailureKind.SPAWN_ERROR, str(exc)))

        self._post_phase(run_number, RunPhase.PARSING)
        try:
            tree = parse_tap(result.stdout)
        except TapEncodingError as exc:
            return _CycleDone(run_number, failure=RunFailure(FailureKind.ENCODING_ERROR, str(exc)))

        snapshot = RunSnapshot(
            run_number=run_number,
            tree=tree,
            failures=build_failure_index(tree),
            anomalies=tuple(tree.all_anomalies()),
            counts=tree.count_points(),
            exit_status=result.returncode,
            stderr_tail=result.stderr.decode("utf-8", errors="replace").rstrip("\n")[-4000:],
            finished_at=self._clock(),
        )
        return _CycleDone(run_number, snapshot=snapshot)
