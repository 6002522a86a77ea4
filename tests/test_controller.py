"""Tests for the run/relaunch state machine.

Worker threads are replaced with synchronous or gated callables and the
process runner with a fake, so every transition is deterministic.
"""

from __future__ import annotations

import threading
import unittest

from tapr.runner import CommandResult, FailureKind, RunController, RunPhase, SpawnError

FAILING_TAP = b"TAP version 14\n1..3\nok 1 - a\nnot ok 2 - b\nnot ok 3 - c\n"
PASSING_TAP = b"1..1\nok 1 - a\n"


def run_inline(target) -> None:
    target()


class FakeRunner:
    def __init__(self, results: dict[tuple[str, ...], CommandResult | Exception]) -> None:
        self.results = results
        self.calls: list[tuple[str, ...]] = []

    def __call__(self, argv, cwd=None) -> CommandResult:
        argv = tuple(argv)
        self.calls.append(argv)
        result = self.results[argv]
        if isinstance(result, Exception):
            raise result
        return result


def _result(argv: tuple[str, ...], stdout: bytes = b"", returncode: int = 0, stderr: bytes = b"") -> CommandResult:
    return CommandResult(argv=argv, returncode=returncode, stdout=stdout, stderr=stderr)


TEST_CMD = ("run-tests",)
BUILD_CMD = ("make",)


class RunControllerTests(unittest.TestCase):
    def _controller(self, runner: FakeRunner, build: tuple[str, ...] | None = None) -> RunController:
        return RunController(TEST_CMD, build, runner=runner, start_worker=run_inline, clock=lambda: 123.0)

    def test_starts_idle_with_empty_results(self) -> None:
        controller = self._controller(FakeRunner({}))

        self.assertIs(controller.phase, RunPhase.IDLE)
        self.assertEqual(controller.run_number, 0)
        self.assertIsNone(controller.snapshot)
        self.assertEqual(controller.tree.children, ())
        self.assertFalse(controller.stale)

    def test_successful_cycle_publishes_snapshot(self) -> None:
        runner = FakeRunner({TEST_CMD: _result(TEST_CMD, FAILING_TAP, returncode=1)})
        controller = self._controller(runner)

        self.assertTrue(controller.request_run())
        self.assertIs(controller.phase, RunPhase.RUNNING)
        self.assertTrue(controller.poll())

        self.assertIs(controller.phase, RunPhase.READY)
        snapshot = controller.snapshot
        self.assertEqual(snapshot.run_number, 1)
        self.assertEqual(snapshot.exit_status, 1)
        self.assertEqual(snapshot.finished_at, 123.0)
        self.assertEqual([entry.summary.number for entry in snapshot.failures], [2, 3])
        self.assertEqual(snapshot.counts.failed, 2)
        self.assertEqual(controller.cursor.length, 2)
        self.assertIsNone(controller.cursor.selected)

    def test_build_runs_before_tests(self) -> None:
        runner = FakeRunner(
            {
                BUILD_CMD: _result(BUILD_CMD),
                TEST_CMD: _result(TEST_CMD, PASSING_TAP),
            }
        )
        controller = self._controller(runner, build=BUILD_CMD)

        controller.request_run()
        self.assertIs(controller.phase, RunPhase.BUILDING)
        controller.poll()

        self.assertEqual(runner.calls, [BUILD_CMD, TEST_CMD])
        self.assertIs(controller.phase, RunPhase.READY)

    def test_build_failure_keeps_previous_snapshot_as_stale(self) -> None:
        runner = FakeRunner(
            {
                BUILD_CMD: _result(BUILD_CMD),
                TEST_CMD: _result(TEST_CMD, FAILING_TAP, returncode=1),
            }
        )
        controller = self._controller(runner, build=BUILD_CMD)
        controller.request_run()
        controller.poll()
        first = controller.snapshot

        runner.results[BUILD_CMD] = _result(BUILD_CMD, b"compiling\n", returncode=2, stderr=b"error: nope\n")
        controller.request_run()
        controller.poll()

        self.assertIs(controller.phase, RunPhase.FAILED)
        self.assertIs(controller.snapshot, first)
        self.assertTrue(controller.stale)
        self.assertIs(controller.failure.kind, FailureKind.BUILD_FAILED)
        self.assertIn("error: nope", controller.failure.detail)
        self.assertEqual(runner.calls, [BUILD_CMD, TEST_CMD, BUILD_CMD])

    def test_spawn_error_moves_to_failed(self) -> None:
        runner = FakeRunner({TEST_CMD: SpawnError(TEST_CMD, "No such file or directory")})
        controller = self._controller(runner)

        controller.request_run()
        controller.poll()

        self.assertIs(controller.phase, RunPhase.FAILED)
        self.assertIs(controller.failure.kind, FailureKind.SPAWN_ERROR)
        self.assertIsNone(controller.snapshot)
        self.assertFalse(controller.stale)

    def test_undecodable_output_is_an_encoding_failure(self) -> None:
        runner = FakeRunner({TEST_CMD: _result(TEST_CMD, b"ok 1 - \xff\n")})
        controller = self._controller(runner)

        controller.request_run()
        controller.poll()

        self.assertIs(controller.failure.kind, FailureKind.ENCODING_ERROR)

    def test_unexpected_worker_error_is_reported(self) -> None:
        runner = FakeRunner({TEST_CMD: RuntimeError("kaboom")})
        controller = self._controller(runner)

        controller.request_run()
        controller.poll()

        self.assertIs(controller.phase, RunPhase.FAILED)
        self.assertIs(controller.failure.kind, FailureKind.INTERNAL_ERROR)
        self.assertIn("kaboom", controller.failure.message)

    def test_relaunch_is_ignored_while_busy(self) -> None:
        release = threading.Event()
        runner = FakeRunner({TEST_CMD: _result(TEST_CMD, PASSING_TAP)})

        def gated(argv, cwd=None):
            release.wait(5)
            return runner(argv, cwd=cwd)

        controller = RunController(TEST_CMD, runner=gated)
        self.assertTrue(controller.request_run())
        self.assertFalse(controller.request_run())
        self.assertEqual(controller.run_number, 1)

        release.set()
        self.assertTrue(controller.wait(timeout=5))
        self.assertIs(controller.phase, RunPhase.READY)
        self.assertEqual(runner.calls, [TEST_CMD])

    def test_new_snapshot_resets_selection(self) -> None:
        runner = FakeRunner({TEST_CMD: _result(TEST_CMD, FAILING_TAP, returncode=1)})
        controller = self._controller(runner)
        controller.request_run()
        controller.poll()
        controller.cursor.select_next()
        controller.cursor.select_next()
        self.assertEqual(controller.selected_failure().summary.number, 3)

        runner.results[TEST_CMD] = _result(TEST_CMD, PASSING_TAP)
        controller.request_run()
        controller.poll()

        self.assertIsNone(controller.cursor.selected)
        self.assertIsNone(controller.selected_failure())
        self.assertEqual(controller.failures, ())
        self.assertEqual(controller.run_number, 2)

    def test_successful_cycle_clears_previous_failure(self) -> None:
        runner = FakeRunner({TEST_CMD: SpawnError(TEST_CMD, "missing")})
        controller = self._controller(runner)
        controller.request_run()
        controller.poll()

        runner.results[TEST_CMD] = _result(TEST_CMD, PASSING_TAP)
        controller.request_run()
        controller.poll()

        self.assertIsNone(controller.failure)
        self.assertIs(controller.phase, RunPhase.READY)


if __name__ == "__main__":
    unittest.main()
