from __future__ import annotations

import unittest
from pathlib import Path

from tapr.failures import build_failure_index, resolve_path
from tapr.tap import parse_tap

FIXTURES = Path(__file__).resolve().parent / "fixtures"


class FailureIndexTests(unittest.TestCase):
    def test_flat_failures_follow_declaration_order(self) -> None:
        tree = parse_tap("1..3\nok 1 - a\nnot ok 2 - b\nnot ok 3 - c\n")
        index = build_failure_index(tree)

        self.assertEqual([entry.summary.number for entry in index], [2, 3])
        self.assertEqual([entry.path for entry in index], [(1,), (2,)])

    def test_nested_failures_are_leaves_in_depth_first_order(self) -> None:
        tree = parse_tap((FIXTURES / "subtest.tap").read_bytes())
        index = build_failure_index(tree)

        self.assertEqual([entry.label for entry in index], ["foo/3", "bar/4", "bar/5"])
        self.assertFalse(any(entry.is_rollup for entry in index))
        self.assertEqual([entry.path for entry in index], [(0, 2), (1, 0), (1, 1)])

    def test_failing_subtest_without_failing_children_is_indexed_itself(self) -> None:
        tree = parse_tap("# Subtest: strict\n    1..1\n    ok 1 - inner\nnot ok 1 - strict\n")
        index = build_failure_index(tree)

        self.assertEqual(len(index), 1)
        self.assertTrue(index[0].is_rollup)
        self.assertEqual(index[0].path, (0,))
        self.assertEqual(index[0].label, "strict")

    def test_passing_tree_has_empty_index(self) -> None:
        self.assertEqual(build_failure_index(parse_tap("ok 1\nok 2\n")), ())

    def test_resolve_path_finds_nested_nodes(self) -> None:
        tree = parse_tap((FIXTURES / "subtest.tap").read_bytes())

        self.assertEqual(resolve_path(tree, (1, 0)).description, "fourth")
        self.assertEqual(resolve_path(tree, (0,)).name, "foo")
        self.assertIsNone(resolve_path(tree, (0, 9)))
        self.assertIsNone(resolve_path(tree, (0, 0, 0)))


if __name__ == "__main__":
    unittest.main()
