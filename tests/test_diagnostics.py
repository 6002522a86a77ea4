"""Tests for diagnostic YAML queries and location parsing."""

from __future__ import annotations

import unittest
from pathlib import Path

import yaml

from tapr.diagnostics import (
    QueryError,
    SourceLocation,
    compile_query,
    extract_locations,
    first_location,
    parse_location,
    query_document,
)
from tapr.tap import DiagnosticBlock


def _block(text: str) -> DiagnosticBlock:
    return DiagnosticBlock(text=text, line_number=1)


class QueryTests(unittest.TestCase):
    def test_dotted_path(self) -> None:
        document = {"failure": {"location": "a.js:3"}}

        self.assertEqual(query_document(document, ".failure.location"), ["a.js:3"])

    def test_identity_returns_document(self) -> None:
        self.assertEqual(query_document("x.py:1", "."), ["x.py:1"])

    def test_iterate_and_index(self) -> None:
        document = {"stack": [{"at": "a.js:1"}, {"at": "b.js:2"}]}

        self.assertEqual(query_document(document, ".stack[].at"), ["a.js:1", "b.js:2"])
        self.assertEqual(query_document(document, ".stack[-1].at"), ["b.js:2"])
        self.assertEqual(query_document(document, ".stack[5].at"), [])

    def test_quoted_keys(self) -> None:
        document = {"odd key": {"x": "y.py:9"}}

        self.assertEqual(query_document(document, '."odd key".x'), ["y.py:9"])
        self.assertEqual(query_document(document, '.["odd key"]["x"]'), ["y.py:9"])

    def test_string_interpolation_builds_locations(self) -> None:
        document = {"at": {"file": "src/app.py", "line": 42}}

        self.assertEqual(query_document(document, '.at | "\\(.file):\\(.line)"'), ["src/app.py:42"])

    def test_select_filters_stack_frames(self) -> None:
        document = {"stack": ["node:internal/x:1", "test/a.js:7", "test/b.js:9"]}

        self.assertEqual(
            query_document(document, '.stack[] | select(startswith("test/"))'),
            ["test/a.js:7", "test/b.js:9"],
        )

    def test_missing_keys_yield_nothing(self) -> None:
        self.assertEqual(query_document({"a": 1}, ".b.c"), [])
        self.assertEqual(query_document("scalar", ".a"), [])

    def test_yaml_dates_are_passed_as_strings(self) -> None:
        document = yaml.safe_load("when: 2024-01-02\nat: x.py:3\n")

        self.assertEqual(query_document(document, ".when"), ["2024-01-02"])
        self.assertEqual(query_document(document, ".at"), ["x.py:3"])

    def test_bad_queries_raise(self) -> None:
        for expression in ("", "   ", "failure", ".a[", "| ."):
            with self.subTest(expression=expression):
                with self.assertRaises(QueryError):
                    compile_query(expression)


class LocationTests(unittest.TestCase):
    def test_extract_uses_default_query(self) -> None:
        block = _block("message: boom\nfailure:\n  location: test/bar.js:4:7")

        self.assertEqual(extract_locations(block), ["test/bar.js:4:7"])

    def test_extract_accepts_file_line_mappings(self) -> None:
        block = _block("at:\n  file: src/app.py\n  line: 42\n")

        self.assertEqual(extract_locations(block, ".at"), ["src/app.py:42"])

    def test_invalid_yaml_yields_no_locations(self) -> None:
        self.assertEqual(extract_locations(_block("a: [unclosed")), [])
        self.assertEqual(extract_locations(None), [])

    def test_parse_location_variants(self) -> None:
        self.assertEqual(parse_location("src/a.py:12"), SourceLocation(Path("src/a.py"), 12))
        self.assertEqual(parse_location("src/a.py:12:5"), SourceLocation(Path("src/a.py"), 12))
        self.assertIsNone(parse_location("src/a.py"))
        self.assertIsNone(parse_location(":12"))

    def test_parse_location_resolves_against_base(self) -> None:
        location = parse_location("a.py:3", base=Path("/work"))

        self.assertEqual(location.path, Path("/work/a.py"))
        self.assertEqual(str(location), "/work/a.py:3")

    def test_first_location_skips_unparseable_values(self) -> None:
        block = _block("stack:\n  - native code\n  - lib/x.js:8\n")

        self.assertEqual(first_location(block, ".stack[]"), SourceLocation(Path("lib/x.js"), 8))


if __name__ == "__main__":
    unittest.main()
