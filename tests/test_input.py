"""Regression tests for raw-key decoding.

Covers ESC timing, arrow sequences, and control-key token mapping.
These tests protect interactive input handling in raw terminal mode.
"""

import os
import time
import unittest

from tapr import input as input_mod


class ReadKeyRegressionTests(unittest.TestCase):
    def setUp(self) -> None:
        input_mod._PENDING_BYTES.clear()

    def tearDown(self) -> None:
        input_mod._PENDING_BYTES.clear()

    def _read_all(self, payload: bytes, count: int) -> list[str]:
        read_fd, write_fd = os.pipe()
        try:
            os.write(write_fd, payload)
            return [input_mod.read_key(read_fd, timeout_ms=20) for _ in range(count)]
        finally:
            os.close(read_fd)
            os.close(write_fd)

    def test_single_escape_returns_esc_without_second_keypress(self) -> None:
        read_fd, write_fd = os.pipe()
        try:
            os.write(write_fd, b"\x1b")
            started = time.monotonic()
            key = input_mod.read_key(read_fd, timeout_ms=20)
            elapsed = time.monotonic() - started
        finally:
            os.close(read_fd)
            os.close(write_fd)

        self.assertEqual(key, "ESC")
        self.assertLess(elapsed, 0.2)

    def test_arrow_sequences_are_recognized(self) -> None:
        self.assertEqual(self._read_all(b"\x1b[A\x1b[B\x1bOA", 3), ["UP", "DOWN", "UP"])

    def test_escape_does_not_swallow_following_printable_key(self) -> None:
        self.assertEqual(self._read_all(b"\x1bq", 2), ["ESC", "q"])

    def test_page_keys_are_decoded(self) -> None:
        self.assertEqual(self._read_all(b"\x1b[5~\x1b[6~", 2), ["PAGE_UP", "PAGE_DOWN"])

    def test_unknown_sequences_are_not_escape(self) -> None:
        self.assertEqual(self._read_all(b"\x1b[3~q", 2), ["UNKNOWN", "q"])

    def test_modified_arrow_is_consumed_whole(self) -> None:
        self.assertEqual(self._read_all(b"\x1b[1;5Cj", 2), ["UNKNOWN", "j"])

    def test_unmapped_final_byte_is_unknown(self) -> None:
        self.assertEqual(self._read_all(b"\x1b[Zk", 2), ["UNKNOWN", "k"])

    def test_control_keys_map_to_tokens(self) -> None:
        self.assertEqual(
            self._read_all(b"\x03\x12\t\r\n", 5),
            ["CTRL_C", "CTRL_R", "TAB", "ENTER_CR", "ENTER_LF"],
        )

    def test_multibyte_character_is_read_whole(self) -> None:
        self.assertEqual(self._read_all("é".encode("utf-8"), 1), ["é"])

    def test_timeout_returns_empty_token(self) -> None:
        self.assertEqual(self._read_all(b"", 1), [""])


if __name__ == "__main__":
    unittest.main()
