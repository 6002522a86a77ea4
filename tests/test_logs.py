from __future__ import annotations

import logging
import os
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from tapr.logs import LOG_FILE_ENV, configure_logging


class ConfigureLoggingTests(unittest.TestCase):
    def tearDown(self) -> None:
        logger = logging.getLogger("tapr")
        for handler in list(logger.handlers):
            logger.removeHandler(handler)
            handler.close()

    def test_without_file_only_a_null_handler_is_installed(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            logger = configure_logging()

        self.assertEqual(len(logger.handlers), 1)
        self.assertIsInstance(logger.handlers[0], logging.NullHandler)
        self.assertFalse(logger.propagate)

    def test_file_handler_writes_records_with_thread_name(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "logs" / "tapr.log"
            logger = configure_logging(log_path, "debug")
            logging.getLogger("tapr.runner").debug("hello from the worker")
            for handler in logger.handlers:
                handler.flush()

            text = log_path.read_text(encoding="utf-8")
            self.tearDown()

        self.assertIn("DEBUG [MainThread] tapr.runner: hello from the worker", text)

    def test_environment_supplies_log_file(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            log_path = Path(tmp) / "env.log"
            with mock.patch.dict(os.environ, {LOG_FILE_ENV: str(log_path)}, clear=True):
                logger = configure_logging()
            logging.getLogger("tapr").info("from env")
            for handler in logger.handlers:
                handler.flush()

            self.assertIn("from env", log_path.read_text(encoding="utf-8"))
            self.tearDown()

    def test_repeated_configuration_does_not_duplicate_handlers(self) -> None:
        with mock.patch.dict(os.environ, {}, clear=True):
            configure_logging()
            logger = configure_logging()

        self.assertEqual(len(logger.handlers), 1)


if __name__ == "__main__":
    unittest.main()
