from __future__ import annotations

import json
import tempfile
import unittest
from pathlib import Path
from unittest import mock

from tapr import config
from tapr.diagnostics import DEFAULT_LOCATION_QUERY
from tapr.highlight import DEFAULT_STYLE


class ConfigBehaviorTests(unittest.TestCase):
    def test_missing_config_uses_defaults(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            with mock.patch("tapr.config.CONFIG_PATH", Path(tmp) / "missing.json"):
                settings = config.load_settings()

        self.assertEqual(settings.location_query, DEFAULT_LOCATION_QUERY)
        self.assertEqual(settings.style, DEFAULT_STYLE)
        self.assertTrue(settings.preview)
        self.assertIsNone(settings.build_command)

    def test_values_are_read_from_json(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text(
                json.dumps(
                    {
                        "location_query": ".at",
                        "style": "friendly",
                        "preview": False,
                        "build_command": "cargo build",
                    }
                ),
                encoding="utf-8",
            )
            with mock.patch("tapr.config.CONFIG_PATH", config_path):
                settings = config.load_settings()

        self.assertEqual(settings.location_query, ".at")
        self.assertEqual(settings.style, "friendly")
        self.assertFalse(settings.preview)
        self.assertEqual(settings.build_command, "cargo build")

    def test_malformed_or_mistyped_config_falls_back(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("{not json", encoding="utf-8")
            with mock.patch("tapr.config.CONFIG_PATH", config_path):
                self.assertEqual(config.load_config(), {})

            config_path.write_text(json.dumps({"preview": "yes", "style": 3, "build_command": "  "}), encoding="utf-8")
            with mock.patch("tapr.config.CONFIG_PATH", config_path):
                settings = config.load_settings()

        self.assertTrue(settings.preview)
        self.assertEqual(settings.style, DEFAULT_STYLE)
        self.assertIsNone(settings.build_command)

    def test_non_object_json_is_ignored(self) -> None:
        with tempfile.TemporaryDirectory() as tmp:
            config_path = Path(tmp) / "config.json"
            config_path.write_text("[1, 2]", encoding="utf-8")
            with mock.patch("tapr.config.CONFIG_PATH", config_path):
                self.assertEqual(config.load_config(), {})


if __name__ == "__main__":
    unittest.main()
