"""Persistent JSON config helpers.

Supplies defaults for the location query, highlight style, preview toggle,
and build command. All access is defensive: malformed or missing config
falls back to defaults, and command-line flags always win.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path

from platformdirs import user_config_dir

from .diagnostics import DEFAULT_LOCATION_QUERY
from .highlight import DEFAULT_STYLE

APP_NAME = "tapr"
CONFIG_FILENAME = "config.json"
CONFIG_PATH = Path(user_config_dir(APP_NAME, appauthor=False)) / CONFIG_FILENAME


@dataclass(frozen=True)
class Settings:
    location_query: str = DEFAULT_LOCATION_QUERY
    style: str = DEFAULT_STYLE
    preview: bool = True
    build_command: str | None = None


def load_config() -> dict[str, object]:
    """Load the persisted JSON config object.

    Returns an empty dict when the file is missing, unreadable, malformed, or
    does not decode to a top-level JSON object.
    """
    try:
        data = json.loads(CONFIG_PATH.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return {}
    return data if isinstance(data, dict) else {}


def _nonempty_str(value: object) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None


def load_settings() -> Settings:
    """Build ``Settings`` from config; wrongly-typed values are ignored."""
    data = load_config()
    defaults = Settings()
    preview = data.get("preview")
    return Settings(
        location_query=_nonempty_str(data.get("location_query")) or defaults.location_query,
        style=_nonempty_str(data.get("style")) or defaults.style,
        preview=preview if isinstance(preview, bool) else defaults.preview,
        build_command=_nonempty_str(data.get("build_command")),
    )
