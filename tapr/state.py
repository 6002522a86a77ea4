from __future__ import annotations

from dataclasses import dataclass


@dataclass
class AppState:
    row_start: int = 0
    show_help: bool = False
    dirty: bool = True
    skip_next_lf: bool = False
    quit_requested: bool = False
    status_message: str = ""
    status_message_until: float = 0.0
