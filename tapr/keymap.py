"""Key-combo registry and the interactive command bindings."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass


@dataclass(frozen=True)
class KeyComboBinding:
    """Mapping from one or more key tokens to a single action callback."""

    combos: tuple[str, ...]
    handler: Callable[[], bool | None]


class KeyComboRegistry:
    """Small key-dispatch table with optional key normalization strategy."""

    def __init__(self, normalize: Callable[[str], str] | None = None) -> None:
        self._normalize = normalize if normalize is not None else self._identity
        self._handlers: dict[str, Callable[[], bool | None]] = {}

    @staticmethod
    def _identity(key: str) -> str:
        return key

    def register_binding(self, binding: KeyComboBinding) -> KeyComboRegistry:
        """Register one binding, overwriting existing handlers for same combos."""
        for combo in binding.combos:
            self._handlers[self._normalize(combo)] = binding.handler
        return self

    def register_bindings(self, *bindings: KeyComboBinding) -> KeyComboRegistry:
        for binding in bindings:
            self.register_binding(binding)
        return self

    def dispatch(self, key: str) -> bool | None:
        """Invoke bound handler for ``key``; ``None`` when nothing is bound."""
        handler = self._handlers.get(self._normalize(key))
        if handler is None:
            return None
        return handler()


@dataclass(frozen=True)
class CommandHandlers:
    """The interactive commands surfaced to the input layer."""

    relaunch: Callable[[], bool | None]
    quit: Callable[[], bool | None]
    select_next: Callable[[], bool | None]
    select_previous: Callable[[], bool | None]
    unselect: Callable[[], bool | None]
    edit_location: Callable[[], bool | None]
    toggle_help: Callable[[], bool | None]


QUIT_KEYS: tuple[str, ...] = ("q", "Q", "CTRL_C")
RELAUNCH_KEYS: tuple[str, ...] = ("r", "R", "CTRL_R")
NEXT_KEYS: tuple[str, ...] = ("j", "n", "DOWN", "TAB")
PREVIOUS_KEYS: tuple[str, ...] = ("k", "p", "UP")
UNSELECT_KEYS: tuple[str, ...] = ("ESC", "u")
EDIT_KEYS: tuple[str, ...] = ("e", "ENTER")
HELP_KEYS: tuple[str, ...] = ("?",)


def build_key_registry(handlers: CommandHandlers) -> KeyComboRegistry:
    return KeyComboRegistry().register_bindings(
        KeyComboBinding(QUIT_KEYS, handlers.quit),
        KeyComboBinding(RELAUNCH_KEYS, handlers.relaunch),
        KeyComboBinding(NEXT_KEYS, handlers.select_next),
        KeyComboBinding(PREVIOUS_KEYS, handlers.select_previous),
        KeyComboBinding(UNSELECT_KEYS, handlers.unselect),
        KeyComboBinding(EDIT_KEYS, handlers.edit_location),
        KeyComboBinding(HELP_KEYS, handlers.toggle_help),
    )
