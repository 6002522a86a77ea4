"""Selection cursor over the current failure index."""

from __future__ import annotations


class NavigationCursor:
    """``Unselected`` (``selected is None``) or an index into the failures.

    Movement saturates at the last failure and steps back to unselected
    from the first one.
    """

    def __init__(self, length: int = 0) -> None:
        self._length = max(0, length)
        self._selected: int | None = None

    @property
    def selected(self) -> int | None:
        return self._selected

    @property
    def is_selected(self) -> bool:
        return self._selected is not None

    @property
    def length(self) -> int:
        return self._length

    def select_next(self) -> bool:
        """Move forward; returns whether the selection changed."""
        if self._length == 0:
            return False
        if self._selected is None:
            self._selected = 0
            return True
        target = min(self._selected + 1, self._length - 1)
        if target == self._selected:
            return False
        self._selected = target
        return True

    def select_previous(self) -> bool:
        if self._selected is None:
            return False
        self._selected = self._selected - 1 if self._selected > 0 else None
        return True

    def unselect(self) -> bool:
        changed = self._selected is not None
        self._selected = None
        return changed

    def reset(self, length: int) -> None:
        """Rescope to a new failure index; the old selection is dropped."""
        self._length = max(0, length)
        self._selected = None
