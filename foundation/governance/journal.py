"""
Call Journal

Undo log for one atomic call. Stores record how to revert each write as
they make it; on failure the entries are replayed newest first.
"""

from typing import Callable, Hashable, List, Optional, Set


class Journal:
    """Undo entries for the writes of a single call."""

    def __init__(self):
        self._undo: List[Callable[[], None]] = []
        self._touched: Set[Hashable] = set()

    def record(self, undo: Callable[[], None], key: Optional[Hashable] = None):
        """
        Register *undo*. With a *key*, only the first entry per key is kept,
        so a record touched several times is restored to its pre-call value.
        """
        if key is not None:
            if key in self._touched:
                return
            self._touched.add(key)
        self._undo.append(undo)

    def rollback(self):
        while self._undo:
            self._undo.pop()()
        self._touched.clear()

    def __len__(self) -> int:
        return len(self._undo)
