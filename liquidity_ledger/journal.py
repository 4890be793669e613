"""
journal.py - Per-operation undo journal

While an operation is open, every store records the prior value of each
entry it is about to overwrite. Rolling back restores those entries in
reverse order. Only touched entries are recorded, so the cost of an
operation is independent of the size of the ledger.

    journal.begin()
    journal.record_item(epochs, 3)        # before epochs[3] = ...
    journal.record_attr(store, 'total_free_assets')
    journal.rollback()                    # or journal.commit()

Outside an open operation recording is a no-op.
"""

from __future__ import annotations
from typing import Any, List, MutableMapping, Tuple


_MISSING = object()


class UndoJournal:
    """
    Prior values of the mapping entries and attributes touched by one operation.

    Attributes:
        entries: (kind, target, key, old_value) in recording order.
    """

    def __init__(self):
        self.entries: List[Tuple[str, Any, Any, Any]] = []
        self._open = False

    @property
    def is_open(self) -> bool:
        return self._open

    def begin(self) -> None:
        self.entries = []
        self._open = True

    def commit(self) -> None:
        self.entries = []
        self._open = False

    def rollback(self) -> None:
        """Restore every recorded entry, newest first, and close the journal."""
        for kind, target, key, old in reversed(self.entries):
            if kind == 'item':
                if old is _MISSING:
                    target.pop(key, None)
                else:
                    target[key] = old
            else:
                setattr(target, key, old)
        self.commit()

    def record_item(self, mapping: MutableMapping, key: Any) -> None:
        if self._open:
            self.entries.append(('item', mapping, key, mapping.get(key, _MISSING)))

    def record_attr(self, obj: Any, name: str) -> None:
        if self._open:
            self.entries.append(('attr', obj, name, getattr(obj, name)))

    def __len__(self) -> int:
        return len(self.entries)
