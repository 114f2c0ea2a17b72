from __future__ import annotations

from collections.abc import Callable

from ..excel.buffer import TabularBuffer
from ..models.material_item import MaterialItem
from .debounce import Debouncer, Scheduler
from .material_index import MaterialIndex

"""Incremental, debounced substring search over the material index.

The visible list is a pure view: it is recomputed from the index whenever the
applied query or the index changes, never patched in place.
"""

__all__ = [
    "normalize_query",
    "filter_items",
    "matching_rows",
    "SearchFilter",
]

DEFAULT_DEBOUNCE_MS = 300


def normalize_query(text: str) -> str:
    return text.strip().lower()


def filter_items(items: list[MaterialItem], query: str) -> list[MaterialItem]:
    """Items whose code or description contains the (normalized) query, in index order."""
    if not query:
        return list(items)
    return [i for i in items if query in i.code.lower() or query in i.description.lower()]


def matching_rows(buffer: TabularBuffer, query: str) -> list[int]:
    """Data row indices (>= 1) where any cell contains the query, for the raw sheet view."""
    q = query.lower()
    rows = range(1, buffer.row_count)
    if not q:
        return list(rows)
    return [
        r for r in rows
        if any(q in buffer.get(r, c).lower() for c in range(buffer.row_length(r)))
    ]


class SearchFilter:
    def __init__(
        self,
        index: MaterialIndex,
        *,
        debounce_ms: int = DEFAULT_DEBOUNCE_MS,
        scheduler: Scheduler | None = None,
        on_change: Callable[[list[MaterialItem]], None] | None = None,
    ) -> None:
        self.index = index
        self.query = ""  # last applied query
        self._pending = ""
        self.on_change = on_change
        self._debouncer = Debouncer(debounce_ms / 1000.0, self._apply_pending, scheduler)
        self.visible: list[MaterialItem] = []

    @property
    def pending(self) -> bool:
        return self._debouncer.pending

    def set_query(self, text: str) -> None:
        """Queue a query; only the last one issued inside the debounce window is applied."""
        self._pending = normalize_query(text)
        self._debouncer.trigger()

    def apply(self) -> list[MaterialItem]:
        return filter_items(self.index.items(), self.query)

    def refresh(self) -> list[MaterialItem]:
        """Recompute the visible view (call after the index is rebuilt)."""
        self.visible = self.apply()
        if self.on_change is not None:
            self.on_change(self.visible)
        return self.visible

    def clear(self) -> list[MaterialItem]:
        self._debouncer.cancel()
        self._pending = ""
        self.query = ""
        return self.refresh()

    def _apply_pending(self) -> None:
        self.query = self._pending
        self.refresh()
