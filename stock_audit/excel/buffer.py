from __future__ import annotations

from collections.abc import Iterable, Sequence
from typing import Any

"""In-memory grid of string cells mirroring the imported sheet.

Row 0 is the header row; rows 1.. are data rows. Rows are not forced to a
common width, so every read bounds-checks against the row it touches.
The buffer is the authoritative store for cell text; the material index
writes through to it on every edit.
"""

__all__ = [
    "TabularBuffer",
]


def _cell_text(value: Any) -> str:
    if value is None:
        return ""
    return value if isinstance(value, str) else str(value)


class TabularBuffer:
    """Mutable list-of-rows store with header row at index 0."""

    def __init__(self, rows: Iterable[Sequence[Any]] | None = None) -> None:
        self._rows: list[list[str]] = []
        if rows is not None:
            self.load(rows)

    def load(self, rows: Iterable[Sequence[Any]]) -> None:
        """Replace all contents. Prior rows are discarded."""
        self._rows = [[_cell_text(v) for v in row] for row in rows]

    def get(self, row: int, col: int) -> str:
        if row < 0 or col < 0 or row >= len(self._rows):
            return ""
        cells = self._rows[row]
        if col >= len(cells):
            return ""
        return cells[col]

    def set(self, row: int, col: int, value: str) -> None:
        if row < 0 or row >= len(self._rows):
            raise IndexError(f"row {row} out of range (rows={len(self._rows)})")
        if col < 0:
            raise IndexError(f"column {col} out of range")
        cells = self._rows[row]
        if col >= len(cells):
            # ragged row: pad just this row so the write lands where the header says
            cells.extend([""] * (col + 1 - len(cells)))
        cells[col] = value

    def append_column(self, header_value: str) -> int:
        """Extend every row by one cell and return the new column index.

        The new index is one past the header row's last cell; shorter data
        rows are padded so the appended cell lines up with the header.
        """
        if not self._rows:
            self._rows.append([])
        new_col = len(self._rows[0])
        for i, cells in enumerate(self._rows):
            if len(cells) < new_col:
                cells.extend([""] * (new_col - len(cells)))
            cells.append(header_value if i == 0 else "")
        return new_col

    def row_length(self, row: int) -> int:
        if row < 0 or row >= len(self._rows):
            return 0
        return len(self._rows[row])

    @property
    def headers(self) -> list[str]:
        return list(self._rows[0]) if self._rows else []

    @property
    def row_count(self) -> int:
        return len(self._rows)

    @property
    def data_row_count(self) -> int:
        return max(len(self._rows) - 1, 0)

    @property
    def width(self) -> int:
        return max((len(r) for r in self._rows), default=0)

    @property
    def is_empty(self) -> bool:
        return not self._rows

    def rows(self) -> list[list[str]]:
        """Copy of all rows (header included) for read-only consumers such as export."""
        return [list(r) for r in self._rows]

    def __len__(self) -> int:
        return len(self._rows)
