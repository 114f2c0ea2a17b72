from __future__ import annotations

import logging
from collections.abc import Callable, Iterator

from ..excel.buffer import TabularBuffer
from ..models.column_mapping import ColumnMapping, Role
from ..models.material_item import MaterialItem
from .column_mapper import MappingValidationError, validate_mapping

"""Material index: one MaterialItem per data row with a non-empty code.

The tabular buffer stays authoritative. Items cache the row's values and
every edit is written through to the buffer immediately, so the two views
never diverge. System qty and rate are parsed once per build and are not
re-read afterwards; rebuilding is the only way to pick up changed figures,
and it replaces every item object.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "MaterialIndex",
]

EditListener = Callable[[MaterialItem], None]


class MaterialIndex:
    def __init__(self, buffer: TabularBuffer, on_edit: EditListener | None = None) -> None:
        self.buffer = buffer
        self.mapping: ColumnMapping | None = None
        self.on_edit = on_edit
        self._items: dict[int, MaterialItem] = {}

    def build(self, mapping: ColumnMapping) -> list[MaterialItem]:
        """Rebuild all items from the buffer. Previous item objects are discarded.

        Raises MappingValidationError when code or system qty is unmapped.
        """
        validate_mapping(mapping)
        buf = self.buffer
        code_col = mapping.code
        qty_col = mapping.system_qty
        if code_col is None or qty_col is None:
            raise MappingValidationError("code and system qty columns are required")

        def cell(row: int, col: int | None, default: str) -> str:
            if col is None or col >= buf.row_length(row):
                return default
            return buf.get(row, col)

        items: dict[int, MaterialItem] = {}
        skipped = 0
        for row in range(1, buf.row_count):
            if code_col >= buf.row_length(row):
                skipped += 1
                continue
            code = buf.get(row, code_col)
            if not code.strip():
                skipped += 1
                continue
            items[row] = MaterialItem.from_snapshot(
                row_index=row,
                code=code,
                description=cell(row, mapping.description, ""),
                system_qty_text=cell(row, qty_col, "0"),
                uom=cell(row, mapping.uom, ""),
                rate_text=cell(row, mapping.rate, "0"),
                physical_qty=cell(row, mapping.physical_qty, ""),
                remarks=cell(row, mapping.remarks, ""),
            )

        self.mapping = mapping
        self._items = items
        unparseable = sum(1 for i in items.values() if i.unparseable_fields)
        logger.info(f"indexed {len(items)} materials ({skipped} rows without code skipped)")
        if unparseable:
            logger.warning(f"{unparseable} materials have a system qty or rate that is not a number (counted as 0)")
        return list(items.values())

    def clear(self) -> None:
        self.mapping = None
        self._items = {}

    # -- write-through edits -------------------------------------------------

    def _write(self, item: MaterialItem, role: Role, value: str) -> None:
        if self.mapping is None:
            return
        col = self.mapping.column(role)
        if col is not None:
            self.buffer.set(item.row_index, col, value)

    def set_physical_qty(self, item: MaterialItem, value: str) -> None:
        self._write(item, Role.PHYSICAL_QTY, value)
        item.physical_qty = value
        if self.on_edit is not None:
            self.on_edit(item)

    def set_remarks(self, item: MaterialItem, value: str) -> None:
        self._write(item, Role.REMARKS, value)
        item.remarks = value
        if self.on_edit is not None:
            self.on_edit(item)

    def apply_saved(self, row_index: int, physical_qty: str, remarks: str) -> bool:
        """Overwrite an item's live fields from saved state without raising an edit.

        Returns False when the row has no item (nothing is created).
        """
        item = self._items.get(row_index)
        if item is None:
            return False
        self._write(item, Role.PHYSICAL_QTY, physical_qty)
        self._write(item, Role.REMARKS, remarks)
        item.physical_qty = physical_qty
        item.remarks = remarks
        return True

    # -- lookup --------------------------------------------------------------

    def get(self, row_index: int) -> MaterialItem | None:
        return self._items.get(row_index)

    def find_by_code(self, code: str) -> list[MaterialItem]:
        key = code.strip().lower()
        return [i for i in self._items.values() if i.code.strip().lower() == key]

    def items(self) -> list[MaterialItem]:
        return list(self._items.values())

    @property
    def is_built(self) -> bool:
        return self.mapping is not None

    def __len__(self) -> int:
        return len(self._items)

    def __iter__(self) -> Iterator[MaterialItem]:
        return iter(list(self._items.values()))

    def __contains__(self, row_index: object) -> bool:
        return row_index in self._items
