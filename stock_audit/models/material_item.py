from __future__ import annotations

import math
from dataclasses import dataclass, field

"""MaterialItem: one auditable stock record derived from a data row.

Identity fields (code / description / uom) and the system figures are frozen
snapshots taken when the index is built. physical_qty and remarks are live
and always mirrored into the tabular buffer by the material index.
"""

__all__ = [
    "MaterialItem",
    "parse_number",
]


def parse_number(text: str, *, strip_commas: bool = False) -> float | None:
    """Parse a cell's text as a finite float. None when it does not parse."""
    s = text.replace(",", "") if strip_commas else text
    s = s.strip()
    if not s:
        return None
    try:
        value = float(s)
    except ValueError:
        return None
    if not math.isfinite(value):
        return None
    return value


@dataclass(eq=False)
class MaterialItem:
    """Per-row audit record.

    Attributes:
        row_index: Data row in the tabular buffer this item mirrors (relation, not ownership)
        code: Material code snapshot (never empty after trim)
        description: Description snapshot ("" when unmapped)
        uom: Unit of measure snapshot ("" when unmapped)
        system_quantity: Book quantity parsed once at build; 0 on parse failure
        rate_value: Unit rate parsed once at build; 0 on parse failure
        physical_qty: Counted quantity as typed (live)
        remarks: Free-text remarks (live)
        unparseable_fields: Snapshot numeric fields whose non-empty text failed to parse
    """
    row_index: int
    code: str
    description: str
    uom: str
    system_quantity: float
    rate_value: float
    physical_qty: str = ""
    remarks: str = ""
    unparseable_fields: tuple[str, ...] = field(default=())

    @classmethod
    def from_snapshot(
        cls,
        row_index: int,
        code: str,
        description: str,
        system_qty_text: str,
        uom: str,
        rate_text: str,
        physical_qty: str = "",
        remarks: str = "",
    ) -> MaterialItem:
        unparseable: list[str] = []
        system_quantity = parse_number(system_qty_text, strip_commas=True)
        if system_quantity is None:
            if system_qty_text.strip():
                unparseable.append("system_qty")
            system_quantity = 0.0
        rate_value = parse_number(rate_text, strip_commas=True)
        if rate_value is None:
            if rate_text.strip():
                unparseable.append("rate")
            rate_value = 0.0
        return cls(
            row_index=row_index,
            code=code,
            description=description,
            uom=uom,
            system_quantity=system_quantity,
            rate_value=rate_value,
            physical_qty=physical_qty,
            remarks=remarks,
            unparseable_fields=tuple(unparseable),
        )

    @property
    def physical_quantity(self) -> float:
        value = parse_number(self.physical_qty)
        return 0.0 if value is None else value

    @property
    def variance(self) -> float:
        return self.physical_quantity - self.system_quantity

    @property
    def variance_value(self) -> float:
        return self.variance * self.rate_value

    @property
    def is_verified(self) -> bool:
        return self.physical_qty != ""

    def to_json(self) -> dict[str, object]:
        return {
            "rowIndex": self.row_index,
            "physicalQty": self.physical_qty,
            "remarks": self.remarks,
        }
