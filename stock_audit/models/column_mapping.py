from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

"""Column role mapping model.

Maps each semantic role to a column index in the tabular buffer, or None
when the role is ignored. Roles are identified on the wire by the short keys
used in the session record (``code``, ``desc``, ``qty`` ...).
"""

__all__ = [
    "Role",
    "ColumnMapping",
    "REQUIRED_ROLES",
    "OUTPUT_ROLES",
]


class Role(Enum):
    """Semantic roles a sheet column can play.

    Value is the session wire key; ``field`` is the ColumnMapping attribute.
    """
    CODE = "code"
    DESCRIPTION = "desc"
    SYSTEM_QTY = "qty"
    UOM = "uom"
    RATE = "rate"
    PHYSICAL_QTY = "physical"
    REMARKS = "remarks"

    @property
    def field(self) -> str:
        return _ROLE_FIELDS[self]

    @property
    def label(self) -> str:
        return _ROLE_LABELS[self]

    @classmethod
    def parse(cls, text: str) -> Role:
        """Resolve a role from its wire key, field name or enum name."""
        key = text.strip().lower()
        for role in cls:
            if key in (role.value, role.field, role.name.lower()):
                return role
        raise ValueError(f"unknown role: {text!r}")


_ROLE_FIELDS = {
    Role.CODE: "code",
    Role.DESCRIPTION: "description",
    Role.SYSTEM_QTY: "system_qty",
    Role.UOM: "uom",
    Role.RATE: "rate",
    Role.PHYSICAL_QTY: "physical_qty",
    Role.REMARKS: "remarks",
}

_ROLE_LABELS = {
    Role.CODE: "Material Code",
    Role.DESCRIPTION: "Description",
    Role.SYSTEM_QTY: "System Qty",
    Role.UOM: "UOM",
    Role.RATE: "Rate/Price",
    Role.PHYSICAL_QTY: "Physical Qty",
    Role.REMARKS: "Remarks",
}

REQUIRED_ROLES = (Role.CODE, Role.SYSTEM_QTY)
OUTPUT_ROLES = (Role.PHYSICAL_QTY, Role.REMARKS)


@dataclass(frozen=True)
class ColumnMapping:
    """Role -> column index (None = ignored). Two roles may share a column."""
    code: int | None = None
    description: int | None = None
    system_qty: int | None = None
    uom: int | None = None
    rate: int | None = None
    physical_qty: int | None = None
    remarks: int | None = None

    def column(self, role: Role) -> int | None:
        return getattr(self, role.field)

    def with_role(self, role: Role, column: int | None) -> ColumnMapping:
        return replace(self, **{role.field: column})

    @property
    def missing_required(self) -> list[Role]:
        return [r for r in REQUIRED_ROLES if self.column(r) is None]

    @property
    def is_buildable(self) -> bool:
        return not self.missing_required

    def assigned(self) -> dict[Role, int]:
        out: dict[Role, int] = {}
        for role in Role:
            col = self.column(role)
            if col is not None:
                out[role] = col
        return out

    def to_wire(self) -> dict[str, int | None]:
        return {role.value: self.column(role) for role in Role}

    @classmethod
    def from_wire(cls, data: dict[str, Any]) -> ColumnMapping:
        values: dict[str, int | None] = {}
        for role in Role:
            raw = data.get(role.value)
            values[role.field] = int(raw) if isinstance(raw, int) and not isinstance(raw, bool) else None
        return cls(**values)

    def describe(self, headers: list[str]) -> list[tuple[str, str]]:
        """(label, header or '- Ignore -') pairs in role order, for display."""
        out: list[tuple[str, str]] = []
        for role in Role:
            col = self.column(role)
            if col is None:
                shown = "- Ignore -"
            elif col < len(headers):
                shown = f"{headers[col]} [{col}]"
            else:
                shown = f"[{col}]"
            out.append((role.label, shown))
        return out

