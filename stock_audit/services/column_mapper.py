from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence

from ..excel.buffer import TabularBuffer
from ..models.column_mapping import OUTPUT_ROLES, ColumnMapping, Role

"""Column mapper: header keyword detection and mapping confirmation.

Detection is a suggestion only; the user may re-point any role (two roles
on one column included) before confirming. Confirmation guarantees that the
physical qty and remarks roles are backed by real buffer columns.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ROLE_KEYWORDS",
    "OUTPUT_HEADERS",
    "MappingValidationError",
    "suggest_mapping",
    "keywords_from_config",
    "validate_mapping",
    "confirm_mapping",
    "ensure_output_columns",
]

# Keyword order matters only for readability; the first matching COLUMN wins.
ROLE_KEYWORDS: dict[Role, tuple[str, ...]] = {
    Role.CODE: ("code", "sap", "material", "item", "sku"),
    Role.DESCRIPTION: ("desc", "name", "detail"),
    Role.SYSTEM_QTY: ("sys", "book", "current", "sap qty", "qty"),
    Role.UOM: ("uom", "unit", "base"),
    Role.RATE: ("rate", "price", "cost", "val"),
    Role.PHYSICAL_QTY: ("phy", "act", "count", "audit"),
    Role.REMARKS: ("remark", "note", "comment", "obs"),
}

OUTPUT_HEADERS: dict[Role, str] = {
    Role.PHYSICAL_QTY: "Physical Qty",
    Role.REMARKS: "Remarks",
}


class MappingValidationError(Exception):
    """Mapping cannot be confirmed; nothing was changed."""

    def __init__(self, message: str, missing: Sequence[Role] = ()) -> None:
        super().__init__(message)
        self.missing = list(missing)


def keywords_from_config(overrides: Mapping[str, Sequence[str]] | None) -> dict[Role, tuple[str, ...]]:
    """Merge per-role keyword overrides (keyed by role field name) over the defaults."""
    merged = dict(ROLE_KEYWORDS)
    for key, words in (overrides or {}).items():
        role = Role.parse(key)
        merged[role] = tuple(w.strip().lower() for w in words if w.strip())
    return merged


def _detect(lower_headers: list[str], keywords: Sequence[str]) -> int | None:
    for idx, header in enumerate(lower_headers):
        if any(k in header for k in keywords):
            return idx
    return None


def suggest_mapping(
    headers: Sequence[str], keywords: Mapping[Role, Sequence[str]] | None = None
) -> ColumnMapping:
    """Suggest a mapping: per role, the first header containing any of its keywords."""
    table = keywords or ROLE_KEYWORDS
    lower_headers = [h.strip().lower() for h in headers]
    mapping = ColumnMapping()
    for role in Role:
        mapping = mapping.with_role(role, _detect(lower_headers, table.get(role, ())))
    logger.debug(f"suggested mapping: {mapping.to_wire()}")
    return mapping


def validate_mapping(mapping: ColumnMapping, width: int | None = None) -> None:
    missing = mapping.missing_required
    if missing:
        names = " and ".join(r.label for r in missing)
        raise MappingValidationError(f"{names} required", missing=missing)
    if width is None:
        return
    for role, col in mapping.assigned().items():
        if col < 0 or col >= width:
            raise MappingValidationError(f"{role.label}: column {col} is outside the header row (width={width})")


def confirm_mapping(buffer: TabularBuffer, mapping: ColumnMapping) -> ColumnMapping:
    """Validate and apply a user-confirmed mapping.

    Raises MappingValidationError before touching the buffer when code or
    system qty is unset or any mapped column lies outside the header row.
    Unset physical qty / remarks roles get a freshly appended column.
    """
    validate_mapping(mapping, width=len(buffer.headers))
    confirmed = mapping
    for role in OUTPUT_ROLES:
        if confirmed.column(role) is None:
            col = buffer.append_column(OUTPUT_HEADERS[role])
            logger.info(f"added column '{OUTPUT_HEADERS[role]}' at index {col}")
            confirmed = confirmed.with_role(role, col)
    return confirmed


def ensure_output_columns(buffer: TabularBuffer, mapping: ColumnMapping) -> ColumnMapping:
    """Re-bind output roles whose column is missing from this buffer's header.

    Used when a saved mapping is replayed against a fresh import that lacks
    the columns appended during the earlier session.
    """
    width = len(buffer.headers)
    fixed = mapping
    for role in OUTPUT_ROLES:
        col = fixed.column(role)
        if col is None or col >= width:
            new_col = buffer.append_column(OUTPUT_HEADERS[role])
            width += 1
            fixed = fixed.with_role(role, new_col)
    return fixed
