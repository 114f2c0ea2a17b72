from __future__ import annotations

import io
import math
from dataclasses import dataclass
from datetime import date, datetime
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet decoding (pandas + openpyxl).

Every cell is reduced to its string form; numeric interpretation happens
later, at read time, in the material index. Only the first non-empty sheet
is used for an audit.
"""

__all__ = [
    "ImportFailure",
    "SheetData",
    "decode",
    "decode_sheets",
    "first_non_empty_sheet",
    "read_sheet_file",
    "cell_to_text",
]


class ImportFailure(Exception):
    """Raised when a workbook cannot be read or holds no usable sheet."""


@dataclass
class SheetData:
    sheet_name: str
    rows: list[list[str]]  # header row first


def cell_to_text(value: Any) -> str:
    """String form of a raw cell value as pandas hands it over."""
    if value is None:
        return ""
    if isinstance(value, float):
        if math.isnan(value):
            return ""
        # 100.0 -> "100" so quantities read back the way they were typed
        if value.is_integer():
            return str(int(value))
        return repr(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        if value.hour == value.minute == value.second == value.microsecond == 0:
            return value.date().isoformat()
        return value.isoformat(sep=" ")
    if isinstance(value, date):
        return value.isoformat()
    try:
        if pd.isna(value):
            return ""
    except (TypeError, ValueError):
        pass
    return str(value)


def _frame_to_rows(df: pd.DataFrame) -> list[list[str]]:
    rows: list[list[str]] = []
    for raw in df.itertuples(index=False, name=None):
        rows.append([cell_to_text(v) for v in raw])
    return rows


def decode_sheets(data: bytes) -> list[SheetData]:
    """Decode workbook bytes into every sheet, in workbook order.

    Raises ImportFailure for unreadable bytes.
    """
    if not data:
        raise ImportFailure("file is empty")
    try:
        # header=None: row 0 stays a plain row (it is the header by position, not by parse)
        # keep_default_na=False: literal "NA"/"N/A" remarks survive as text
        frames = pd.read_excel(
            io.BytesIO(data),
            sheet_name=None,
            header=None,
            dtype=object,
            keep_default_na=False,
            engine="openpyxl",
        )
    except Exception as e:
        raise ImportFailure(f"unreadable workbook: {e}") from e
    return [SheetData(sheet_name=str(name), rows=_frame_to_rows(df)) for name, df in frames.items()]


def decode(data: bytes) -> list[list[list[str]]]:
    """Codec contract: bytes -> ordered sheets, each a 2D array of cell strings."""
    return [sheet.rows for sheet in decode_sheets(data)]


def first_non_empty_sheet(sheets: list[SheetData]) -> SheetData:
    if not sheets:
        raise ImportFailure("no sheets found")
    for sheet in sheets:
        if sheet.rows:
            return sheet
    raise ImportFailure("no data found")


def read_sheet_file(path: Path) -> SheetData:
    """Read a workbook from disk and return its first non-empty sheet."""
    try:
        data = path.read_bytes()
    except OSError as e:
        raise ImportFailure(f"cannot read {path}: {e}") from e
    return first_non_empty_sheet(decode_sheets(data))
