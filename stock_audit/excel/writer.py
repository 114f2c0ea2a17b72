from __future__ import annotations

import io
from collections.abc import Sequence
from pathlib import Path
from typing import Any

import pandas as pd

"""Spreadsheet encoding for the audit report (pandas + openpyxl)."""

__all__ = [
    "ExportFailure",
    "REPORT_SHEET_NAME",
    "encode",
    "write_workbook",
]

REPORT_SHEET_NAME = "Audit Report"


class ExportFailure(Exception):
    """Raised when the report cannot be encoded or written."""


def encode(rows: Sequence[Sequence[Any]], sheet_name: str = REPORT_SHEET_NAME) -> bytes:
    """Encode a 2D array (ragged rows allowed) into xlsx bytes."""
    df = pd.DataFrame([list(r) for r in rows])
    buf = io.BytesIO()
    try:
        with pd.ExcelWriter(buf, engine="openpyxl") as writer:
            df.to_excel(writer, sheet_name=sheet_name, header=False, index=False)
    except Exception as e:
        raise ExportFailure(f"encode failed: {e}") from e
    return buf.getvalue()


def write_workbook(path: Path, rows: Sequence[Sequence[Any]]) -> Path:
    data = encode(rows)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
    except OSError as e:
        raise ExportFailure(f"cannot write {path}: {e}") from e
    return path
