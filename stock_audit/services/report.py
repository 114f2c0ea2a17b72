from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from ..models.audit_summary import AuditSummary
from ..models.material_item import parse_number

"""Export report layout.

Row order is fixed:
    INVENTORY AUDIT REPORT / File: <name> / Date: <YYYY-MM-DD HH:MM:SS> / (blank)
    every buffer row verbatim (numeric text written as numbers)
    if any materials: (blank) / SUMMARY STATISTICS / six (label, value) rows
"""

__all__ = [
    "REPORT_TITLE",
    "SUMMARY_TITLE",
    "build_report_rows",
    "report_file_name",
    "report_path",
]

REPORT_TITLE = "INVENTORY AUDIT REPORT"
SUMMARY_TITLE = "SUMMARY STATISTICS"


def _export_cell(text: str) -> float | str:
    value = parse_number(text)
    return text if value is None else value


def build_report_rows(
    rows: Sequence[Sequence[str]],
    file_name: str,
    summary: AuditSummary | None,
    now: datetime,
) -> list[list[float | str]]:
    out: list[list[float | str]] = [
        [REPORT_TITLE],
        [f"File: {file_name}"],
        [f"Date: {now.strftime('%Y-%m-%d %H:%M:%S')}"],
        [""],
    ]
    for row in rows:
        out.append([_export_cell(c) for c in row])
    if summary is not None and summary.total_items > 0:
        out.append([""])
        out.append([SUMMARY_TITLE])
        for label, value in summary.report_rows():
            out.append([label, value])
    return out


def report_file_name(now: datetime) -> str:
    return f"Audit_{int(now.timestamp() * 1000)}.xlsx"


def report_path(directory: Path, now: datetime) -> Path:
    return directory / report_file_name(now)
