from __future__ import annotations

from dataclasses import dataclass

"""Aggregate audit figures for the summary header, SUMMARY log line and report."""

__all__ = [
    "AuditSummary",
    "REPORT_LABELS",
]

# Report row order is part of the export contract
REPORT_LABELS = (
    "Total Items",
    "Verified Items",
    "Shortage Count",
    "Excess Count",
    "Total Shortage Value",
    "Total Excess Value",
)


@dataclass(frozen=True)
class AuditSummary:
    """Snapshot of the variance engine over the current material index."""
    total_items: int
    verified_count: int
    shortage_count: int  # variance < 0
    excess_count: int  # variance > 0
    total_shortage_value: float  # sum of |variance_value| over shortages
    total_excess_value: float  # sum of variance_value over excesses
    unparseable_count: int = 0  # items with a system qty / rate that did not parse

    @property
    def progress(self) -> float:
        if self.total_items == 0:
            return 0.0
        return self.verified_count / self.total_items

    def report_rows(self) -> list[tuple[str, float]]:
        values = (
            float(self.total_items),
            float(self.verified_count),
            float(self.shortage_count),
            float(self.excess_count),
            self.total_shortage_value,
            self.total_excess_value,
        )
        return list(zip(REPORT_LABELS, values, strict=True))
