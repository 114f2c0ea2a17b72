from __future__ import annotations

from ..models.audit_summary import AuditSummary

"""SUMMARY line rendering.

Format:
SUMMARY items={total} verified={verified} shortages={n} excesses={n}
shortage_value={value} excess_value={value} progress_pct={pct}
"""

__all__ = [
    "format_number",
    "render_summary_line",
]


def format_number(value: float) -> str:
    """Integers without a decimal point, other values rounded to 2 places."""
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    return f"{value:.2f}".rstrip("0").rstrip(".")


def render_summary_line(summary: AuditSummary) -> str:
    """Render a SUMMARY line from an AuditSummary.

    Examples:
        >>> s = AuditSummary(
        ...     total_items=4, verified_count=4, shortage_count=2, excess_count=1,
        ...     total_shortage_value=12.0, total_excess_value=3.0,
        ... )
        >>> render_summary_line(s)
        'SUMMARY items=4 verified=4 shortages=2 excesses=1 shortage_value=12 excess_value=3 progress_pct=100'
    """
    line = (
        f"SUMMARY items={summary.total_items} "
        f"verified={summary.verified_count} "
        f"shortages={summary.shortage_count} "
        f"excesses={summary.excess_count} "
        f"shortage_value={format_number(summary.total_shortage_value)} "
        f"excess_value={format_number(summary.total_excess_value)} "
        f"progress_pct={int(summary.progress * 100)}"
    )
    if summary.unparseable_count:
        line += f" unparseable={summary.unparseable_count}"
    return line
