from __future__ import annotations

from collections.abc import Iterable

from ..models.audit_summary import AuditSummary
from ..models.material_item import MaterialItem

"""Variance & summary engine.

Pure functions over the current items; recomputed on every call, never cached.
"""

__all__ = [
    "total_items",
    "verified_count",
    "shortage_count",
    "excess_count",
    "total_shortage_value",
    "total_excess_value",
    "summarize",
]


def total_items(items: Iterable[MaterialItem]) -> int:
    return sum(1 for _ in items)


def verified_count(items: Iterable[MaterialItem]) -> int:
    return sum(1 for i in items if i.is_verified)


def shortage_count(items: Iterable[MaterialItem]) -> int:
    return sum(1 for i in items if i.variance < 0)


def excess_count(items: Iterable[MaterialItem]) -> int:
    return sum(1 for i in items if i.variance > 0)


def total_shortage_value(items: Iterable[MaterialItem]) -> float:
    return sum((abs(i.variance_value) for i in items if i.variance < 0), 0.0)


def total_excess_value(items: Iterable[MaterialItem]) -> float:
    return sum((i.variance_value for i in items if i.variance > 0), 0.0)


def summarize(items: Iterable[MaterialItem]) -> AuditSummary:
    snapshot = list(items)
    return AuditSummary(
        total_items=total_items(snapshot),
        verified_count=verified_count(snapshot),
        shortage_count=shortage_count(snapshot),
        excess_count=excess_count(snapshot),
        total_shortage_value=total_shortage_value(snapshot),
        total_excess_value=total_excess_value(snapshot),
        unparseable_count=sum(1 for i in snapshot if i.unparseable_fields),
    )
