# Shared pytest fixtures
from __future__ import annotations
import tempfile
from collections.abc import Callable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

import pandas as pd
import pytest

from stock_audit.excel.buffer import TabularBuffer
from stock_audit.logging.init import reset_logging
from stock_audit.services.session_store import SessionStore
from stock_audit.services.storage import MemorySessionStorage

FIXED_NOW = datetime(2026, 10, 17, 12, 0, 0, tzinfo=UTC)

STOCK_ROWS: list[list[str]] = [
    ["SAP Code", "Material Description", "Book Qty", "UOM", "Rate"],
    ["AB100", "Steel bolt", "100", "EA", "5"],
    ["", "Orphan row", "3", "EA", "1"],
    ["CD200", "Cabinet hinge", "1,250", "EA", "2.5"],
    ["EF300", "Gasket", "n/a", "KG", "abc"],
]


class FakeHandle:
    def __init__(self, when: float, callback: Callable[[], Any]) -> None:
        self.when = when
        self.callback = callback
        self.cancelled = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeScheduler:
    """Manual clock standing in for the event loop's call_later."""

    def __init__(self) -> None:
        self.now = 0.0
        self.handles: list[FakeHandle] = []

    def call_later(self, delay: float, callback: Callable[[], Any]) -> FakeHandle:
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    @property
    def pending(self) -> int:
        return sum(1 for h in self.handles if not h.cancelled)

    def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while True:
            due = [h for h in self.handles if not h.cancelled and h.when <= target]
            if not due:
                break
            handle = min(due, key=lambda h: h.when)
            self.handles.remove(handle)
            self.now = handle.when
            handle.callback()
        self.now = target


@pytest.fixture(autouse=True)
def _reset_logging():
    yield
    # drop handlers bound to a captured stdout
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """session_path: ./state/audit_session.json
export_directory: ./reports
autosave_delay_seconds: 5
search_debounce_ms: 300
session_max_age_hours: 48
keywords:
  remarks: [remark, note]
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "audit.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def stock_rows() -> list[list[str]]:
    return [list(r) for r in STOCK_ROWS]


@pytest.fixture()
def buffer(stock_rows) -> TabularBuffer:
    return TabularBuffer(stock_rows)


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def memory_storage() -> MemorySessionStorage:
    return MemorySessionStorage()


@pytest.fixture()
def store(memory_storage: MemorySessionStorage) -> SessionStore:
    return SessionStore(memory_storage, clock=lambda: FIXED_NOW)


def _make_excel(path: Path, sheets: dict[str, list[list[object]]]) -> Path:
    """Write raw rows (no pandas header) into an xlsx, one entry per sheet."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        for sheet, rows in sheets.items():
            pd.DataFrame(rows).to_excel(writer, sheet_name=sheet, header=False, index=False)
    return path


@pytest.fixture()
def make_excel() -> Callable[[Path, dict[str, list[list[object]]]], Path]:
    return _make_excel


@pytest.fixture()
def fixed_now() -> datetime:
    return FIXED_NOW


@pytest.fixture()
def stock_xlsx(temp_workdir: Path) -> Path:
    return _make_excel(
        temp_workdir / "data" / "stock.xlsx",
        {
            "Stock": [
                ["SAP Code", "Material Description", "Book Qty", "UOM", "Rate"],
                ["AB100", "Steel bolt", 100, "EA", 5],
                ["CD200", "Cabinet hinge", 40, "EA", 2.5],
                ["EF300", "Gasket", 12, "KG", 10],
            ]
        },
    )
