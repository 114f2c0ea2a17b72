from __future__ import annotations
import asyncio
import logging
from datetime import datetime
from pathlib import Path
import openpyxl
import pytest
from stock_audit.excel.reader import ImportFailure, SheetData
from stock_audit.excel.writer import ExportFailure
from stock_audit.logging.error_log import ErrorLogBuffer
from stock_audit.models.column_mapping import Role
from stock_audit.models.error_record import EXPORT_FAILURE, IMPORT_FAILURE, PERSISTENCE_FAILURE
from stock_audit.models.view_mode import ViewMode
from stock_audit.services.column_mapper import MappingValidationError
from stock_audit.services.controller import AuditController
from stock_audit.services.session_store import SessionStore
from stock_audit.services.storage import PersistenceFailure


class BrokenStorage:
    def __init__(self) -> None:
        self.blob = None

    def read(self):
        return self.blob

    def write(self, blob):
        raise PersistenceFailure("disk full")

    def delete(self):
        self.blob = None


@pytest.fixture()
def controller(store, scheduler):
    return AuditController(store, scheduler=scheduler, error_log=ErrorLogBuffer())


@pytest.fixture()
def mapped(controller, stock_rows):
    controller.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
    controller.confirm_mapping(controller.suggest_mapping())
    return controller


def test_load_sheet_resets_to_raw(controller, stock_rows):
    outcome = controller.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
    assert outcome.restored is False
    assert outcome.row_count == 5
    assert controller.mode is ViewMode.RAW
    assert controller.mapping is None
    assert len(controller.index) == 0


def test_verification_needs_confirmed_mapping(controller, stock_rows):
    controller.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
    suggestion = controller.enter_verification()
    assert suggestion is not None and suggestion.code == 0
    assert controller.mode is ViewMode.RAW

    controller.confirm_mapping(suggestion)
    assert controller.mode is ViewMode.VERIFICATION
    assert [i.code for i in controller.visible_items] == ["AB100", "CD200", "EF300"]
    controller.enter_raw()
    assert controller.enter_verification() is None
    assert controller.mode is ViewMode.VERIFICATION


def test_confirm_rejected_without_sheet(controller):
    with pytest.raises(MappingValidationError):
        controller.confirm_mapping(controller.suggest_mapping())


def test_confirm_rejected_keeps_state(controller, stock_rows):
    controller.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
    bad = controller.suggest_mapping().with_role(Role.CODE, None)
    with pytest.raises(MappingValidationError):
        controller.confirm_mapping(bad)
    assert controller.mode is ViewMode.RAW
    assert controller.buffer.width == 5


def test_autosave_after_quiet_period(mapped, scheduler, memory_storage):
    bolt = mapped.index.get(1)
    mapped.set_physical_qty(bolt, "80")
    assert mapped.dirty
    assert mapped.autosave_pending
    scheduler.advance(4.9)
    assert memory_storage.blob is None
    scheduler.advance(0.2)
    assert memory_storage.blob is not None
    assert not mapped.dirty
    assert not mapped.autosave_pending


def test_autosave_rearms_on_every_edit(mapped, scheduler, memory_storage):
    mapped.set_physical_qty(mapped.index.get(1), "80")
    scheduler.advance(3)
    mapped.set_remarks(mapped.index.get(1), "short")
    scheduler.advance(4.9)
    assert memory_storage.blob is None
    scheduler.advance(0.2)
    record = mapped.store.load()
    assert record.materials[1].physical_qty == "80"
    assert record.materials[1].remarks == "short"


def test_suspend_saves_immediately(mapped, scheduler, memory_storage):
    mapped.set_physical_qty(mapped.index.get(3), "1200")
    assert mapped.suspend() is True
    assert memory_storage.blob is not None
    assert scheduler.pending == 0


def test_persistence_failure_keeps_dirty(stock_rows, scheduler, fixed_now, caplog):
    errors = ErrorLogBuffer()
    controller = AuditController(SessionStore(BrokenStorage(), clock=lambda: fixed_now), scheduler=scheduler, error_log=errors)
    controller.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
    controller.confirm_mapping(controller.suggest_mapping())
    controller.set_physical_qty(controller.index.get(1), "5")
    with caplog.at_level(logging.ERROR):
        scheduler.advance(6)
    assert controller.dirty
    assert "disk full" in caplog.text
    assert [r.error_type for r in errors.records()] == [PERSISTENCE_FAILURE]
    # still editable
    controller.set_physical_qty(controller.index.get(1), "6")
    assert controller.index.get(1).physical_qty == "6"


def test_reimport_restores_counts(store, scheduler, stock_rows):
    first = AuditController(store, scheduler=scheduler)
    first.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
    first.confirm_mapping(first.suggest_mapping())
    first.set_physical_qty(first.index.get(1), "80")
    first.set_remarks(first.index.get(3), "damaged")
    first.suspend()

    second = AuditController(store, scheduler=scheduler)
    assert second.startup() is not None
    assert "File: stock.xlsx" in second.restore_prompt()
    assert "0 minutes ago" in second.restore_prompt()
    second.accept_restore()
    assert second.pending_restore is None

    fresh = [list(r) for r in stock_rows]  # original sheet, no output columns yet
    outcome = second.load_sheet("stock.xlsx", SheetData("Stock", fresh))
    assert outcome.restored is True
    assert second.mode is ViewMode.VERIFICATION
    assert second.index.get(1).physical_qty == "80"
    assert second.index.get(3).remarks == "damaged"
    assert second.buffer.headers[5:] == ["Physical Qty", "Remarks"]
    assert second.buffer.get(1, second.mapping.physical_qty) == "80"


def test_other_file_is_not_restored(store, scheduler, mapped, stock_rows):
    mapped.set_physical_qty(mapped.index.get(1), "80")
    mapped.suspend()
    outcome = mapped.load_sheet("other.xlsx", SheetData("Stock", [list(r) for r in stock_rows]))
    assert outcome.restored is False
    assert mapped.mode is ViewMode.RAW


def test_same_file_reimport_in_session_restores(mapped, stock_rows):
    mapped.set_physical_qty(mapped.index.get(1), "80")
    mapped.suspend()
    outcome = mapped.load_sheet("stock.xlsx", SheetData("Stock", [list(r) for r in stock_rows]))
    assert outcome.restored is True
    assert mapped.index.get(1).physical_qty == "80"


def test_decline_restore_drops_session(mapped, store, memory_storage, scheduler):
    mapped.set_physical_qty(mapped.index.get(1), "80")
    mapped.suspend()
    other = AuditController(store, scheduler=scheduler)
    other.startup()
    other.decline_restore()
    assert memory_storage.blob is None
    assert other.restore_prompt() is None


def test_clear_all_counts(mapped, memory_storage):
    mapped.set_physical_qty(mapped.index.get(1), "80")
    mapped.set_remarks(mapped.index.get(1), "x")
    mapped.suspend()
    mapped.clear_all_counts()
    assert mapped.buffer.get(1, mapped.mapping.physical_qty) == ""
    assert mapped.buffer.get(1, mapped.mapping.remarks) == ""
    assert mapped.summary().verified_count == 0
    assert memory_storage.blob is None
    assert not mapped.dirty
    assert not mapped.autosave_pending


def test_search_and_summary(mapped, scheduler):
    mapped.set_query("cab")
    assert len(mapped.visible_items) == 3
    scheduler.advance(0.3)
    assert [i.code for i in mapped.visible_items] == ["CD200"]
    mapped.set_physical_qty(mapped.index.get(1), "80")
    s = mapped.summary()
    assert s.total_items == 3
    assert s.verified_count == 1
    assert s.total_shortage_value == 100 + 1250 * 2.5
    assert s.unparseable_count == 1
    assert mapped.raw_rows_matching(" orphan ") == [2]


def test_export_clears_session(mapped, memory_storage, tmp_path: Path):
    mapped.set_physical_qty(mapped.index.get(1), "80")
    mapped.suspend()
    target = asyncio.run(mapped.export(tmp_path, now=datetime(2026, 10, 17, 12, 0, 0)))
    assert target.exists()
    assert target.name.startswith("Audit_")
    assert memory_storage.blob is None
    assert not mapped.dirty
    assert not mapped.busy
    ws = openpyxl.load_workbook(target).active
    assert ws["A1"].value == "INVENTORY AUDIT REPORT"
    assert ws["A2"].value == "File: stock.xlsx"


def test_export_failure_keeps_session(mapped, memory_storage, tmp_path: Path, monkeypatch):
    def boom(path, rows):
        raise ExportFailure("permission denied")

    monkeypatch.setattr("stock_audit.services.controller.write_workbook", boom)
    mapped.set_physical_qty(mapped.index.get(1), "80")
    mapped.suspend()
    with pytest.raises(ExportFailure):
        asyncio.run(mapped.export(tmp_path))
    assert memory_storage.blob is not None
    assert not mapped.busy
    assert [r.error_type for r in mapped.error_log.records()] == [EXPORT_FAILURE]


def test_export_without_sheet(controller, tmp_path: Path):
    with pytest.raises(ExportFailure):
        asyncio.run(controller.export(tmp_path))


def test_import_file(controller, stock_xlsx: Path):
    outcome = asyncio.run(controller.import_file(stock_xlsx))
    assert outcome.file_name == "stock.xlsx"
    assert outcome.sheet_name == "Stock"
    assert controller.buffer.get(2, 2) == "40"
    assert not controller.busy


def test_import_failure_leaves_buffer(mapped, temp_workdir: Path):
    bad = temp_workdir / "data" / "broken.xlsx"
    bad.write_bytes(b"garbage")
    before = mapped.buffer.rows()
    with pytest.raises(ImportFailure):
        asyncio.run(mapped.import_file(bad))
    assert mapped.buffer.rows() == before
    assert mapped.mode is ViewMode.VERIFICATION
    assert not mapped.busy
    assert mapped.error_log.records()[0].error_type == IMPORT_FAILURE
    assert mapped.error_log.records()[0].file == "broken.xlsx"


def test_default_timers_need_running_loop(store):
    with pytest.raises(RuntimeError):
        AuditController(store)


def test_default_timers_bind_to_running_loop(store, stock_rows, memory_storage):
    async def scenario():
        controller = AuditController(store)
        controller.load_sheet("stock.xlsx", SheetData("Stock", stock_rows))
        controller.confirm_mapping(controller.suggest_mapping())
        controller.set_physical_qty(controller.index.get(1), "5")
        armed = controller.autosave_pending
        controller.suspend()
        return armed

    assert asyncio.run(scenario()) is True
    assert memory_storage.blob is not None
