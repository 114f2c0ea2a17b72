from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path

from ..config.loader import AuditConfig
from ..excel.buffer import TabularBuffer
from ..excel.reader import ImportFailure, SheetData, read_sheet_file
from ..excel.writer import ExportFailure, write_workbook
from ..logging.error_log import ErrorLogBuffer
from ..models.audit_summary import AuditSummary
from ..models.column_mapping import OUTPUT_ROLES, ColumnMapping
from ..models.error_record import EXPORT_FAILURE, IMPORT_FAILURE, PERSISTENCE_FAILURE, ErrorRecord
from ..models.material_item import MaterialItem
from ..models.session_record import SessionRecord
from ..models.view_mode import ViewMode, ViewState
from .column_mapper import MappingValidationError, confirm_mapping, ensure_output_columns, keywords_from_config, suggest_mapping
from .debounce import Debouncer, Scheduler
from .material_index import MaterialIndex
from .report import build_report_rows, report_path
from .search import SearchFilter, matching_rows
from .session_store import SessionStore, compute_identity, format_age
from .storage import PersistenceFailure
from .variance import summarize

"""Audit session controller: owns the buffer and drives the whole audit flow.

import -> (restore | mapping suggestion) -> confirm mapping -> count/edit
-> debounced autosave -> export (clears the session on success).

Everything runs on one event loop thread. Import and export push their
blocking file and codec work to a worker thread and await it; ``busy`` is
set for their duration so the calling surface can refuse other input.
Without an explicit scheduler the controller must be built on a running
loop; its timers bind to that loop at construction.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "ImportOutcome",
    "AuditController",
]


@dataclass(frozen=True)
class ImportOutcome:
    file_name: str
    sheet_name: str
    row_count: int
    restored: bool  # True when a saved session was replayed onto this import


class AuditController:
    def __init__(
        self,
        store: SessionStore,
        *,
        config: AuditConfig | None = None,
        scheduler: Scheduler | None = None,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config or AuditConfig()
        self.store = store
        self.error_log = error_log
        self.keywords = keywords_from_config(self.config.keywords)

        self.buffer = TabularBuffer()
        self.index = MaterialIndex(self.buffer, on_edit=self._on_edit)
        self.search = SearchFilter(self.index, debounce_ms=self.config.search_debounce_ms, scheduler=scheduler)
        self.view = ViewState()
        self._autosave = Debouncer(self.config.autosave_delay_seconds, self.save_session, scheduler)

        self.file_name = ""
        self.identity = ""
        self.sheet_name = ""
        self.mapping: ColumnMapping | None = None  # confirmed mapping
        self.dirty = False
        self.busy = False
        self.pending_restore: SessionRecord | None = None
        self._restore_identity = ""

    # -- launch / restore offer ----------------------------------------------

    def startup(self) -> SessionRecord | None:
        """Look for a resumable session; exposes it as ``pending_restore``."""
        self.pending_restore = self.store.load()
        return self.pending_restore

    def restore_prompt(self) -> str | None:
        record = self.pending_restore
        if record is None:
            return None
        return (
            f"Found unsaved work from {format_age(record.age(self.store.now()))}\n\n"
            f"File: {record.file_name}\n\n"
            "Would you like to restore it?"
        )

    def accept_restore(self) -> None:
        """Keep the saved session; it is replayed when the same file is imported again."""
        if self.pending_restore is not None:
            self._restore_identity = self.pending_restore.file_hash
            logger.info(f"session kept for {self.pending_restore.file_name}; re-import the file to continue")
        self.pending_restore = None

    def decline_restore(self) -> None:
        self.pending_restore = None
        self._restore_identity = ""
        self._clear_session()

    # -- import ---------------------------------------------------------------

    async def import_file(self, path: Path) -> ImportOutcome:
        """Read a workbook off the loop thread and commit it; nothing changes on failure."""
        self.busy = True
        try:
            sheet = await asyncio.to_thread(read_sheet_file, path)
        except ImportFailure as e:
            logger.error(f"import: {e}")
            self._record_error(IMPORT_FAILURE, str(e), file=path.name)
            raise
        finally:
            self.busy = False
        return self.load_sheet(path.name, sheet)

    def load_sheet(self, file_name: str, sheet: SheetData) -> ImportOutcome:
        if not sheet.rows:
            raise ImportFailure("no data found")
        identity = compute_identity(file_name)
        same_session = identity in (self.identity, self._restore_identity)

        self._autosave.cancel()
        self.buffer.load(sheet.rows)
        self.file_name = file_name
        self.identity = identity
        self.sheet_name = sheet.sheet_name
        self.mapping = None
        self.index.clear()
        self.view.enter_raw()
        self.search.clear()
        self.dirty = False
        logger.info(f"loaded {sheet.sheet_name}: {self.buffer.row_count} rows from {file_name}")

        restored = False
        if same_session:
            record = self.store.load()
            if record is not None and record.file_hash == identity:
                restored = self._restore(record)
        return ImportOutcome(file_name, sheet.sheet_name, self.buffer.row_count, restored)

    def _restore(self, record: SessionRecord) -> bool:
        if not record.mapping.is_buildable:
            logger.warning("saved session has no usable mapping; mapping required")
            return False
        mapping = ensure_output_columns(self.buffer, record.mapping)
        self.index.build(mapping)
        self.mapping = mapping
        self.store.restore_into(self.index, record)
        self.search.refresh()
        self.view.enter_verification(True)
        return True

    # -- mapping / view mode ----------------------------------------------------

    def suggest_mapping(self) -> ColumnMapping:
        return suggest_mapping(self.buffer.headers, self.keywords)

    def confirm_mapping(self, mapping: ColumnMapping) -> ColumnMapping:
        """Apply a user-confirmed mapping and enter VERIFICATION.

        Raises MappingValidationError (no state change) when code or system
        qty is unset.
        """
        if self.buffer.is_empty:
            raise MappingValidationError("no sheet loaded")
        confirmed = confirm_mapping(self.buffer, mapping)
        self.mapping = confirmed
        self.index.build(confirmed)
        self.search.refresh()
        self.view.enter_verification(True)
        return confirmed

    def enter_verification(self) -> ColumnMapping | None:
        """Switch to VERIFICATION, or return the suggestion that must be confirmed first."""
        if self.view.enter_verification(self.mapping is not None):
            return None
        return self.suggest_mapping()

    def enter_raw(self) -> None:
        self.view.enter_raw()

    @property
    def mode(self) -> ViewMode:
        return self.view.mode

    # -- edits ------------------------------------------------------------------

    def set_physical_qty(self, item: MaterialItem, value: str) -> None:
        self.index.set_physical_qty(item, value)

    def set_remarks(self, item: MaterialItem, value: str) -> None:
        self.index.set_remarks(item, value)

    def _on_edit(self, item: MaterialItem) -> None:
        self.dirty = True
        self._autosave.trigger()

    def set_query(self, text: str) -> None:
        self.search.set_query(text)

    @property
    def visible_items(self) -> list[MaterialItem]:
        return self.search.visible

    def raw_rows_matching(self, query: str) -> list[int]:
        return matching_rows(self.buffer, query.strip())

    def summary(self) -> AuditSummary:
        return summarize(self.index.items())

    def clear_all_counts(self) -> None:
        """Blank every physical qty / remarks cell, rebuild the index and drop the session."""
        if self.mapping is not None:
            for role in OUTPUT_ROLES:
                col = self.mapping.column(role)
                if col is None:
                    continue
                for row in range(1, self.buffer.row_count):
                    if col < self.buffer.row_length(row):
                        self.buffer.set(row, col, "")
            self.index.build(self.mapping)
            self.search.refresh()
        self._autosave.cancel()
        self._clear_session()
        self.dirty = False

    # -- persistence ---------------------------------------------------------------

    def save_session(self) -> bool:
        """Persist mapping + counts. Failures are logged; ``dirty`` stays set for a retry."""
        if self.mapping is None:
            return False
        try:
            saved = self.store.save(self.mapping, self.index.items(), self.file_name, self.identity)
        except PersistenceFailure as e:
            logger.error(f"autosave: {e}")
            self._record_error(PERSISTENCE_FAILURE, str(e))
            return False
        if saved:
            self.dirty = False
        return saved

    def suspend(self) -> bool:
        """App backgrounded / closing: save now, bypassing the autosave timer."""
        self._autosave.cancel()
        return self.save_session()

    @property
    def autosave_pending(self) -> bool:
        return self._autosave.pending

    def _clear_session(self) -> None:
        try:
            self.store.clear()
        except PersistenceFailure as e:
            logger.warning(f"{e}")
            self._record_error(PERSISTENCE_FAILURE, str(e))

    # -- export --------------------------------------------------------------------

    async def export(self, directory: Path | None = None, now: datetime | None = None) -> Path:
        """Write the audit report; the session is cleared only when the write succeeds."""
        if self.buffer.is_empty:
            raise ExportFailure("nothing to export")
        now = now or datetime.now()
        target = report_path(directory or self.config.export_dir, now)
        summary = self.summary() if len(self.index) else None
        rows = build_report_rows(self.buffer.rows(), self.file_name, summary, now)
        self.busy = True
        try:
            await asyncio.to_thread(write_workbook, target, rows)
        except ExportFailure as e:
            logger.error(f"export: {e}")
            self._record_error(EXPORT_FAILURE, str(e))
            raise
        finally:
            self.busy = False
        self._autosave.cancel()
        self._clear_session()
        self.dirty = False
        logger.info(f"exported {target}")
        return target

    def _record_error(self, error_type: str, message: str, file: str | None = None) -> None:
        if self.error_log is not None:
            self.error_log.append(ErrorRecord.create(file if file is not None else self.file_name, -1, error_type, message))
