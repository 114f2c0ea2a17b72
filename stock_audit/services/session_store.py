from __future__ import annotations

import hashlib
import logging
from collections.abc import Callable, Iterable
from datetime import UTC, datetime, timedelta

from ..models.column_mapping import ColumnMapping
from ..models.material_item import MaterialItem
from ..models.session_record import SavedCount, SessionCorruption, SessionRecord
from .material_index import MaterialIndex
from .storage import PersistenceFailure, SessionStorage

"""Session store: save / load / restore of the single in-progress audit.

Lifecycle: created on first save, read at launch (offered for restore),
deleted after a successful export or an explicit clear. Records older than
the max age (48 hours by default) are deleted on load instead of offered.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "DEFAULT_MAX_AGE",
    "compute_identity",
    "format_age",
    "SessionStore",
]

DEFAULT_MAX_AGE = timedelta(hours=48)


def compute_identity(file_name: str) -> str:
    """Stable identity of an audit file, derived from its name only (not its content)."""
    return hashlib.sha1(file_name.encode("utf-8")).hexdigest()[:16]


def format_age(age: timedelta) -> str:
    minutes = int(age.total_seconds() // 60)
    if minutes < 60:
        return f"{minutes} minutes ago"
    hours = minutes // 60
    if hours < 24:
        return f"{hours} hours ago"
    return f"{hours // 24} days ago"


class SessionStore:
    def __init__(
        self,
        storage: SessionStorage,
        *,
        max_age: timedelta = DEFAULT_MAX_AGE,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.storage = storage
        self.max_age = max_age
        self._clock = clock or (lambda: datetime.now(UTC))

    def now(self) -> datetime:
        return self._clock()

    def save(
        self,
        mapping: ColumnMapping,
        items: Iterable[MaterialItem],
        file_name: str,
        identity: str,
    ) -> bool:
        """Overwrite the stored record. No-op (False) without items or file name.

        Raises PersistenceFailure when the storage write fails.
        """
        materials = {i.row_index: SavedCount(i.physical_qty, i.remarks) for i in items}
        if not materials or not file_name:
            return False
        record = SessionRecord(
            file_name=file_name,
            file_hash=identity,
            mapping=mapping,
            materials=materials,
            timestamp=self.now(),
        )
        self.storage.write(record.to_json())
        logger.debug(f"session saved: {file_name} ({len(materials)} materials)")
        return True

    def load(self) -> SessionRecord | None:
        """Stored record, or None when absent, corrupt, or expired (expired is deleted)."""
        blob = self.storage.read()
        if blob is None:
            return None
        try:
            record = SessionRecord.from_json(blob)
        except SessionCorruption as e:
            logger.debug(f"ignoring unreadable session: {e}")
            return None
        if record.age(self.now()) > self.max_age:
            logger.info(f"discarding expired session for {record.file_name}")
            try:
                self.storage.delete()
            except PersistenceFailure as e:
                logger.warning(f"{e}")
            return None
        return record

    def restore_into(self, index: MaterialIndex, record: SessionRecord) -> int:
        """Copy saved counts onto matching items; unmatched rows are ignored.

        Returns the number of items restored.
        """
        restored = 0
        for row_index, saved in record.materials.items():
            if index.apply_saved(row_index, saved.physical_qty, saved.remarks):
                restored += 1
        logger.info(f"restored {restored} of {len(record.materials)} saved materials")
        return restored

    def clear(self) -> None:
        self.storage.delete()
