"""Domain models for the inventory audit core."""

from .audit_summary import AuditSummary
from .column_mapping import ColumnMapping, Role
from .error_record import ErrorRecord
from .material_item import MaterialItem
from .session_record import SavedCount, SessionCorruption, SessionRecord
from .view_mode import ViewMode, ViewState

__all__ = [
    # Mapping
    "ColumnMapping",
    "Role",
    # Audit records
    "MaterialItem",
    "AuditSummary",
    # Session
    "SavedCount",
    "SessionCorruption",
    "SessionRecord",
    # View state
    "ViewMode",
    "ViewState",
    "ErrorRecord",
]
