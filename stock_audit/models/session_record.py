from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import Any

import jsonschema
from jsonschema.exceptions import ValidationError

from .column_mapping import ColumnMapping

"""SessionRecord: persisted, resumable state of one in-progress audit.

Wire format (JSON):
    {"fileName": str, "fileHash": str,
     "mappings": {"code"|"desc"|"qty"|"uom"|"rate"|"physical"|"remarks": int|null},
     "materials": {"<rowIndex>": {"rowIndex": int, "physicalQty": str, "remarks": str}},
     "timestamp": ISO-8601}

Records that fail to parse or validate raise SessionCorruption; the session
store treats that the same as "no session".
"""

__all__ = [
    "SessionCorruption",
    "SavedCount",
    "SessionRecord",
    "SESSION_SCHEMA",
]

_NULLABLE_INT = {"type": ["integer", "null"], "minimum": 0}

SESSION_SCHEMA: dict[str, Any] = {
    "type": "object",
    "required": ["fileName", "fileHash", "mappings", "materials", "timestamp"],
    "properties": {
        "fileName": {"type": "string"},
        "fileHash": {"type": "string"},
        "mappings": {
            "type": "object",
            "properties": {
                key: _NULLABLE_INT
                for key in ("code", "desc", "qty", "uom", "rate", "physical", "remarks")
            },
        },
        "materials": {
            "type": "object",
            "propertyNames": {"pattern": "^[0-9]+$"},
            "additionalProperties": {
                "type": "object",
                "properties": {
                    "rowIndex": {"type": "integer"},
                    "physicalQty": {"type": ["string", "null"]},
                    "remarks": {"type": ["string", "null"]},
                },
            },
        },
        "timestamp": {"type": "string", "minLength": 1},
    },
}


class SessionCorruption(Exception):
    """Stored session blob is unreadable, fails validation, or lacks a timestamp."""


@dataclass(frozen=True)
class SavedCount:
    physical_qty: str = ""
    remarks: str = ""


@dataclass(frozen=True)
class SessionRecord:
    file_name: str
    file_hash: str
    mapping: ColumnMapping
    materials: dict[int, SavedCount] = field(default_factory=dict)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))

    def age(self, now: datetime | None = None) -> timedelta:
        """Elapsed time since save. Naive timestamps are compared in local time."""
        ts = self.timestamp
        if now is None:
            now = datetime.now(UTC) if ts.tzinfo is not None else datetime.now()
        elif now.tzinfo is None and ts.tzinfo is not None:
            ts = ts.astimezone().replace(tzinfo=None)
        elif now.tzinfo is not None and ts.tzinfo is None:
            ts = ts.astimezone()
        return now - ts

    def to_json(self) -> str:
        ts = self.timestamp.isoformat()
        if ts.endswith("+00:00"):
            ts = ts[:-6] + "Z"
        payload = {
            "fileName": self.file_name,
            "fileHash": self.file_hash,
            "mappings": self.mapping.to_wire(),
            "materials": {
                str(row): {"rowIndex": row, "physicalQty": saved.physical_qty, "remarks": saved.remarks}
                for row, saved in self.materials.items()
            },
            "timestamp": ts,
        }
        return json.dumps(payload, ensure_ascii=False)

    @classmethod
    def from_json(cls, text: str) -> SessionRecord:
        try:
            data = json.loads(text)
        except (json.JSONDecodeError, TypeError) as e:
            raise SessionCorruption(f"invalid json: {e}") from e
        try:
            jsonschema.validate(data, SESSION_SCHEMA)
        except ValidationError as e:
            raise SessionCorruption(f"session validation failed: {e.message}") from e
        try:
            timestamp = datetime.fromisoformat(data["timestamp"])
        except ValueError as e:
            raise SessionCorruption(f"invalid timestamp: {data['timestamp']!r}") from e

        materials: dict[int, SavedCount] = {}
        for key, entry in data["materials"].items():
            materials[int(key)] = SavedCount(
                physical_qty=entry.get("physicalQty") or "",
                remarks=entry.get("remarks") or "",
            )
        return cls(
            file_name=data["fileName"],
            file_hash=data["fileHash"],
            mapping=ColumnMapping.from_wire(data["mappings"]),
            materials=materials,
            timestamp=timestamp,
        )
