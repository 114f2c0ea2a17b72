from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Protocol

"""Durable storage for the single session slot.

One well-known file holds the in-progress session for the whole system.
Writes go to a sibling temp file first and are swapped in with os.replace
so a crash mid-write never leaves a truncated session behind.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "PersistenceFailure",
    "SessionStorage",
    "FileSessionStorage",
    "MemorySessionStorage",
]


class PersistenceFailure(Exception):
    """Session blob could not be written or deleted."""


class SessionStorage(Protocol):
    def read(self) -> str | None: ...

    def write(self, blob: str) -> None: ...

    def delete(self) -> None: ...


class FileSessionStorage:
    def __init__(self, path: Path) -> None:
        self.path = path

    def read(self) -> str | None:
        if not self.path.exists():
            return None
        try:
            return self.path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.debug(f"session read failed: {self.path}: {e}")
            return None

    def write(self, blob: str) -> None:
        tmp = self.path.with_name(self.path.name + ".tmp")
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp.write_text(blob, encoding="utf-8")
            os.replace(tmp, self.path)
        except OSError as e:
            raise PersistenceFailure(f"cannot write session {self.path}: {e}") from e

    def delete(self) -> None:
        try:
            self.path.unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceFailure(f"cannot delete session {self.path}: {e}") from e


class MemorySessionStorage:
    """Process-local storage (tests, dry runs)."""

    def __init__(self, blob: str | None = None) -> None:
        self.blob = blob

    def read(self) -> str | None:
        return self.blob

    def write(self, blob: str) -> None:
        self.blob = blob

    def delete(self) -> None:
        self.blob = None
