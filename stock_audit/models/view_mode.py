from __future__ import annotations

from enum import Enum

"""View mode state machine.

State transitions: RAW -> VERIFICATION (requires a confirmed mapping),
VERIFICATION -> RAW (always allowed). A new import always resets to RAW.
"""

__all__ = [
    "ViewMode",
    "ViewState",
]


class ViewMode(Enum):
    """RAW: spreadsheet grid of the buffer. VERIFICATION: per-item counting view."""
    RAW = "raw"
    VERIFICATION = "verification"


class ViewState:
    def __init__(self) -> None:
        self.mode = ViewMode.RAW

    def enter_verification(self, has_mapping: bool) -> bool:
        """Move to VERIFICATION; refused (False) while no mapping is confirmed."""
        if not has_mapping:
            return False
        self.mode = ViewMode.VERIFICATION
        return True

    def enter_raw(self) -> None:
        self.mode = ViewMode.RAW

    def toggle(self, has_mapping: bool) -> bool:
        if self.mode is ViewMode.VERIFICATION:
            self.enter_raw()
            return True
        return self.enter_verification(has_mapping)
