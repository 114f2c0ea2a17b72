from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Any, Protocol

"""Debounce timers on a single-threaded event loop.

A Debouncer holds at most one pending call. Every trigger() cancels the
pending one and re-arms the delay, so the action runs once per quiet period.
The scheduler is anything with ``call_later(delay, callback)`` returning a
handle with ``cancel()``. Without one, the running asyncio loop is looked up
at construction, so a Debouncer built outside a loop fails right away
instead of on its first trigger.
"""

__all__ = [
    "Scheduler",
    "Debouncer",
]


class _Handle(Protocol):
    def cancel(self) -> Any: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], Any]) -> _Handle: ...


class Debouncer:
    def __init__(self, delay: float, action: Callable[[], Any], scheduler: Scheduler | None = None) -> None:
        self.delay = delay
        self._action = action
        self._scheduler: Scheduler = scheduler if scheduler is not None else asyncio.get_running_loop()
        self._handle: _Handle | None = None

    @property
    def pending(self) -> bool:
        return self._handle is not None

    def trigger(self) -> None:
        """(Re)arm the timer; a previously pending call is dropped."""
        self.cancel()
        self._handle = self._scheduler.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            try:
                self._handle.cancel()
            finally:
                self._handle = None

    def flush(self) -> None:
        """Run the action now, dropping any pending timer."""
        self.cancel()
        self._action()

    def _fire(self) -> None:
        self._handle = None
        self._action()
