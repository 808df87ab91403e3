"""Timer and thread-hop primitives the chart controller depends on."""

from __future__ import annotations

from typing import Callable, Protocol

__all__ = ["Cancel", "Scheduler"]

Cancel = Callable[[], None]
"""Unsubscribe function returned by every scheduling call."""


class Scheduler(Protocol):
    """Event-loop services owned by the GUI thread.

    ``post`` may be called from any thread; the callback runs later on the
    owner thread. Timer callbacks always run on the owner thread.
    """

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancel: ...

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> Cancel: ...

    def post(self, callback: Callable[[], None]) -> None: ...
