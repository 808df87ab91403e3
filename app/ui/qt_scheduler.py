"""Qt implementation of the controller's scheduling primitives."""

from __future__ import annotations

from typing import Callable, Set

from PyQt6 import QtCore

from core.scheduling import Cancel

__all__ = ["QtScheduler"]


class QtScheduler(QtCore.QObject):
    """Run timers and cross-thread callbacks on the thread owning this object."""

    _posted = QtCore.pyqtSignal(object)

    def __init__(self, parent: QtCore.QObject | None = None) -> None:
        super().__init__(parent)
        self._timers: Set[QtCore.QTimer] = set()
        # Emitting from a worker thread queues the call onto this object's thread.
        self._posted.connect(self._run_posted, QtCore.Qt.ConnectionType.QueuedConnection)

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Cancel:
        timer = self._make_timer(delay_ms, single_shot=True)

        def _fire() -> None:
            self._release(timer)
            callback()

        timer.timeout.connect(_fire)
        timer.start()
        return lambda: self._release(timer)

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> Cancel:
        timer = self._make_timer(interval_ms, single_shot=False)
        timer.timeout.connect(callback)
        timer.start()
        return lambda: self._release(timer)

    def post(self, callback: Callable[[], None]) -> None:
        self._posted.emit(callback)

    def cancel_all(self) -> None:
        for timer in list(self._timers):
            self._release(timer)

    def _make_timer(self, interval_ms: int, *, single_shot: bool) -> QtCore.QTimer:
        timer = QtCore.QTimer(self)
        timer.setSingleShot(single_shot)
        timer.setInterval(max(int(interval_ms), 0))
        self._timers.add(timer)
        return timer

    def _release(self, timer: QtCore.QTimer) -> None:
        if timer not in self._timers:
            return
        self._timers.discard(timer)
        timer.stop()
        timer.deleteLater()

    @QtCore.pyqtSlot(object)
    def _run_posted(self, callback: Callable[[], None]) -> None:
        callback()
