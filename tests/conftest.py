from __future__ import annotations

import os

# Run Qt headless so the suite works without a display.
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

from concurrent.futures import Future
from typing import Any, Callable, Dict, List, Optional, Tuple

import pytest

from core.models import AssetSnapshot, ChartSeries, HistoryResult, PricePoint, Timeframe
from core.rendering.fallback import FallbackScene


class FakeScheduler:
    """Manual clock: timers only fire from :meth:`advance`, posts run inline."""

    def __init__(self) -> None:
        self.now_ms = 0
        self._timers: Dict[int, List[Any]] = {}
        self._next_id = 0
        self.fired: List[str] = []

    def call_later(self, delay_ms: int, callback: Callable[[], None]) -> Callable[[], None]:
        return self._add(delay_ms, callback, repeat=False)

    def call_every(self, interval_ms: int, callback: Callable[[], None]) -> Callable[[], None]:
        return self._add(interval_ms, callback, repeat=True)

    def post(self, callback: Callable[[], None]) -> None:
        callback()

    @property
    def active_timers(self) -> int:
        return len(self._timers)

    def advance(self, ms: int) -> None:
        target = self.now_ms + ms
        while True:
            due = [(entry[0], timer_id) for timer_id, entry in self._timers.items() if entry[0] <= target]
            if not due:
                break
            when, timer_id = min(due)
            self.now_ms = when
            entry = self._timers[timer_id]
            _, interval, callback, repeat = entry
            if repeat:
                entry[0] = when + max(interval, 1)
            else:
                del self._timers[timer_id]
            self.fired.append(getattr(callback, "__name__", "callback"))
            callback()
        self.now_ms = target

    def _add(self, interval: int, callback: Callable[[], None], *, repeat: bool) -> Callable[[], None]:
        timer_id = self._next_id
        self._next_id += 1
        self._timers[timer_id] = [self.now_ms + interval, interval, callback, repeat]
        return lambda: self._timers.pop(timer_id, None)


class ManualExecutor:
    """Executor whose futures stay pending until the test resolves them."""

    def __init__(self) -> None:
        self.submitted: List[Tuple[Callable[..., Any], Tuple[Any, ...], Future]] = []

    def submit(self, fn: Callable[..., Any], *args: Any) -> Future:
        future: Future = Future()
        self.submitted.append((fn, args, future))
        return future

    def shutdown(self, wait: bool = True, *, cancel_futures: bool = False) -> None:  # noqa: ARG002
        pass

    def calls_to(self, owner: Any) -> List[Tuple[Tuple[Any, ...], Future]]:
        return [(args, future) for fn, args, future in self.submitted if getattr(fn, "__self__", None) is owner]

    def pending_for(self, owner: Any) -> List[Future]:
        return [future for _, future in self.calls_to(owner) if not future.done()]

    def run(self, future: Future) -> None:
        for fn, args, candidate in self.submitted:
            if candidate is future:
                future.set_result(fn(*args))
                return
        raise AssertionError("future was not submitted to this executor")


class RecordingSurface:
    """Chart surface that records every call and rejects calls once removed."""

    def __init__(self, size: Tuple[int, int] = (640, 320)) -> None:
        self.size = size
        self.calls: List[str] = []
        self.attached: List[Any] = []
        self.scenes: List[FallbackScene] = []
        self.removed = False
        # Kept separately because future callbacks swallow the AssertionError.
        self.violations: List[str] = []

    def _record(self, name: str) -> None:
        if self.removed:
            self.violations.append(name)
            raise AssertionError(f"{name} called on a removed surface")
        self.calls.append(name)

    def surface_size(self) -> Tuple[int, int]:
        self._record("surface_size")
        return self.size

    def attach_widget(self, widget: Any) -> None:
        self._record("attach_widget")
        self.attached.append(widget)

    def detach_widget(self, widget: Any) -> None:
        self._record("detach_widget")
        self.attached.remove(widget)

    def show_loading(self, message: str) -> None:  # noqa: ARG002
        self._record("show_loading")

    def show_backend(self) -> None:
        self._record("show_backend")

    def clear(self) -> None:
        self._record("clear")

    def show_scene(self, scene: FallbackScene) -> None:
        self._record("show_scene")
        self.scenes.append(scene)


class FakeHandle:
    def __init__(
        self,
        tier: str,
        surface: Any,
        *,
        fail_on_set: bool = False,
        fail_on_resize: bool = False,
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> None:
        self.tier = tier
        self.on_error = on_error
        self.surface = surface
        self.fail_on_set = fail_on_set
        self.fail_on_resize = fail_on_resize
        self.series: Optional[ChartSeries] = None
        self.sizes: List[Tuple[int, int]] = []
        self.disposed = False
        surface.attach_widget(self)

    def set_data(self, series: ChartSeries) -> None:
        if self.fail_on_set:
            raise RuntimeError(f"{self.tier} cannot draw")
        self.series = series

    def resize(self, width: int, height: int) -> None:
        if self.fail_on_resize:
            raise RuntimeError(f"{self.tier} lost its context")
        self.sizes.append((width, height))

    def dispose(self) -> None:
        if not self.disposed:
            self.disposed = True
            self.surface.detach_widget(self)

    def fail_later(self, error: BaseException) -> None:
        """Report an error the way a backend event callback would."""
        assert self.on_error is not None
        self.on_error(error)


class FakeProbe:
    def __init__(
        self,
        name: str,
        *,
        fail_on_create: bool = False,
        fail_on_set: bool = False,
        fail_on_resize: bool = False,
    ) -> None:
        self.name = name
        self.fail_on_create = fail_on_create
        self.fail_on_set = fail_on_set
        self.fail_on_resize = fail_on_resize
        self.handles: List[FakeHandle] = []
        self.attempts = 0

    def create(
        self,
        surface: Any,
        width: int,  # noqa: ARG002
        height: int,  # noqa: ARG002
        on_error: Optional[Callable[[BaseException], None]] = None,
    ) -> FakeHandle:
        self.attempts += 1
        if self.fail_on_create:
            raise ImportError(f"{self.name} is not installed")
        handle = FakeHandle(
            self.name,
            surface,
            fail_on_set=self.fail_on_set,
            fail_on_resize=self.fail_on_resize,
            on_error=on_error,
        )
        self.handles.append(handle)
        return handle


class DummyFetcher:
    def __init__(self) -> None:
        self.calls: List[Tuple[str, str, Timeframe]] = []

    def fetch(self, asset_id: str, currency: str, timeframe: Timeframe) -> HistoryResult:
        self.calls.append((asset_id, currency, timeframe))
        return HistoryResult()


class DummySnapshotClient:
    def __init__(self, price: float = 250.0) -> None:
        self.price = price
        self.calls: List[Tuple[str, str]] = []

    def fetch(self, asset_id: str, currency: str) -> AssetSnapshot:
        self.calls.append((asset_id, currency))
        return AssetSnapshot(asset_id=asset_id, name=asset_id.title(), symbol=asset_id[:3].upper(), current_price=self.price)


def make_points(values: List[float], start: int = 1_700_000_000, step: int = 86_400) -> List[PricePoint]:
    return [PricePoint(time=start + index * step, value=value) for index, value in enumerate(values)]


@pytest.fixture()
def scheduler() -> FakeScheduler:
    return FakeScheduler()


@pytest.fixture()
def executor() -> ManualExecutor:
    return ManualExecutor()


@pytest.fixture()
def surface() -> RecordingSurface:
    return RecordingSurface()
