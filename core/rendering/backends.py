"""Charting backends tried in order of richness, behind a uniform handle."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from functools import lru_cache
from typing import Any, Callable, List, Optional, Protocol, Sequence

from core.exceptions import RenderCapabilityFailure
from core.models import ChartSeries, RenderHandle, SampleInterval

__all__ = [
    "BackendSurface",
    "CapabilityProbe",
    "ErrorCallback",
    "MatplotlibAreaProbe",
    "MatplotlibLineProbe",
    "PyqtgraphSeriesProbe",
    "RenderBackendSelector",
    "default_probes",
    "dispose_quietly",
]

_LOGGER = logging.getLogger(__name__)

_LINE_COLOR = "#3B82F6"
_FILL_COLOR = "#3B82F6"
_GRID_COLOR = "#E2E8F0"

ErrorCallback = Callable[[BaseException], None]


class BackendSurface(Protocol):
    """Host area a backend widget is mounted into."""

    def attach_widget(self, widget: Any) -> None: ...

    def detach_widget(self, widget: Any) -> None: ...


class CapabilityProbe(Protocol):
    name: str

    def create(
        self, surface: BackendSurface, width: int, height: int, on_error: Optional[ErrorCallback] = None
    ) -> RenderHandle: ...


def _datetimes(series: ChartSeries) -> List[datetime]:
    return [datetime.fromtimestamp(point.time, tz=timezone.utc) for point in series.points]


@lru_cache(maxsize=None)
def _guarded_canvas_class() -> type:
    from matplotlib.backends.backend_qtagg import FigureCanvasQTAgg

    class _GuardedCanvas(FigureCanvasQTAgg):
        """Canvas whose deferred paint errors are reported instead of raised into Qt."""

        on_paint_error: Optional[ErrorCallback] = None

        def paintEvent(self, event: Any) -> None:  # pragma: no cover - Qt callback
            try:
                super().paintEvent(event)
            except Exception as exc:  # noqa: BLE001 - forwarded to the owning controller
                if self.on_paint_error is None:
                    raise
                self.on_paint_error(exc)

    return _GuardedCanvas


class _MatplotlibHandle:
    """Figure embedded through ``FigureCanvasQTAgg`` with a hover readout."""

    def __init__(
        self,
        tier: str,
        surface: BackendSurface,
        width: int,
        height: int,
        *,
        filled: bool,
        on_error: Optional[ErrorCallback] = None,
    ) -> None:
        from matplotlib.figure import Figure

        self.tier = tier
        self._surface = surface
        self._filled = filled
        self._figure = Figure(figsize=(max(width, 1) / 100.0, max(height, 1) / 100.0), dpi=100)
        self._canvas = _guarded_canvas_class()(self._figure)
        if on_error is not None:
            # Hover callbacks and deferred paints both report to the owner.
            self._canvas.callbacks.exception_handler = on_error
            self._canvas.on_paint_error = on_error
        self._axis = self._figure.add_subplot(1, 1, 1)
        self._hover_label: Any = None
        self._series: Optional[ChartSeries] = None
        self._hover_cid = self._canvas.mpl_connect("motion_notify_event", self._on_hover)
        self._disposed = False
        surface.attach_widget(self._canvas)

    def set_data(self, series: ChartSeries) -> None:
        from matplotlib import dates as mdates

        if not series.points:
            raise ValueError("cannot draw an empty series")
        self._series = series
        dates = _datetimes(series)
        values = [point.value for point in series.points]

        axis = self._axis
        axis.clear()
        axis.plot(dates, values, color=_LINE_COLOR, linewidth=2.0)
        if self._filled:
            axis.fill_between(dates, values, min(values), color=_FILL_COLOR, alpha=0.12)
        axis.yaxis.tick_right()
        axis.grid(True, which="major", color=_GRID_COLOR, linestyle="-", linewidth=0.8)
        pattern = "%H:%M" if series.timeframe.sample_interval is SampleInterval.HOURLY else "%b %d"
        axis.xaxis.set_major_formatter(mdates.DateFormatter(pattern, tz=timezone.utc))
        axis.margins(x=0)
        self._hover_label = axis.annotate(
            "",
            xy=(dates[-1], values[-1]),
            xytext=(8, 8),
            textcoords="offset points",
            fontsize=8,
            visible=False,
        )
        self._figure.tight_layout()
        self._canvas.draw_idle()

    def resize(self, width: int, height: int) -> None:
        if width <= 0 or height <= 0:
            return
        self._figure.set_size_inches(width / self._figure.dpi, height / self._figure.dpi)
        self._canvas.draw_idle()

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._canvas.mpl_disconnect(self._hover_cid)
        self._figure.clear()
        self._surface.detach_widget(self._canvas)

    def _on_hover(self, event: Any) -> None:
        if self._series is None or self._hover_label is None or event.inaxes is not self._axis:
            return
        from matplotlib import dates as mdates

        target = mdates.num2date(event.xdata).timestamp()
        point = min(self._series.points, key=lambda item: abs(item.time - target))
        self._hover_label.xy = (datetime.fromtimestamp(point.time, tz=timezone.utc), point.value)
        self._hover_label.set_text(f"{point.value:,.2f}")
        self._hover_label.set_visible(True)
        self._canvas.draw_idle()


class _PyqtgraphHandle:
    """``PlotWidget`` with a single generic ``PlotDataItem``."""

    def __init__(self, tier: str, surface: BackendSurface, width: int, height: int) -> None:
        import pyqtgraph as pg

        self.tier = tier
        self._surface = surface
        self._widget = pg.PlotWidget(axisItems={"bottom": pg.DateAxisItem(orientation="bottom")})
        self._widget.setBackground("w")
        self._widget.showGrid(x=True, y=True, alpha=0.25)
        self._widget.resize(max(width, 1), max(height, 1))
        self._item = pg.PlotDataItem(pen=pg.mkPen(_LINE_COLOR, width=2))
        self._widget.addItem(self._item)
        self._disposed = False
        surface.attach_widget(self._widget)

    def set_data(self, series: ChartSeries) -> None:
        if not series.points:
            raise ValueError("cannot draw an empty series")
        times = [float(point.time) for point in series.points]
        values = [point.value for point in series.points]
        self._item.setData(x=times, y=values)
        self._widget.enableAutoRange()

    def resize(self, width: int, height: int) -> None:
        if width > 0 and height > 0:
            self._widget.resize(width, height)

    def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._widget.clear()
        self._surface.detach_widget(self._widget)


class MatplotlibAreaProbe:
    name = "matplotlib-area"

    def create(
        self, surface: BackendSurface, width: int, height: int, on_error: Optional[ErrorCallback] = None
    ) -> RenderHandle:
        return _MatplotlibHandle(self.name, surface, width, height, filled=True, on_error=on_error)


class MatplotlibLineProbe:
    name = "matplotlib-line"

    def create(
        self, surface: BackendSurface, width: int, height: int, on_error: Optional[ErrorCallback] = None
    ) -> RenderHandle:
        return _MatplotlibHandle(self.name, surface, width, height, filled=False, on_error=on_error)


class PyqtgraphSeriesProbe:
    name = "pyqtgraph-series"

    def create(
        self, surface: BackendSurface, width: int, height: int, on_error: Optional[ErrorCallback] = None
    ) -> RenderHandle:
        # PlotWidget has no callback registry; its errors surface through resize.
        return _PyqtgraphHandle(self.name, surface, width, height)


def default_probes() -> List[CapabilityProbe]:
    return [MatplotlibAreaProbe(), MatplotlibLineProbe(), PyqtgraphSeriesProbe()]


class RenderBackendSelector:
    """Initialise the first render tier able to draw a series."""

    def __init__(self, probes: Optional[Sequence[CapabilityProbe]] = None) -> None:
        self._probes = list(probes) if probes is not None else default_probes()

    @property
    def tiers(self) -> List[str]:
        return [probe.name for probe in self._probes]

    def create(
        self,
        surface: BackendSurface,
        series: ChartSeries,
        width: int,
        height: int,
        on_error: Optional[ErrorCallback] = None,
    ) -> RenderHandle:
        """Return a handle already showing *series*.

        Each probe is guarded on its own: a missing library, a failing
        constructor or a handle that rejects the first ``set_data`` all move
        on to the next tier. Raises :class:`RenderCapabilityFailure` listing
        every tier's error when none succeeds. *on_error* is handed to the
        handle for failures raised later, outside any controller call.
        """

        failures = []
        for probe in self._probes:
            handle: Optional[RenderHandle] = None
            try:
                handle = probe.create(surface, width, height, on_error=on_error)
                handle.set_data(series)
            except Exception as exc:  # noqa: BLE001 - any tier error moves to the next tier
                _LOGGER.warning("Render tier %s unavailable: %s", probe.name, exc)
                failures.append((probe.name, f"{type(exc).__name__}: {exc}"))
                if handle is not None:
                    dispose_quietly(handle)
                continue
            _LOGGER.debug("Render tier %s selected", probe.name)
            return handle
        raise RenderCapabilityFailure(failures)


def dispose_quietly(handle: RenderHandle) -> None:
    """Dispose *handle*, logging instead of raising if the tier is broken."""

    try:
        handle.dispose()
    except Exception as exc:  # noqa: BLE001 - handle is being discarded either way
        _LOGGER.warning("Disposing render tier %s failed: %s", getattr(handle, "tier", "?"), exc)
