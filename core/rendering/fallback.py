"""Dependency-free vector chart used when no charting backend is usable.

The renderer works in two steps. :func:`build_fallback_scene` turns a price
series into a :class:`FallbackScene`, a plain description of every path,
gridline, label and annotation in pixel coordinates. A container (in the
application a ``QPainter`` backed widget) then draws that scene verbatim.
Keeping geometry pure means the scene can be asserted on without a display.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone, tzinfo
from typing import List, Optional, Protocol, Sequence, Tuple

from core.config import DEFAULT_CONFIG
from core.formatting import PriceFormatter, format_change, format_price
from core.models import PricePoint, SampleInterval, Timeframe

__all__ = [
    "FallbackContainer",
    "FallbackContext",
    "FallbackScene",
    "Margins",
    "TextLabel",
    "build_fallback_scene",
    "render_fallback",
]

Point = Tuple[float, float]


@dataclass(frozen=True)
class Margins:
    left: float = 16.0
    top: float = 64.0
    right: float = 96.0
    bottom: float = 32.0


@dataclass(frozen=True)
class FallbackContext:
    asset_name: str
    timeframe: Timeframe
    currency: str = "USD"
    format_price: PriceFormatter = format_price
    is_sample: bool = False
    tz: tzinfo = timezone.utc


@dataclass(frozen=True)
class TextLabel:
    text: str
    x: float
    y: float
    align: str = "left"


@dataclass
class FallbackScene:
    width: int
    height: int
    plot_rect: Tuple[float, float, float, float]
    line_path: List[Point] = field(default_factory=list)
    area_polygon: List[Point] = field(default_factory=list)
    horizontal_gridlines: List[float] = field(default_factory=list)
    vertical_gridlines: List[float] = field(default_factory=list)
    value_labels: List[TextLabel] = field(default_factory=list)
    time_labels: List[TextLabel] = field(default_factory=list)
    title: str = ""
    subtitle: str = ""
    current_value: str = ""
    change: str = ""
    change_positive: bool = True
    live_indicator: str = ""
    value_range: Tuple[float, float] = (0.0, 0.0)


class FallbackContainer(Protocol):
    def surface_size(self) -> Tuple[int, int]: ...

    def clear(self) -> None: ...

    def show_scene(self, scene: FallbackScene) -> None: ...


def _value_bounds(values: Sequence[float]) -> Tuple[float, float]:
    low, high = min(values), max(values)
    if high - low <= 0:
        pad = max(abs(high) * 0.01, 1e-8)
        return low - pad, high + pad
    return low, high


def _time_label(timestamp: int, timeframe: Timeframe, tz: tzinfo) -> str:
    moment = datetime.fromtimestamp(timestamp, tz=tz)
    if timeframe.sample_interval is SampleInterval.HOURLY:
        return moment.strftime("%H:%M")
    return moment.strftime("%b %d")


def build_fallback_scene(
    series: Sequence[PricePoint],
    context: FallbackContext,
    width: int,
    height: int,
    *,
    grid_lines: Optional[int] = None,
    margins: Margins = Margins(),
) -> FallbackScene:
    """Lay out the fallback chart for *series* inside a ``width`` x ``height`` box."""

    divisions = grid_lines if grid_lines is not None else DEFAULT_CONFIG.chart.grid_lines
    width = max(int(width), 1)
    height = max(int(height), 1)
    left = margins.left
    top = margins.top
    right = max(width - margins.right, left + 1)
    bottom = max(height - margins.bottom, top + 1)
    plot_w = right - left
    plot_h = bottom - top

    interval = context.timeframe.sample_interval.value
    scene = FallbackScene(
        width=width,
        height=height,
        plot_rect=(left, top, right, bottom),
        title=f"{context.asset_name} Price Chart",
        subtitle=f"{context.timeframe.label} · {len(series)} {interval} points",
        live_indicator="SAMPLE" if context.is_sample else "LIVE",
    )

    for i in range(divisions + 1):
        scene.horizontal_gridlines.append(top + (i / divisions) * plot_h)
        scene.vertical_gridlines.append(left + (i / divisions) * plot_w)

    if not series:
        scene.current_value = "—"
        scene.change = "+0.00%"
        return scene

    values = [point.value for point in series]
    low, high = _value_bounds(values)
    span = high - low
    scene.value_range = (low, high)

    count = len(series)
    for index, value in enumerate(values):
        ratio = index / (count - 1) if count > 1 else 0.5
        x = left + ratio * plot_w
        y = bottom - ((value - low) / span) * plot_h
        scene.line_path.append((x, y))

    scene.area_polygon = [(scene.line_path[0][0], bottom), *scene.line_path, (scene.line_path[-1][0], bottom)]

    for i in range(divisions + 1):
        price = high - (i / divisions) * span
        scene.value_labels.append(
            TextLabel(context.format_price(price, context.currency), width - 8.0, top + (i / divisions) * plot_h + 4.0, "right")
        )
        sample = series[math.floor((i / divisions) * (count - 1))]
        scene.time_labels.append(
            TextLabel(_time_label(sample.time, context.timeframe, context.tz), left + (i / divisions) * plot_w, height - 8.0, "center")
        )

    first, last = values[0], values[-1]
    scene.current_value = context.format_price(last, context.currency)
    scene.change = format_change(first, last)
    scene.change_positive = last >= first
    return scene


def render_fallback(
    container: FallbackContainer,
    series: Sequence[PricePoint],
    context: FallbackContext,
) -> FallbackScene:
    """Clear *container* and draw *series* into it; keeps no state between calls."""

    width, height = container.surface_size()
    scene = build_fallback_scene(series, context, width, height)
    container.clear()
    container.show_scene(scene)
    return scene
