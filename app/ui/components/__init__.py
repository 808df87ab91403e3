"""Convenience imports for UI components."""

from .chart_widget import PriceChartWidget
from .fallback_canvas import FallbackCanvas

__all__ = [
    "FallbackCanvas",
    "PriceChartWidget",
]
