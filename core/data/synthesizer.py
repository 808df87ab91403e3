"""Synthetic price series used when no provider returns live history."""

from __future__ import annotations

import math
import time
from typing import List, Optional

import numpy as np

from core.config import DEFAULT_CONFIG, SynthesizerConfig
from core.models import PricePoint, Timeframe

__all__ = ["synthesize"]


def synthesize(
    timeframe: Timeframe,
    base_price: float,
    *,
    now: Optional[int] = None,
    rng: Optional[np.random.Generator] = None,
    config: Optional[SynthesizerConfig] = None,
) -> List[PricePoint]:
    """Return ``timeframe.span_days + 1`` plausible samples ending at *now*.

    Each step applies a multiplicative change made of a slow sinusoidal
    trend, uniform noise and a fraction of the previous step's change::

        change_i = A * sin(i * omega) + U(-v, v) + k * change_{i-1}
        price_i  = max(floor, price_{i-1} * (1 + change_i))

    ``floor`` is ``price_floor``, lowered to ``relative_floor * base_price``
    when that is smaller.

    The first sample is *base_price* itself. A fresh random generator is
    created per call unless *rng* is supplied, so calls share no state.
    """

    if not math.isfinite(base_price) or base_price <= 0:
        raise ValueError(f"base_price must be a positive finite number, got {base_price!r}")

    params = config or DEFAULT_CONFIG.synthesizer
    generator = rng if rng is not None else np.random.default_rng()
    anchor = int(time.time()) if now is None else int(now)

    count = timeframe.span_days + 1
    step = timeframe.step_seconds
    start = anchor - (count - 1) * step

    indices = np.arange(count)
    trend = params.trend_amplitude * np.sin(indices * params.trend_frequency)
    noise = generator.uniform(-params.volatility, params.volatility, size=count)

    floor = min(params.price_floor, base_price * params.relative_floor)
    points: List[PricePoint] = []
    price = float(base_price)
    change = 0.0
    for i in range(count):
        if i > 0:
            change = float(trend[i] + noise[i]) + params.momentum * change
            price = max(floor, price * (1.0 + change))
        points.append(PricePoint(time=start + i * step, value=price))
    return points
