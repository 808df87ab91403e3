from __future__ import annotations

import math

import numpy as np
import pytest

from core.config import SynthesizerConfig
from core.data.synthesizer import synthesize
from core.models import Timeframe


@pytest.mark.parametrize("timeframe", list(Timeframe))
@pytest.mark.parametrize("base_price", [0.000001, 0.05, 1.0, 100.0, 65_000.0])
def test_synthesize_shape_and_invariants(timeframe: Timeframe, base_price: float) -> None:
    points = synthesize(timeframe, base_price, now=1_700_000_000)

    assert len(points) == timeframe.span_days + 1
    times = [point.time for point in points]
    assert all(later > earlier for earlier, later in zip(times, times[1:]))
    assert all(later - earlier == timeframe.step_seconds for earlier, later in zip(times, times[1:]))
    assert times[-1] == 1_700_000_000
    assert all(point.value > 0 for point in points)
    assert points[0].value == pytest.approx(base_price)


def test_synthesize_is_stochastic_between_calls() -> None:
    first = synthesize(Timeframe.MONTH, 100)
    second = synthesize(Timeframe.MONTH, 100)

    assert [p.value for p in first] != [p.value for p in second]
    for series in (first, second):
        assert len(series) == 31
        assert all(point.value > 0 for point in series)


def test_synthesize_reproducible_with_seeded_generator() -> None:
    first = synthesize(Timeframe.WEEK, 42.0, now=0, rng=np.random.default_rng(7))
    second = synthesize(Timeframe.WEEK, 42.0, now=0, rng=np.random.default_rng(7))
    assert first == second


def test_synthesize_follows_random_walk_recurrence() -> None:
    config = SynthesizerConfig()
    noise = np.random.default_rng(3).uniform(-config.volatility, config.volatility, size=8)
    points = synthesize(Timeframe.WEEK, 100.0, now=0, rng=np.random.default_rng(3), config=config)

    price, change = 100.0, 0.0
    for i in range(1, 8):
        change = config.trend_amplitude * np.sin(i * config.trend_frequency) + noise[i] + config.momentum * change
        price = max(config.price_floor, price * (1 + change))
        assert points[i].value == pytest.approx(price)


def test_synthesize_respects_price_floor_under_collapse() -> None:
    # sin(i * pi / 2) hits 1 every fourth step, i.e. a -99% move.
    steep = SynthesizerConfig(
        trend_amplitude=-0.99,
        trend_frequency=math.pi / 2,
        volatility=1e-9,
        momentum=0.0,
        price_floor=0.5,
    )
    points = synthesize(Timeframe.YEAR, 100.0, now=0, config=steep)

    assert min(point.value for point in points) == pytest.approx(0.5)
    assert all(point.value >= 0.5 for point in points)


def test_synthesize_rejects_invalid_base_price() -> None:
    with pytest.raises(ValueError):
        synthesize(Timeframe.WEEK, 0)
    with pytest.raises(ValueError):
        synthesize(Timeframe.WEEK, -5)
    with pytest.raises(ValueError):
        synthesize(Timeframe.WEEK, float("nan"))


@pytest.mark.parametrize("timeframe", [Timeframe.SHORT, Timeframe.WEEK, Timeframe.MONTH])
@pytest.mark.parametrize("seed", [1, 2, 3])
def test_sub_cent_base_price_stays_near_base(timeframe: Timeframe, seed: int) -> None:
    base = 0.00001
    points = synthesize(timeframe, base, now=0, rng=np.random.default_rng(seed))

    values = [point.value for point in points]
    assert all(base / 10 < value < base * 10 for value in values)
    steps = [later / earlier for earlier, later in zip(values, values[1:])]
    assert all(0.9 < ratio < 1.1 for ratio in steps)


def test_relative_floor_applies_below_configured_floor() -> None:
    steep = SynthesizerConfig(
        trend_amplitude=-0.99,
        trend_frequency=math.pi / 2,
        volatility=1e-9,
        momentum=0.0,
        price_floor=0.01,
        relative_floor=0.5,
    )
    points = synthesize(Timeframe.MONTH, 0.001, now=0, config=steep)

    assert min(point.value for point in points) == pytest.approx(0.0005)
