"""Configuration defaults for the PriceLens asset chart."""

from __future__ import annotations

import os
from dataclasses import dataclass, field, replace
from typing import Mapping, Optional


@dataclass(frozen=True)
class FetcherConfig:
    """Configuration controlling price history retrieval."""

    api_base: str = "https://api.coingecko.com/api/v3"
    relay_url: str = "https://api.allorigins.win/raw"
    timeout_seconds: float = 10.0
    max_retries: int = 1
    initial_backoff_seconds: float = 0.5
    backoff_factor: float = 2.0
    user_agent: str = "PriceLens/1.0"


@dataclass(frozen=True)
class SnapshotConfig:
    """Configuration for the asset snapshot endpoint."""

    timeout_seconds: float = 10.0
    poll_interval_seconds: float = 60.0
    fallback_price: float = 100.0


@dataclass(frozen=True)
class SynthesizerConfig:
    """Parameters of the synthetic random walk."""

    trend_amplitude: float = 0.01
    trend_frequency: float = 0.1
    volatility: float = 0.015
    momentum: float = 0.1
    price_floor: float = 0.01
    # Sub-cent assets floor at this fraction of their base price instead.
    relative_floor: float = 0.01


@dataclass(frozen=True)
class ChartConfig:
    """Behaviour of the chart controller and fallback renderer."""

    default_timeframe: str = "7D"
    init_delay_ms: int = 100
    grid_lines: int = 4
    default_width: int = 720
    default_height: int = 360


@dataclass(frozen=True)
class AppConfig:
    """Root configuration object aggregating subsystem defaults."""

    fetcher: FetcherConfig = field(default_factory=FetcherConfig)
    snapshot: SnapshotConfig = field(default_factory=SnapshotConfig)
    synthesizer: SynthesizerConfig = field(default_factory=SynthesizerConfig)
    chart: ChartConfig = field(default_factory=ChartConfig)


DEFAULT_CONFIG = AppConfig()
"""Singleton default configuration for simple imports."""


def load_config(environ: Optional[Mapping[str, str]] = None) -> AppConfig:
    """Return :data:`DEFAULT_CONFIG` with environment overrides applied.

    Recognised variables are ``PRICELENS_API_BASE``, ``PRICELENS_RELAY_URL``
    and ``PRICELENS_TIMEOUT`` (seconds, applied to both endpoints).
    """

    env = os.environ if environ is None else environ
    fetcher = DEFAULT_CONFIG.fetcher
    snapshot = DEFAULT_CONFIG.snapshot

    api_base = env.get("PRICELENS_API_BASE")
    if api_base:
        fetcher = replace(fetcher, api_base=api_base.rstrip("/"))

    relay_url = env.get("PRICELENS_RELAY_URL")
    if relay_url:
        fetcher = replace(fetcher, relay_url=relay_url)

    timeout = env.get("PRICELENS_TIMEOUT")
    if timeout:
        try:
            seconds = float(timeout)
        except ValueError as exc:
            raise ValueError(f"PRICELENS_TIMEOUT must be a number, got {timeout!r}") from exc
        if seconds <= 0:
            raise ValueError("PRICELENS_TIMEOUT must be positive")
        fetcher = replace(fetcher, timeout_seconds=seconds)
        snapshot = replace(snapshot, timeout_seconds=seconds)

    return replace(DEFAULT_CONFIG, fetcher=fetcher, snapshot=snapshot)
