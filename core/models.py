"""Core dataclasses shared across the application."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Protocol

_HOUR_SECONDS = 3600
_DAY_SECONDS = 24 * _HOUR_SECONDS


@dataclass(frozen=True)
class PricePoint:
    time: int
    value: float


class SampleInterval(str, Enum):
    HOURLY = "hourly"
    DAILY = "daily"

    @property
    def seconds(self) -> int:
        return _HOUR_SECONDS if self is SampleInterval.HOURLY else _DAY_SECONDS


class Timeframe(Enum):
    """Selectable chart windows as ``(label, span in days, sample interval)``."""

    SHORT = ("1D", 1, SampleInterval.HOURLY)
    WEEK = ("7D", 7, SampleInterval.DAILY)
    MONTH = ("30D", 30, SampleInterval.DAILY)
    YEAR = ("1Y", 365, SampleInterval.DAILY)

    def __init__(self, label: str, span_days: int, sample_interval: SampleInterval) -> None:
        self.label = label
        self.span_days = span_days
        self.sample_interval = sample_interval

    @property
    def step_seconds(self) -> int:
        return self.sample_interval.seconds

    @classmethod
    def from_label(cls, label: str) -> "Timeframe":
        normalised = label.strip().upper()
        for timeframe in cls:
            if timeframe.label == normalised:
                return timeframe
        raise ValueError(f"Unknown timeframe: {label!r}")


@dataclass
class AssetSnapshot:
    asset_id: str
    name: str
    symbol: str
    current_price: Optional[float] = None
    change_24h: Optional[float] = None
    change_7d: Optional[float] = None
    change_30d: Optional[float] = None
    market_cap: Optional[float] = None
    market_cap_rank: Optional[int] = None
    total_volume: Optional[float] = None
    circulating_supply: Optional[float] = None
    total_supply: Optional[float] = None
    max_supply: Optional[float] = None
    description: str = ""
    homepage: Optional[str] = None
    is_placeholder: bool = False

    @classmethod
    def placeholder(cls, asset_id: str, price: float = 100.0) -> "AssetSnapshot":
        """Stand-in snapshot shown while live metadata is unavailable."""

        return cls(
            asset_id=asset_id,
            name=asset_id[:1].upper() + asset_id[1:],
            symbol=asset_id[:3].upper(),
            current_price=price,
            change_24h=0.0,
            change_7d=0.0,
            change_30d=0.0,
            description=f"Sample data for {asset_id}. Live data could not be fetched.",
            is_placeholder=True,
        )


@dataclass
class ChartSeries:
    points: List[PricePoint]
    timeframe: Timeframe
    is_sample: bool = False
    source: str = "synthetic"

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class HistoryResult:
    """Outcome of a price history fetch across all providers."""

    points: List[PricePoint] = field(default_factory=list)
    provider: Optional[str] = None
    failures: List[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.points)


class RenderHandle(Protocol):
    """Exclusive token for one live chart instance bound to a render tier."""

    tier: str

    def set_data(self, series: ChartSeries) -> None: ...

    def resize(self, width: int, height: int) -> None: ...

    def dispose(self) -> None: ...
