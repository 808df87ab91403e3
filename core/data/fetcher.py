"""Price history retrieval across an ordered list of HTTP providers."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence
from urllib.parse import urlencode

import numpy as np
import pandas as pd
import requests

from core.config import DEFAULT_CONFIG, FetcherConfig
from core.exceptions import EmptySeries, NetworkFailure
from core.models import HistoryResult, PricePoint, Timeframe

__all__ = ["HistoryProvider", "PriceHistoryFetcher", "parse_price_history", "default_providers"]

_LOGGER = logging.getLogger(__name__)

UrlBuilder = Callable[[str, str, Timeframe], str]

# 9999-12-31T23:59:59Z, the last instant datetime can represent.
_MAX_TIMESTAMP_MS = 253_402_300_799_000


@dataclass(frozen=True)
class HistoryProvider:
    name: str
    build_url: UrlBuilder


def market_chart_url(api_base: str, asset_id: str, currency: str, timeframe: Timeframe) -> str:
    query = urlencode(
        {
            "vs_currency": currency.lower(),
            "days": timeframe.span_days,
            "interval": timeframe.sample_interval.value,
        }
    )
    return f"{api_base.rstrip('/')}/coins/{asset_id}/market_chart?{query}"


def default_providers(config: Optional[FetcherConfig] = None) -> List[HistoryProvider]:
    """Direct endpoint first, then the same request through the relay."""

    settings = config or DEFAULT_CONFIG.fetcher

    def _direct(asset_id: str, currency: str, timeframe: Timeframe) -> str:
        return market_chart_url(settings.api_base, asset_id, currency, timeframe)

    def _relayed(asset_id: str, currency: str, timeframe: Timeframe) -> str:
        target = market_chart_url(settings.api_base, asset_id, currency, timeframe)
        return f"{settings.relay_url}?{urlencode({'url': target})}"

    return [HistoryProvider("direct", _direct), HistoryProvider("relay", _relayed)]


def parse_price_history(payload: object, provider: str = "payload") -> List[PricePoint]:
    """Convert a ``{"prices": [[ms, price], ...]}`` body into price points.

    Timestamps are converted from milliseconds to seconds. Rows that are not
    numeric pairs, carry a non-positive price or a timestamp outside the
    datetime range are dropped; the result is sorted by time with duplicate
    timestamps collapsed to their last value.
    Raises :class:`NetworkFailure` for malformed bodies and
    :class:`EmptySeries` when no usable row remains.
    """

    if not isinstance(payload, dict):
        raise NetworkFailure(provider, "response body is not an object")
    prices = payload.get("prices")
    if not isinstance(prices, list):
        raise NetworkFailure(provider, "missing 'prices' array")

    rows = [row for row in prices if isinstance(row, (list, tuple)) and len(row) >= 2]
    if not rows:
        raise EmptySeries(provider)

    frame = pd.DataFrame([row[:2] for row in rows], columns=["timestamp", "price"])
    frame = frame.apply(pd.to_numeric, errors="coerce")
    frame = frame.replace([np.inf, -np.inf], np.nan).dropna()
    frame = frame[(frame["price"] > 0) & (frame["timestamp"] >= 0) & (frame["timestamp"] <= _MAX_TIMESTAMP_MS)]
    if frame.empty:
        raise EmptySeries(provider)

    frame = frame.assign(time=(frame["timestamp"] // 1000).astype("int64"))
    frame = frame.sort_values("time", kind="stable").drop_duplicates(subset="time", keep="last")
    return [PricePoint(time=int(t), value=float(v)) for t, v in zip(frame["time"], frame["price"])]


class PriceHistoryFetcher:
    """Retrieve price history, trying each provider in priority order."""

    def __init__(
        self,
        providers: Optional[Sequence[HistoryProvider]] = None,
        *,
        config: Optional[FetcherConfig] = None,
        session: Optional[requests.Session] = None,
        sleep_fn: Optional[Callable[[float], None]] = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG.fetcher
        self._providers = list(providers) if providers is not None else default_providers(self._config)
        if not self._providers:
            raise ValueError("at least one history provider is required")
        self._session = session or requests.Session()
        self._session.headers.update(
            {"Accept": "application/json", "User-Agent": self._config.user_agent}
        )
        self._sleep_fn = sleep_fn or time.sleep

    @property
    def providers(self) -> List[HistoryProvider]:
        return list(self._providers)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def fetch(self, asset_id: str, currency: str, timeframe: Timeframe) -> HistoryResult:
        """Return the first provider's non-empty series, or the failures."""

        failures: List[str] = []
        for provider in self._providers:
            url = provider.build_url(asset_id, currency, timeframe)
            try:
                points = self._execute_with_retries(provider.name, url)
            except NetworkFailure as exc:
                _LOGGER.warning(
                    "Provider %s failed for %s/%s (%s): %s",
                    provider.name,
                    asset_id,
                    currency,
                    timeframe.label,
                    exc.reason,
                )
                failures.append(str(exc))
                continue
            _LOGGER.debug("Provider %s returned %s points for %s", provider.name, len(points), asset_id)
            return HistoryResult(points=points, provider=provider.name, failures=failures)

        _LOGGER.warning("All price providers exhausted for %s/%s (%s)", asset_id, currency, timeframe.label)
        return HistoryResult(points=[], provider=None, failures=failures)

    def close(self) -> None:
        self._session.close()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _attempt(self, provider: str, url: str) -> List[PricePoint]:
        try:
            response = self._session.get(url, timeout=self._config.timeout_seconds)
        except requests.RequestException as exc:
            raise NetworkFailure(provider, f"request error: {exc}") from exc

        if not response.ok:
            raise NetworkFailure(provider, f"HTTP {response.status_code}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise NetworkFailure(provider, "malformed JSON body") from exc

        return parse_price_history(payload, provider)

    def _execute_with_retries(self, provider: str, url: str) -> List[PricePoint]:
        delay = self._config.initial_backoff_seconds
        attempts = max(1, self._config.max_retries)
        last_failure: Optional[NetworkFailure] = None

        for attempt in range(1, attempts + 1):
            try:
                _LOGGER.debug("Attempt %s via %s: %s", attempt, provider, url)
                return self._attempt(provider, url)
            except EmptySeries:
                raise
            except NetworkFailure as exc:
                last_failure = exc
                if attempt >= attempts:
                    break
                self._sleep_fn(delay)
                delay *= self._config.backoff_factor

        if last_failure is not None:
            raise last_failure
        raise RuntimeError("Operation failed without exception")
