"""Current price and descriptive metadata for a single asset."""

from __future__ import annotations

import logging
import math
from typing import Mapping, Optional, Sequence
from urllib.parse import urlencode

import requests

from core.config import DEFAULT_CONFIG, FetcherConfig, SnapshotConfig
from core.models import AssetSnapshot

__all__ = ["AssetSnapshotClient", "parse_snapshot"]

_LOGGER = logging.getLogger(__name__)

_SNAPSHOT_QUERY = {
    "localization": "false",
    "tickers": "false",
    "market_data": "true",
    "community_data": "false",
    "developer_data": "false",
    "sparkline": "false",
}


def parse_snapshot(payload: Mapping[str, object], asset_id: str, currency: str) -> AssetSnapshot:
    """Build an :class:`AssetSnapshot` from a ``/coins/{id}`` body.

    Missing or non-numeric fields become ``None``; per-currency fields are
    read for *currency* (lower-cased).
    """

    code = currency.lower()
    market = payload.get("market_data")
    market = market if isinstance(market, Mapping) else {}

    description = _lookup(payload, ("description", "en"))
    homepages = _lookup(payload, ("links", "homepage"))
    homepage = None
    if isinstance(homepages, Sequence) and not isinstance(homepages, str):
        homepage = next((link for link in homepages if isinstance(link, str) and link), None)

    rank = _coerce_float(payload.get("market_cap_rank"))
    return AssetSnapshot(
        asset_id=asset_id,
        name=str(payload.get("name") or asset_id),
        symbol=str(payload.get("symbol") or asset_id[:3]).upper(),
        current_price=_coerce_float(_lookup(market, ("current_price", code))),
        change_24h=_coerce_float(market.get("price_change_percentage_24h")),
        change_7d=_coerce_float(market.get("price_change_percentage_7d")),
        change_30d=_coerce_float(market.get("price_change_percentage_30d")),
        market_cap=_coerce_float(_lookup(market, ("market_cap", code))),
        market_cap_rank=int(rank) if rank is not None else None,
        total_volume=_coerce_float(_lookup(market, ("total_volume", code))),
        circulating_supply=_coerce_float(market.get("circulating_supply")),
        total_supply=_coerce_float(market.get("total_supply")),
        max_supply=_coerce_float(market.get("max_supply")),
        description=description if isinstance(description, str) else "",
        homepage=homepage,
    )


class AssetSnapshotClient:
    """Fetch asset snapshots, substituting a placeholder on any failure."""

    def __init__(
        self,
        *,
        config: Optional[SnapshotConfig] = None,
        fetcher_config: Optional[FetcherConfig] = None,
        session: Optional[requests.Session] = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG.snapshot
        self._api_base = (fetcher_config or DEFAULT_CONFIG.fetcher).api_base.rstrip("/")
        self._session = session or requests.Session()
        self._session.headers.update({"Accept": "application/json"})

    def url_for(self, asset_id: str) -> str:
        return f"{self._api_base}/coins/{asset_id}?{urlencode(_SNAPSHOT_QUERY)}"

    def fetch(self, asset_id: str, currency: str) -> AssetSnapshot:
        try:
            response = self._session.get(self.url_for(asset_id), timeout=self._config.timeout_seconds)
            response.raise_for_status()
            payload = response.json()
        except (requests.RequestException, ValueError) as exc:
            _LOGGER.warning("Snapshot fetch failed for %s: %s", asset_id, exc)
            return AssetSnapshot.placeholder(asset_id, self._config.fallback_price)

        if not isinstance(payload, Mapping):
            _LOGGER.warning("Snapshot payload for %s is not an object", asset_id)
            return AssetSnapshot.placeholder(asset_id, self._config.fallback_price)

        return parse_snapshot(payload, asset_id, currency)

    def close(self) -> None:
        self._session.close()


def _lookup(info: Mapping[str, object], path: Sequence[str]) -> object:
    current: object = info
    for segment in path:
        if not isinstance(current, Mapping):
            return None
        current = current.get(segment)
    return current


def _coerce_float(value: object) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        number = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    if math.isnan(number) or math.isinf(number):
        return None
    return number
