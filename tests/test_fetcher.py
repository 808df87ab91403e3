from __future__ import annotations

from typing import Dict, List, Tuple, Union
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from core.config import FetcherConfig
from core.data.fetcher import PriceHistoryFetcher, default_providers, parse_price_history
from core.exceptions import EmptySeries, NetworkFailure
from core.models import PricePoint, Timeframe

DIRECT = "https://api.example.test/v3"
RELAY = "https://relay.example.test/raw"


class DummyResponse:
    def __init__(self, status_code: int = 200, payload: object = None, *, bad_json: bool = False) -> None:
        self.status_code = status_code
        self._payload = payload
        self._bad_json = bad_json

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> object:
        if self._bad_json:
            raise ValueError("Expecting value")
        return self._payload


Reply = Union[DummyResponse, Exception]


class DummySession:
    def __init__(self, replies: Dict[str, Reply]) -> None:
        self.headers: Dict[str, str] = {}
        self._replies = replies
        self.calls: List[Tuple[str, float]] = []

    def get(self, url: str, timeout: float) -> DummyResponse:
        self.calls.append((url, timeout))
        host = urlparse(url).netloc
        reply = self._replies[host]
        if isinstance(reply, Exception):
            raise reply
        return reply

    def close(self) -> None:
        pass


def _fetcher(session: DummySession, **overrides) -> PriceHistoryFetcher:  # noqa: ANN003
    config = FetcherConfig(api_base=DIRECT, relay_url=RELAY, timeout_seconds=3.0, **overrides)
    return PriceHistoryFetcher(config=config, session=session, sleep_fn=lambda _: None)


GOOD_BODY = {"prices": [[1_700_000_000_000, 101.5], [1_700_003_600_000, 102.25], [1_700_007_200_000, 99.0]]}


def test_primary_success_uses_direct_endpoint() -> None:
    session = DummySession({"api.example.test": DummyResponse(payload=GOOD_BODY)})
    result = _fetcher(session).fetch("bitcoin", "USD", Timeframe.SHORT)

    assert result.ok
    assert result.provider == "direct"
    assert result.points == [
        PricePoint(1_700_000_000, 101.5),
        PricePoint(1_700_003_600, 102.25),
        PricePoint(1_700_007_200, 99.0),
    ]
    url, timeout = session.calls[0]
    assert timeout == 3.0
    assert url.startswith(f"{DIRECT}/coins/bitcoin/market_chart?")
    assert parse_qs(urlparse(url).query) == {"vs_currency": ["usd"], "days": ["1"], "interval": ["hourly"]}


@pytest.mark.parametrize(
    "primary",
    [
        DummyResponse(status_code=429),
        DummyResponse(bad_json=True),
        DummyResponse(payload={"total_volumes": []}),
        DummyResponse(payload={"prices": []}),
        requests.Timeout("read timed out"),
        requests.ConnectionError("refused"),
    ],
)
def test_secondary_provider_used_when_primary_fails(primary: Reply) -> None:
    relay_body = {"prices": [[1_700_086_400_000, 10.0], [1_700_000_000_000, 9.0]]}
    session = DummySession({"api.example.test": primary, "relay.example.test": DummyResponse(payload=relay_body)})

    result = _fetcher(session).fetch("ethereum", "EUR", Timeframe.WEEK)

    assert result.provider == "relay"
    assert result.points == [PricePoint(1_700_000_000, 9.0), PricePoint(1_700_086_400, 10.0)]
    assert len(result.failures) == 1
    relay_url = session.calls[-1][0]
    wrapped = parse_qs(urlparse(relay_url).query)["url"][0]
    assert wrapped == session.calls[0][0]


def test_all_providers_failing_returns_failure_without_data() -> None:
    session = DummySession(
        {
            "api.example.test": DummyResponse(status_code=500),
            "relay.example.test": DummyResponse(payload={"prices": [[1, -3.0]]}),
        }
    )
    result = _fetcher(session).fetch("dogecoin", "USD", Timeframe.YEAR)

    assert not result.ok
    assert result.points == []
    assert result.provider is None
    assert len(result.failures) == 2
    assert len(session.calls) == 2


def test_retries_are_bounded_per_provider() -> None:
    session = DummySession(
        {
            "api.example.test": DummyResponse(status_code=503),
            "relay.example.test": DummyResponse(status_code=503),
        }
    )
    sleeps: List[float] = []
    config = FetcherConfig(api_base=DIRECT, relay_url=RELAY, max_retries=3, initial_backoff_seconds=0.5)
    fetcher = PriceHistoryFetcher(config=config, session=session, sleep_fn=sleeps.append)

    result = fetcher.fetch("bitcoin", "USD", Timeframe.MONTH)

    assert not result.ok
    assert len(session.calls) == 6
    assert sleeps == [0.5, 1.0, 0.5, 1.0]


def test_parse_price_history_normalises_rows() -> None:
    payload = {
        "prices": [
            [3_000, 3.0],
            [1_000, 1.0],
            [2_000, "bad"],
            [2_500, 0],
            [3_999, 4.0],
            "junk",
            [4_000],
        ]
    }
    assert parse_price_history(payload) == [PricePoint(1, 1.0), PricePoint(3, 4.0)]


def test_parse_price_history_errors() -> None:
    with pytest.raises(NetworkFailure):
        parse_price_history(["not", "an", "object"])
    with pytest.raises(NetworkFailure):
        parse_price_history({"prices": "nope"})
    with pytest.raises(EmptySeries):
        parse_price_history({"prices": []})
    with pytest.raises(EmptySeries):
        parse_price_history({"prices": [[1_000, float("nan")]]})


def test_default_providers_order() -> None:
    providers = default_providers(FetcherConfig(api_base=DIRECT, relay_url=RELAY))
    assert [provider.name for provider in providers] == ["direct", "relay"]
    relayed = providers[1].build_url("bitcoin", "USD", Timeframe.YEAR)
    assert relayed.startswith(f"{RELAY}?url=")


def test_parse_price_history_drops_unrepresentable_timestamps() -> None:
    with pytest.raises(EmptySeries):
        parse_price_history({"prices": [[1e30, 5.0], [2e30, 6.0], [-5_000, 7.0]]})

    payload = {"prices": [[1e30, 5.0], [1_700_000_000_000, 8.0], [2e30, 6.0]]}
    assert parse_price_history(payload) == [PricePoint(1_700_000_000, 8.0)]


def test_out_of_range_timestamps_fall_through_to_relay() -> None:
    session = DummySession(
        {
            "api.example.test": DummyResponse(payload={"prices": [[1e30, 5.0], [2e30, 6.0]]}),
            "relay.example.test": DummyResponse(payload=GOOD_BODY),
        }
    )
    result = _fetcher(session).fetch("bitcoin", "USD", Timeframe.SHORT)

    assert result.provider == "relay"
    assert all(point.time > 0 for point in result.points)
