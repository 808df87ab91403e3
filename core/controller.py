"""Lifecycle controller coordinating fetching, synthesis and rendering."""

from __future__ import annotations

import logging
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from enum import Enum
from functools import partial
from typing import Callable, List, Optional, Protocol

from core.config import DEFAULT_CONFIG, AppConfig
from core.data.fetcher import PriceHistoryFetcher
from core.data.snapshot import AssetSnapshotClient
from core.data.synthesizer import synthesize
from core.exceptions import RenderCapabilityFailure
from core.formatting import PriceFormatter, format_price
from core.models import AssetSnapshot, ChartSeries, HistoryResult, PricePoint, RenderHandle, Timeframe
from core.rendering.backends import BackendSurface, RenderBackendSelector, dispose_quietly
from core.rendering.fallback import FallbackContainer, FallbackContext, render_fallback
from core.scheduling import Cancel, Scheduler

__all__ = ["ChartController", "ChartState", "ChartSurface"]

_LOGGER = logging.getLogger(__name__)


class ChartState(str, Enum):
    EMPTY = "empty"
    LOADING = "loading"
    RENDERED_PRIMARY = "rendered-primary"
    RENDERED_FALLBACK = "rendered-fallback"
    TORN_DOWN = "torn-down"


class ChartSurface(BackendSurface, FallbackContainer, Protocol):
    """Everything the controller needs from the host widget."""

    def show_loading(self, message: str) -> None: ...

    def show_backend(self) -> None: ...


class ChartController:
    """Own the chart session of one widget: data, render handle and timers.

    Every selection bumps a sequence number; fetch results carrying an
    older number are dropped so the newest selection always wins. At most
    one :class:`RenderHandle` is live and it is disposed before any new one
    is created. :meth:`teardown` is the only cleanup path.
    """

    def __init__(
        self,
        surface: ChartSurface,
        scheduler: Scheduler,
        *,
        fetcher: Optional[PriceHistoryFetcher] = None,
        snapshot_client: Optional[AssetSnapshotClient] = None,
        selector: Optional[RenderBackendSelector] = None,
        executor: Optional[Executor] = None,
        config: Optional[AppConfig] = None,
        formatter: PriceFormatter = format_price,
        synthesizer: Callable[[Timeframe, float], List[PricePoint]] = synthesize,
        on_change: Optional[Callable[["ChartController"], None]] = None,
    ) -> None:
        self._config = config or DEFAULT_CONFIG
        self._surface = surface
        self._scheduler = scheduler
        self._fetcher = fetcher or PriceHistoryFetcher(config=self._config.fetcher)
        self._snapshot_client = snapshot_client or AssetSnapshotClient(
            config=self._config.snapshot, fetcher_config=self._config.fetcher
        )
        self._selector = selector or RenderBackendSelector()
        self._owns_fetcher = fetcher is None
        self._owns_snapshot_client = snapshot_client is None
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(max_workers=2, thread_name_prefix="pricelens")
        self._formatter = formatter
        self._synthesizer = synthesizer
        self.on_change = on_change

        self._state = ChartState.EMPTY
        self._asset_id: Optional[str] = None
        self._currency = "USD"
        self._timeframe = Timeframe.from_label(self._config.chart.default_timeframe)
        self._sequence = 0
        self._surface_ready = False
        self._history_future: Optional[Future] = None
        self._snapshot_futures: List[Future] = []
        self._cancellers: List[Cancel] = []
        self._handle: Optional[RenderHandle] = None
        self._series: Optional[ChartSeries] = None
        self._snapshot: Optional[AssetSnapshot] = None

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def state(self) -> ChartState:
        return self._state

    @property
    def series(self) -> Optional[ChartSeries]:
        return self._series

    @property
    def snapshot(self) -> Optional[AssetSnapshot]:
        return self._snapshot

    @property
    def timeframe(self) -> Timeframe:
        return self._timeframe

    @property
    def sequence(self) -> int:
        return self._sequence

    @property
    def is_sample(self) -> bool:
        return self._series is not None and self._series.is_sample

    @property
    def active_tier(self) -> Optional[str]:
        if self._handle is not None:
            return self._handle.tier
        if self._state is ChartState.RENDERED_FALLBACK:
            return "vector"
        return None

    @property
    def display_name(self) -> str:
        if self._snapshot is not None and self._snapshot.name:
            return self._snapshot.name
        asset_id = self._asset_id or ""
        return asset_id[:1].upper() + asset_id[1:]

    def mount(self, asset_id: str, currency: str = "USD", timeframe: Optional[Timeframe] = None) -> None:
        """Start the snapshot poll and schedule the deferred first render."""

        if self._state is ChartState.TORN_DOWN:
            raise RuntimeError("controller has been torn down")
        if self._cancellers:
            self.select(asset_id=asset_id, currency=currency, timeframe=timeframe)
            return

        self._asset_id = asset_id
        self._currency = currency.upper()
        if timeframe is not None:
            self._timeframe = timeframe

        poll_ms = int(self._config.snapshot.poll_interval_seconds * 1000)
        self._cancellers.append(self._scheduler.call_every(poll_ms, self._refresh_snapshot))
        self._cancellers.append(
            self._scheduler.call_later(self._config.chart.init_delay_ms, self._initialise_surface)
        )
        self._refresh_snapshot()

    def select(
        self,
        *,
        asset_id: Optional[str] = None,
        currency: Optional[str] = None,
        timeframe: Optional[Timeframe] = None,
    ) -> None:
        """Switch asset, currency and/or timeframe, superseding any load."""

        if self._state is ChartState.TORN_DOWN:
            return

        new_asset = asset_id or self._asset_id
        new_currency = currency.upper() if currency else self._currency
        new_timeframe = timeframe or self._timeframe
        unchanged = (new_asset, new_currency, new_timeframe) == (self._asset_id, self._currency, self._timeframe)
        if unchanged and self._state is not ChartState.EMPTY:
            return

        asset_changed = new_asset != self._asset_id or new_currency != self._currency
        self._asset_id, self._currency, self._timeframe = new_asset, new_currency, new_timeframe
        if asset_changed:
            self._snapshot = None
            self._refresh_snapshot()
        if self._surface_ready:
            self._load()

    def handle_resize(self, width: int, height: int) -> None:
        if self._state is ChartState.TORN_DOWN or self._series is None:
            return
        if self._handle is not None:
            try:
                self._handle.resize(width, height)
            except Exception as exc:  # noqa: BLE001 - any tier error switches to the vector chart
                self.report_render_error(exc)
        elif self._state is ChartState.RENDERED_FALLBACK:
            self._render_fallback()

    def report_render_error(self, error: BaseException) -> None:
        """Runtime failure of the live tier: dispose it and draw the vector chart."""

        if self._state is not ChartState.RENDERED_PRIMARY:
            return
        _LOGGER.warning("Render tier %s failed at runtime: %s", self.active_tier, error)
        self._dispose_handle()
        self._render_fallback()

    def teardown(self) -> None:
        """Cancel timers and requests and dispose the render handle. Idempotent."""

        if self._state is ChartState.TORN_DOWN:
            return
        self._sequence += 1
        self._surface_ready = False
        cancellers, self._cancellers = self._cancellers, []
        for cancel in cancellers:
            cancel()
        self._cancel_history()
        snapshot_futures, self._snapshot_futures = self._snapshot_futures, []
        for future in snapshot_futures:
            future.cancel()
        self._dispose_handle()
        self._series = None
        self._state = ChartState.TORN_DOWN
        if self._owns_executor:
            self._executor.shutdown(wait=False, cancel_futures=True)
        if self._owns_fetcher:
            self._fetcher.close()
        if self._owns_snapshot_client:
            self._snapshot_client.close()
        _LOGGER.debug("Chart controller for %s torn down", self._asset_id)

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def _initialise_surface(self) -> None:
        if self._state is ChartState.TORN_DOWN:
            return
        self._surface_ready = True
        self._load()

    def _load(self) -> None:
        if self._asset_id is None:
            return
        self._sequence += 1
        sequence = self._sequence
        asset_id, currency, timeframe = self._asset_id, self._currency, self._timeframe

        self._cancel_history()
        self._dispose_handle()
        self._set_state(ChartState.LOADING)
        self._surface.show_loading(f"Loading {timeframe.label} price history…")

        future = self._executor.submit(self._fetcher.fetch, asset_id, currency, timeframe)
        self._history_future = future
        future.add_done_callback(
            lambda fut: self._scheduler.post(partial(self._on_history, sequence, timeframe, fut))
        )

    def _on_history(self, sequence: int, timeframe: Timeframe, future: Future) -> None:
        if future is self._history_future:
            self._history_future = None
        if self._state is ChartState.TORN_DOWN or sequence != self._sequence:
            _LOGGER.debug("Discarding superseded history response #%s", sequence)
            return
        if future.cancelled():
            return

        try:
            result: HistoryResult = future.result()
        except Exception as exc:  # noqa: BLE001 - fetch errors end in synthetic data
            _LOGGER.warning("History fetch raised for %s: %s", self._asset_id, exc)
            result = HistoryResult(failures=[str(exc)])

        if result.ok:
            self._series = ChartSeries(result.points, timeframe, is_sample=False, source=result.provider or "live")
        else:
            base_price = self._base_price()
            _LOGGER.info("Using sample data for %s (%s) from base price %s", self._asset_id, timeframe.label, base_price)
            self._series = ChartSeries(
                self._synthesizer(timeframe, base_price), timeframe, is_sample=True, source="synthetic"
            )
        self._render()

    def _base_price(self) -> float:
        snapshot = self._snapshot
        if snapshot is not None and snapshot.current_price is not None and snapshot.current_price > 0:
            return snapshot.current_price
        return self._config.snapshot.fallback_price

    def _refresh_snapshot(self) -> None:
        if self._state is ChartState.TORN_DOWN or self._asset_id is None:
            return
        asset_id, currency = self._asset_id, self._currency
        future = self._executor.submit(self._snapshot_client.fetch, asset_id, currency)
        self._snapshot_futures.append(future)
        future.add_done_callback(
            lambda fut: self._scheduler.post(partial(self._on_snapshot, asset_id, currency, fut))
        )

    def _on_snapshot(self, asset_id: str, currency: str, future: Future) -> None:
        if future in self._snapshot_futures:
            self._snapshot_futures.remove(future)
        if self._state is ChartState.TORN_DOWN or future.cancelled():
            return
        if (asset_id, currency) != (self._asset_id, self._currency):
            return
        try:
            self._snapshot = future.result()
        except Exception as exc:  # noqa: BLE001 - snapshot is optional context
            _LOGGER.warning("Snapshot refresh failed for %s: %s", asset_id, exc)
            return
        self._notify()

    # ------------------------------------------------------------------
    # Rendering
    # ------------------------------------------------------------------
    def _render(self) -> None:
        series = self._series
        if series is None:
            return
        self._dispose_handle()
        width, height = self._surface.surface_size()
        try:
            handle = self._selector.create(
                self._surface, series, width, height, on_error=partial(self._on_render_error, self._sequence)
            )
        except RenderCapabilityFailure as exc:
            _LOGGER.info("No chart backend available, drawing vector fallback: %s", exc)
            self._render_fallback()
            return
        self._handle = handle
        self._surface.show_backend()
        self._set_state(ChartState.RENDERED_PRIMARY)

    def _on_render_error(self, sequence: int, error: BaseException) -> None:
        # Raised from inside a backend callback; act once that callback has returned.
        self._scheduler.post(partial(self._apply_render_error, sequence, error))

    def _apply_render_error(self, sequence: int, error: BaseException) -> None:
        if sequence != self._sequence:
            _LOGGER.debug("Ignoring render error from superseded handle #%s: %s", sequence, error)
            return
        self.report_render_error(error)

    def _render_fallback(self) -> None:
        series = self._series
        if series is None:
            return
        context = FallbackContext(
            asset_name=self.display_name,
            timeframe=series.timeframe,
            currency=self._currency,
            format_price=self._formatter,
            is_sample=series.is_sample,
        )
        render_fallback(self._surface, series.points, context)
        self._set_state(ChartState.RENDERED_FALLBACK)

    def _dispose_handle(self) -> None:
        handle, self._handle = self._handle, None
        if handle is not None:
            dispose_quietly(handle)

    def _cancel_history(self) -> None:
        future, self._history_future = self._history_future, None
        if future is not None:
            future.cancel()

    def _set_state(self, state: ChartState) -> None:
        if state is not self._state:
            _LOGGER.debug("Chart state %s -> %s", self._state.value, state.value)
        self._state = state
        self._notify()

    def _notify(self) -> None:
        if self.on_change is None:
            return
        try:
            self.on_change(self)
        except Exception as exc:  # noqa: BLE001 - listeners must not break the chart
            _LOGGER.exception("Chart change listener failed: %s", exc)
