"""Price chart widget hosting the controller's render backends."""

from __future__ import annotations

from concurrent.futures import Executor
from typing import Any, Dict, Optional, Tuple

from PyQt6 import QtCore, QtGui, QtWidgets

from core.config import DEFAULT_CONFIG, AppConfig
from core.controller import ChartController, ChartState
from core.data.fetcher import PriceHistoryFetcher
from core.data.snapshot import AssetSnapshotClient
from core.formatting import format_change
from core.models import Timeframe
from core.rendering.backends import RenderBackendSelector
from core.rendering.fallback import FallbackScene

from ..qt_scheduler import QtScheduler
from .fallback_canvas import FallbackCanvas

__all__ = ["PriceChartWidget"]


class PriceChartWidget(QtWidgets.QWidget):
    """Mount point for one asset chart: ``PriceChartWidget(asset_id, currency)``."""

    sampleDataChanged = QtCore.pyqtSignal(bool)

    def __init__(
        self,
        asset_id: str,
        currency: str = "USD",
        parent: QtWidgets.QWidget | None = None,
        *,
        fetcher: Optional[PriceHistoryFetcher] = None,
        snapshot_client: Optional[AssetSnapshotClient] = None,
        selector: Optional[RenderBackendSelector] = None,
        executor: Optional[Executor] = None,
        config: Optional[AppConfig] = None,
    ) -> None:
        super().__init__(parent)
        self._config = config or DEFAULT_CONFIG
        self._title = QtWidgets.QLabel("Price chart")
        self._title.setObjectName("chartTitle")
        self._title.setAlignment(QtCore.Qt.AlignmentFlag.AlignLeft | QtCore.Qt.AlignmentFlag.AlignVCenter)

        self._banner = QtWidgets.QLabel(
            "Sample Data Mode · showing generated prices while live data is unavailable."
        )
        self._banner.setObjectName("sampleBanner")
        self._banner.setWordWrap(True)
        self._banner.setStyleSheet("background:#FEF3C7;color:#92400E;padding:6px;border-radius:4px;")
        self._banner.setVisible(False)

        self._timeframe_group = QtWidgets.QButtonGroup(self)
        self._timeframe_group.setExclusive(True)
        self._timeframe_buttons: Dict[Timeframe, QtWidgets.QPushButton] = {}
        buttons_row = QtWidgets.QHBoxLayout()
        buttons_row.setContentsMargins(0, 0, 0, 0)
        buttons_row.addWidget(self._title, 1)
        for timeframe in Timeframe:
            button = QtWidgets.QPushButton(timeframe.label, self)
            button.setCheckable(True)
            button.clicked.connect(lambda _checked=False, tf=timeframe: self.set_timeframe(tf))
            self._timeframe_group.addButton(button)
            self._timeframe_buttons[timeframe] = button
            buttons_row.addWidget(button)

        self._message = QtWidgets.QLabel("Preparing chart…")
        self._message.setAlignment(QtCore.Qt.AlignmentFlag.AlignCenter)
        self._message.setWordWrap(True)

        self._backend_area = QtWidgets.QWidget(self)
        self._backend_layout = QtWidgets.QVBoxLayout(self._backend_area)
        self._backend_layout.setContentsMargins(0, 0, 0, 0)

        self._fallback = FallbackCanvas(self)

        self._stack = QtWidgets.QStackedLayout()
        self._stack.addWidget(self._message)
        self._stack.addWidget(self._backend_area)
        self._stack.addWidget(self._fallback)

        container = QtWidgets.QWidget(self)
        container.setLayout(self._stack)
        self._container = container

        layout = QtWidgets.QVBoxLayout(self)
        layout.setContentsMargins(0, 0, 0, 0)
        layout.addLayout(buttons_row)
        layout.addWidget(self._banner)
        layout.addWidget(container, 1)

        self._scheduler = QtScheduler(self)
        self._showing_sample = False
        self._controller = ChartController(
            self,
            self._scheduler,
            fetcher=fetcher,
            snapshot_client=snapshot_client,
            selector=selector,
            executor=executor,
            config=self._config,
            on_change=self._on_controller_change,
        )
        self._timeframe_buttons[self._controller.timeframe].setChecked(True)
        self._controller.mount(asset_id, currency)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    @property
    def showing_sample_data(self) -> bool:
        return self._showing_sample

    @property
    def controller(self) -> ChartController:
        return self._controller

    def set_asset(self, asset_id: str, currency: Optional[str] = None) -> None:
        self._controller.select(asset_id=asset_id, currency=currency)

    def set_timeframe(self, timeframe: Timeframe) -> None:
        self._timeframe_buttons[timeframe].setChecked(True)
        self._controller.select(timeframe=timeframe)

    def teardown(self) -> None:
        self._controller.teardown()
        self._scheduler.cancel_all()

    # ------------------------------------------------------------------
    # Surface contract used by the controller
    # ------------------------------------------------------------------
    def surface_size(self) -> Tuple[int, int]:
        size = self._container.size()
        if size.width() <= 0 or size.height() <= 0:
            return self._config.chart.default_width, self._config.chart.default_height
        return size.width(), size.height()

    def attach_widget(self, widget: Any) -> None:
        self._backend_layout.addWidget(widget)

    def detach_widget(self, widget: Any) -> None:
        self._backend_layout.removeWidget(widget)
        widget.setParent(None)
        widget.deleteLater()

    def show_loading(self, message: str) -> None:
        self._message.setText(message)
        self._stack.setCurrentWidget(self._message)

    def show_backend(self) -> None:
        self._stack.setCurrentWidget(self._backend_area)

    def clear(self) -> None:
        self._fallback.clear()

    def show_scene(self, scene: FallbackScene) -> None:
        self._fallback.show_scene(scene)
        self._stack.setCurrentWidget(self._fallback)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _on_controller_change(self, controller: ChartController) -> None:
        snapshot = controller.snapshot
        if snapshot is not None:
            title = f"{snapshot.name} ({snapshot.symbol})"
            series = controller.series
            if series is not None and series.points:
                title += f" · {format_change(series.points[0].value, series.points[-1].value)}"
            self._title.setText(title)
        else:
            self._title.setText(controller.display_name or "Price chart")

        sample = controller.is_sample and controller.state is not ChartState.LOADING
        self._banner.setVisible(sample)
        if sample != self._showing_sample:
            self._showing_sample = sample
            self.sampleDataChanged.emit(sample)

    # ------------------------------------------------------------------
    # Qt events
    # ------------------------------------------------------------------
    def resizeEvent(self, event: QtGui.QResizeEvent) -> None:  # pragma: no cover - Qt callback
        super().resizeEvent(event)
        width, height = self.surface_size()
        self._controller.handle_resize(width, height)

    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # pragma: no cover - Qt callback
        try:
            self.teardown()
        finally:
            super().closeEvent(event)
