"""Main window hosting the asset price chart."""

from __future__ import annotations

from typing import Optional, Sequence, Tuple

from PyQt6 import QtCore, QtGui, QtWidgets

from core.config import AppConfig
from core.models import Timeframe

from .components import PriceChartWidget

__all__ = ["MainWindow"]


class MainWindow(QtWidgets.QMainWindow):
    """Desktop shell with an asset picker and the sample-data status."""

    def __init__(
        self,
        asset_id: str = "bitcoin",
        currency: str = "USD",
        timeframe: Optional[Timeframe] = None,
        *,
        config: Optional[AppConfig] = None,
        chart_widget: Optional[PriceChartWidget] = None,
        parent: Optional[QtWidgets.QWidget] = None,
    ) -> None:
        super().__init__(parent)
        self.setWindowTitle("PriceLens")
        self.resize(960, 600)

        if chart_widget is None:
            chart_widget = PriceChartWidget(asset_id, currency, self, config=config)
        self._chart_widget = chart_widget
        self._chart_widget.sampleDataChanged.connect(self._on_sample_data_changed)
        if timeframe is not None:
            self._chart_widget.set_timeframe(timeframe)

        self._data_label = QtWidgets.QLabel("Live data")
        self.statusBar().addPermanentWidget(self._data_label)

        self._setup_toolbar(asset_id, currency)
        self.setCentralWidget(self._chart_widget)

    # ------------------------------------------------------------------
    # UI construction helpers
    # ------------------------------------------------------------------
    def _setup_toolbar(self, asset_id: str, currency: str) -> None:
        toolbar = QtWidgets.QToolBar("Controls", self)
        toolbar.setMovable(False)
        self.addToolBar(QtCore.Qt.ToolBarArea.TopToolBarArea, toolbar)

        self._asset_edit = QtWidgets.QLineEdit(asset_id, self)
        self._asset_edit.setPlaceholderText("Asset id, e.g. bitcoin")
        self._asset_edit.returnPressed.connect(self._apply_selection)

        self._currency_combo = QtWidgets.QComboBox(self)
        for label, value in self._currency_options():
            self._currency_combo.addItem(label, value)
        index = self._currency_combo.findData(currency.upper())
        self._currency_combo.setCurrentIndex(max(index, 0))
        self._currency_combo.currentIndexChanged.connect(lambda _index: self._apply_selection())

        self._show_button = QtWidgets.QPushButton("Show", self)
        self._show_button.setShortcut(QtGui.QKeySequence("Ctrl+R"))
        self._show_button.clicked.connect(self._apply_selection)

        toolbar.addWidget(QtWidgets.QLabel("Asset", self))
        toolbar.addWidget(self._asset_edit)
        toolbar.addSeparator()
        toolbar.addWidget(QtWidgets.QLabel("Currency", self))
        toolbar.addWidget(self._currency_combo)
        toolbar.addSeparator()
        toolbar.addWidget(self._show_button)

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------
    def _apply_selection(self) -> None:
        asset_id = self._asset_edit.text().strip().lower()
        if not asset_id:
            self.statusBar().showMessage("Enter an asset id to chart.", 5000)
            return
        self._chart_widget.set_asset(asset_id, str(self._currency_combo.currentData()))

    def _on_sample_data_changed(self, sample: bool) -> None:
        self._data_label.setText("Sample data" if sample else "Live data")
        if sample:
            self.statusBar().showMessage("Live prices unavailable, showing sample data.", 5000)

    @staticmethod
    def _currency_options() -> Sequence[Tuple[str, str]]:
        return (
            ("US Dollar", "USD"),
            ("Euro", "EUR"),
            ("British Pound", "GBP"),
            ("Japanese Yen", "JPY"),
            ("Indian Rupee", "INR"),
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------
    def closeEvent(self, event: QtGui.QCloseEvent) -> None:  # pragma: no cover - Qt callback
        try:
            self._chart_widget.teardown()
        finally:
            super().closeEvent(event)
