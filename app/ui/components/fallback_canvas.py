"""QPainter widget that draws a :class:`FallbackScene`."""

from __future__ import annotations

from typing import Optional

from PyQt6 import QtCore, QtGui, QtWidgets

from core.rendering.fallback import FallbackScene, TextLabel

__all__ = ["FallbackCanvas"]

_BACKGROUND = QtGui.QColor("#FFFFFF")
_GRID = QtGui.QColor("#F1F5F9")
_LINE_TOP = QtGui.QColor("#3B82F6")
_LINE_BOTTOM = QtGui.QColor("#1D4ED8")
_AREA = QtGui.QColor(59, 130, 246, 26)
_VALUE_TEXT = QtGui.QColor("#64748B")
_TIME_TEXT = QtGui.QColor("#94A3B8")
_TITLE_TEXT = QtGui.QColor("#0F172A")
_POSITIVE = QtGui.QColor("#059669")
_NEGATIVE = QtGui.QColor("#DC2626")
_SAMPLE = QtGui.QColor("#D97706")


class FallbackCanvas(QtWidgets.QWidget):
    """Stateless painter: whatever scene it was last given is what it shows."""

    def __init__(self, parent: QtWidgets.QWidget | None = None) -> None:
        super().__init__(parent)
        self._scene: Optional[FallbackScene] = None
        self.setMinimumSize(240, 160)
        self.setSizePolicy(QtWidgets.QSizePolicy.Policy.Expanding, QtWidgets.QSizePolicy.Policy.Expanding)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def clear(self) -> None:
        self._scene = None
        self.update()

    def show_scene(self, scene: FallbackScene) -> None:
        self._scene = scene
        self.update()

    def scene(self) -> Optional[FallbackScene]:
        return self._scene

    # ------------------------------------------------------------------
    # Painting
    # ------------------------------------------------------------------
    def paintEvent(self, event: QtGui.QPaintEvent) -> None:  # pragma: no cover - exercised visually
        painter = QtGui.QPainter(self)
        try:
            painter.setRenderHint(QtGui.QPainter.RenderHint.Antialiasing)
            painter.fillRect(self.rect(), _BACKGROUND)
            if self._scene is not None:
                self._paint_scene(painter, self._scene)
        finally:
            painter.end()

    def _paint_scene(self, painter: QtGui.QPainter, scene: FallbackScene) -> None:
        left, top, right, bottom = scene.plot_rect

        painter.setPen(QtGui.QPen(_GRID, 1))
        for y in scene.horizontal_gridlines:
            painter.drawLine(QtCore.QPointF(left, y), QtCore.QPointF(right, y))
        for x in scene.vertical_gridlines:
            painter.drawLine(QtCore.QPointF(x, top), QtCore.QPointF(x, bottom))

        if scene.area_polygon:
            area = QtGui.QPolygonF([QtCore.QPointF(x, y) for x, y in scene.area_polygon])
            painter.setPen(QtCore.Qt.PenStyle.NoPen)
            painter.setBrush(_AREA)
            painter.drawPolygon(area)

        if len(scene.line_path) > 1:
            gradient = QtGui.QLinearGradient(0, top, 0, bottom)
            gradient.setColorAt(0.0, _LINE_TOP)
            gradient.setColorAt(1.0, _LINE_BOTTOM)
            pen = QtGui.QPen(QtGui.QBrush(gradient), 2)
            pen.setCapStyle(QtCore.Qt.PenCapStyle.RoundCap)
            pen.setJoinStyle(QtCore.Qt.PenJoinStyle.RoundJoin)
            painter.setPen(pen)
            painter.setBrush(QtCore.Qt.BrushStyle.NoBrush)
            painter.drawPolyline(QtGui.QPolygonF([QtCore.QPointF(x, y) for x, y in scene.line_path]))

        font = painter.font()
        font.setPointSize(9)
        painter.setFont(font)
        painter.setPen(_VALUE_TEXT)
        for label in scene.value_labels:
            self._draw_label(painter, label)
        painter.setPen(_TIME_TEXT)
        for label in scene.time_labels:
            self._draw_label(painter, label)

        self._paint_annotations(painter, scene)

    def _paint_annotations(self, painter: QtGui.QPainter, scene: FallbackScene) -> None:
        title_font = QtGui.QFont(painter.font())
        title_font.setPointSize(13)
        title_font.setBold(True)
        painter.setFont(title_font)
        painter.setPen(_TITLE_TEXT)
        painter.drawText(QtCore.QPointF(16, 24), scene.title)
        painter.drawText(
            QtCore.QRectF(0, 8, scene.width - 16, 22),
            int(QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter),
            scene.current_value,
        )

        small = QtGui.QFont(painter.font())
        small.setPointSize(9)
        small.setBold(False)
        painter.setFont(small)
        painter.setPen(_VALUE_TEXT)
        painter.drawText(QtCore.QPointF(16, 44), scene.subtitle)

        painter.setPen(_POSITIVE if scene.change_positive else _NEGATIVE)
        painter.drawText(
            QtCore.QRectF(0, 32, scene.width - 16, 18),
            int(QtCore.Qt.AlignmentFlag.AlignRight | QtCore.Qt.AlignmentFlag.AlignVCenter),
            scene.change,
        )

        indicator = _SAMPLE if scene.live_indicator == "SAMPLE" else _POSITIVE
        metrics = QtGui.QFontMetrics(small)
        text_width = metrics.horizontalAdvance(scene.live_indicator)
        x = scene.width / 2 - text_width / 2
        painter.setPen(QtCore.Qt.PenStyle.NoPen)
        painter.setBrush(indicator)
        painter.drawEllipse(QtCore.QPointF(x - 8, 20), 3.5, 3.5)
        painter.setPen(indicator)
        painter.drawText(QtCore.QPointF(x, 24), scene.live_indicator)

    @staticmethod
    def _draw_label(painter: QtGui.QPainter, label: TextLabel) -> None:
        metrics = painter.fontMetrics()
        width = metrics.horizontalAdvance(label.text)
        x = label.x
        if label.align == "right":
            x -= width
        elif label.align == "center":
            x -= width / 2
        painter.drawText(QtCore.QPointF(x, label.y), label.text)
