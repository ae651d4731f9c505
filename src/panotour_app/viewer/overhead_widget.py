"""Overhead view of the tour with clickable viewpoint markers."""
from __future__ import annotations

import math
from typing import Optional

from PyQt6.QtCore import QPointF, Qt, pyqtSignal
from PyQt6.QtGui import QMouseEvent, QPainter, QPen
from PyQt6.QtWidgets import QWidget

from ..ui.theme import MARKER_COLOR, MARKER_CURRENT_COLOR, OVERHEAD_BACKGROUND, OVERLAY_TEXT_COLOR
from .hotspots import OverheadMarker, filter_overlapping
from .navigator import TourNavigator

MIN_MARKER_SEPARATION_PX = 50.0


class OverheadWidget(QWidget):
    """Draws every viewpoint as a disc seen from above the tour."""

    viewpointSelected = pyqtSignal(int)

    def __init__(self, navigator: TourNavigator, parent=None) -> None:
        super().__init__(parent)
        self._navigator = navigator
        self._markers: list[OverheadMarker] = []
        self._hovered_id: Optional[int] = None
        self.setMouseTracking(True)
        self.setMinimumSize(320, 240)

    def refresh(self) -> None:
        markers = self._navigator.overhead_markers(max(1, self.width()), max(1, self.height()))
        current = self._navigator.overhead_anchor_id
        markers.sort(key=lambda marker: marker.viewpoint_id != current)
        self._markers = filter_overlapping(markers, MIN_MARKER_SEPARATION_PX)
        self.update()

    def resizeEvent(self, event) -> None:  # noqa: N802
        super().resizeEvent(event)
        self.refresh()

    def showEvent(self, event) -> None:  # noqa: N802
        super().showEvent(event)
        self.refresh()

    def paintEvent(self, event) -> None:  # noqa: N802
        painter = QPainter(self)
        painter.setRenderHint(QPainter.RenderHint.Antialiasing)
        painter.fillRect(self.rect(), OVERHEAD_BACKGROUND)
        current = self._navigator.overhead_anchor_id
        for marker in self._markers:
            color = MARKER_CURRENT_COLOR if marker.viewpoint_id == current else MARKER_COLOR
            radius = marker.size / 2.0
            center = QPointF(marker.x, marker.y)
            pen_width = 3 if marker.viewpoint_id == self._hovered_id else 1
            painter.setPen(QPen(OVERLAY_TEXT_COLOR, pen_width))
            painter.setBrush(color)
            painter.drawEllipse(center, radius, radius)
            label = self._navigator.tour.get(marker.viewpoint_id).label
            painter.drawText(int(marker.x + radius + 4), int(marker.y + 4), label)
        painter.setPen(OVERLAY_TEXT_COLOR)
        painter.drawText(16, self.height() - 16, f"{len(self._navigator.tour)} viewpoints | click a marker to enter")
        painter.end()

    def mouseMoveEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        hit = self._marker_at(event.position())
        hovered = hit.viewpoint_id if hit is not None else None
        if hovered != self._hovered_id:
            self._hovered_id = hovered
            self.setCursor(
                Qt.CursorShape.PointingHandCursor if hovered is not None else Qt.CursorShape.ArrowCursor
            )
            self.update()
        super().mouseMoveEvent(event)

    def mouseReleaseEvent(self, event: QMouseEvent) -> None:  # noqa: N802
        if event.button() == Qt.MouseButton.LeftButton:
            hit = self._marker_at(event.position())
            if hit is not None:
                self.viewpointSelected.emit(hit.viewpoint_id)
        super().mouseReleaseEvent(event)

    def _marker_at(self, pos: QPointF) -> Optional[OverheadMarker]:
        best: Optional[OverheadMarker] = None
        best_distance = math.inf
        for marker in self._markers:
            distance = math.hypot(marker.x - pos.x(), marker.y - pos.y())
            if distance <= marker.size / 2.0 and distance < best_distance:
                best, best_distance = marker, distance
        return best
