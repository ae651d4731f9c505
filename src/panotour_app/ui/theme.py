"""Application-wide theme helpers."""
from __future__ import annotations

from PyQt6.QtGui import QColor, QPalette

HOTSPOT_COLOR = QColor(255, 204, 64)
HOTSPOT_HOVER_COLOR = QColor(255, 255, 255)
MARKER_COLOR = QColor(76, 110, 245)
MARKER_CURRENT_COLOR = QColor(255, 120, 64)
OVERHEAD_BACKGROUND = QColor(18, 20, 24)
OVERLAY_TEXT_COLOR = QColor(235, 235, 235)


def build_dark_palette() -> QPalette:
    palette = QPalette()
    palette.setColor(QPalette.ColorRole.Window, QColor(30, 32, 36))
    palette.setColor(QPalette.ColorRole.WindowText, QColor(220, 220, 220))
    palette.setColor(QPalette.ColorRole.Base, QColor(24, 25, 28))
    palette.setColor(QPalette.ColorRole.Text, QColor(235, 235, 235))
    palette.setColor(QPalette.ColorRole.Button, QColor(40, 43, 48))
    palette.setColor(QPalette.ColorRole.ButtonText, QColor(235, 235, 235))
    palette.setColor(QPalette.ColorRole.Highlight, MARKER_COLOR)
    palette.setColor(QPalette.ColorRole.HighlightedText, QColor(255, 255, 255))
    return palette


def apply_dark_theme(app) -> None:
    """Apply the dark palette used by both tour views."""
    app.setPalette(build_dark_palette())
    app.setStyle("Fusion")
