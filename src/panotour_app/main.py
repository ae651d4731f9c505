"""Application bootstrap utilities."""
from __future__ import annotations

import argparse
import sys
from pathlib import Path
from typing import Optional

from PyQt6.QtCore import Qt
from PyQt6.QtGui import QGuiApplication
from PyQt6.QtWidgets import QApplication

from .logging import configure_logging
from .ui.main_window import MainWindow
from .ui.theme import apply_dark_theme


def _configure_high_dpi() -> None:
    """Configure high-DPI handling before QApplication instantiation."""
    QGuiApplication.setHighDpiScaleFactorRoundingPolicy(
        Qt.HighDpiScaleFactorRoundingPolicy.PassThrough
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="panotour", description="Walk through a panorama tour.")
    parser.add_argument("data_dir", nargs="?", type=Path, help="tour directory containing cameras.xml")
    parser.add_argument("--viewpoint", type=int, default=None, help="open this viewpoint id on start")
    parser.add_argument("--neighbors", type=int, default=None, help="hotspots shown per viewpoint")
    parser.add_argument("--verbose", action="store_true", help="enable debug logging")
    return parser


def main(argv: Optional[list[str]] = None) -> int:
    """Launch the panorama tour application."""
    argv = list(sys.argv if argv is None else argv)
    args = build_parser().parse_args(argv[1:])
    configure_logging("DEBUG" if args.verbose else "INFO")

    _configure_high_dpi()
    app = QApplication(argv)
    apply_dark_theme(app)

    window = MainWindow(args.data_dir, initial_viewpoint=args.viewpoint, neighbor_count=args.neighbors)
    window.show()

    return app.exec()


if __name__ == "__main__":
    sys.exit(main())
