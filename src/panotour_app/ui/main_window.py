"""Main application window."""
from __future__ import annotations

from dataclasses import replace
from pathlib import Path
from typing import Optional

from loguru import logger
from PyQt6.QtGui import QAction
from PyQt6.QtWidgets import QFileDialog, QMainWindow, QMessageBox, QStackedWidget

from ..io.loader import load_tour
from ..models.tour import Tour, UnknownViewpointError
from ..viewer.hotspots import DEFAULT_STYLE, HotspotStyle
from ..viewer.navigator import TourNavigator, ViewMode
from ..viewer.overhead_widget import OverheadWidget
from ..viewer.panorama_widget import PanoramaWidget
from ..workers.task_runner import FunctionTask, TaskRunner

OVERHEAD_PAGE = 0
PANORAMA_PAGE = 1


class MainWindow(QMainWindow):
    """Overhead and panorama views stacked around one navigator."""

    def __init__(
        self,
        data_dir: Optional[Path] = None,
        *,
        initial_viewpoint: Optional[int] = None,
        neighbor_count: Optional[int] = None,
    ) -> None:
        super().__init__()
        self.setWindowTitle("Panotour")
        self.resize(1280, 800)

        self._task_runner = TaskRunner()
        self._active_tasks: set[FunctionTask] = set()
        self._initial_viewpoint = initial_viewpoint
        self._style: HotspotStyle = DEFAULT_STYLE
        if neighbor_count is not None:
            self._style = replace(DEFAULT_STYLE, neighbor_count=neighbor_count)

        self.navigator: Optional[TourNavigator] = None
        self._stack = QStackedWidget(self)
        self.setCentralWidget(self._stack)
        self.overhead_widget: Optional[OverheadWidget] = None
        self.panorama_widget: Optional[PanoramaWidget] = None

        self._create_menu_bar()
        self.statusBar().showMessage("Open a tour directory to begin")
        if data_dir is not None:
            self.open_tour(data_dir)

    def _create_menu_bar(self) -> None:
        file_menu = self.menuBar().addMenu("File")

        open_action = QAction("Open Tour...", self)
        open_action.triggered.connect(self._on_open_tour_clicked)
        file_menu.addAction(open_action)

        file_menu.addSeparator()

        exit_action = QAction("Quit", self)
        exit_action.triggered.connect(self.close)
        file_menu.addAction(exit_action)

    # ------------------------------------------------------------------
    # Data loading
    def _on_open_tour_clicked(self) -> None:
        folder = QFileDialog.getExistingDirectory(self, "Select Tour Directory", "")
        if folder:
            self.open_tour(Path(folder))

    def open_tour(self, data_dir: Path) -> None:
        self.statusBar().showMessage(f"Loading tour from {data_dir}...")
        task = FunctionTask(load_tour, data_dir)
        self._active_tasks.add(task)
        task.signals.finished.connect(lambda result, t=task: self._on_tour_loaded(t, result))
        task.signals.failed.connect(lambda message, t=task: self._on_tour_failed(t, message))
        self._task_runner.submit(task)

    def _on_tour_loaded(self, task: FunctionTask, tour: Tour) -> None:
        self._active_tasks.discard(task)
        self._install_navigator(tour)
        self.statusBar().showMessage(f"Loaded tour with {len(tour)} viewpoints", 4000)
        if self._initial_viewpoint is not None:
            self._enter_viewpoint(self._initial_viewpoint)

    def _on_tour_failed(self, task: FunctionTask, message: str) -> None:
        self._active_tasks.discard(task)
        logger.error("Tour load failed: {}", message)
        QMessageBox.critical(self, "Tour Load Failed", message.splitlines()[0] if message else "Unknown error")
        self.statusBar().showMessage("Tour load failed", 4000)

    def _install_navigator(self, tour: Tour) -> None:
        self._teardown_navigator()
        self.navigator = TourNavigator(tour, style=self._style)
        self.navigator.add_switch_listener(self._on_viewpoint_switched)

        self.overhead_widget = OverheadWidget(self.navigator, self)
        self.overhead_widget.viewpointSelected.connect(self._enter_viewpoint)
        self.panorama_widget = PanoramaWidget(self)
        self.panorama_widget.set_navigator(self.navigator)
        self.panorama_widget.escapeRequested.connect(self._return_to_overhead)

        self._stack.insertWidget(OVERHEAD_PAGE, self.overhead_widget)
        self._stack.insertWidget(PANORAMA_PAGE, self.panorama_widget)
        self._stack.setCurrentIndex(OVERHEAD_PAGE)

    def _teardown_navigator(self) -> None:
        if self.navigator is not None and self.navigator.mode is ViewMode.PANORAMA:
            self._return_to_overhead()
        for widget in (self.panorama_widget, self.overhead_widget):
            if widget is not None:
                self._stack.removeWidget(widget)
                widget.deleteLater()
        self.panorama_widget = None
        self.overhead_widget = None
        self.navigator = None

    # ------------------------------------------------------------------
    # Navigation
    def _enter_viewpoint(self, viewpoint_id: int) -> None:
        if self.navigator is None or self.panorama_widget is None:
            return
        try:
            entered = self.navigator.enter(viewpoint_id)
        except UnknownViewpointError as exc:
            QMessageBox.warning(self, "Unknown Viewpoint", str(exc))
            return
        if not entered:
            self.statusBar().showMessage(self.navigator.error or "Could not open viewpoint")
        self._stack.setCurrentIndex(PANORAMA_PAGE)
        self.panorama_widget.start()
        self.panorama_widget.setFocus()

    def _return_to_overhead(self) -> None:
        if self.navigator is None:
            return
        if self.panorama_widget is not None:
            self.panorama_widget.stop()
        self.navigator.escape()
        if self.overhead_widget is not None:
            self.overhead_widget.refresh()
        self._stack.setCurrentIndex(OVERHEAD_PAGE)
        self.statusBar().showMessage("Overview", 2000)

    def _on_viewpoint_switched(self, viewpoint_id: int) -> None:
        pose = self.navigator.tour.get(viewpoint_id)
        self.statusBar().showMessage(f"Viewpoint {pose.label} (id {viewpoint_id})")

    def closeEvent(self, event) -> None:  # noqa: N802
        self._teardown_navigator()
        super().closeEvent(event)
