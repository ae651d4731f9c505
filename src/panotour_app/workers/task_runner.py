"""Utilities for running functions in background threads."""
from __future__ import annotations

from concurrent.futures import Future
import traceback
from typing import Any, Callable

from PyQt6.QtCore import QObject, QRunnable, QThreadPool, pyqtSignal


class TaskSignals(QObject):
    """Signals available from a background task."""

    finished = pyqtSignal(object)
    failed = pyqtSignal(str)


class FunctionTask(QRunnable):
    """Wrap a callable for execution in the Qt thread pool.

    The outcome is delivered both through :attr:`signals` (for widgets) and
    through :attr:`future`, which callers can cancel while the task is still
    queued or block on with ``future.result()``.
    """

    def __init__(self, fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
        super().__init__()
        self.fn = fn
        self.args = args
        self.kwargs = kwargs
        self.signals = TaskSignals()
        self.future: Future = Future()

    def run(self) -> None:
        if not self.future.set_running_or_notify_cancel():
            return
        try:
            result = self.fn(*self.args, **self.kwargs)
        except Exception as exc:  # noqa: BLE001
            tb = traceback.format_exc()
            self.future.set_exception(exc)
            self.signals.failed.emit(f"{exc}\n{tb}")
        else:
            self.future.set_result(result)
            self.signals.finished.emit(result)


class TaskRunner:
    """Thin wrapper around QThreadPool for convenience."""

    def __init__(self, max_threads: int | None = None) -> None:
        self._pool = QThreadPool.globalInstance()
        if max_threads is not None:
            self._pool.setMaxThreadCount(max_threads)

    def submit(self, task: FunctionTask) -> Future:
        self._pool.start(task)
        return task.future
