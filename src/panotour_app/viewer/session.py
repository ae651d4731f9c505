"""Per-viewpoint resources and panorama prefetching."""
from __future__ import annotations

from concurrent.futures import Future
from typing import Callable, Iterable, Optional

import numpy as np
from loguru import logger

from ..io.loader import load_equirectangular_image
from ..math.geometry import LookAngle
from ..models.camera_pose import CameraPose
from ..models.tour import Tour
from ..workers.task_runner import FunctionTask, TaskRunner
from .hotspots import DEFAULT_STYLE, HotspotStyle, PanoramaHotspot, project_panorama

ImageLoader = Callable[[str], np.ndarray]
Submit = Callable[[FunctionTask], Future]


class PanoramaPrefetcher:
    """Background panorama loads, one future per viewpoint id.

    Futures that failed or were cancelled are replaced on the next request,
    so a retry after an image error goes back to disk.
    """

    def __init__(self, loader: ImageLoader = load_equirectangular_image, submit: Optional[Submit] = None) -> None:
        self._loader = loader
        self._submit = submit or TaskRunner().submit
        self._futures: dict[int, Future] = {}

    @property
    def pending_ids(self) -> tuple[int, ...]:
        return tuple(sorted(self._futures))

    def prefetch(self, pose: CameraPose) -> Future:
        future = self._futures.get(pose.id)
        if future is not None and not _is_failed(future):
            return future
        task = FunctionTask(self._loader, pose.image_ref)
        future = self._submit(task)
        self._futures[pose.id] = future
        logger.debug("Prefetching panorama {} ({})", pose.id, pose.image_ref)
        return future

    def image_for(self, pose: CameraPose, timeout: Optional[float] = None) -> np.ndarray:
        """Block until the panorama for ``pose`` is loaded and return it."""
        return self.prefetch(pose).result(timeout=timeout)

    def cancel(self, viewpoint_id: int) -> bool:
        future = self._futures.pop(viewpoint_id, None)
        if future is None:
            return False
        return future.cancel()

    def discard(self, viewpoint_id: int) -> None:
        """Forget a finished load so its image can be released."""
        self._futures.pop(viewpoint_id, None)

    def cancel_all(self, keep: Iterable[int] = ()) -> None:
        keep_ids = set(keep)
        for viewpoint_id in list(self._futures):
            if viewpoint_id not in keep_ids:
                self.cancel(viewpoint_id)


def _is_failed(future: Future) -> bool:
    if future.cancelled():
        return True
    return future.done() and future.exception() is not None


class ViewpointSession:
    """Resources owned by one active panorama viewpoint.

    Entering loads (or awaits the prefetch of) the panorama image, collects the
    neighbour viewpoints used as hotspots and starts prefetching their images.
    Leaving releases the image, clears the hotspots and cancels the
    neighbour prefetches, whether the session ended normally or not.
    """

    def __init__(
        self,
        tour: Tour,
        viewpoint_id: int,
        prefetcher: PanoramaPrefetcher,
        style: HotspotStyle = DEFAULT_STYLE,
        *,
        image_timeout: Optional[float] = None,
    ) -> None:
        self.tour = tour
        self.pose = tour.get(viewpoint_id)
        self.style = style
        self.image: Optional[np.ndarray] = None
        self.neighbors: tuple[CameraPose, ...] = ()
        self._prefetcher = prefetcher
        self._image_timeout = image_timeout
        self._prefetched: list[int] = []
        self._keep: set[int] = set()
        self._closed = False

    @property
    def viewpoint_id(self) -> int:
        return self.pose.id

    @property
    def closed(self) -> bool:
        return self._closed

    def __enter__(self) -> "ViewpointSession":
        try:
            self.image = self._prefetcher.image_for(self.pose, timeout=self._image_timeout)
            self.neighbors = tuple(self.tour.neighbors_of(self.pose.id, self.style.neighbor_count))
            for neighbor in self.neighbors:
                self._prefetcher.prefetch(neighbor)
                self._prefetched.append(neighbor.id)
        except BaseException:
            self.close()
            raise
        logger.info("Entered viewpoint {} ({}) with {} hotspots", self.pose.id, self.pose.label, len(self.neighbors))
        return self

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def keep_prefetch(self, viewpoint_id: int) -> None:
        """Do not cancel ``viewpoint_id``'s prefetch when this session closes."""
        self._keep.add(viewpoint_id)

    def hotspots(self, look: LookAngle) -> list[PanoramaHotspot]:
        if self._closed:
            return []
        return [project_panorama(self.pose, neighbor, look, self.style) for neighbor in self.neighbors]

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self.image = None
        self.neighbors = ()
        self._prefetcher.discard(self.pose.id)
        for viewpoint_id in self._prefetched:
            if viewpoint_id not in self._keep:
                self._prefetcher.cancel(viewpoint_id)
        self._prefetched.clear()
        logger.debug("Released viewpoint {}", self.pose.id)
