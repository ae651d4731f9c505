"""Tour navigation: active viewpoint, view mode and transition hand-off."""
from __future__ import annotations

from concurrent.futures import TimeoutError as FutureTimeoutError
from contextlib import ExitStack
from enum import Enum
import time
from typing import Callable, Optional

from loguru import logger

from ..math.geometry import LookAngle
from ..models.inspection import InspectionContext
from ..models.tour import Tour, UnknownViewpointError
from ..models.view_orientation import ViewLimits, ViewOrientation
from .hotspots import (
    DEFAULT_STYLE,
    HotspotStyle,
    OverheadMarker,
    PanoramaHotspot,
    overhead_camera_for,
    overhead_markers,
)
from .session import PanoramaPrefetcher, ViewpointSession
from .transition import Switching, TransitionConfig, TransitionController

SwitchListener = Callable[[int], None]


class ViewMode(Enum):
    OVERHEAD = "overhead"
    PANORAMA = "panorama"


class TourNavigator:
    """Host-side glue between the widgets and the navigation core.

    Owns at most one :class:`ViewpointSession` at a time: the previous one is
    closed before the next is opened. Owns the :class:`ViewOrientation` and
    :class:`TransitionController` of the current panorama visit; both are
    created on :meth:`enter` and dropped on :meth:`escape`, while yaw and pitch
    carry over between viewpoints within a visit.
    """

    def __init__(
        self,
        tour: Tour,
        *,
        prefetcher: Optional[PanoramaPrefetcher] = None,
        style: HotspotStyle = DEFAULT_STYLE,
        transition_config: Optional[TransitionConfig] = None,
        limits: Optional[ViewLimits] = None,
        clock: Callable[[], float] = time.monotonic,
        inspection: Optional[InspectionContext] = None,
        image_timeout: Optional[float] = None,
    ) -> None:
        self.tour = tour
        self.style = style
        self.transition_config = transition_config or TransitionConfig()
        self.limits = limits or ViewLimits()
        self.mode = ViewMode.OVERHEAD
        self.current_id: Optional[int] = None
        self.last_visited_id: Optional[int] = None
        self.error: Optional[str] = None
        self.orientation: Optional[ViewOrientation] = None
        self.controller: Optional[TransitionController] = None

        self._prefetcher = prefetcher or PanoramaPrefetcher()
        self._clock = clock
        self._inspection = inspection
        self._image_timeout = image_timeout
        self._stack = ExitStack()
        self._session: Optional[ViewpointSession] = None
        self._pending: Optional[tuple[int, Optional[LookAngle], Optional[float]]] = None
        self._listeners: list[SwitchListener] = []
        self._frame_time: Optional[float] = None

    # ------------------------------------------------------------------
    @property
    def overhead_anchor_id(self) -> Optional[int]:
        """Viewpoint the overhead markers are sized and highlighted against."""
        return self.current_id if self.current_id is not None else self.last_visited_id

    @property
    def session(self) -> Optional[ViewpointSession]:
        return self._session

    def add_switch_listener(self, listener: SwitchListener) -> None:
        self._listeners.append(listener)

    def enter(self, viewpoint_id: int) -> bool:
        """Open the panorama of ``viewpoint_id`` from the overhead view."""
        self.tour.get(viewpoint_id)
        if self.mode is ViewMode.PANORAMA:
            self.escape()

        self.orientation = ViewOrientation(
            field_of_view=self.transition_config.normal_fov, limits=self.limits
        )
        self.controller = TransitionController(
            self.orientation,
            self._on_viewpoint_switch,
            tour=self.tour,
            config=self.transition_config,
            clock=self._clock,
            inspection=self._inspection,
        )
        self.mode = ViewMode.PANORAMA
        self._record("enter", viewpoint_id=viewpoint_id)
        self._on_viewpoint_switch(viewpoint_id)
        return self.error is None

    def escape(self) -> None:
        """Leave the panorama and return to the overhead view."""
        if self.controller is not None:
            self.controller.cancel()
        self._close_session()
        self._prefetcher.cancel_all()
        self.mode = ViewMode.OVERHEAD
        self.current_id = None
        self.error = None
        self._pending = None
        self.orientation = None
        self.controller = None
        self._record("escape")

    def activate_hotspot(self, viewpoint_id: int) -> bool:
        """Start the animated transition towards a clicked hotspot."""
        if self.controller is None or self._session is None:
            return False
        hotspot = next((h for h in self.hotspots() if h.viewpoint_id == viewpoint_id), None)
        angle = hotspot.angle if hotspot is not None else None
        distance = hotspot.distance if hotspot is not None else None
        return self._request(viewpoint_id, angle, distance)

    def switch_to(self, viewpoint_id: int) -> bool:
        """Jump to ``viewpoint_id`` keeping the current look direction."""
        if self.controller is None:
            return self.enter(viewpoint_id)
        return self._request(viewpoint_id, None, None)

    def retry(self) -> bool:
        """Repeat a viewpoint switch that failed to load its panorama."""
        if self._pending is None:
            return False
        target_id, angle, fov = self._pending
        self._on_viewpoint_switch(target_id, angle, fov)
        return self.error is None

    # ------------------------------------------------------------------
    def frame(self, now: Optional[float] = None) -> list[PanoramaHotspot]:
        """Per-frame update; returns the hotspots to draw this frame."""
        if self.controller is not None:
            self._frame_time = now
            try:
                self.controller.tick(now)
            finally:
                self._frame_time = None
        return self.hotspots()

    def hotspots(self) -> list[PanoramaHotspot]:
        if self._session is None or self.orientation is None:
            return []
        return self._session.hotspots(self.orientation.angle)

    def overhead_markers(self, width: int, height: int) -> list[OverheadMarker]:
        camera = overhead_camera_for(self.tour, width, height)
        return overhead_markers(self.tour, camera, self.overhead_anchor_id, self.style)

    def rotate(self, dx_px: float, dy_px: float) -> bool:
        if self.orientation is None:
            return False
        return self.orientation.rotate(dx_px, dy_px)

    def zoom_wheel(self, wheel_delta: float) -> bool:
        if self.orientation is None:
            return False
        return self.orientation.zoom_wheel(wheel_delta)

    @property
    def overlay_opacity(self) -> float:
        return self.controller.opacity if self.controller is not None else 1.0

    # ------------------------------------------------------------------
    def _request(self, viewpoint_id: int, angle: Optional[LookAngle], distance: Optional[float]) -> bool:
        assert self.controller is not None
        try:
            return self.controller.request_navigation(viewpoint_id, angle, distance)
        except UnknownViewpointError as exc:
            logger.error("Navigation aborted: {}", exc)
            self.error = str(exc)
            return False

    def _on_viewpoint_switch(
        self,
        target_id: int,
        current_angle: Optional[LookAngle] = None,
        incoming_fov: Optional[float] = None,
    ) -> None:
        """Swap the active session; the only callback the controller emits.

        ``current_angle`` is applied to the orientation when no transition owns
        it, so a retried direct switch lands on the look direction it was
        requested with. During an animated transition the controller has
        already turned the view there.
        """
        self._pending = (target_id, current_angle, incoming_fov)
        if self._session is not None:
            self._session.keep_prefetch(target_id)
        self._close_session()

        try:
            session = ViewpointSession(
                self.tour,
                target_id,
                self._prefetcher,
                self.style,
                image_timeout=self._image_timeout,
            )
            self._session = self._stack.enter_context(session)
        except (OSError, FutureTimeoutError) as exc:
            self._session = None
            self.error = f"Could not load panorama for viewpoint {target_id}: {exc}"
            logger.error(self.error)
            self._record("load_failed", viewpoint_id=target_id)
            return

        self.error = None
        self._pending = None
        self.current_id = target_id
        self.last_visited_id = target_id
        if self.orientation is not None and current_angle is not None and not self.orientation.is_claimed:
            self.orientation.look_at(current_angle)
        if self.controller is not None and isinstance(self.controller.state, Switching):
            self.controller.begin_incoming(self._frame_time)
        self._record("switched", viewpoint_id=target_id, incoming_fov=incoming_fov)
        for listener in list(self._listeners):
            listener(target_id)
        if self.orientation is not None:
            self.orientation.publish()

    def _close_session(self) -> None:
        self._stack.close()
        self._session = None

    def _record(self, name: str, **fields) -> None:
        if self._inspection is not None:
            self._inspection.record(f"navigator.{name}", **fields)
