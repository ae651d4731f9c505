"""Animated hand-off between two viewpoints.

A hotspot click walks the controller through

    Idle -> Rotating -> ZoomingIn -> Switching -> ZoomingOut -> Idle

Rotating turns the current panorama towards the target. ZoomingIn narrows the
field of view and fades the panorama, reaching the zoomed fov at the hand-off
point (half way). There the host is asked to switch viewpoints and is
given a mirrored, wider field of view for the incoming panorama. Once the
host has built the new panorama it calls
:meth:`TransitionController.begin_incoming`, and ZoomingOut eases back to the
normal field of view.

The controller never sleeps or schedules timers; the render loop calls
:meth:`TransitionController.tick` once per frame and every value is derived
from elapsed time.
"""
from __future__ import annotations

from dataclasses import dataclass
import time
from typing import Callable, Optional, Protocol, Union

import numpy as np
from loguru import logger

from ..math.geometry import AngleDelta, LookAngle, shortest_path
from ..models.inspection import InspectionContext
from ..models.tour import Tour, UnknownViewpointError
from ..models.view_orientation import ViewOrientation


class ViewpointSwitchCallback(Protocol):
    def __call__(
        self,
        target_id: int,
        current_angle: Optional[LookAngle] = None,
        incoming_fov: Optional[float] = None,
    ) -> None: ...


@dataclass(slots=True, frozen=True)
class TransitionConfig:
    normal_fov: float = 75.0
    rotate_duration: float = 0.8  # seconds
    zoom_in_duration: float = 2.0
    zoom_out_duration: float = 2.0
    min_zoom_amount: float = 10.0  # degrees of fov removed for far targets
    max_zoom_amount: float = 35.0  # degrees of fov removed for near targets
    max_distance: float = 10.0
    handoff_progress: float = 0.5
    min_opacity: float = 0.5


# ----------------------------------------------------------------------
# Easing and zoom maths


def ease_in_out_cubic(t: float) -> float:
    if t < 0.5:
        return 4.0 * t * t * t
    return 1.0 - ((-2.0 * t + 2.0) ** 3) / 2.0


def ease_in_out_quad(t: float) -> float:
    if t < 0.5:
        return 2.0 * t * t
    return 1.0 - ((-2.0 * t + 2.0) ** 2) / 2.0


def ease_out_quad(t: float) -> float:
    return 1.0 - (1.0 - t) * (1.0 - t)


def calculate_zoom_fov(distance: Optional[float], config: TransitionConfig = TransitionConfig()) -> float:
    """Field of view to zoom into before leaving for a target ``distance`` away.

    The zoom amount shrinks linearly from ``max_zoom_amount`` at distance 0 to
    ``min_zoom_amount`` at ``max_distance`` and beyond, so the result grows
    with distance. An unknown distance zooms by the minimum amount.
    """
    if distance is None or config.max_distance <= 0.0:
        ratio = 1.0
    else:
        ratio = float(np.clip(distance / config.max_distance, 0.0, 1.0))
    amount = config.max_zoom_amount - ratio * (config.max_zoom_amount - config.min_zoom_amount)
    amount = float(np.clip(amount, config.min_zoom_amount, config.max_zoom_amount))
    return config.normal_fov - amount


def symmetric_fov(target_fov: float, normal_fov: float = 75.0) -> float:
    """Mirror ``target_fov`` around ``normal_fov`` for the incoming panorama."""
    return normal_fov + (normal_fov - target_fov)


# ----------------------------------------------------------------------
# States


@dataclass(slots=True, frozen=True)
class Idle:
    pass


@dataclass(slots=True, frozen=True)
class Rotating:
    target: LookAngle
    on_done: Callable[[float], None]
    start: LookAngle
    delta: AngleDelta
    started_at: float
    target_id: int
    distance: Optional[float]


@dataclass(slots=True, frozen=True)
class ZoomingIn:
    target_fov: float
    on_halfway: Callable[[float], None]
    start_fov: float
    started_at: float
    target_id: int
    target_angle: LookAngle


@dataclass(slots=True, frozen=True)
class Switching:
    target_id: int
    target_angle: LookAngle
    incoming_fov: float


@dataclass(slots=True, frozen=True)
class ZoomingOut:
    from_fov: float
    started_at: float


TransitionState = Union[Idle, Rotating, ZoomingIn, Switching, ZoomingOut]

IDLE = Idle()


class TransitionController:
    """Drives one panorama session's viewpoint transitions.

    While any state other than :class:`Idle` is active the controller owns the
    :class:`ViewOrientation`, so pointer rotation and zoom are dropped. A click
    that arrives during a transition is ignored.
    """

    def __init__(
        self,
        orientation: ViewOrientation,
        on_viewpoint_switch: ViewpointSwitchCallback,
        *,
        tour: Optional[Tour] = None,
        config: Optional[TransitionConfig] = None,
        clock: Callable[[], float] = time.monotonic,
        inspection: Optional[InspectionContext] = None,
    ) -> None:
        self.orientation = orientation
        self.config = config or TransitionConfig()
        self.tour = tour
        self._on_viewpoint_switch = on_viewpoint_switch
        self._clock = clock
        self._inspection = inspection
        self._state: TransitionState = IDLE
        self._opacity = 1.0

    # ------------------------------------------------------------------
    @property
    def state(self) -> TransitionState:
        return self._state

    @property
    def opacity(self) -> float:
        """Overlay opacity of the visible panorama."""
        return self._opacity

    @property
    def is_active(self) -> bool:
        return not isinstance(self._state, Idle)

    # ------------------------------------------------------------------
    def request_navigation(
        self,
        target_id: int,
        target_angle: Optional[LookAngle] = None,
        distance: Optional[float] = None,
        now: Optional[float] = None,
    ) -> bool:
        """Handle a hotspot click.

        Returns ``False`` when the click is ignored because a transition is
        already running.

        Raises
        ------
        UnknownViewpointError
            If ``target_id`` is not in the tour. The controller is back in
            :class:`Idle` when this propagates.
        """
        if self.is_active:
            logger.debug("Ignoring navigation to {} during {}", target_id, type(self._state).__name__)
            self._record("navigation_ignored", target_id=target_id, state=type(self._state).__name__)
            return False

        if self.tour is not None and target_id not in self.tour:
            self._reset()
            self._record("navigation_failed", target_id=target_id)
            raise UnknownViewpointError(target_id)

        current_angle = self.orientation.angle
        if target_angle is None:
            self._record("switch_direct", target_id=target_id)
            self._on_viewpoint_switch(target_id, current_angle, None)
            return True

        now = self._now(now)
        self.orientation.claim(self)
        self._state = Rotating(
            target=target_angle,
            on_done=lambda at: self._start_zoom_in(at),
            start=current_angle,
            delta=shortest_path(current_angle, target_angle),
            started_at=now,
            target_id=target_id,
            distance=distance,
        )
        self._record("rotating", target_id=target_id, target_yaw=target_angle.yaw, target_pitch=target_angle.pitch)
        return True

    def tick(self, now: Optional[float] = None) -> TransitionState:
        """Advance the animation to ``now``; call once per rendered frame."""
        now = self._now(now)
        state = self._state
        if isinstance(state, Rotating):
            self._step_rotating(state, now)
        elif isinstance(state, ZoomingIn):
            self._step_zooming_in(state, now)
        elif isinstance(state, ZoomingOut):
            self._step_zooming_out(state, now)
        return self._state

    def begin_incoming(self, now: Optional[float] = None) -> None:
        """Start zooming out on the freshly built incoming panorama."""
        state = self._state
        if not isinstance(state, Switching):
            raise RuntimeError(f"begin_incoming called in {type(state).__name__}")
        self.orientation.apply(self, field_of_view=state.incoming_fov)
        self._opacity = self.config.min_opacity
        self._state = ZoomingOut(from_fov=state.incoming_fov, started_at=self._now(now))
        self._record("zooming_out", from_fov=state.incoming_fov)

    def cancel(self) -> None:
        """Abort any transition and restore free interaction."""
        if self.is_active:
            self._record("cancelled", state=type(self._state).__name__)
        if isinstance(self._state, (ZoomingIn, Switching, ZoomingOut)):
            self.orientation.apply(self, field_of_view=self.config.normal_fov)
        self._reset()

    # ------------------------------------------------------------------
    def _step_rotating(self, state: Rotating, now: float) -> None:
        t = self._progress(now - state.started_at, self.config.rotate_duration)
        eased = ease_in_out_cubic(t)
        self.orientation.apply(
            self,
            yaw=state.start.yaw + state.delta.d_lon * eased,
            pitch=state.start.pitch + state.delta.d_lat * eased,
        )
        if t >= 1.0:
            state.on_done(now)

    def _start_zoom_in(self, now: float) -> None:
        state = self._state
        assert isinstance(state, Rotating)
        target_fov = calculate_zoom_fov(state.distance, self.config)
        self._state = ZoomingIn(
            target_fov=target_fov,
            on_halfway=lambda at: self._hand_off(at),
            start_fov=self.orientation.field_of_view,
            started_at=now,
            target_id=state.target_id,
            target_angle=state.target,
        )
        self._record("zooming_in", target_fov=target_fov, distance=state.distance)

    def _step_zooming_in(self, state: ZoomingIn, now: float) -> None:
        t = self._progress(now - state.started_at, self.config.zoom_in_duration)
        # Fov and fade both finish at the handoff: the outgoing panorama sits at
        # target_fov and min_opacity when the switch fires.
        handoff = self.config.handoff_progress
        phase = min(1.0, t / handoff) if handoff > 0.0 else 1.0
        eased = ease_in_out_quad(phase)
        fov = state.start_fov + (state.target_fov - state.start_fov) * eased
        self.orientation.apply(self, field_of_view=fov)
        self._opacity = 1.0 - (1.0 - self.config.min_opacity) * phase

        if t >= handoff:
            state.on_halfway(now)

    def _hand_off(self, now: float) -> None:
        state = self._state
        assert isinstance(state, ZoomingIn)
        incoming = symmetric_fov(state.target_fov, self.config.normal_fov)
        self._opacity = self.config.min_opacity
        self._state = Switching(
            target_id=state.target_id,
            target_angle=state.target_angle,
            incoming_fov=incoming,
        )
        self._record("switching", target_id=state.target_id, incoming_fov=incoming)
        self._on_viewpoint_switch(state.target_id, state.target_angle, incoming)

    def _step_zooming_out(self, state: ZoomingOut, now: float) -> None:
        t = self._progress(now - state.started_at, self.config.zoom_out_duration)
        eased = ease_out_quad(t)
        fov = state.from_fov + (self.config.normal_fov - state.from_fov) * eased
        self.orientation.apply(self, field_of_view=fov)
        self._opacity = self.config.min_opacity + (1.0 - self.config.min_opacity) * eased
        if t >= 1.0:
            self._record("idle")
            self._reset()
            self.orientation.publish()

    def _reset(self) -> None:
        self._state = IDLE
        self._opacity = 1.0
        self.orientation.release(self)

    def _progress(self, elapsed: float, duration: float) -> float:
        if duration <= 0.0:
            return 1.0
        return float(np.clip(elapsed / duration, 0.0, 1.0))

    def _now(self, now: Optional[float]) -> float:
        return self._clock() if now is None else now

    def _record(self, name: str, **fields) -> None:
        if self._inspection is not None:
            self._inspection.record(f"transition.{name}", **fields)
