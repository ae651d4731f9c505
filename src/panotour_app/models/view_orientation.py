"""Live look direction and zoom of the panorama camera."""
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Optional

import numpy as np
from loguru import logger

from ..math.geometry import AngleDelta, LookAngle, look_vector, shortest_path


@dataclass(slots=True, frozen=True)
class ViewLimits:
    """Bounds and input gains for free interaction."""

    min_pitch: float = -85.0
    max_pitch: float = 85.0
    min_fov: float = 10.0
    max_fov: float = 100.0
    default_fov: float = 75.0
    drag_sensitivity: float = 0.2  # degrees per pixel
    wheel_sensitivity: float = 0.05  # degrees per wheel unit


@dataclass(slots=True, frozen=True)
class OrientationSnapshot:
    yaw: float
    pitch: float
    field_of_view: float

    @property
    def angle(self) -> LookAngle:
        return LookAngle(self.yaw, self.pitch)


OrientationListener = Callable[[OrientationSnapshot], None]


class ViewOrientation:
    """Single source of truth for yaw, pitch and field of view.

    Pointer handlers call :meth:`rotate` and :meth:`zoom`. A scripted owner
    (the transition controller) takes exclusive write access with
    :meth:`claim`; while claimed, pointer input is dropped and only the owner
    may write through :meth:`apply`. Listeners are notified on
    :meth:`publish`, never implicitly, so per-frame animation writes do not
    flood the host.
    """

    def __init__(
        self,
        yaw: float = 0.0,
        pitch: float = 0.0,
        field_of_view: Optional[float] = None,
        limits: Optional[ViewLimits] = None,
    ) -> None:
        self.limits = limits or ViewLimits()
        self._yaw = float(yaw)
        self._pitch = self._clamp_pitch(float(pitch))
        fov = self.limits.default_fov if field_of_view is None else float(field_of_view)
        self._fov = self._clamp_fov(fov)
        self._owner: Optional[object] = None
        self._listeners: list[OrientationListener] = []

    # ------------------------------------------------------------------
    @property
    def yaw(self) -> float:
        return self._yaw

    @property
    def pitch(self) -> float:
        return self._pitch

    @property
    def field_of_view(self) -> float:
        return self._fov

    @property
    def display_yaw(self) -> float:
        """Yaw normalised to ``[0, 360)`` for display only."""
        return self._yaw % 360.0

    @property
    def angle(self) -> LookAngle:
        return LookAngle(self._yaw, self._pitch)

    def snapshot(self) -> OrientationSnapshot:
        return OrientationSnapshot(self._yaw, self._pitch, self._fov)

    def look_direction(self) -> np.ndarray:
        return look_vector(self._yaw, self._pitch)

    # ------------------------------------------------------------------
    def rotate(self, delta_yaw_px: float, delta_pitch_px: float, sensitivity: Optional[float] = None) -> bool:
        """Apply a pointer drag. Returns ``False`` if the orientation is claimed."""
        if self._owner is not None:
            logger.debug("Drag ignored while orientation is owned by {}", type(self._owner).__name__)
            return False
        gain = self.limits.drag_sensitivity if sensitivity is None else sensitivity
        self._yaw -= delta_yaw_px * gain
        self._pitch = self._clamp_pitch(self._pitch + delta_pitch_px * gain)
        return True

    def zoom(self, delta_fov: float) -> bool:
        """Apply a user zoom step, clamped to the free-zoom band."""
        if self._owner is not None:
            logger.debug("Zoom ignored while orientation is owned by {}", type(self._owner).__name__)
            return False
        self._fov = self._clamp_fov(self._fov + delta_fov)
        return True

    def zoom_wheel(self, wheel_delta: float) -> bool:
        return self.zoom(wheel_delta * self.limits.wheel_sensitivity)

    def look_at(self, angle: LookAngle) -> bool:
        """Jump to ``angle`` without animation (user-initiated)."""
        if self._owner is not None:
            return False
        self._yaw = float(angle.yaw)
        self._pitch = self._clamp_pitch(float(angle.pitch))
        return True

    # ------------------------------------------------------------------
    @property
    def owner(self) -> Optional[object]:
        return self._owner

    @property
    def is_claimed(self) -> bool:
        return self._owner is not None

    def claim(self, owner: object) -> None:
        if self._owner is not None and self._owner is not owner:
            raise RuntimeError("View orientation is already owned by another controller")
        self._owner = owner

    def release(self, owner: object) -> None:
        if self._owner is owner:
            self._owner = None

    def apply(
        self,
        owner: object,
        *,
        yaw: Optional[float] = None,
        pitch: Optional[float] = None,
        field_of_view: Optional[float] = None,
    ) -> None:
        """Scripted write by the current owner.

        The field of view is not clamped here so transitions can briefly leave
        the free-zoom band; pitch keeps its hard limits.
        """
        if self._owner is not owner:
            raise RuntimeError("Only the owning controller may drive the orientation")
        if yaw is not None:
            self._yaw = float(yaw)
        if pitch is not None:
            self._pitch = self._clamp_pitch(float(pitch))
        if field_of_view is not None:
            self._fov = float(field_of_view)

    # ------------------------------------------------------------------
    def subscribe(self, listener: OrientationListener) -> Callable[[], None]:
        """Register ``listener`` and return a callable that removes it."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def publish(self) -> OrientationSnapshot:
        snapshot = self.snapshot()
        for listener in list(self._listeners):
            listener(snapshot)
        return snapshot

    # ------------------------------------------------------------------
    @staticmethod
    def shortest_path(from_angle: LookAngle, to_angle: LookAngle) -> AngleDelta:
        return shortest_path(from_angle, to_angle)

    @staticmethod
    def look_vector(yaw: float, pitch: float) -> np.ndarray:
        return look_vector(yaw, pitch)

    def _clamp_pitch(self, pitch: float) -> float:
        return float(np.clip(pitch, self.limits.min_pitch, self.limits.max_pitch))

    def _clamp_fov(self, fov: float) -> float:
        return float(np.clip(fov, self.limits.min_fov, self.limits.max_fov))
