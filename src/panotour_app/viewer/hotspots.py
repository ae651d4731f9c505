"""Hotspot placement for the overhead view and the panorama view.

Everything here is a pure function of the current pose, the target pose and
the viewer state. Input handling and hit-testing stay in the widgets; this
module only says where a marker goes, how large and how opaque it is, and
whether it should be drawn this frame.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
import math
from typing import Iterable, Optional, Sequence

import numpy as np

from ..math.geometry import (
    LookAngle,
    angle_between,
    angles_from_vector,
    look_vector,
    quaternion_conjugate,
    rotate_by_quaternion,
)
from ..math.pose import Vector3
from ..models.camera_pose import CameraPose
from ..models.tour import Tour

# Quarter turn about the vertical: render forward (-Z) becomes panorama yaw 0
# (+X) and render right (+X) becomes yaw +90 (+Z). Y stays up.
PANORAMA_REMAP = np.array(
    [
        [0.0, 0.0, -1.0],
        [0.0, 1.0, 0.0],
        [1.0, 0.0, 0.0],
    ],
    dtype=np.float64,
)


@dataclass(slots=True, frozen=True)
class HotspotStyle:
    """Tunable placement and appearance of hotspots."""

    neighbor_count: int = 5
    min_distance: float = 0.5
    max_angular_spread: float = 90.0  # degrees from the look direction
    # panorama markers, pixels
    min_size: float = 12.0
    max_size: float = 40.0
    min_opacity: float = 0.2
    max_opacity: float = 0.9
    falloff_distance: float = 5.0
    falloff_blend: float = 0.5  # 0 = linear, 1 = pure power curve
    falloff_power: float = 2.0
    # overhead markers, pixels
    overhead_base_size: float = 40.0
    overhead_min_size: float = 20.0
    overhead_max_size: float = 60.0
    overhead_falloff: float = 0.5
    align_to_orientation: bool = False


DEFAULT_STYLE = HotspotStyle()


class MarkerStatus(Enum):
    ON_SCREEN = "on-screen"
    OFF_SCREEN = "off-screen"
    BEHIND = "behind"


@dataclass(slots=True, frozen=True)
class OverheadMarker:
    viewpoint_id: int
    x: Optional[float]
    y: Optional[float]
    size: float
    status: MarkerStatus

    @property
    def is_visible(self) -> bool:
        return self.status is MarkerStatus.ON_SCREEN


@dataclass(slots=True, frozen=True)
class PanoramaHotspot:
    viewpoint_id: int
    label: str
    yaw: float
    pitch: float
    distance: float
    size: float
    opacity: float
    visible: bool

    @property
    def angle(self) -> LookAngle:
        return LookAngle(self.yaw, self.pitch)


# ----------------------------------------------------------------------
# Overhead view


@dataclass(slots=True, frozen=True)
class OverheadCamera:
    """Perspective camera looking down on the tour."""

    eye: Vector3
    target: Vector3
    up: Vector3 = (0.0, 1.0, 0.0)
    fov_y: float = 50.0  # degrees
    width: int = 800
    height: int = 600
    near: float = 0.1
    far: float = 1000.0

    def view_matrix(self) -> np.ndarray:
        eye = np.asarray(self.eye, dtype=np.float64)
        forward = np.asarray(self.target, dtype=np.float64) - eye
        forward_norm = float(np.linalg.norm(forward))
        if forward_norm <= 1e-9:
            raise ValueError("Overhead camera eye and target coincide.")
        forward /= forward_norm

        right = np.cross(forward, np.asarray(self.up, dtype=np.float64))
        if float(np.linalg.norm(right)) <= 1e-9:
            # Looking straight along the up axis: pick a stable alternate.
            right = np.cross(forward, np.array([0.0, 0.0, -1.0]))
        right /= float(np.linalg.norm(right))
        up = np.cross(right, forward)

        view = np.eye(4, dtype=np.float64)
        view[0, :3] = right
        view[1, :3] = up
        view[2, :3] = -forward
        view[:3, 3] = -view[:3, :3] @ eye
        return view

    def projection_matrix(self) -> np.ndarray:
        aspect = max(1e-3, self.width / max(1, self.height))
        f = 1.0 / math.tan(math.radians(self.fov_y) / 2.0)
        near, far = self.near, self.far
        projection = np.zeros((4, 4), dtype=np.float64)
        projection[0, 0] = f / aspect
        projection[1, 1] = f
        projection[2, 2] = (far + near) / (near - far)
        projection[2, 3] = (2.0 * far * near) / (near - far)
        projection[3, 2] = -1.0
        return projection


def overhead_camera_for(tour: Tour, width: int, height: int, fov_y: float = 50.0) -> OverheadCamera:
    """Frame every viewpoint of ``tour`` from above and to the side."""
    stats = tour.statistics()
    max_dim = max((abs(value) for value in stats.extent), default=0.0) or 1.0
    distance = max_dim * 2.0
    cx, cy, cz = stats.center
    return OverheadCamera(
        eye=(cx + distance * 0.7, cy + distance * 0.8, cz + distance * 0.7),
        target=stats.center,
        fov_y=fov_y,
        width=width,
        height=height,
        near=max(1e-3, distance * 0.01),
        far=distance * 10.0,
    )


def overhead_marker_size(distance: Optional[float], style: HotspotStyle = DEFAULT_STYLE) -> float:
    """Marker diameter in pixels; nearer viewpoints read larger."""
    if distance is None:
        return style.overhead_base_size
    size = style.overhead_base_size / (distance * style.overhead_falloff + 1.0)
    return float(np.clip(size, style.overhead_min_size, style.overhead_max_size))


def project_overhead(
    target: CameraPose,
    camera: OverheadCamera,
    current: Optional[CameraPose] = None,
    style: HotspotStyle = DEFAULT_STYLE,
) -> OverheadMarker:
    """Project ``target`` into overhead-view pixel coordinates."""
    distance = current.distance_to(target) if current is not None else None
    size = overhead_marker_size(distance, style)

    point = np.append(target.position_array, 1.0)
    clip = camera.projection_matrix() @ camera.view_matrix() @ point
    w = float(clip[3])
    if w <= 1e-9:
        return OverheadMarker(target.id, None, None, size, MarkerStatus.BEHIND)

    ndc = clip[:3] / w
    x = (float(ndc[0]) + 1.0) * 0.5 * camera.width
    y = (1.0 - float(ndc[1])) * 0.5 * camera.height
    inside = abs(ndc[0]) <= 1.0 and abs(ndc[1]) <= 1.0 and -1.0 <= ndc[2] <= 1.0
    status = MarkerStatus.ON_SCREEN if inside else MarkerStatus.OFF_SCREEN
    return OverheadMarker(target.id, x, y, size, status)


def overhead_markers(
    tour: Tour,
    camera: OverheadCamera,
    current_id: Optional[int] = None,
    style: HotspotStyle = DEFAULT_STYLE,
) -> list[OverheadMarker]:
    current = tour.get(current_id) if current_id is not None else None
    return [project_overhead(pose, camera, current, style) for pose in tour]


def filter_overlapping(markers: Iterable[OverheadMarker], min_separation: float = 50.0) -> list[OverheadMarker]:
    """Keep visible markers, dropping any that lands on an earlier one."""
    kept: list[OverheadMarker] = []
    for marker in markers:
        if not marker.is_visible:
            continue
        collides = any(
            math.hypot(marker.x - other.x, marker.y - other.y) < min_separation for other in kept
        )
        if not collides:
            kept.append(marker)
    return kept


# ----------------------------------------------------------------------
# Panorama view


def distance_falloff(distance: float, style: HotspotStyle = DEFAULT_STYLE) -> float:
    """Map a distance to ``[0, 1]`` through a linear-to-power blend.

    ``0`` means as emphatic as possible, ``1`` means fully faded.
    """
    if style.falloff_distance <= 0.0:
        return 1.0
    t = float(np.clip(distance / style.falloff_distance, 0.0, 1.0))
    blend = float(np.clip(style.falloff_blend, 0.0, 1.0))
    return (1.0 - blend) * t + blend * (t ** style.falloff_power)


def hotspot_size(distance: float, style: HotspotStyle = DEFAULT_STYLE) -> float:
    f = distance_falloff(distance, style)
    return style.max_size - f * (style.max_size - style.min_size)


def hotspot_opacity(distance: float, style: HotspotStyle = DEFAULT_STYLE) -> float:
    f = distance_falloff(distance, style)
    return style.max_opacity - f * (style.max_opacity - style.min_opacity)


def panorama_local_vector(
    relative: Sequence[float],
    orientation: Optional[Sequence[float]] = None,
) -> np.ndarray:
    """Express a render-space offset in the panorama's local axes.

    When ``orientation`` is given the offset is first brought into the
    capture camera's own frame, so hotspots follow the camera heading.
    """
    vector = np.asarray(relative, dtype=np.float64).reshape(3)
    if orientation is not None:
        vector = rotate_by_quaternion(vector, quaternion_conjugate(orientation))
    return PANORAMA_REMAP @ vector


def project_panorama(
    current: CameraPose,
    target: CameraPose,
    look: LookAngle,
    style: HotspotStyle = DEFAULT_STYLE,
) -> PanoramaHotspot:
    """Place ``target`` on the panorama sphere of ``current``.

    ``look`` is the panorama camera's current look direction; hotspots further
    than ``style.max_angular_spread`` from it, or nearer than
    ``style.min_distance``, come back with ``visible=False``.
    """
    relative = target.position_array - current.position_array
    distance = float(np.linalg.norm(relative))
    local = panorama_local_vector(
        relative,
        current.orientation if style.align_to_orientation else None,
    )

    if distance <= 1e-12:
        yaw, pitch = 0.0, 0.0
        visible = False
    else:
        yaw, pitch = angles_from_vector(local)
        spread = angle_between(local, look_vector(look.yaw, look.pitch))
        visible = distance >= style.min_distance and spread <= style.max_angular_spread

    return PanoramaHotspot(
        viewpoint_id=target.id,
        label=target.label,
        yaw=yaw,
        pitch=pitch,
        distance=distance,
        size=hotspot_size(distance, style),
        opacity=hotspot_opacity(distance, style),
        visible=visible,
    )


def panorama_hotspots(
    tour: Tour,
    current_id: int,
    look: LookAngle,
    style: HotspotStyle = DEFAULT_STYLE,
    count: Optional[int] = None,
) -> list[PanoramaHotspot]:
    """Project the nearest neighbours of ``current_id``, nearest first."""
    current = tour.get(current_id)
    k = style.neighbor_count if count is None else count
    return [project_panorama(current, target, look, style) for target in tour.neighbors_of(current_id, k)]
