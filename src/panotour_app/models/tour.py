"""Viewpoint catalog: the immutable set of capture poses of one tour."""
from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
import math
from pathlib import Path
from typing import Iterable, Iterator, Optional, Tuple

from loguru import logger

from .camera_pose import CameraPose
from ..math.pose import Vector3

_COINCIDENT_EXTENT = 1e-3


class UnknownViewpointError(LookupError):
    """Raised when a viewpoint id is not part of the tour."""

    def __init__(self, viewpoint_id: int) -> None:
        super().__init__(f"Unknown viewpoint id {viewpoint_id}")
        self.viewpoint_id = viewpoint_id


class DuplicateViewpointError(ValueError):
    """Raised when two poses share a viewpoint id."""


@dataclass(slots=True, frozen=True)
class ModelAsset:
    """Shared 3D model of the captured space."""

    mesh_path: Optional[Path] = None
    texture_path: Optional[Path] = None


@dataclass(slots=True, frozen=True)
class TourStatistics:
    """Spatial summary of the capture positions."""

    count: int
    bounds_min: Vector3
    bounds_max: Vector3
    center: Vector3
    mean_distance: float  # mean distance to center

    @property
    def extent(self) -> Vector3:
        return (
            self.bounds_max[0] - self.bounds_min[0],
            self.bounds_max[1] - self.bounds_min[1],
            self.bounds_max[2] - self.bounds_min[2],
        )


@dataclass(slots=True, frozen=True)
class Tour:
    """Read-only catalog of viewpoints, in arrival order."""

    viewpoints: Tuple[CameraPose, ...]
    model: ModelAsset = ModelAsset()

    def __len__(self) -> int:
        return len(self.viewpoints)

    def __iter__(self) -> Iterator[CameraPose]:
        return iter(self.viewpoints)

    def __contains__(self, viewpoint_id: object) -> bool:
        return any(pose.id == viewpoint_id for pose in self.viewpoints)

    @property
    def ids(self) -> Tuple[int, ...]:
        return tuple(pose.id for pose in self.viewpoints)

    def get(self, viewpoint_id: int) -> CameraPose:
        for pose in self.viewpoints:
            if pose.id == viewpoint_id:
                return pose
        raise UnknownViewpointError(viewpoint_id)

    def neighbors_of(self, viewpoint_id: int, k: int) -> list[CameraPose]:
        """Return the ``k`` viewpoints closest to ``viewpoint_id``.

        Sorted by render-space distance, ties broken by ascending id. The
        query viewpoint itself is never included.
        """
        origin = self.get(viewpoint_id)
        if k <= 0:
            return []
        others = [pose for pose in self.viewpoints if pose.id != viewpoint_id]
        others.sort(key=lambda pose: (origin.distance_to(pose), pose.id))
        return others[:k]

    def statistics(self) -> TourStatistics:
        if not self.viewpoints:
            origin = (0.0, 0.0, 0.0)
            return TourStatistics(0, origin, origin, origin, 0.0)

        xs = [pose.position[0] for pose in self.viewpoints]
        ys = [pose.position[1] for pose in self.viewpoints]
        zs = [pose.position[2] for pose in self.viewpoints]
        count = len(self.viewpoints)
        center = (sum(xs) / count, sum(ys) / count, sum(zs) / count)
        mean_distance = sum(math.dist(pose.position, center) for pose in self.viewpoints) / count
        return TourStatistics(
            count=count,
            bounds_min=(min(xs), min(ys), min(zs)),
            bounds_max=(max(xs), max(ys), max(zs)),
            center=center,
            mean_distance=mean_distance,
        )


def build_tour(poses: Iterable[CameraPose], model: Optional[ModelAsset] = None) -> Tour:
    """Validate ``poses`` and freeze them into a :class:`Tour`.

    Raises
    ------
    DuplicateViewpointError
        If two poses share an id.
    """
    viewpoints = tuple(poses)

    id_counts = Counter(pose.id for pose in viewpoints)
    duplicate_ids = sorted(viewpoint_id for viewpoint_id, n in id_counts.items() if n > 1)
    if duplicate_ids:
        raise DuplicateViewpointError(
            f"Duplicate viewpoint ids: {', '.join(str(value) for value in duplicate_ids)}"
        )

    label_counts = Counter(pose.label for pose in viewpoints)
    for label, n in sorted(label_counts.items()):
        if n > 1:
            logger.warning("Viewpoint label {} is used by {} cameras", label, n)

    tour = Tour(viewpoints=viewpoints, model=model or ModelAsset())
    if len(tour) == 1:
        logger.warning("Only one viewpoint found, navigation will be limited")
    elif len(tour) > 1:
        extent = tour.statistics().extent
        if all(abs(value) < _COINCIDENT_EXTENT for value in extent):
            logger.warning("All viewpoints share the same position; check the pose conversion")

    logger.info("Built tour with {} viewpoints", len(tour))
    return tour
