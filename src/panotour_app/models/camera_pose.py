"""Camera pose domain models."""
from __future__ import annotations

from dataclasses import dataclass, field
import math
from typing import Dict, Optional

import numpy as np

from ..math.pose import MatrixLike, Quaternion, Vector3, as_matrix, convert_pose


@dataclass(slots=True, frozen=True)
class CameraPose:
    """One capture position of the tour, in render space."""

    id: int
    label: str
    position: Vector3
    orientation: Quaternion  # (x, y, z, w)
    source_transform: np.ndarray = field(compare=False, repr=False)
    image_ref: str = ""

    def __post_init__(self) -> None:
        if self.id < 0:
            raise ValueError(f"Camera id must be non-negative, got {self.id}")
        self.source_transform.setflags(write=False)

    @classmethod
    def from_transform(
        cls,
        camera_id: int,
        label: str,
        transform: MatrixLike,
        image_ref: str = "",
    ) -> Optional["CameraPose"]:
        """Build a pose from a raw source transform.

        Returns ``None`` when the transform does not convert to a valid pose;
        the caller decides how to report the rejected camera.
        """
        converted = convert_pose(transform)
        if not converted.valid:
            return None
        return cls(
            id=camera_id,
            label=label,
            position=converted.position,
            orientation=converted.orientation,
            source_transform=as_matrix(transform).copy(),
            image_ref=image_ref,
        )

    @property
    def position_array(self) -> np.ndarray:
        return np.array(self.position, dtype=np.float64)

    def distance_to(self, other: "CameraPose") -> float:
        """Euclidean render-space distance to ``other``."""
        return math.dist(self.position, other.position)

    def to_dict(self) -> Dict[str, object]:
        """Return a serialisable mapping."""
        return {
            "id": self.id,
            "label": self.label,
            "position": list(self.position),
            "orientation": list(self.orientation),
            "image_ref": self.image_ref,
        }
