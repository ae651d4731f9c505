"""Camera pose conversion from the photogrammetry frame into render space.

Poses arrive as row-major 4x4 rigid transforms expressed in the
photogrammetry tool's chunk frame (X right, Y forward, Z up). The viewer
renders in a Y-up frame (X right, Y up, Z towards the viewer), so every pose
goes through a constant basis change before it is decomposed into the
position/quaternion pair the rest of the application works with.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple, Union

import numpy as np

Vector3 = Tuple[float, float, float]
Quaternion = Tuple[float, float, float, float]  # (x, y, z, w)
MatrixLike = Union[np.ndarray, Sequence[float], Sequence[Sequence[float]]]

SINGULAR_EPSILON = 1e-10

# Tool Z (up) -> render Y, tool Y (forward) -> render -Z, X unchanged.
BASIS_CHANGE = np.array(
    [
        [1.0, 0.0, 0.0, 0.0],
        [0.0, 0.0, 1.0, 0.0],
        [0.0, -1.0, 0.0, 0.0],
        [0.0, 0.0, 0.0, 1.0],
    ],
    dtype=np.float64,
)
BASIS_CHANGE_INV = BASIS_CHANGE.T.copy()

IDENTITY_QUATERNION: Quaternion = (0.0, 0.0, 0.0, 1.0)


@dataclass(slots=True, frozen=True)
class PoseConversion:
    """Result of converting one source transform."""

    position: Vector3
    orientation: Quaternion
    valid: bool


INVALID_POSE = PoseConversion((0.0, 0.0, 0.0), IDENTITY_QUATERNION, False)


def as_matrix(values: MatrixLike) -> np.ndarray:
    """Coerce 16 row-major numbers or a nested 4x4 sequence into a float64 matrix."""
    matrix = np.asarray(values, dtype=np.float64)
    if matrix.size != 16:
        raise ValueError(f"Transform must contain 16 values, got {matrix.size}")
    return matrix.reshape(4, 4)


def determinant(matrix: np.ndarray) -> float:
    return float(np.linalg.det(matrix))


def is_valid_transform(matrix: np.ndarray, *, epsilon: float = SINGULAR_EPSILON) -> bool:
    """Return ``True`` for a finite, non-singular 4x4 matrix."""
    if matrix.shape != (4, 4):
        return False
    if not np.all(np.isfinite(matrix)):
        return False
    return abs(determinant(matrix)) >= epsilon


def quaternion_from_matrix(rotation: np.ndarray) -> Quaternion:
    """Convert a pure 3x3 rotation matrix to a unit quaternion ``(x, y, z, w)``.

    The sign is canonicalised so that ``w >= 0``; ``q`` and ``-q`` describe the
    same rotation and a fixed sign keeps decomposition repeatable.
    """
    m = np.asarray(rotation, dtype=np.float64)
    m11, m12, m13 = m[0]
    m21, m22, m23 = m[1]
    m31, m32, m33 = m[2]
    trace = m11 + m22 + m33

    if trace > 0.0:
        s = 0.5 / math.sqrt(trace + 1.0)
        w = 0.25 / s
        x = (m32 - m23) * s
        y = (m13 - m31) * s
        z = (m21 - m12) * s
    elif m11 > m22 and m11 > m33:
        s = 2.0 * math.sqrt(1.0 + m11 - m22 - m33)
        w = (m32 - m23) / s
        x = 0.25 * s
        y = (m12 + m21) / s
        z = (m13 + m31) / s
    elif m22 > m33:
        s = 2.0 * math.sqrt(1.0 + m22 - m11 - m33)
        w = (m13 - m31) / s
        x = (m12 + m21) / s
        y = 0.25 * s
        z = (m23 + m32) / s
    else:
        s = 2.0 * math.sqrt(1.0 + m33 - m11 - m22)
        w = (m21 - m12) / s
        x = (m13 + m31) / s
        y = (m23 + m32) / s
        z = 0.25 * s

    norm = math.sqrt(x * x + y * y + z * z + w * w)
    x, y, z, w = x / norm, y / norm, z / norm, w / norm
    if w < 0.0:
        x, y, z, w = -x, -y, -z, -w
    return float(x), float(y), float(z), float(w)


def matrix_from_quaternion(orientation: Sequence[float]) -> np.ndarray:
    """Return the 3x3 rotation matrix for a quaternion ``(x, y, z, w)``."""
    x, y, z, w = (float(value) for value in orientation)
    norm = math.sqrt(x * x + y * y + z * z + w * w)
    if norm <= 0.0:
        raise ValueError("Quaternion has zero length")
    x, y, z, w = x / norm, y / norm, z / norm, w / norm

    xx, yy, zz = x * x, y * y, z * z
    xy, xz, yz = x * y, x * z, y * z
    wx, wy, wz = w * x, w * y, w * z
    return np.array(
        [
            [1.0 - 2.0 * (yy + zz), 2.0 * (xy - wz), 2.0 * (xz + wy)],
            [2.0 * (xy + wz), 1.0 - 2.0 * (xx + zz), 2.0 * (yz - wx)],
            [2.0 * (xz - wy), 2.0 * (yz + wx), 1.0 - 2.0 * (xx + yy)],
        ],
        dtype=np.float64,
    )


def decompose_matrix(matrix: np.ndarray) -> Tuple[Vector3, Quaternion, Vector3]:
    """Split an affine 4x4 matrix into translation, rotation and scale.

    A negative determinant is attributed to the X scale so the remaining
    3x3 block is a proper rotation.
    """
    m = np.asarray(matrix, dtype=np.float64)
    translation = m[:3, 3]
    basis = m[:3, :3]

    scale = np.linalg.norm(basis, axis=0)
    if np.linalg.det(basis) < 0.0:
        scale[0] = -scale[0]
    if np.any(np.abs(scale) <= SINGULAR_EPSILON):
        raise ValueError("Cannot decompose a matrix with a zero scale axis")

    rotation = basis / scale
    quaternion = quaternion_from_matrix(rotation)
    position = (float(translation[0]), float(translation[1]), float(translation[2]))
    scale_tuple = (float(scale[0]), float(scale[1]), float(scale[2]))
    return position, quaternion, scale_tuple


def compose_matrix(
    position: Sequence[float],
    orientation: Sequence[float],
    scale: Sequence[float] = (1.0, 1.0, 1.0),
) -> np.ndarray:
    """Inverse of :func:`decompose_matrix`."""
    matrix = np.eye(4, dtype=np.float64)
    matrix[:3, :3] = matrix_from_quaternion(orientation) * np.asarray(scale, dtype=np.float64)
    matrix[:3, 3] = np.asarray(position, dtype=np.float64)
    return matrix


def convert_pose(source_transform: MatrixLike) -> PoseConversion:
    """Convert a photogrammetry camera transform into a render-space pose.

    The basis change is applied as a change of frame, ``B @ M @ B^-1``: the
    translation equals that of ``B @ M`` and the camera's local axes are
    re-expressed in the render convention as well, so an identity source pose
    stays the identity. Scale is decomposed but dropped since source poses are
    rigid.

    Invalid input (wrong shape, non-finite entries, singular matrix) produces a
    result with ``valid=False`` instead of raising.
    """
    try:
        matrix = as_matrix(source_transform)
    except (TypeError, ValueError):
        return INVALID_POSE
    if not is_valid_transform(matrix):
        return INVALID_POSE

    render_matrix = BASIS_CHANGE @ matrix @ BASIS_CHANGE_INV
    try:
        position, orientation, _scale = decompose_matrix(render_matrix)
    except ValueError:
        return INVALID_POSE

    if not all(math.isfinite(value) for value in (*position, *orientation)):
        return INVALID_POSE
    return PoseConversion(position=position, orientation=orientation, valid=True)
