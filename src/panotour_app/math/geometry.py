"""Geometry helpers for panorama look angles.

Panorama local frame: +X is yaw 0, +Y is up, +Z is yaw +90 (to the right
when looking along +X). Yaw and pitch are exposed in degrees and only
converted to radians at the trigonometric call.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence, Tuple

import numpy as np


@dataclass(slots=True, frozen=True)
class LookAngle:
    """A look direction in degrees (yaw a.k.a. lon, pitch a.k.a. lat)."""

    yaw: float
    pitch: float


@dataclass(slots=True, frozen=True)
class AngleDelta:
    """Signed angular step between two look directions."""

    d_lon: float
    d_lat: float


def wrap_degrees(value: float) -> float:
    """Wrap an angle into ``[-180, 180)``."""
    return ((value + 180.0) % 360.0) - 180.0


def shortest_path(from_angle: LookAngle, to_angle: LookAngle) -> AngleDelta:
    """Return the shortest signed rotation from ``from_angle`` to ``to_angle``.

    Yaw takes the branch of magnitude at most 180 degrees regardless of how
    many turns either input has accumulated. Pitch never approaches +/-180 so
    it is a plain difference.
    """
    d_lon = wrap_degrees(to_angle.yaw - from_angle.yaw)
    d_lat = to_angle.pitch - from_angle.pitch
    return AngleDelta(d_lon=d_lon, d_lat=d_lat)


def look_vector(yaw: float, pitch: float) -> np.ndarray:
    """Return the unit direction for a yaw/pitch pair in the panorama frame."""
    yaw_rad = math.radians(yaw)
    pitch_rad = math.radians(pitch)
    cos_pitch = math.cos(pitch_rad)
    return np.array(
        [
            cos_pitch * math.cos(yaw_rad),
            math.sin(pitch_rad),
            cos_pitch * math.sin(yaw_rad),
        ],
        dtype=np.float64,
    )


def angles_from_vector(vector: Sequence[float]) -> Tuple[float, float]:
    """Inverse of :func:`look_vector` for any non-zero vector."""
    x, y, z = (float(value) for value in vector)
    horizontal = math.hypot(x, z)
    if horizontal <= 0.0 and abs(y) <= 0.0:
        raise ValueError("Cannot derive look angles from a zero-length vector.")
    yaw = math.degrees(math.atan2(z, x))
    pitch = math.degrees(math.atan2(y, horizontal))
    return yaw, pitch


def angle_between(a: Sequence[float], b: Sequence[float]) -> float:
    """Angle in degrees between two non-zero vectors."""
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    denom = float(np.linalg.norm(va) * np.linalg.norm(vb))
    if denom <= 1e-12:
        raise ValueError("Angle is undefined for a zero-length vector.")
    cosine = float(np.clip(np.dot(va, vb) / denom, -1.0, 1.0))
    return math.degrees(math.acos(cosine))


def quaternion_conjugate(q: Sequence[float]) -> Tuple[float, float, float, float]:
    x, y, z, w = (float(value) for value in q)
    return -x, -y, -z, w


def rotate_by_quaternion(vector: Sequence[float], q: Sequence[float]) -> np.ndarray:
    """Rotate ``vector`` by the unit quaternion ``q = (x, y, z, w)``."""
    v = np.asarray(vector, dtype=np.float64).reshape(3)
    qx, qy, qz, qw = (float(value) for value in q)
    u = np.array([qx, qy, qz], dtype=np.float64)
    # v' = v + 2w(u x v) + 2(u x (u x v))
    uv = np.cross(u, v)
    uuv = np.cross(u, uv)
    return v + (2.0 * qw * uv) + (2.0 * uuv)
