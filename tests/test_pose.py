import math

import numpy as np
import pytest

from panotour_app.math import pose


def _source_rotation_about_up(degrees: float) -> np.ndarray:
    c = math.cos(math.radians(degrees))
    s = math.sin(math.radians(degrees))
    matrix = np.eye(4)
    matrix[:3, :3] = [[c, -s, 0.0], [s, c, 0.0], [0.0, 0.0, 1.0]]
    return matrix


def test_identity_transform_stays_identity():
    converted = pose.convert_pose(np.eye(4).ravel().tolist())
    assert converted.valid
    assert converted.position == pytest.approx((0.0, 0.0, 0.0))
    assert converted.orientation == pytest.approx((0.0, 0.0, 0.0, 1.0))


def test_translation_is_reexpressed_y_up():
    matrix = np.eye(4)
    matrix[:3, 3] = [1.0, 2.0, 3.0]
    converted = pose.convert_pose(matrix)
    # source (x, forward, up) -> render (x, up, -forward)
    assert converted.position == pytest.approx((1.0, 3.0, -2.0))


def test_rotation_about_source_up_becomes_rotation_about_render_y():
    converted = pose.convert_pose(_source_rotation_about_up(90.0))
    half = math.sqrt(0.5)
    assert converted.valid
    assert converted.orientation == pytest.approx((0.0, half, 0.0, half), abs=1e-9)


def test_singular_and_non_finite_transforms_are_invalid():
    singular = np.zeros((4, 4))
    singular[3, 3] = 1.0
    assert not pose.convert_pose(singular).valid

    broken = np.eye(4)
    broken[0, 3] = float("nan")
    assert not pose.convert_pose(broken).valid

    assert not pose.convert_pose([1.0, 2.0, 3.0]).valid
    assert pose.convert_pose(singular) == pose.INVALID_POSE


def test_quaternion_sign_is_canonical():
    matrix = _source_rotation_about_up(270.0)
    converted = pose.convert_pose(matrix)
    assert converted.orientation[3] >= 0.0


def test_decompose_compose_is_idempotent():
    position = (1.5, -2.0, 0.25)
    orientation = pose.quaternion_from_matrix(_source_rotation_about_up(35.0)[:3, :3])
    matrix = pose.compose_matrix(position, orientation)

    pos_1, quat_1, scale_1 = pose.decompose_matrix(matrix)
    pos_2, quat_2, scale_2 = pose.decompose_matrix(pose.compose_matrix(pos_1, quat_1, scale_1))

    assert pos_1 == pytest.approx(position)
    assert quat_1 == pytest.approx(orientation)
    assert pos_2 == pytest.approx(pos_1)
    assert quat_2 == pytest.approx(quat_1)
    assert scale_2 == pytest.approx((1.0, 1.0, 1.0))


def test_decompose_rejects_zero_scale():
    matrix = np.eye(4)
    matrix[:3, 0] = 0.0
    with pytest.raises(ValueError):
        pose.decompose_matrix(matrix)


def _rigid(axis: int, degrees: float, translation) -> np.ndarray:
    c = math.cos(math.radians(degrees))
    s = math.sin(math.radians(degrees))
    i, j = [k for k in range(3) if k != axis]
    matrix = np.eye(4)
    matrix[i, i] = c
    matrix[i, j] = -s
    matrix[j, i] = s
    matrix[j, j] = c
    matrix[:3, 3] = translation
    return matrix


@pytest.mark.parametrize("axis", [0, 1, 2])
@pytest.mark.parametrize("degrees", [-75.0, 30.0, 120.0])
@pytest.mark.parametrize("translation", [(0.0, 0.0, 0.0), (2.5, -1.0, 4.0)])
def test_converted_pose_survives_recompose_and_decompose(axis, degrees, translation):
    converted = pose.convert_pose(_rigid(axis, degrees, translation))
    assert converted.valid

    position, orientation, scale = pose.decompose_matrix(
        pose.compose_matrix(converted.position, converted.orientation)
    )
    assert position == pytest.approx(converted.position, abs=1e-9)
    assert orientation == pytest.approx(converted.orientation, abs=1e-9)
    assert scale == pytest.approx((1.0, 1.0, 1.0))
