import math

import numpy as np
import pytest

from panotour_app.math import geometry
from panotour_app.math.geometry import LookAngle


def test_wrap_degrees_range():
    for value in [-720.0, -181.0, -180.0, 0.0, 179.9, 180.0, 540.0, 1234.5]:
        wrapped = geometry.wrap_degrees(value)
        assert -180.0 <= wrapped < 180.0
        assert math.isclose(math.cos(math.radians(wrapped)), math.cos(math.radians(value)), abs_tol=1e-9)


def test_shortest_path_crosses_the_seam():
    assert geometry.shortest_path(LookAngle(350.0, 0.0), LookAngle(10.0, 0.0)).d_lon == pytest.approx(20.0)
    assert geometry.shortest_path(LookAngle(10.0, 0.0), LookAngle(350.0, 0.0)).d_lon == pytest.approx(-20.0)


def test_shortest_path_ignores_accumulated_turns():
    delta = geometry.shortest_path(LookAngle(720.0 + 170.0, -5.0), LookAngle(-170.0, 15.0))
    assert delta.d_lon == pytest.approx(20.0)
    assert delta.d_lat == pytest.approx(20.0)
    for start in range(-1080, 1080, 45):
        for end in range(-360, 360, 30):
            d = geometry.shortest_path(LookAngle(float(start), 0.0), LookAngle(float(end), 0.0))
            assert abs(d.d_lon) <= 180.0


def test_look_vector_axes():
    np.testing.assert_allclose(geometry.look_vector(0.0, 0.0), [1.0, 0.0, 0.0], atol=1e-12)
    np.testing.assert_allclose(geometry.look_vector(90.0, 0.0), [0.0, 0.0, 1.0], atol=1e-12)
    np.testing.assert_allclose(geometry.look_vector(0.0, 90.0), [0.0, 1.0, 0.0], atol=1e-12)


def test_angles_from_vector_inverts_look_vector():
    for yaw, pitch in [(0.0, 0.0), (45.0, 10.0), (-120.0, -30.0), (170.0, 60.0)]:
        yaw_2, pitch_2 = geometry.angles_from_vector(geometry.look_vector(yaw, pitch))
        assert yaw_2 == pytest.approx(yaw)
        assert pitch_2 == pytest.approx(pitch)


def test_angles_from_zero_vector_raises():
    with pytest.raises(ValueError):
        geometry.angles_from_vector((0.0, 0.0, 0.0))


def test_angle_between_and_quaternion_rotation():
    assert geometry.angle_between((1.0, 0.0, 0.0), (0.0, 0.0, 2.0)) == pytest.approx(90.0)
    half = math.sqrt(0.5)
    quarter_about_y = (0.0, half, 0.0, half)
    rotated = geometry.rotate_by_quaternion((0.0, 0.0, 1.0), quarter_about_y)
    np.testing.assert_allclose(rotated, [1.0, 0.0, 0.0], atol=1e-12)
    restored = geometry.rotate_by_quaternion(rotated, geometry.quaternion_conjugate(quarter_about_y))
    np.testing.assert_allclose(restored, [0.0, 0.0, 1.0], atol=1e-12)
