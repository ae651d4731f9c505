import numpy as np
import pytest

from panotour_app.math.geometry import LookAngle
from panotour_app.models.camera_pose import CameraPose
from panotour_app.models.inspection import InspectionContext
from panotour_app.models.tour import UnknownViewpointError, build_tour
from panotour_app.models.view_orientation import ViewOrientation
from panotour_app.viewer import transition
from panotour_app.viewer.transition import (
    Idle,
    Rotating,
    Switching,
    TransitionConfig,
    TransitionController,
    ZoomingIn,
    ZoomingOut,
)


def make_tour():
    return build_tour(
        [
            CameraPose(1, "1_frame_1", (0.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), np.eye(4)),
            CameraPose(2, "1_frame_2", (1.0, 0.0, 0.0), (0.0, 0.0, 0.0, 1.0), np.eye(4)),
        ]
    )


class SwitchRecorder:
    def __init__(self):
        self.calls = []

    def __call__(self, target_id, current_angle=None, incoming_fov=None):
        self.calls.append((target_id, current_angle, incoming_fov))


def make_controller(**kwargs):
    orientation = ViewOrientation()
    recorder = SwitchRecorder()
    inspection = InspectionContext(clock=lambda: 0.0)
    controller = TransitionController(
        orientation, recorder, tour=make_tour(), inspection=inspection, clock=lambda: 0.0, **kwargs
    )
    return controller, orientation, recorder, inspection


def test_zoom_fov_bounds_and_monotonicity():
    config = TransitionConfig()
    assert transition.calculate_zoom_fov(0.0, config) == pytest.approx(40.0)
    assert transition.calculate_zoom_fov(10.0, config) == pytest.approx(65.0)
    assert transition.calculate_zoom_fov(500.0, config) == pytest.approx(65.0)
    assert transition.calculate_zoom_fov(None, config) == pytest.approx(65.0)
    values = [transition.calculate_zoom_fov(d, config) for d in np.linspace(0.0, 20.0, 41)]
    assert all(a <= b for a, b in zip(values, values[1:]))
    assert all(40.0 <= v <= 65.0 for v in values)


def test_symmetric_fov_mirrors_around_normal():
    assert transition.symmetric_fov(42.5, 75.0) == pytest.approx(107.5)
    for target in [40.0, 55.0, 65.0, 75.0]:
        assert transition.symmetric_fov(target) - 75.0 == pytest.approx(75.0 - target)


def test_easings_hit_endpoints():
    for ease in (transition.ease_in_out_cubic, transition.ease_in_out_quad, transition.ease_out_quad):
        assert ease(0.0) == pytest.approx(0.0)
        assert ease(1.0) == pytest.approx(1.0)
    assert transition.ease_in_out_cubic(0.5) == pytest.approx(0.5)


def test_navigation_without_angle_switches_directly():
    controller, orientation, recorder, inspection = make_controller()
    orientation.look_at(LookAngle(30.0, 5.0))

    assert controller.request_navigation(2)
    assert recorder.calls == [(2, LookAngle(30.0, 5.0), None)]
    assert isinstance(controller.state, Idle)
    assert not orientation.is_claimed
    assert "transition.switch_direct" in inspection.names()


def test_full_transition_sequence():
    controller, orientation, recorder, inspection = make_controller()

    assert controller.request_navigation(2, LookAngle(90.0, 10.0), distance=1.0, now=0.0)
    assert isinstance(controller.state, Rotating)
    assert orientation.is_claimed
    assert not orientation.rotate(50.0, 0.0)

    controller.tick(0.4)
    assert orientation.yaw == pytest.approx(45.0)
    assert orientation.pitch == pytest.approx(5.0)

    controller.tick(0.8)
    assert isinstance(controller.state, ZoomingIn)
    assert orientation.yaw == pytest.approx(90.0)
    assert controller.state.target_fov == pytest.approx(42.5)

    controller.tick(1.3)
    assert orientation.field_of_view == pytest.approx(75.0 - 32.5 * 0.5)
    assert controller.opacity == pytest.approx(0.75)
    assert recorder.calls == []

    controller.tick(1.81)
    assert isinstance(controller.state, Switching)
    assert recorder.calls == [(2, LookAngle(90.0, 10.0), pytest.approx(107.5))]
    assert orientation.field_of_view == pytest.approx(42.5)
    assert controller.opacity == pytest.approx(0.5)

    controller.begin_incoming(now=1.81)
    assert isinstance(controller.state, ZoomingOut)
    assert orientation.field_of_view == pytest.approx(107.5)

    controller.tick(2.81)
    assert orientation.field_of_view == pytest.approx(107.5 - 32.5 * 0.75)
    assert controller.opacity == pytest.approx(0.875)

    published = []
    orientation.subscribe(published.append)
    controller.tick(3.9)
    assert isinstance(controller.state, Idle)
    assert orientation.field_of_view == pytest.approx(75.0)
    assert controller.opacity == pytest.approx(1.0)
    assert not orientation.is_claimed
    assert len(published) == 1

    assert inspection.names() == [
        "transition.rotating",
        "transition.zooming_in",
        "transition.switching",
        "transition.zooming_out",
        "transition.idle",
    ]


def test_rotation_takes_the_short_way_round():
    controller, orientation, _, _ = make_controller()
    orientation.look_at(LookAngle(350.0, 0.0))
    controller.request_navigation(2, LookAngle(10.0, 0.0), distance=1.0, now=0.0)
    controller.tick(0.4)
    assert orientation.yaw == pytest.approx(360.0)
    controller.tick(0.8)
    assert orientation.yaw == pytest.approx(370.0)


def test_click_during_transition_is_ignored():
    controller, _, recorder, inspection = make_controller()
    controller.request_navigation(2, LookAngle(90.0, 0.0), distance=1.0, now=0.0)
    controller.tick(0.2)
    state = controller.state

    assert not controller.request_navigation(1, LookAngle(0.0, 0.0), now=0.3)
    assert controller.state is state
    assert recorder.calls == []
    assert inspection.last("transition.navigation_ignored").fields["target_id"] == 1


def test_unknown_target_resets_to_idle():
    controller, orientation, recorder, _ = make_controller()
    with pytest.raises(UnknownViewpointError):
        controller.request_navigation(99, LookAngle(0.0, 0.0), now=0.0)
    assert isinstance(controller.state, Idle)
    assert not orientation.is_claimed
    assert recorder.calls == []


def test_cancel_restores_free_interaction():
    controller, orientation, _, _ = make_controller()
    controller.request_navigation(2, LookAngle(90.0, 0.0), distance=1.0, now=0.0)
    controller.tick(0.8)
    controller.tick(1.0)
    assert orientation.field_of_view < 75.0

    controller.cancel()
    assert isinstance(controller.state, Idle)
    assert orientation.field_of_view == pytest.approx(75.0)
    assert controller.opacity == pytest.approx(1.0)
    assert orientation.rotate(1.0, 0.0)


def test_begin_incoming_requires_switching():
    controller, _, _, _ = make_controller()
    with pytest.raises(RuntimeError):
        controller.begin_incoming(now=0.0)


def test_handoff_scales_with_zoom_duration():
    controller, _, recorder, _ = make_controller(config=TransitionConfig(zoom_in_duration=1.0))
    controller.request_navigation(2, LookAngle(0.0, 0.0), distance=None, now=0.0)
    controller.tick(0.8)
    controller.tick(1.29)
    assert recorder.calls == []
    controller.tick(1.31)
    assert recorder.calls == [(2, LookAngle(0.0, 0.0), pytest.approx(85.0))]


@pytest.mark.parametrize("distance", [0.0, 1.0, 4.0, 10.0, None])
def test_outgoing_panorama_is_fully_zoomed_at_handoff(distance):
    orientation = ViewOrientation()
    seen = []

    def on_switch(target_id, current_angle=None, incoming_fov=None):
        seen.append((orientation.field_of_view, incoming_fov))

    controller = TransitionController(orientation, on_switch, tour=make_tour(), clock=lambda: 0.0)
    controller.request_navigation(2, LookAngle(0.0, 0.0), distance=distance, now=0.0)
    controller.tick(0.8)
    target_fov = controller.state.target_fov
    controller.tick(1.3)
    assert target_fov < orientation.field_of_view < 75.0
    controller.tick(1.81)

    (outgoing_fov, incoming_fov), = seen
    assert outgoing_fov == pytest.approx(target_fov)
    assert 75.0 - outgoing_fov == pytest.approx(incoming_fov - 75.0)
    assert controller.opacity == pytest.approx(0.5)
