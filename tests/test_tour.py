import numpy as np
import pytest
from loguru import logger

from panotour_app.models.camera_pose import CameraPose
from panotour_app.models.tour import DuplicateViewpointError, UnknownViewpointError, build_tour


def make_pose(viewpoint_id, position, label=None):
    return CameraPose(
        id=viewpoint_id,
        label=label or f"1_frame_{viewpoint_id}",
        position=position,
        orientation=(0.0, 0.0, 0.0, 1.0),
        source_transform=np.eye(4),
    )


@pytest.fixture
def captured_warnings():
    messages = []
    handler_id = logger.add(lambda message: messages.append(message.record["message"]), level="WARNING")
    yield messages
    logger.remove(handler_id)


def test_neighbors_sorted_by_distance_then_id():
    tour = build_tour(
        [
            make_pose(1, (0.0, 0.0, 0.0)),
            make_pose(3, (1.0, 0.0, 0.0)),
            make_pose(2, (-1.0, 0.0, 0.0)),
            make_pose(4, (0.0, 0.0, 5.0)),
            make_pose(5, (0.0, 2.0, 0.0)),
        ]
    )
    assert [pose.id for pose in tour.neighbors_of(1, 3)] == [2, 3, 5]
    assert [pose.id for pose in tour.neighbors_of(1, 10)] == [2, 3, 5, 4]
    assert tour.neighbors_of(1, 0) == []


def test_neighbors_never_include_self():
    tour = build_tour([make_pose(1, (0.0, 0.0, 0.0)), make_pose(2, (0.0, 0.0, 0.0))])
    assert [pose.id for pose in tour.neighbors_of(2, 5)] == [1]


def test_unknown_viewpoint():
    tour = build_tour([make_pose(1, (0.0, 0.0, 0.0))])
    with pytest.raises(UnknownViewpointError) as info:
        tour.get(42)
    assert info.value.viewpoint_id == 42
    assert isinstance(info.value, LookupError)
    with pytest.raises(UnknownViewpointError):
        tour.neighbors_of(42, 3)
    assert 1 in tour and 42 not in tour


def test_duplicate_ids_are_rejected():
    with pytest.raises(DuplicateViewpointError):
        build_tour([make_pose(1, (0.0, 0.0, 0.0)), make_pose(1, (1.0, 0.0, 0.0), label="2_frame_1")])


def test_negative_id_is_rejected():
    with pytest.raises(ValueError):
        make_pose(-1, (0.0, 0.0, 0.0))


def test_statistics():
    tour = build_tour([make_pose(1, (0.0, 0.0, 0.0)), make_pose(2, (2.0, 4.0, -2.0))])
    stats = tour.statistics()
    assert stats.count == 2
    assert stats.center == pytest.approx((1.0, 2.0, -1.0))
    assert stats.extent == pytest.approx((2.0, 4.0, 2.0))
    assert stats.mean_distance == pytest.approx(np.sqrt(6.0))
    assert tour.ids == (1, 2)


def test_build_tour_warnings(captured_warnings):
    build_tour([make_pose(1, (0.0, 0.0, 0.0), label="dup"), make_pose(2, (0.0, 0.0, 0.0), label="dup")])
    assert any("dup" in message for message in captured_warnings)
    assert any("same position" in message for message in captured_warnings)

    captured_warnings.clear()
    build_tour([make_pose(1, (0.0, 0.0, 0.0))])
    assert any("Only one viewpoint" in message for message in captured_warnings)


def test_pose_source_transform_is_read_only():
    pose = make_pose(1, (0.0, 0.0, 0.0))
    with pytest.raises(ValueError):
        pose.source_transform[0, 0] = 2.0
    assert pose.to_dict()["id"] == 1
    assert pose.distance_to(make_pose(2, (3.0, 0.0, 4.0))) == pytest.approx(5.0)
