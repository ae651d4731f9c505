from panotour_app.models.inspection import InspectionContext


def test_record_and_query():
    ticks = iter(range(100))
    context = InspectionContext(clock=lambda: float(next(ticks)))
    context.record("navigator.enter", viewpoint_id=3)
    context.record("transition.rotating", target_id=4)
    context.record("navigator.enter", viewpoint_id=5)

    assert context.names() == ["navigator.enter", "transition.rotating", "navigator.enter"]
    last = context.last("navigator.enter")
    assert last.fields == {"viewpoint_id": 5}
    assert last.timestamp == 2.0
    assert context.last("missing") is None

    context.clear()
    assert context.events == []


def test_event_buffer_is_bounded():
    context = InspectionContext(max_events=3)
    for index in range(10):
        context.record("tick", index=index)
    assert [event.fields["index"] for event in context.events] == [7, 8, 9]
