from floorgeom import Boundary, FloorObject, FloorState, Point, Room
from floorgeom.collision import EntryKind, ResolverMaintainer, shallow_diff


def _square_state(size=100.0):
    points = [
        Point("p1", 0.0, 0.0),
        Point("p2", size, 0.0),
        Point("p3", size, size),
        Point("p4", 0.0, size),
    ]
    boundaries = [
        Boundary("b1", "p1", "p2"),
        Boundary("b2", "p2", "p3"),
        Boundary("b3", "p3", "p4"),
        Boundary("b4", "p4", "p1"),
    ]
    return FloorState(points + boundaries)


def test_shallow_diff_compares_by_identity():
    a, b, c = object(), object(), object()
    before = {"a": a, "b": b}
    after = {"a": a, "b": object(), "c": c}

    added, updated, removed = shallow_diff(before, after)
    assert added == {"c": c}
    assert list(updated) == ["b"]
    assert removed == {}

    assert shallow_diff(None, after) == (after, {}, {})
    assert shallow_diff(before, None) == ({}, {}, before)


def test_first_sync_grows_bounds_and_indexes_everything():
    maintainer = ResolverMaintainer()
    state = _square_state()

    maintainer.sync(state)

    assert maintainer.bbox.to_list() == [0.0, 0.0, 100.0, 100.0]
    assert sorted(maintainer.resolver.ids()) == ["b1", "b2", "b3", "b4", "p1", "p2", "p3", "p4"]
    assert maintainer.resolver.resolve_selection((50, 1)) == "b1"


def test_sync_with_same_snapshot_is_a_no_op():
    maintainer = ResolverMaintainer()
    state = _square_state()
    maintainer.sync(state)
    resolver = maintainer.resolver

    maintainer.sync(state)

    assert maintainer.resolver is resolver


def test_moving_a_point_inside_bounds_updates_linked_boundaries():
    maintainer = ResolverMaintainer()
    state = _square_state()
    maintainer.sync(state)
    resolver = maintainer.resolver

    maintainer.sync(state.with_entities(Point("p2", 50.0, 50.0)))

    assert maintainer.resolver is resolver
    (entry,) = resolver.entries("b1")
    assert entry.b == (50.0, 50.0)
    (entry,) = resolver.entries("b2")
    assert entry.a == (50.0, 50.0)
    assert resolver.resolve_selection((50, 50)) == "p2"


def test_change_outside_bounds_rebuilds_and_keeps_radii():
    maintainer = ResolverMaintainer()
    state = _square_state()
    maintainer.sync(state)
    maintainer.point_radius = 25.0
    resolver = maintainer.resolver

    maintainer.sync(state.with_entities(Point("p5", 200.0, 150.0)))

    assert maintainer.resolver is not resolver
    assert maintainer.bbox.to_list() == [0.0, 0.0, 200.0, 150.0]
    assert maintainer.point_radius == 25.0
    assert maintainer.resolver.resolve_selection((180, 150)) == "p5"


def test_removed_entities_leave_the_index():
    maintainer = ResolverMaintainer()
    state = _square_state()
    maintainer.sync(state)

    maintainer.sync(state.without(["p3"]))

    assert "p3" not in maintainer.resolver
    assert "b2" in maintainer.resolver


def test_rooms_objects_and_windows_are_indexed():
    maintainer = ResolverMaintainer()
    state = _square_state().with_entities(
        Room("room", ["b1", "b2", "b3", "b4"]),
        Room("nested", ["b1", "b2", "b3", "b4"], parent="room"),
        FloorObject("sofa", (((10.0, 10.0), (30.0, 10.0), (30.0, 20.0), (10.0, 20.0)),)),
        FloorObject("window", (((60.0, 0.0), (80.0, 0.0)),), "window"),
    )

    maintainer.sync(state)
    resolver = maintainer.resolver

    (region,) = resolver.entries("room")
    assert region.kind is EntryKind.REGION
    assert region.depth == 1
    assert resolver.entries("nested")[0].depth == 2
    assert resolver.entries("sofa")[0].kind is EntryKind.REGION
    (window,) = resolver.entries("window")
    assert window.kind is EntryKind.LINE
    assert window.weight == maintainer.config.window_weight
    # deeper rooms win over the rooms enclosing them
    assert resolver.resolve_selection((20, 15)) == "nested"
    assert resolver.resolve_selection((20, 15), disqualify=lambda entity_id: entity_id in ("room", "nested")) == "sofa"


def _grid_state(size):
    points = [Point(f"p{i}_{j}", 10.0 * i, 10.0 * j) for i in range(size) for j in range(size)]
    boundaries = []
    for i in range(size):
        for j in range(size):
            if i + 1 < size:
                boundaries.append(Boundary(f"h{i}_{j}", f"p{i}_{j}", f"p{i + 1}_{j}"))
            if j + 1 < size:
                boundaries.append(Boundary(f"v{i}_{j}", f"p{i}_{j}", f"p{i}_{j + 1}"))
    return FloorState(points + boundaries)


def test_in_bounds_edit_on_large_floor_reindexes_only_what_changed(monkeypatch):
    maintainer = ResolverMaintainer()
    state = _grid_state(30)
    maintainer.sync(state)
    resolver = maintainer.resolver
    assert len(resolver) == 900 + 2 * 29 * 30

    indexed = []
    original_index = maintainer._index

    def _counting_index(entity, state, resolver):
        indexed.append(entity.id)
        original_index(entity, state, resolver)

    monkeypatch.setattr(maintainer, "_index", _counting_index)
    maintainer.sync(state.with_entities(Point("p5_5", 52.0, 53.0)))

    assert maintainer.resolver is resolver
    assert sorted(indexed) == ["h4_5", "h5_5", "p5_5", "v5_4", "v5_5"]


def test_in_bounds_edit_leaves_unrelated_entries_untouched():
    maintainer = ResolverMaintainer()
    state = _grid_state(12)
    maintainer.sync(state)
    resolver = maintainer.resolver
    unrelated_line = resolver.entries("h8_8")[0]
    unrelated_point = resolver.entries("p1_1")[0]

    maintainer.sync(state.with_entities(Point("p5_5", 52.0, 53.0)))

    assert resolver.entries("h8_8")[0] is unrelated_line
    assert resolver.entries("p1_1")[0] is unrelated_point
    assert resolver.entries("h5_5")[0].a == (52.0, 53.0)
    assert resolver.entries("h4_5")[0].b == (52.0, 53.0)
    assert resolver.entries("v5_4")[0].b == (52.0, 53.0)
    assert resolver.entries("v5_5")[0].a == (52.0, 53.0)
