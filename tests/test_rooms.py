import pytest

from floorgeom import (
    Boundary,
    IntegrityError,
    Point,
    ResolverConfig,
    TraversalError,
    combine_rooms,
    resolve_rooms,
)
from floorgeom.rooms import _BoundaryGraph


def _square(size, prefix="", x0=0.0, y0=0.0):
    points = [
        Point(f"{prefix}p1", x0, y0),
        Point(f"{prefix}p2", x0 + size, y0),
        Point(f"{prefix}p3", x0 + size, y0 + size),
        Point(f"{prefix}p4", x0, y0 + size),
    ]
    boundaries = [
        Boundary(f"{prefix}b1", f"{prefix}p1", f"{prefix}p2"),
        Boundary(f"{prefix}b2", f"{prefix}p2", f"{prefix}p3"),
        Boundary(f"{prefix}b3", f"{prefix}p3", f"{prefix}p4"),
        Boundary(f"{prefix}b4", f"{prefix}p4", f"{prefix}p1"),
    ]
    return points, boundaries


def _two_squares():
    points = [
        Point("p1", 0, 0),
        Point("p2", 10, 0),
        Point("p3", 20, 0),
        Point("p4", 20, 10),
        Point("p5", 10, 10),
        Point("p6", 0, 10),
    ]
    boundaries = [
        Boundary("b1", "p1", "p2"),
        Boundary("b2", "p2", "p3"),
        Boundary("b3", "p3", "p4"),
        Boundary("b4", "p4", "p5"),
        Boundary("b5", "p5", "p6"),
        Boundary("b6", "p6", "p1"),
        Boundary("b7", "p2", "p5"),
    ]
    return points, boundaries


def _perimeters(rooms):
    return {frozenset(room.perimeter) for room in rooms}


def test_single_square_is_one_room():
    points, boundaries = _square(10.0)

    rooms, tree = resolve_rooms(points, boundaries)

    assert len(rooms) == 1
    room = rooms[0]
    assert room.id == 1
    assert set(room.perimeter) == {"b1", "b2", "b3", "b4"}
    assert room.holes == []
    assert room.interior == []
    assert room.parent is None
    assert tree.get_enclosing_polygon_id_for_point((5, 5)) == 1
    assert tree.get_enclosing_polygon_id_for_point((15, 5)) is None


def test_perimeter_is_a_closed_chain():
    points, boundaries = _square(10.0)
    by_id = {b.id: b for b in boundaries}

    (room,), _ = resolve_rooms(points, boundaries)

    chain = [by_id[bid] for bid in room.perimeter]
    for current, following in zip(chain, chain[1:] + chain[:1]):
        assert {current.start, current.end} & {following.start, following.end}


def test_shared_wall_splits_two_rooms():
    points, boundaries = _two_squares()

    rooms, _ = resolve_rooms(points, boundaries)

    assert _perimeters(rooms) == {
        frozenset({"b1", "b7", "b5", "b6"}),
        frozenset({"b2", "b3", "b4", "b7"}),
    }
    assert [room.id for room in rooms] == [1, 2]
    assert all(room.parent is None and room.holes == [] for room in rooms)


def test_nested_square_becomes_hole_and_child():
    outer_points, outer_bounds = _square(10.0)
    inner_points, inner_bounds = _square(4.0, prefix="i", x0=3.0, y0=3.0)

    rooms, tree = resolve_rooms(outer_points + inner_points, outer_bounds + inner_bounds)

    by_perimeter = {frozenset(room.perimeter): room for room in rooms}
    outer = by_perimeter[frozenset({"b1", "b2", "b3", "b4"})]
    inner = by_perimeter[frozenset({"ib1", "ib2", "ib3", "ib4"})]
    assert [set(hole) for hole in outer.holes] == [{"ib1", "ib2", "ib3", "ib4"}]
    assert inner.holes == []
    assert inner.parent == outer.id
    assert outer.parent is None
    assert tree.get_enclosing_polygon_id_for_point((5, 5)) == inner.id
    assert tree.get_enclosing_polygon_id_for_point((1, 1)) == outer.id


def test_spur_and_loose_wall_become_interior():
    points, boundaries = _square(10.0)
    points += [Point("p5", 5, 5), Point("p6", 6, 2), Point("p7", 8, 2)]
    boundaries += [Boundary("spur", "p1", "p5"), Boundary("loose", "p6", "p7")]

    rooms, _ = resolve_rooms(points, boundaries)

    assert len(rooms) == 1
    assert set(rooms[0].perimeter) == {"b1", "b2", "b3", "b4"}
    assert sorted(rooms[0].interior) == ["loose", "spur"]


def test_duplicate_and_zero_length_boundaries_are_ignored():
    points, boundaries = _square(10.0)
    boundaries += [Boundary("dup", "p2", "p1"), Boundary("zero", "p3", "p3")]

    rooms, _ = resolve_rooms(points, boundaries)

    assert len(rooms) == 1
    assert set(rooms[0].perimeter) == {"b1", "b2", "b3", "b4"}
    assert rooms[0].interior == []


def test_two_arcs_between_the_same_points_form_a_room():
    points = [Point("a", 0, 0), Point("b", 10, 0)]
    boundaries = [Boundary("top", "a", "b", arc=3.0), Boundary("bottom", "a", "b", arc=-3.0)]

    rooms, tree = resolve_rooms(points, boundaries)

    assert len(rooms) == 1
    assert set(rooms[0].perimeter) == {"top", "bottom"}
    assert tree.get_enclosing_polygon_id_for_point((5, 2)) == 1
    assert tree.get_enclosing_polygon_id_for_point((5, -2)) == 1
    assert tree.get_enclosing_polygon_id_for_point((5, 4)) is None


def test_resolution_is_deterministic():
    outer_points, outer_bounds = _square(10.0)
    inner_points, inner_bounds = _square(4.0, prefix="i", x0=3.0, y0=3.0)
    points = outer_points + inner_points
    boundaries = outer_bounds + inner_bounds

    first, _ = resolve_rooms(points, boundaries)
    second, _ = resolve_rooms(points, boundaries)

    assert [room.to_dict() for room in first] == [room.to_dict() for room in second]


def test_missing_point_raises_integrity_error():
    points, boundaries = _square(10.0)
    boundaries.append(Boundary("ghost", "p1", "nowhere"))

    with pytest.raises(IntegrityError):
        resolve_rooms(points, boundaries)


def test_iteration_cap_raises_traversal_error():
    points, boundaries = _square(10.0)

    with pytest.raises(TraversalError):
        resolve_rooms(points, boundaries, ResolverConfig(max_trace_iterations=1))


def test_empty_floor_has_no_rooms():
    rooms, tree = resolve_rooms([], [])
    assert rooms == []
    assert len(tree) == 0


def test_combine_dissolves_shared_wall():
    points, boundaries = _two_squares()
    rooms, _ = resolve_rooms(points, boundaries)

    regions, tree = combine_rooms(points, boundaries, rooms)

    assert len(regions) == 1
    region = regions[0]
    assert set(region.perimeter) == {"b1", "b2", "b3", "b4", "b5", "b6"}
    assert region.interior == ["b7"]
    assert region.holes == []
    assert tree.get_enclosing_polygon_id_for_point((15, 5)) == region.id


def test_combine_absorbs_an_island_room():
    outer_points, outer_bounds = _square(10.0)
    inner_points, inner_bounds = _square(4.0, prefix="i", x0=3.0, y0=3.0)
    points = outer_points + inner_points
    boundaries = outer_bounds + inner_bounds
    rooms, _ = resolve_rooms(points, boundaries)

    regions, _ = combine_rooms(points, boundaries, rooms)

    assert len(regions) == 1
    assert set(regions[0].perimeter) == {"b1", "b2", "b3", "b4"}
    assert sorted(regions[0].interior) == ["ib1", "ib2", "ib3", "ib4"]
    assert regions[0].holes == []


def test_combine_single_room_keeps_its_shape():
    points, boundaries = _two_squares()
    rooms, _ = resolve_rooms(points, boundaries)
    left = next(room for room in rooms if "b1" in room.perimeter)

    regions, _ = combine_rooms(points, boundaries, [left])

    assert len(regions) == 1
    assert set(regions[0].perimeter) == {"b1", "b7", "b5", "b6"}
    assert regions[0].interior == []


def test_wrapper_of_an_empty_face_group_is_an_integrity_error():
    points, boundaries = _square(10.0)
    graph = _BoundaryGraph(points, boundaries, ResolverConfig())

    with pytest.raises(IntegrityError):
        graph._pick_wrapper([])


def _three_squares():
    points = [Point(f"p{i}", 10.0 * i, 0.0) for i in range(4)]
    points += [Point(f"q{i}", 10.0 * i, 10.0) for i in range(4)]
    boundaries = [Boundary(f"bottom{i}", f"p{i}", f"p{i + 1}") for i in range(3)]
    boundaries += [Boundary(f"top{i}", f"q{i + 1}", f"q{i}") for i in range(3)]
    boundaries += [Boundary(f"wall{i}", f"p{i}", f"q{i}") for i in range(4)]
    return points, boundaries


def test_combine_row_of_rooms_dissolves_every_shared_wall():
    points, boundaries = _three_squares()
    rooms, _ = resolve_rooms(points, boundaries)
    assert len(rooms) == 3

    regions, tree = combine_rooms(points, boundaries, rooms)

    assert len(regions) == 1
    assert set(regions[0].perimeter) == {
        "bottom0", "bottom1", "bottom2", "top0", "top1", "top2", "wall0", "wall3",
    }
    assert sorted(regions[0].interior) == ["wall1", "wall2"]
    assert tree.get_enclosing_polygon_id_for_point((25, 5)) == regions[0].id


def test_combining_combined_regions_again_is_stable():
    points, boundaries = _three_squares()
    rooms, _ = resolve_rooms(points, boundaries)
    regions, _ = combine_rooms(points, boundaries, rooms)

    again, _ = combine_rooms(points, boundaries, regions)

    assert len(again) == 1
    assert set(again[0].perimeter) == set(regions[0].perimeter)
    assert sorted(again[0].interior) == ["wall1", "wall2"]
    assert again[0].holes == []
