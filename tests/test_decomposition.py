import math
import random

import pytest

from floorgeom.geometry.decomposition import (
    clean_polygon,
    convex_hull,
    decompose_to_convex_hull_and_obstacles,
    decompose_to_convex_parts,
    ear_clip,
    is_ccw,
    is_convex,
    is_simple,
    make_ccw,
    polygon_area,
    signed_area,
)

SQUARE = [(0.0, 0.0), (10.0, 0.0), (10.0, 10.0), (0.0, 10.0)]
L_SHAPE = [(0.0, 0.0), (10.0, 0.0), (10.0, 4.0), (4.0, 4.0), (4.0, 10.0), (0.0, 10.0)]


def _star(points=5, outer=10.0, inner=4.0):
    star = []
    for i in range(points * 2):
        radius = outer if i % 2 == 0 else inner
        angle = math.pi * i / points
        star.append((radius * math.cos(angle), radius * math.sin(angle)))
    return star


def test_signed_area_follows_winding():
    assert signed_area(SQUARE) == pytest.approx(100.0)
    assert signed_area(list(reversed(SQUARE))) == pytest.approx(-100.0)
    assert is_ccw(SQUARE)
    assert make_ccw(list(reversed(SQUARE))) == SQUARE
    assert is_ccw(make_ccw(list(reversed(SQUARE))))


def test_clean_polygon_drops_repeats_and_closing_vertex():
    assert clean_polygon([(0, 0), (0, 0), (1, 0), (1, 1), (0, 0)]) == [(0.0, 0.0), (1.0, 0.0), (1.0, 1.0)]


def test_convex_input_is_returned_whole():
    parts = decompose_to_convex_parts(list(reversed(SQUARE)))
    assert len(parts) == 1
    assert is_ccw(parts[0])
    assert polygon_area(parts[0]) == pytest.approx(100.0)


@pytest.mark.parametrize(
    "polygon, area",
    [
        (L_SHAPE, 64.0),
        (list(reversed(L_SHAPE)), 64.0),
        (_star(), None),
    ],
)
def test_concave_parts_are_convex_and_cover_the_polygon(polygon, area):
    parts = decompose_to_convex_parts(polygon)

    expected = area if area is not None else polygon_area(polygon)
    assert len(parts) > 1
    assert sum(polygon_area(part) for part in parts) == pytest.approx(expected)
    for part in parts:
        assert is_convex(part)
        assert is_ccw(part)


def test_ear_clip_triangulates_without_collinear_slivers():
    polygon = [(0, 0), (5, 0), (10, 0), (10, 10), (0, 10)]
    triangles = ear_clip(polygon)

    assert len(triangles) == 3
    assert sum(polygon_area(t) for t in triangles) == pytest.approx(100.0)
    for tri in triangles:
        assert len(tri) == 3
        assert signed_area(tri) > 0


def test_convex_hull_of_l_shape_and_degenerate_input():
    hull = convex_hull(L_SHAPE)
    assert is_ccw(hull)
    assert sorted(hull) == sorted([(0.0, 0.0), (10.0, 0.0), (10.0, 4.0), (4.0, 10.0), (0.0, 10.0)])

    assert convex_hull([(2, 2), (0, 0), (1, 1)]) == [(0.0, 0.0), (2.0, 2.0)]
    assert len(convex_hull([(0, 0), (1, 0)])) == 2


def test_hull_and_obstacles_of_l_shape():
    result = decompose_to_convex_hull_and_obstacles(L_SHAPE)

    assert polygon_area(result.outer_hull) == pytest.approx(82.0)
    assert result.obstacles
    assert sum(polygon_area(obs) for obs in result.obstacles) == pytest.approx(18.0, rel=1e-6)
    for obs in result.obstacles:
        assert is_convex(obs)


def test_convex_polygon_has_no_obstacles():
    result = decompose_to_convex_hull_and_obstacles(SQUARE)
    assert result.obstacles == []
    assert polygon_area(result.outer_hull) == pytest.approx(100.0)


def test_is_simple():
    assert is_simple(L_SHAPE)
    assert not is_simple([(0, 0), (10, 10), (10, 0), (0, 10)])
    assert not is_simple([(0, 0), (1, 1)])


def _random_star(rng, count):
    polygon = []
    for i in range(count):
        angle = 2.0 * math.pi * (i + 0.8 * rng.random()) / count
        radius = rng.uniform(1.0, 10.0)
        polygon.append((radius * math.cos(angle), radius * math.sin(angle)))
    return polygon


def _comb(teeth, height=6.0):
    polygon = [(0.0, 0.0), (2.0 * teeth - 1.0, 0.0)]
    for k in range(teeth - 1, -1, -1):
        polygon.append((2.0 * k + 1.0, height))
        polygon.append((2.0 * k, height))
        if k:
            polygon.append((2.0 * k, 1.0))
            polygon.append((2.0 * k - 1.0, 1.0))
    return polygon


def _generated_polygons():
    rng = random.Random(20240611)
    stars = [_random_star(rng, rng.randint(4, 40)) for _ in range(200)]
    combs = [_comb(teeth) for teeth in range(2, 41)]
    return stars + combs


def _assert_convex_cover(polygon, parts):
    assert parts
    assert sum(polygon_area(part) for part in parts) == pytest.approx(polygon_area(polygon), rel=1e-6)
    for part in parts:
        assert is_convex(part)
        assert is_ccw(part)


def test_generated_polygons_decompose_into_convex_cover():
    for polygon in _generated_polygons():
        assert is_simple(polygon)
        _assert_convex_cover(polygon, decompose_to_convex_parts(polygon))


def test_ear_clip_covers_random_star_polygons():
    rng = random.Random(7)
    for _ in range(100):
        polygon = _random_star(rng, rng.randint(4, 40))
        triangles = ear_clip(polygon)
        _assert_convex_cover(polygon, triangles)
        assert all(len(tri) == 3 for tri in triangles)
