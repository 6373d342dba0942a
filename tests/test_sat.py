import pytest

from floorgeom.geometry.sat import (
    ConvexPolygon,
    SATResponse,
    collide_circle_polygon,
    collide_polygon_circle,
    collide_polygons,
    point_in_polygon,
)


def _square(x0, y0, size):
    return ConvexPolygon([(x0, y0), (x0 + size, y0), (x0 + size, y0 + size), (x0, y0 + size)])


def test_overlapping_and_separated_squares():
    assert collide_polygons(_square(0, 0, 10), _square(5, 5, 10))
    assert not collide_polygons(_square(0, 0, 10), _square(20, 0, 10))


def test_touching_squares_collide():
    assert collide_polygons(_square(0, 0, 10), _square(10, 0, 10))


def test_containment_flags():
    response = SATResponse()
    assert collide_polygons(_square(0, 0, 10), _square(3, 3, 4), response)
    assert response.b_in_a
    assert not response.a_in_b

    response.clear()
    assert collide_polygons(_square(3, 3, 4), _square(0, 0, 10), response)
    assert response.a_in_b
    assert not response.b_in_a

    response.clear()
    assert collide_polygons(_square(0, 0, 10), _square(5, 5, 10), response)
    assert not response.a_in_b
    assert not response.b_in_a


def test_contained_overlap_is_signed_toward_the_nearer_exit():
    response = SATResponse()
    assert collide_polygons(_square(0, 0, 10), _square(1, 4, 2), response)
    assert response.overlap == pytest.approx(-3.0)
    assert response.b_in_a

    response.clear()
    assert collide_polygons(_square(0, 0, 10), _square(7, 4, 2), response)
    assert response.overlap == pytest.approx(3.0)


def test_segments_crossing_and_collinear():
    diagonal = ConvexPolygon([(0, 0), (10, 10)])
    anti = ConvexPolygon([(0, 10), (10, 0)])
    assert collide_polygons(diagonal, anti)

    # collinear but disjoint segments only separate along their own direction
    assert not collide_polygons(ConvexPolygon([(0, 0), (1, 0)]), ConvexPolygon([(2, 0), (3, 0)]))


def test_circle_inside_and_outside_polygon():
    square = _square(0, 0, 10)

    response = SATResponse()
    assert collide_polygon_circle(square, (5, 5), 1.0, response)
    assert response.b_in_a
    assert not response.a_in_b

    assert not collide_polygon_circle(square, (20, 5), 1.0)
    assert collide_polygon_circle(square, (10.5, 5), 1.0)


def test_circle_polygon_swaps_roles():
    response = SATResponse()
    assert collide_circle_polygon((5, 5), 1.0, _square(0, 0, 10), response)
    assert response.a_in_b
    assert not response.b_in_a


def test_point_in_polygon_either_winding():
    ccw = ConvexPolygon([(0, 0), (4, 0), (0, 4)])
    cw = ConvexPolygon([(0, 0), (0, 4), (4, 0)])

    for poly in (ccw, cw):
        assert point_in_polygon((1, 1), poly)
        assert point_in_polygon((2, 0), poly)
        assert not point_in_polygon((3, 3), poly)


def test_convex_polygon_bbox_and_rejects_empty():
    poly = ConvexPolygon([(1, 2), (5, -1), (3, 7)])
    assert poly.bbox.to_list() == [1.0, -1.0, 5.0, 7.0]
    assert poly.as_polygon() == [(1.0, 2.0), (5.0, -1.0), (3.0, 7.0)]

    with pytest.raises(ValueError):
        ConvexPolygon([])
