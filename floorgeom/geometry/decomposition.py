"""Convex decomposition of simple polygons.

Two views of a polygon are produced here: its convex parts, and its convex
hull together with the convex "obstacles" that fill the gap between the hull
and the polygon. The enclosure tree uses both to tell a polygon that sits
fully inside another from one that merely sits inside its hull.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

import numpy as np
from scipy.spatial import ConvexHull, QhullError
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, LinearRing, MultiPolygon
from shapely.geometry import Polygon as ShapelyPolygon
from shapely.validation import make_valid

from ..types import Polygon, Vec2

logger = logging.getLogger(__name__)

# snapping grid for the hull-minus-polygon difference; large enough to avoid
# spurious near-zero-length segments at floor-plan coordinate scales
BOOLEAN_GRID_SIZE = 1e-7
MAX_DECOMP_LEVEL = 100
_AREA_REL_TOL = 1e-6


class DecompositionError(ValueError):
    """Raised internally when quick decomposition cannot produce a valid split."""


@dataclass
class HullDecomposition:
    outer_hull: Polygon
    obstacles: List[Polygon]


def _cross(a: Vec2, b: Vec2, c: Vec2) -> float:
    return (b[0] - a[0]) * (c[1] - a[1]) - (c[0] - a[0]) * (b[1] - a[1])


def _is_left(a: Vec2, b: Vec2, c: Vec2) -> bool:
    return _cross(a, b, c) > 0


def _is_left_on(a: Vec2, b: Vec2, c: Vec2) -> bool:
    return _cross(a, b, c) >= 0


def _is_right(a: Vec2, b: Vec2, c: Vec2) -> bool:
    return _cross(a, b, c) < 0


def _is_right_on(a: Vec2, b: Vec2, c: Vec2) -> bool:
    return _cross(a, b, c) <= 0


def _sqdist(a: Vec2, b: Vec2) -> float:
    return (a[0] - b[0]) ** 2 + (a[1] - b[1]) ** 2


def signed_area(polygon: Sequence[Vec2]) -> float:
    if len(polygon) < 3:
        return 0.0
    pts = np.asarray(polygon, dtype=float)
    x = pts[:, 0]
    y = pts[:, 1]
    return float(0.5 * (np.dot(x, np.roll(y, -1)) - np.dot(y, np.roll(x, -1))))


def polygon_area(polygon: Sequence[Vec2]) -> float:
    return abs(signed_area(polygon))


def is_ccw(polygon: Sequence[Vec2]) -> bool:
    return signed_area(polygon) >= 0.0


def make_ccw(polygon: Sequence[Vec2]) -> Polygon:
    """Return a counter-clockwise copy of ``polygon``."""

    pts = [(float(p[0]), float(p[1])) for p in polygon]
    if not is_ccw(pts):
        pts.reverse()
    return pts


def is_convex(polygon: Sequence[Vec2], tol: float = 1e-9) -> bool:
    count = len(polygon)
    if count < 3:
        return True
    scale = max(1.0, max(abs(c) for p in polygon for c in p))
    eps = tol * scale * scale
    sign = 0
    for i in range(count):
        turn = _cross(polygon[i - 1], polygon[i], polygon[(i + 1) % count])
        if abs(turn) <= eps:
            continue
        current = 1 if turn > 0 else -1
        if sign and current != sign:
            return False
        sign = current
    return True


def is_simple(polygon: Sequence[Vec2]) -> bool:
    if len(polygon) < 3:
        return False
    try:
        return bool(LinearRing(polygon).is_simple)
    except (GEOSException, ValueError):
        return False


def clean_polygon(polygon: Sequence[Vec2], eps: float = 1e-12) -> Polygon:
    """Drop repeated consecutive vertices, including a closing duplicate."""

    cleaned: Polygon = []
    for pt in polygon:
        p = (float(pt[0]), float(pt[1]))
        if cleaned and _sqdist(cleaned[-1], p) <= eps:
            continue
        cleaned.append(p)
    while len(cleaned) > 1 and _sqdist(cleaned[0], cleaned[-1]) <= eps:
        cleaned.pop()
    return cleaned


def _at(poly: Sequence[Vec2], i: int) -> Vec2:
    return poly[i % len(poly)]


def _line_intersection(p1: Vec2, p2: Vec2, q1: Vec2, q2: Vec2) -> Vec2:
    a1 = p2[1] - p1[1]
    b1 = p1[0] - p2[0]
    c1 = a1 * p1[0] + b1 * p1[1]
    a2 = q2[1] - q1[1]
    b2 = q1[0] - q2[0]
    c2 = a2 * q1[0] + b2 * q1[1]
    det = a1 * b2 - a2 * b1
    if det == 0.0:
        return (0.0, 0.0)
    return ((b2 * c1 - b1 * c2) / det, (a1 * c2 - a2 * c1) / det)


def _segments_intersect(p1: Vec2, p2: Vec2, q1: Vec2, q2: Vec2) -> bool:
    dx = p2[0] - p1[0]
    dy = p2[1] - p1[1]
    da = q2[0] - q1[0]
    db = q2[1] - q1[1]
    denom = da * dy - db * dx
    if denom == 0.0:
        return False
    s = (dx * (q1[1] - p1[1]) + dy * (p1[0] - q1[0])) / denom
    t = (da * (p1[1] - q1[1]) + db * (q1[0] - p1[0])) / (db * dx - da * dy)
    return 0.0 <= s <= 1.0 and 0.0 <= t <= 1.0


def _can_see(poly: Sequence[Vec2], a: int, b: int) -> bool:
    count = len(poly)
    a %= count
    b %= count
    for i in range(count):
        j = (i + 1) % count
        if i in (a, b) or j in (a, b):
            continue
        if _segments_intersect(poly[a], poly[b], poly[i], poly[j]):
            return False
    return True


def _slice(poly: Sequence[Vec2], start: int, stop: int) -> Polygon:
    return list(poly[start:stop])


def _quick_decomp(poly: Polygon, result: List[Polygon], level: int) -> None:
    count = len(poly)
    if count < 3:
        return
    level += 1
    if level > MAX_DECOMP_LEVEL:
        raise DecompositionError("maximum decomposition depth reached")

    for i in range(count):
        if not _is_right(_at(poly, i - 1), _at(poly, i), _at(poly, i + 1)):
            continue

        upper_dist = lower_dist = math.inf
        upper_int: Vec2 = (0.0, 0.0)
        lower_int: Vec2 = (0.0, 0.0)
        upper_index = lower_index = 0
        for j in range(count):
            if _is_left(_at(poly, i - 1), _at(poly, i), _at(poly, j)) and _is_right_on(
                _at(poly, i - 1), _at(poly, i), _at(poly, j - 1)
            ):
                p = _line_intersection(_at(poly, i - 1), _at(poly, i), _at(poly, j), _at(poly, j - 1))
                if _is_right(_at(poly, i + 1), _at(poly, i), p):
                    d = _sqdist(poly[i], p)
                    if d < lower_dist:
                        lower_dist, lower_int, lower_index = d, p, j
            if _is_left(_at(poly, i + 1), _at(poly, i), _at(poly, j + 1)) and _is_right_on(
                _at(poly, i + 1), _at(poly, i), _at(poly, j)
            ):
                p = _line_intersection(_at(poly, i + 1), _at(poly, i), _at(poly, j), _at(poly, j + 1))
                if _is_left(_at(poly, i - 1), _at(poly, i), p):
                    d = _sqdist(poly[i], p)
                    if d < upper_dist:
                        upper_dist, upper_int, upper_index = d, p, j

        lower_poly: Polygon = []
        upper_poly: Polygon = []
        if lower_index == (upper_index + 1) % count:
            # nothing visible to connect to: split at a Steiner point
            steiner = ((lower_int[0] + upper_int[0]) / 2.0, (lower_int[1] + upper_int[1]) / 2.0)
            if i < upper_index:
                lower_poly.extend(_slice(poly, i, upper_index + 1))
                lower_poly.append(steiner)
                upper_poly.append(steiner)
                if lower_index != 0:
                    upper_poly.extend(_slice(poly, lower_index, count))
                upper_poly.extend(_slice(poly, 0, i + 1))
            else:
                if i != 0:
                    lower_poly.extend(_slice(poly, i, count))
                lower_poly.extend(_slice(poly, 0, upper_index + 1))
                lower_poly.append(steiner)
                upper_poly.append(steiner)
                upper_poly.extend(_slice(poly, lower_index, i + 1))
        else:
            if lower_index > upper_index:
                upper_index += count
            closest_dist = math.inf
            closest_index = None
            for j in range(lower_index, upper_index + 1):
                if _is_left_on(_at(poly, i - 1), _at(poly, i), _at(poly, j)) and _is_right_on(
                    _at(poly, i + 1), _at(poly, i), _at(poly, j)
                ):
                    d = _sqdist(_at(poly, i), _at(poly, j))
                    if d < closest_dist and _can_see(poly, i, j):
                        closest_dist = d
                        closest_index = j % count
            if closest_index is None:
                raise DecompositionError("no visible vertex from reflex vertex")
            if i < closest_index:
                lower_poly.extend(_slice(poly, i, closest_index + 1))
                if closest_index != 0:
                    upper_poly.extend(_slice(poly, closest_index, count))
                upper_poly.extend(_slice(poly, 0, i + 1))
            else:
                if i != 0:
                    lower_poly.extend(_slice(poly, i, count))
                lower_poly.extend(_slice(poly, 0, closest_index + 1))
                upper_poly.extend(_slice(poly, closest_index, i + 1))

        if len(lower_poly) >= count and len(upper_poly) >= count:
            raise DecompositionError("split made no progress")
        # smallest piece first
        if len(lower_poly) < len(upper_poly):
            _quick_decomp(lower_poly, result, level)
            _quick_decomp(upper_poly, result, level)
        else:
            _quick_decomp(upper_poly, result, level)
            _quick_decomp(lower_poly, result, level)
        return

    result.append(poly)


def ear_clip(polygon: Sequence[Vec2]) -> List[Polygon]:
    """Triangulate a polygon by ear clipping. Always terminates.

    Returns counter-clockwise triangles; degenerate (zero-area) ears are dropped.
    """

    pts = make_ccw(clean_polygon(polygon))
    triangles: List[Polygon] = []
    indices = list(range(len(pts)))
    guard = 0
    while len(indices) > 3:
        guard += 1
        if guard > 4 * len(pts) * len(pts) + 16:
            break
        count = len(indices)
        ear_found = False
        for k in range(count):
            a = pts[indices[k - 1]]
            b = pts[indices[k]]
            c = pts[indices[(k + 1) % count]]
            turn = _cross(a, b, c)
            if turn < 0:
                continue
            if turn == 0:
                # collinear vertex: drop it without emitting a triangle
                indices.pop(k)
                ear_found = True
                break
            blocked = False
            for m in indices:
                p = pts[m]
                if p in (a, b, c):
                    continue
                if _cross(a, b, p) >= 0 and _cross(b, c, p) >= 0 and _cross(c, a, p) >= 0:
                    blocked = True
                    break
            if blocked:
                continue
            triangles.append([a, b, c])
            indices.pop(k)
            ear_found = True
            break
        if not ear_found:
            # self-touching input: clip the least reflex vertex so the loop ends
            k = max(
                range(count),
                key=lambda n: _cross(pts[indices[n - 1]], pts[indices[n]], pts[indices[(n + 1) % count]]),
            )
            a, b, c = pts[indices[k - 1]], pts[indices[k]], pts[indices[(k + 1) % count]]
            if _cross(a, b, c) > 0:
                triangles.append([a, b, c])
            indices.pop(k)
    if len(indices) == 3:
        tri = [pts[i] for i in indices]
        if _cross(*tri) > 0:
            triangles.append(tri)
    return triangles


def _verify_parts(source: Sequence[Vec2], parts: Sequence[Sequence[Vec2]]) -> None:
    expected = polygon_area(source)
    total = sum(polygon_area(part) for part in parts)
    if abs(total - expected) > _AREA_REL_TOL * max(expected, 1.0):
        raise DecompositionError(f"part areas {total:.6g} differ from polygon area {expected:.6g}")
    for part in parts:
        if not is_convex(part):
            raise DecompositionError("non-convex part produced")


def decompose_to_convex_parts(polygon: Sequence[Vec2]) -> List[Polygon]:
    """Split a simple polygon into counter-clockwise convex parts.

    Uses reflex-vertex splitting and falls back to an ear-clipping
    triangulation when the split is rejected.
    """

    poly = make_ccw(clean_polygon(polygon))
    if len(poly) < 3:
        return [poly] if poly else []
    if is_convex(poly):
        return [poly]
    parts: List[Polygon] = []
    try:
        _quick_decomp(poly, parts, 0)
        parts = [make_ccw(part) for part in parts if len(part) >= 3]
        _verify_parts(poly, parts)
    except DecompositionError as exc:
        logger.debug("quick decomposition rejected (%s); ear clipping %d vertices", exc, len(poly))
        return ear_clip(poly)
    return parts


def convex_hull(polygon: Sequence[Vec2]) -> Polygon:
    """Counter-clockwise convex hull; collinear input collapses to its two extremes."""

    pts = np.asarray([(float(p[0]), float(p[1])) for p in polygon], dtype=float)
    if pts.shape[0] < 3:
        return make_ccw([tuple(p) for p in pts])
    try:
        hull = ConvexHull(pts)
    except QhullError:
        order = np.lexsort((pts[:, 1], pts[:, 0]))
        first, last = pts[order[0]], pts[order[-1]]
        return [(float(first[0]), float(first[1])), (float(last[0]), float(last[1]))]
    return [(float(pts[i, 0]), float(pts[i, 1])) for i in hull.vertices]


def _exterior_rings(geometry) -> List[Polygon]:
    if geometry.is_empty:
        return []
    if isinstance(geometry, ShapelyPolygon):
        return [list(geometry.exterior.coords)[:-1]]
    if isinstance(geometry, (MultiPolygon, GeometryCollection)):
        rings: List[Polygon] = []
        for part in geometry.geoms:
            rings.extend(_exterior_rings(part))
        return rings
    return []


def _hull_difference(hull: Polygon, polygon: Polygon):
    hull_shape = ShapelyPolygon(hull)
    src_shape = ShapelyPolygon(polygon)
    if not src_shape.is_valid:
        src_shape = make_valid(src_shape)
    try:
        return hull_shape.difference(src_shape, grid_size=BOOLEAN_GRID_SIZE)
    except GEOSException:
        logger.warning("hull difference failed on snapped grid; retrying unsnapped")
        return hull_shape.difference(src_shape.buffer(0))


def decompose_to_convex_hull_and_obstacles(polygon: Sequence[Vec2]) -> HullDecomposition:
    """Return the convex hull of ``polygon`` and convex parts of hull minus polygon."""

    poly = make_ccw(clean_polygon(polygon))
    hull = convex_hull(poly)
    if len(poly) < 3 or len(hull) < 3 or is_convex(poly):
        return HullDecomposition(hull, [])

    try:
        difference = _hull_difference(hull, poly)
    except GEOSException:
        logger.warning(
            "error subtracting polygon (%d vertices) from its convex hull; no obstacles kept",
            len(poly),
        )
        return HullDecomposition(hull, [])

    min_area = _AREA_REL_TOL * max(polygon_area(hull), 1.0) * 1e-3
    obstacles: List[Polygon] = []
    for ring in _exterior_rings(difference):
        ring = clean_polygon(ring)
        if len(ring) < 3 or polygon_area(ring) <= min_area:
            continue
        if is_simple(ring):
            obstacles.extend(decompose_to_convex_parts(ring))
        else:
            obstacles.extend(ear_clip(ring))
    return HullDecomposition(hull, obstacles)


__all__ = [
    "BOOLEAN_GRID_SIZE",
    "DecompositionError",
    "HullDecomposition",
    "signed_area",
    "polygon_area",
    "is_ccw",
    "make_ccw",
    "is_convex",
    "is_simple",
    "clean_polygon",
    "ear_clip",
    "decompose_to_convex_parts",
    "convex_hull",
    "decompose_to_convex_hull_and_obstacles",
]
