"""Separating-axis tests for convex polygons, circles and points.

Every test reports overlap through an optional :class:`SATResponse` that
also records whether one shape lies entirely within the other, which the
enclosure tree relies on for containment classification.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import numpy as np

from ..types import BBox, Polygon, Vec2

_LEFT_VORONOI = -1
_MIDDLE_VORONOI = 0
_RIGHT_VORONOI = 1

_POINT_EPS = 1e-9


class ConvexPolygon:
    """Convex polygon with precomputed edge normals.

    Two-point polygons are treated as segments and additionally carry their
    direction as a candidate axis so collinear segments separate correctly.
    """

    __slots__ = ("points", "normals", "bbox", "tag")

    def __init__(self, points: Iterable[Sequence[float]]):
        pts = np.asarray([(float(p[0]), float(p[1])) for p in points], dtype=float)
        if pts.ndim != 2 or pts.shape[0] == 0:
            raise ValueError("convex polygon needs at least one point")
        self.points = pts
        self.bbox = BBox(
            float(pts[:, 0].min()), float(pts[:, 1].min()), float(pts[:, 0].max()), float(pts[:, 1].max())
        )
        self.normals = _edge_normals(pts)
        # free slot for broad-phase bookkeeping by owners
        self.tag: Optional[int] = None

    def __len__(self) -> int:
        return int(self.points.shape[0])

    def to_list(self) -> List[List[float]]:
        return [[float(x), float(y)] for x, y in self.points]

    def as_polygon(self) -> Polygon:
        return [(float(x), float(y)) for x, y in self.points]

    def __repr__(self) -> str:
        return f"ConvexPolygon(n={len(self)}, bbox={self.bbox.to_list()})"


def _edge_normals(pts: np.ndarray) -> np.ndarray:
    if pts.shape[0] < 2:
        return np.zeros((0, 2))
    edges = np.roll(pts, -1, axis=0) - pts
    normals = np.column_stack((edges[:, 1], -edges[:, 0]))
    if pts.shape[0] == 2:
        normals = np.vstack((normals[:1], edges[:1]))
    lengths = np.hypot(normals[:, 0], normals[:, 1])
    keep = lengths > 0.0
    return normals[keep] / lengths[keep, None]


@dataclass
class SATResponse:
    overlap: float = math.inf
    a_in_b: bool = True
    b_in_a: bool = True

    def clear(self) -> None:
        self.overlap = math.inf
        self.a_in_b = True
        self.b_in_a = True


def _project(points: np.ndarray, axis: np.ndarray):
    dots = points @ axis
    return float(dots.min()), float(dots.max())


def _is_separating_axis(
    a_points: np.ndarray, b_points: np.ndarray, axis: np.ndarray, response: Optional[SATResponse]
) -> bool:
    a_min, a_max = _project(a_points, axis)
    b_min, b_max = _project(b_points, axis)
    if a_min > b_max or b_min > a_max:
        return True
    if response is not None:
        if a_min < b_min:
            response.a_in_b = False
            if a_max < b_max:
                overlap = a_max - b_min
                response.b_in_a = False
            else:
                option1 = a_max - b_min
                option2 = b_max - a_min
                overlap = option1 if option1 < option2 else -option2
        else:
            response.b_in_a = False
            if a_max > b_max:
                overlap = a_min - b_max
                response.a_in_b = False
            else:
                option1 = a_max - b_min
                option2 = b_max - a_min
                overlap = option1 if option1 < option2 else -option2
        if abs(overlap) < abs(response.overlap):
            response.overlap = overlap
    return False


def collide_polygons(
    a: ConvexPolygon, b: ConvexPolygon, response: Optional[SATResponse] = None
) -> bool:
    """Return ``True`` when two convex polygons overlap (touching counts)."""

    for axis in a.normals:
        if _is_separating_axis(a.points, b.points, axis, response):
            return False
    for axis in b.normals:
        if _is_separating_axis(a.points, b.points, axis, response):
            return False
    return True


def _voronoi_region(edge: np.ndarray, point: np.ndarray) -> int:
    len2 = float(edge @ edge)
    dp = float(point @ edge)
    if dp < 0:
        return _LEFT_VORONOI
    if dp > len2:
        return _RIGHT_VORONOI
    return _MIDDLE_VORONOI


def collide_polygon_circle(
    polygon: ConvexPolygon,
    center: Vec2,
    radius: float,
    response: Optional[SATResponse] = None,
) -> bool:
    """Polygon vs circle overlap; ``a`` is the polygon and ``b`` the circle in ``response``.

    The polygon must be wound counter-clockwise.
    """

    pts = polygon.points
    count = pts.shape[0]
    c = np.asarray(center, dtype=float)
    radius2 = radius * radius

    if count == 1:
        delta = c - pts[0]
        dist = math.hypot(delta[0], delta[1])
        if dist > radius:
            return False
        if response is not None:
            response.b_in_a = radius == 0.0 and dist == 0.0
            response.overlap = radius - dist
        return True

    for i in range(count):
        nxt = (i + 1) % count
        prev = (i - 1) % count
        edge = pts[nxt] - pts[i]
        point = c - pts[i]
        overlap: Optional[float] = None

        if response is not None and float(point @ point) > radius2:
            response.a_in_b = False

        region = _voronoi_region(edge, point)
        if region == _LEFT_VORONOI:
            edge2 = pts[i] - pts[prev]
            point2 = c - pts[prev]
            if _voronoi_region(edge2, point2) == _RIGHT_VORONOI:
                dist = math.hypot(point[0], point[1])
                if dist > radius:
                    return False
                if response is not None:
                    response.b_in_a = False
                    overlap = radius - dist
        elif region == _RIGHT_VORONOI:
            edge2 = pts[(nxt + 1) % count] - pts[nxt]
            point2 = c - pts[nxt]
            if _voronoi_region(edge2, point2) == _LEFT_VORONOI:
                dist = math.hypot(point2[0], point2[1])
                if dist > radius:
                    return False
                if response is not None:
                    response.b_in_a = False
                    overlap = radius - dist
        else:
            length = math.hypot(edge[0], edge[1])
            if length == 0.0:
                continue
            normal = np.array((edge[1], -edge[0])) / length
            dist = float(point @ normal)
            if dist > 0 and abs(dist) > radius:
                return False
            if response is not None:
                overlap = radius - dist
                if dist >= 0 or overlap < 2 * radius:
                    response.b_in_a = False

        if response is not None and overlap is not None and abs(overlap) < abs(response.overlap):
            response.overlap = overlap

    return True


def collide_circle_polygon(
    center: Vec2, radius: float, polygon: ConvexPolygon, response: Optional[SATResponse] = None
) -> bool:
    result = collide_polygon_circle(polygon, center, radius, response)
    if result and response is not None:
        response.a_in_b, response.b_in_a = response.b_in_a, response.a_in_b
        response.overlap = -response.overlap
    return result


def point_in_polygon(point: Vec2, polygon: ConvexPolygon) -> bool:
    """Point containment for a convex polygon of either winding, boundary inclusive."""

    pts = polygon.points
    if pts.shape[0] < 3:
        return False
    p = np.asarray(point, dtype=float)
    edges = np.roll(pts, -1, axis=0) - pts
    rel = p - pts
    crosses = edges[:, 0] * rel[:, 1] - edges[:, 1] * rel[:, 0]
    scale = max(1.0, float(np.abs(pts).max()))
    tol = _POINT_EPS * scale * scale
    return bool(np.all(crosses >= -tol) or np.all(crosses <= tol))


__all__ = [
    "ConvexPolygon",
    "SATResponse",
    "collide_polygons",
    "collide_polygon_circle",
    "collide_circle_polygon",
    "point_in_polygon",
]
