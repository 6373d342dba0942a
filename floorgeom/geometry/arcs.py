"""Circular-arc helpers for boundaries described by a chord and a sagitta."""

from __future__ import annotations

import math
from typing import List, Tuple

from ..types import Vec2

# |height / chord| below this is treated as a straight segment
DEGENERATE_ARC_RATIO = 1e-4


def _sub2(a: Vec2, b: Vec2) -> Vec2:
    return a[0] - b[0], a[1] - b[1]


def _length2(v: Vec2) -> float:
    return math.hypot(v[0], v[1])


def arc_radius(chord_length: float, arc_height: float) -> float:
    """Radius of the circle through a chord of ``chord_length`` with sagitta ``arc_height``.

    The sign follows ``arc_height``.
    """

    return ((arc_height * arc_height) + (chord_length * chord_length / 4.0)) / (2.0 * arc_height)


def arc_angle(radius: float, arc_height: float) -> float:
    """Angular spread of an arc of the given radius and sagitta."""

    return 2.0 * math.acos(1.0 - (arc_height / radius))


def chord_length_from_radius_and_angle(radius: float, angle: float) -> float:
    return 2.0 * abs(radius) * abs(math.sin(angle))


def arc_offset_angle(chord_length: float, arc_height: float) -> float:
    """Signed angle between the chord and the arc tangent at either endpoint."""

    if not arc_height or chord_length <= 0.0:
        return 0.0
    radius = arc_radius(chord_length, arc_height)
    return math.acos(1.0 - (arc_height / radius)) * (1.0 if arc_height > 0 else -1.0)


def is_degenerate_arc(start: Vec2, end: Vec2, arc_height: float) -> bool:
    chord_length = _length2(_sub2(end, start))
    if chord_length <= 0.0:
        return True
    return abs(arc_height / chord_length) < DEGENERATE_ARC_RATIO


def _arc_frame(start: Vec2, end: Vec2, arc_height: float) -> Tuple[Vec2, Vec2, Vec2, float, float]:
    delta = _sub2(end, start)
    chord_length = _length2(delta)
    radius = arc_radius(chord_length, arc_height)
    theta = arc_angle(radius, arc_height) * (1.0 if arc_height > 0 else -1.0)
    chord_dir = (delta[0] / chord_length, delta[1] / chord_length)
    sagitta_dir = (-chord_dir[1], chord_dir[0])
    offset = arc_height - radius
    center = (
        start[0] + chord_dir[0] * chord_length / 2.0 + sagitta_dir[0] * offset,
        start[1] + chord_dir[1] * chord_length / 2.0 + sagitta_dir[1] * offset,
    )
    return center, chord_dir, sagitta_dir, radius, theta


def _fan_points(
    center: Vec2, chord_dir: Vec2, sagitta_dir: Vec2, radius: float, theta: float, count: int
) -> List[Vec2]:
    # endpoints are part of the spread but are not returned
    delta_theta = theta / (count + 1)
    offset_theta = (-theta / 2.0) + delta_theta
    points: List[Vec2] = []
    for i in range(count):
        t = offset_theta + delta_theta * i
        cos_t = radius * math.cos(t)
        sin_t = radius * math.sin(t)
        points.append(
            (
                center[0] + sagitta_dir[0] * cos_t + chord_dir[0] * sin_t,
                center[1] + sagitta_dir[1] * cos_t + chord_dir[1] * sin_t,
            )
        )
    return points


def interpolate_arc_points(start: Vec2, end: Vec2, arc_height: float, count: int) -> List[Vec2]:
    """Return ``count`` interior points evenly spaced by angle along the arc."""

    if count <= 0 or is_degenerate_arc(start, end, arc_height):
        return []
    center, chord_dir, sagitta_dir, radius, theta = _arc_frame(start, end, arc_height)
    return _fan_points(center, chord_dir, sagitta_dir, radius, theta, count)


def interpolate_arc_points_by_constraints(
    start: Vec2,
    end: Vec2,
    arc_height: float,
    max_segment_length: float = 0.0,
    max_angle: float = 0.0,
) -> List[Vec2]:
    """Interpolate an arc with enough points to satisfy every given constraint.

    A constraint of ``0`` is ignored. The point count is the largest of
    ``ceil(|radius * theta / max_segment_length|)`` and ``ceil(|theta| / max_angle)``.
    """

    if is_degenerate_arc(start, end, arc_height):
        return []
    center, chord_dir, sagitta_dir, radius, theta = _arc_frame(start, end, arc_height)
    count = 0
    if max_segment_length:
        count = max(count, math.ceil(abs(radius * theta / max_segment_length)))
    if max_angle:
        count = max(count, math.ceil(abs(theta) / max_angle))
    return _fan_points(center, chord_dir, sagitta_dir, radius, theta, count)


def arc_midpoint(start: Vec2, end: Vec2, arc_height: float) -> Vec2:
    """Apex of the arc, or the chord midpoint for straight boundaries."""

    mid = ((start[0] + end[0]) * 0.5, (start[1] + end[1]) * 0.5)
    if not arc_height:
        return mid
    delta = _sub2(end, start)
    length = _length2(delta)
    if length <= 0.0:
        return mid
    normal = (-delta[1] / length, delta[0] / length)
    return mid[0] + normal[0] * arc_height, mid[1] + normal[1] * arc_height


def arc_length(start: Vec2, end: Vec2, arc_height: float) -> float:
    chord_length = _length2(_sub2(end, start))
    if not arc_height or chord_length <= 0.0:
        return chord_length
    radius = arc_radius(chord_length, abs(arc_height))
    return radius * arc_angle(radius, abs(arc_height))


__all__ = [
    "DEGENERATE_ARC_RATIO",
    "arc_radius",
    "arc_angle",
    "arc_offset_angle",
    "arc_midpoint",
    "arc_length",
    "chord_length_from_radius_and_angle",
    "interpolate_arc_points",
    "interpolate_arc_points_by_constraints",
    "is_degenerate_arc",
]
