"""Planar geometry primitives used by the collision index and room resolver."""

from .arcs import (
    arc_midpoint,
    arc_length,
    interpolate_arc_points,
    interpolate_arc_points_by_constraints,
    is_degenerate_arc,
)
from .decomposition import (
    HullDecomposition,
    convex_hull,
    decompose_to_convex_hull_and_obstacles,
    decompose_to_convex_parts,
    ear_clip,
    is_ccw,
    make_ccw,
    polygon_area,
)
from .enclosure import CACHE_VERSION, ContainmentFlag, EnclosureTree
from .quadtree import QuadTree
from .sat import ConvexPolygon, SATResponse

__all__ = [
    "arc_midpoint",
    "arc_length",
    "interpolate_arc_points",
    "interpolate_arc_points_by_constraints",
    "is_degenerate_arc",
    "HullDecomposition",
    "convex_hull",
    "decompose_to_convex_hull_and_obstacles",
    "decompose_to_convex_parts",
    "ear_clip",
    "is_ccw",
    "make_ccw",
    "polygon_area",
    "CACHE_VERSION",
    "ContainmentFlag",
    "EnclosureTree",
    "QuadTree",
    "ConvexPolygon",
    "SATResponse",
]
