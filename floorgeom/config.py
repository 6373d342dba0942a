"""Configuration values for the collision index and the room resolver."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(frozen=True)
class CollisionConfig:
    """Selection radii and boundary interpolation used by the collision index."""

    point_radius: float = 10.0
    line_radius: float = 4.0
    # probe circle used to measure signed distance into a region
    region_probe_radius: float = 50.0
    boundary_max_segment_length: float = 24.0
    boundary_max_angle: float = math.pi * 0.25
    window_weight: float = 2.0


@dataclass(frozen=True)
class ResolverConfig:
    """Numeric knobs for room resolution.

    ``arc_precision`` is the maximum angle (radians) spanned by one
    interpolated sub-segment when arcs are flattened for nesting checks.
    """

    arc_precision: float = math.pi / 32
    max_trace_iterations: int = 10_000
    max_point_hops: int = 200
    arc_overlap_threshold: float = math.pi / 4
    max_nest_depth: int = 100


DEFAULT_COLLISION_CONFIG = CollisionConfig()
DEFAULT_RESOLVER_CONFIG = ResolverConfig()


__all__ = [
    "CollisionConfig",
    "ResolverConfig",
    "DEFAULT_COLLISION_CONFIG",
    "DEFAULT_RESOLVER_CONFIG",
]
