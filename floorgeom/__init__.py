from .types import (
    BBox,
    Boundary,
    CacheVersionError,
    EntityID,
    FloorGeometryError,
    FloorObject,
    IntegrityError,
    Point,
    Room,
    TraversalError,
)
from .config import (
    CollisionConfig,
    ResolverConfig,
    DEFAULT_COLLISION_CONFIG,
    DEFAULT_RESOLVER_CONFIG,
)
from .geometry import EnclosureTree, decompose_to_convex_parts, decompose_to_convex_hull_and_obstacles
from .collision import CollisionResolver, ResolverMaintainer, SnapCandidate, CollisionReport, shallow_diff
from .floor import Floor, FloorState, boundary_points, floor_area, loop_point_order, nest_depth, room_area
from .rooms import resolve_rooms, combine_rooms
from .validate import IntegrityIssue, ingest_floor

__all__ = [
    'BBox',
    'Boundary',
    'CacheVersionError',
    'EntityID',
    'FloorGeometryError',
    'FloorObject',
    'IntegrityError',
    'Point',
    'Room',
    'TraversalError',
    'CollisionConfig',
    'ResolverConfig',
    'DEFAULT_COLLISION_CONFIG',
    'DEFAULT_RESOLVER_CONFIG',
    'EnclosureTree',
    'decompose_to_convex_parts',
    'decompose_to_convex_hull_and_obstacles',
    'CollisionResolver',
    'ResolverMaintainer',
    'SnapCandidate',
    'CollisionReport',
    'shallow_diff',
    'Floor',
    'FloorState',
    'boundary_points',
    'floor_area',
    'loop_point_order',
    'nest_depth',
    'room_area',
    'resolve_rooms',
    'combine_rooms',
    'IntegrityIssue',
    'ingest_floor',
]
