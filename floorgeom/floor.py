"""Floor snapshots and the derived geometry of their entities."""

from __future__ import annotations

import logging
import math
from types import MappingProxyType
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Union

from .geometry.arcs import interpolate_arc_points_by_constraints
from .geometry.decomposition import polygon_area
from .types import Boundary, EntityID, FloorObject, IntegrityError, Point, Room, Vec2

logger = logging.getLogger(__name__)

Entity = Union[Point, Boundary, Room, FloorObject]

BOUNDARY_MAX_SEGMENT_LENGTH = 24.0
BOUNDARY_MAX_ANGLE = math.pi * 0.25
AREA_ARC_PRECISION = math.pi / 32
MAX_NEST_DEPTH = 100


class FloorState:
    """Immutable snapshot of every entity on a floor, keyed by id.

    Deriving a new snapshot keeps the identity of untouched entities so that
    consumers can diff two snapshots with ``is``. The per-type tables and the
    point to boundary adjacency are built once, when the snapshot is made.
    """

    __slots__ = ("_entities", "_points", "_boundaries", "_rooms", "_links")

    def __init__(self, entities: Union[Mapping[EntityID, Entity], Iterable[Entity]] = ()):
        if isinstance(entities, Mapping):
            table = dict(entities)
        else:
            table = {entity.id: entity for entity in entities}
        self._entities = MappingProxyType(table)

        points: Dict[EntityID, Point] = {}
        boundaries: Dict[EntityID, Boundary] = {}
        rooms: Dict[EntityID, Room] = {}
        links: Dict[EntityID, List[EntityID]] = {}
        for key, entity in table.items():
            if isinstance(entity, Point):
                points[key] = entity
            elif isinstance(entity, Boundary):
                boundaries[key] = entity
                links.setdefault(entity.start, []).append(key)
                if entity.end != entity.start:
                    links.setdefault(entity.end, []).append(key)
            elif isinstance(entity, Room):
                rooms[key] = entity
        self._points = MappingProxyType(points)
        self._boundaries = MappingProxyType(boundaries)
        self._rooms = MappingProxyType(rooms)
        self._links = links

    @classmethod
    def from_floor(cls, floor: "Floor") -> "FloorState":
        return cls([*floor.points, *floor.boundaries, *floor.objects, *floor.rooms])

    @property
    def entities(self) -> Mapping[EntityID, Entity]:
        return self._entities

    def __len__(self) -> int:
        return len(self._entities)

    def __iter__(self) -> Iterator[Entity]:
        return iter(self._entities.values())

    def get(self, entity_id: EntityID) -> Optional[Entity]:
        return self._entities.get(entity_id)

    def with_entities(self, *entities: Entity) -> "FloorState":
        table = dict(self._entities)
        for entity in entities:
            table[entity.id] = entity
        return FloorState(table)

    def without(self, ids: Iterable[EntityID]) -> "FloorState":
        drop = set(ids)
        return FloorState({k: v for k, v in self._entities.items() if k not in drop})

    @property
    def points(self) -> Mapping[EntityID, Point]:
        return self._points

    @property
    def boundaries(self) -> Mapping[EntityID, Boundary]:
        return self._boundaries

    @property
    def rooms(self) -> Mapping[EntityID, Room]:
        return self._rooms

    def linked_boundaries(self, point_ids: Iterable[EntityID]) -> Dict[EntityID, Boundary]:
        """Boundaries with at least one endpoint in ``point_ids``."""

        linked: Dict[EntityID, Boundary] = {}
        for point_id in point_ids:
            for boundary_id in self._links.get(point_id, ()):
                linked[boundary_id] = self._boundaries[boundary_id]
        return linked


class Floor:
    """Plain container for the serialized floor shape."""

    def __init__(
        self,
        points: Sequence[Point] = (),
        boundaries: Sequence[Boundary] = (),
        rooms: Sequence[Room] = (),
        objects: Sequence[FloorObject] = (),
        scale: float = 1.0,
    ):
        self.points = list(points)
        self.boundaries = list(boundaries)
        self.rooms = list(rooms)
        self.objects = list(objects)
        self.scale = float(scale)

    @property
    def points_by_id(self) -> Dict[EntityID, Point]:
        return {p.id: p for p in self.points}

    @property
    def boundaries_by_id(self) -> Dict[EntityID, Boundary]:
        return {b.id: b for b in self.boundaries}

    @property
    def rooms_by_id(self) -> Dict[EntityID, Room]:
        return {r.id: r for r in self.rooms}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "Floor":
        return cls(
            points=[Point.from_dict(raw) for raw in data.get("points") or []],
            boundaries=[Boundary.from_dict(raw) for raw in data.get("boundaries") or []],
            rooms=[Room.from_dict(raw) for raw in data.get("rooms") or []],
            objects=[FloorObject.from_dict(raw) for raw in data.get("objects") or []],
            scale=data.get("scale") or 1.0,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "points": [p.to_dict() for p in self.points],
            "boundaries": [b.to_dict() for b in self.boundaries],
            "rooms": [r.to_dict() for r in self.rooms],
            "objects": [o.to_dict() for o in self.objects],
            "scale": self.scale,
        }


def _lookup_point(points_by_id: Mapping[EntityID, Point], point_id: EntityID, boundary: Boundary) -> Point:
    point = points_by_id.get(point_id)
    if point is None:
        raise IntegrityError(f"boundary {boundary.id!r} references missing point {point_id!r}")
    return point


def arc_points(
    boundary: Boundary,
    points_by_id: Mapping[EntityID, Point],
    max_segment_length: float = BOUNDARY_MAX_SEGMENT_LENGTH,
    max_angle: float = BOUNDARY_MAX_ANGLE,
) -> List[Vec2]:
    """Interior points of an arced boundary, from start to end; ``[]`` when straight."""

    if not boundary.arc:
        return []
    start = _lookup_point(points_by_id, boundary.start, boundary)
    end = _lookup_point(points_by_id, boundary.end, boundary)
    return interpolate_arc_points_by_constraints(
        start.xy, end.xy, boundary.arc, max_segment_length, max_angle
    )


def boundary_points(
    boundary: Boundary,
    points_by_id: Mapping[EntityID, Point],
    max_segment_length: float = BOUNDARY_MAX_SEGMENT_LENGTH,
    max_angle: float = BOUNDARY_MAX_ANGLE,
) -> List[Vec2]:
    start = _lookup_point(points_by_id, boundary.start, boundary)
    end = _lookup_point(points_by_id, boundary.end, boundary)
    return [start.xy, *arc_points(boundary, points_by_id, max_segment_length, max_angle), end.xy]


def loop_point_order(
    boundary_ids: Sequence[EntityID],
    points_by_id: Mapping[EntityID, Point],
    boundaries_by_id: Mapping[EntityID, Boundary],
    include_arcs: bool = False,
    max_segment_length: float = BOUNDARY_MAX_SEGMENT_LENGTH,
    max_angle: float = BOUNDARY_MAX_ANGLE,
) -> List[Vec2]:
    """Walk a closed boundary loop and return its vertices in order.

    With ``include_arcs`` the interpolated points of arced boundaries follow
    their start vertex. A loop referencing an unknown boundary yields ``[]``.
    """

    if not boundary_ids:
        return []
    bounds = [boundaries_by_id.get(bid) for bid in boundary_ids]
    if any(b is None for b in bounds):
        logger.error("Loop %s references missing boundaries", list(boundary_ids))
        return []

    first, last = bounds[0], bounds[-1]
    prev_end = last.end
    if prev_end not in (first.start, first.end):
        prev_end = last.start

    order: List[Vec2] = []
    for bound in bounds:
        order.append(_lookup_point(points_by_id, prev_end, bound).xy)
        if prev_end == bound.start:
            prev_end = bound.end
            if include_arcs:
                order.extend(arc_points(bound, points_by_id, max_segment_length, max_angle))
        else:
            prev_end = bound.start
            if include_arcs:
                order.extend(reversed(arc_points(bound, points_by_id, max_segment_length, max_angle)))
    return order


def nest_depth(room_id: EntityID, rooms_by_id: Mapping[EntityID, Room], limit: int = MAX_NEST_DEPTH) -> int:
    """Depth of a room in the parent forest; roots are 1. Capped at ``limit``."""

    depth = 1
    room = rooms_by_id.get(room_id)
    while room is not None and room.parent is not None and depth < limit:
        room = rooms_by_id.get(room.parent)
        if room is None:
            break
        depth += 1
    return depth


def room_area(
    room: Room,
    points_by_id: Mapping[EntityID, Point],
    boundaries_by_id: Mapping[EntityID, Boundary],
    precision: float = AREA_ARC_PRECISION,
) -> float:
    """Unscaled area of the room perimeter minus its holes."""

    def loop_area(loop: Sequence[EntityID]) -> float:
        return polygon_area(
            loop_point_order(loop, points_by_id, boundaries_by_id, True, 0.0, precision)
        )

    area = loop_area(room.perimeter)
    for hole in room.holes:
        area -= loop_area(hole)
    return area


def floor_area(
    floor: Floor,
    room_ids: Optional[Iterable[EntityID]] = None,
    precision: float = AREA_ARC_PRECISION,
) -> float:
    """Total area of the selected rooms (all by default), scaled by ``floor.scale``."""

    points_by_id = floor.points_by_id
    boundaries_by_id = floor.boundaries_by_id
    rooms = floor.rooms
    if room_ids is not None:
        selected = set(room_ids)
        rooms = [r for r in rooms if r.id in selected]
    total = sum(room_area(r, points_by_id, boundaries_by_id, precision) for r in rooms)
    return total * floor.scale * floor.scale


__all__ = [
    "Entity",
    "FloorState",
    "Floor",
    "arc_points",
    "boundary_points",
    "loop_point_order",
    "nest_depth",
    "room_area",
    "floor_area",
]
