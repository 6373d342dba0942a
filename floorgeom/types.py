"""Core value types shared by the geometry, collision and room modules."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple, Union

EntityID = Union[str, int]
Vec2 = Tuple[float, float]
Polygon = List[Vec2]


class FloorGeometryError(RuntimeError):
    """Base class for fatal faults raised by the geometry core."""


class TraversalError(FloorGeometryError):
    """Raised when a graph walk overruns its iteration cap or loses its way."""


class IntegrityError(FloorGeometryError):
    """Raised when an entity references something missing from the working set."""


class CacheVersionError(ValueError):
    """Raised when a cached enclosure tree was written by another format version."""


@dataclass(frozen=True)
class Point:
    id: EntityID
    x: float
    y: float

    @property
    def xy(self) -> Vec2:
        return (self.x, self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {"id": self.id, "x": self.x, "y": self.y}

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Point":
        return cls(raw["id"], float(raw["x"]), float(raw["y"]))


@dataclass(frozen=True)
class Boundary:
    """Straight or arced wall between two points.

    ``arc`` is the signed sagitta; positive values bulge to the left of the
    start -> end direction.
    """

    id: EntityID
    start: EntityID
    end: EntityID
    arc: float = 0.0
    boundary_type: str = "wall"

    def other_end(self, point_id: EntityID) -> EntityID:
        return self.end if self.start == point_id else self.start

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "start": self.start,
            "end": self.end,
            "arc": self.arc,
            "boundaryType": self.boundary_type,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Boundary":
        return cls(
            raw["id"],
            raw["start"],
            raw["end"],
            float(raw.get("arc") or 0.0),
            raw.get("boundaryType") or raw.get("type") or "wall",
        )


@dataclass
class Room:
    """Resolved face of the boundary graph."""

    id: EntityID
    perimeter: List[EntityID]
    holes: List[List[EntityID]] = field(default_factory=list)
    interior: List[EntityID] = field(default_factory=list)
    parent: Optional[EntityID] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "boundaries": {
                "perimeter": list(self.perimeter),
                "holes": [list(hole) for hole in self.holes],
                "interior": list(self.interior),
            },
            "parent": self.parent,
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "Room":
        boundaries = raw.get("boundaries") or {}
        parent = raw.get("parent", raw.get("parent_id"))
        return cls(
            raw["id"],
            list(boundaries.get("perimeter") or []),
            [list(hole) for hole in boundaries.get("holes") or []],
            list(boundaries.get("interior") or []),
            parent,
        )


@dataclass(frozen=True)
class FloorObject:
    """Permanent object silhouette given as one or more closed point loops."""

    id: EntityID
    loops: Tuple[Tuple[Vec2, ...], ...]
    object_type: str = "object"

    @property
    def is_window(self) -> bool:
        return self.object_type == "window"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "objectType": self.object_type,
            "loops": [[list(pt) for pt in loop] for loop in self.loops],
        }

    @classmethod
    def from_dict(cls, raw: Dict[str, Any]) -> "FloorObject":
        loops = tuple(
            tuple((float(pt[0]), float(pt[1])) for pt in loop)
            for loop in raw.get("loops") or []
        )
        return cls(raw["id"], loops, raw.get("objectType") or "object")


@dataclass(frozen=True)
class BBox:
    """Axis-aligned bounding box. ``BBox.empty()`` contains nothing."""

    min_x: float
    min_y: float
    max_x: float
    max_y: float

    @classmethod
    def empty(cls) -> "BBox":
        return cls(math.inf, math.inf, -math.inf, -math.inf)

    @classmethod
    def from_points(cls, points: Iterable[Vec2]) -> "BBox":
        box = cls.empty()
        for pt in points:
            box = box.expand_by_point(pt)
        return box

    @classmethod
    def around(cls, center: Vec2, radius: float) -> "BBox":
        return cls(center[0] - radius, center[1] - radius, center[0] + radius, center[1] + radius)

    def is_empty(self) -> bool:
        return self.max_x < self.min_x or self.max_y < self.min_y

    @property
    def width(self) -> float:
        return 0.0 if self.is_empty() else self.max_x - self.min_x

    @property
    def height(self) -> float:
        return 0.0 if self.is_empty() else self.max_y - self.min_y

    @property
    def diagonal(self) -> float:
        return math.hypot(self.width, self.height)

    def expand_by_point(self, pt: Vec2) -> "BBox":
        x, y = float(pt[0]), float(pt[1])
        return BBox(min(self.min_x, x), min(self.min_y, y), max(self.max_x, x), max(self.max_y, y))

    def union(self, other: "BBox") -> "BBox":
        if other.is_empty():
            return self
        if self.is_empty():
            return other
        return BBox(
            min(self.min_x, other.min_x),
            min(self.min_y, other.min_y),
            max(self.max_x, other.max_x),
            max(self.max_y, other.max_y),
        )

    def contains_point(self, pt: Vec2) -> bool:
        return self.min_x <= pt[0] <= self.max_x and self.min_y <= pt[1] <= self.max_y

    def contains_box(self, other: "BBox") -> bool:
        if other.is_empty():
            return True
        return (
            self.min_x <= other.min_x
            and self.min_y <= other.min_y
            and other.max_x <= self.max_x
            and other.max_y <= self.max_y
        )

    def intersects(self, other: "BBox") -> bool:
        if self.is_empty() or other.is_empty():
            return False
        return not (
            other.max_x < self.min_x
            or other.min_x > self.max_x
            or other.max_y < self.min_y
            or other.min_y > self.max_y
        )

    def to_list(self) -> List[float]:
        return [self.min_x, self.min_y, self.max_x, self.max_y]

    @classmethod
    def from_list(cls, values: Iterable[float]) -> "BBox":
        min_x, min_y, max_x, max_y = (float(v) for v in values)
        return cls(min_x, min_y, max_x, max_y)


__all__ = [
    "EntityID",
    "Vec2",
    "Polygon",
    "FloorGeometryError",
    "TraversalError",
    "IntegrityError",
    "CacheVersionError",
    "Point",
    "Boundary",
    "Room",
    "FloorObject",
    "BBox",
]
