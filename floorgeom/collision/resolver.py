"""Spatial index answering selection, snapping and wall-crossing queries."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from enum import Enum
from functools import cmp_to_key
from typing import Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

from ..config import DEFAULT_COLLISION_CONFIG, CollisionConfig
from ..geometry.decomposition import decompose_to_convex_parts
from ..geometry.quadtree import QuadTree
from ..geometry.sat import ConvexPolygon, SATResponse, collide_polygon_circle, collide_polygons
from ..types import BBox, EntityID, Vec2


class EntryKind(Enum):
    POINT = "point"
    LINE = "line"
    REGION = "region"


# lower wins when adjusted distances tie
_KIND_PRIORITY = {EntryKind.POINT: 0, EntryKind.LINE: 1, EntryKind.REGION: 2}


@dataclass
class PointEntry:
    id: EntityID
    position: Vec2
    bbox: BBox
    handle: int = -1
    kind: EntryKind = field(default=EntryKind.POINT, init=False)


@dataclass
class LineEntry:
    id: EntityID
    a: Vec2
    b: Vec2
    bbox: BBox
    weight: float = 0.0
    handle: int = -1
    kind: EntryKind = field(default=EntryKind.LINE, init=False)


@dataclass
class RegionEntry:
    id: EntityID
    parts: List[ConvexPolygon]
    bbox: BBox
    depth: float = 0.0
    handle: int = -1
    kind: EntryKind = field(default=EntryKind.REGION, init=False)


Entry = Union[PointEntry, LineEntry, RegionEntry]


@dataclass
class SnapCandidate:
    id: EntityID
    snap_position: Vec2
    snap_distance: float
    snap_offset: Vec2
    bias: float


@dataclass
class CollisionReport:
    id: EntityID
    collisions: List[EntityID]


def _as_xy(pos) -> Vec2:
    if isinstance(pos, Mapping):
        return float(pos["x"]), float(pos["y"])
    return float(pos[0]), float(pos[1])


def _nearest_on_segment(a: Vec2, b: Vec2, pos: Vec2) -> Tuple[float, Vec2]:
    dx, dy = b[0] - a[0], b[1] - a[1]
    length2 = dx * dx + dy * dy
    if length2 == 0.0:
        return math.hypot(pos[0] - a[0], pos[1] - a[1]), a
    t = ((pos[0] - a[0]) * dx + (pos[1] - a[1]) * dy) / length2
    if t <= 0.0:
        nearest = a
    elif t >= 1.0:
        nearest = b
    else:
        nearest = (a[0] + dx * t, a[1] + dy * t)
    return math.hypot(pos[0] - nearest[0], pos[1] - nearest[1]), nearest


class CollisionResolver:
    """Quadtree-backed index of points, polylines and polygonal regions.

    One id may own several entries (a polyline owns one entry per span, a
    multi-region one per loop). Adding an id always replaces its previous
    entries.
    """

    def __init__(self, bbox: BBox, config: Optional[CollisionConfig] = None):
        self.config = config or DEFAULT_COLLISION_CONFIG
        self.point_radius = self.config.point_radius
        self.line_radius = self.config.line_radius
        self._bbox = bbox
        self._quadtree: QuadTree[Entry] = QuadTree(bbox, max_items=8)
        self._entries: Dict[EntityID, List[Entry]] = {}

    @property
    def bbox(self) -> BBox:
        return self._bbox

    def ids(self) -> List[EntityID]:
        return list(self._entries)

    def entries(self, entity_id: EntityID) -> List[Entry]:
        return list(self._entries.get(entity_id, ()))

    def __contains__(self, entity_id: object) -> bool:
        return entity_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def _store(self, entity_id: EntityID, entries: List[Entry]) -> None:
        if not entries:
            return
        for entry in entries:
            entry.handle = self._quadtree.insert(entry, entry.bbox)
        self._entries[entity_id] = entries

    def add_point(self, entity_id: EntityID, position) -> None:
        self.remove(entity_id)
        pos = _as_xy(position)
        self._store(entity_id, [PointEntry(entity_id, pos, BBox(pos[0], pos[1], pos[0], pos[1]))])

    def add_line(self, entity_id: EntityID, points: Sequence, weight: float = 0.0) -> None:
        """Index a polyline as one entry per span."""

        self.remove(entity_id)
        pts = [_as_xy(p) for p in points]
        entries: List[Entry] = []
        for a, b in zip(pts, pts[1:]):
            entries.append(LineEntry(entity_id, a, b, BBox.from_points((a, b)), float(weight or 0.0)))
        self._store(entity_id, entries)

    def _region_entry(self, entity_id: EntityID, points: Sequence[Vec2], depth: float) -> RegionEntry:
        parts = [ConvexPolygon(part) for part in decompose_to_convex_parts(points) if part]
        return RegionEntry(entity_id, parts, BBox.from_points(points), float(depth))

    def add_region(self, entity_id: EntityID, points: Sequence, depth: float = 0.0) -> None:
        self.remove(entity_id)
        pts = [_as_xy(p) for p in points]
        if not pts:
            return
        self._store(entity_id, [self._region_entry(entity_id, pts, depth)])

    def add_multi_region(self, entity_id: EntityID, loops: Iterable[Sequence]) -> None:
        self.remove(entity_id)
        entries: List[Entry] = []
        for loop in loops:
            pts = [_as_xy(p) for p in loop]
            # skip degenerate loops
            if len(pts) < 3:
                continue
            entries.append(self._region_entry(entity_id, pts, 0.0))
        self._store(entity_id, entries)

    def remove(self, entity_id: EntityID) -> None:
        for entry in self._entries.pop(entity_id, ()):
            self._quadtree.remove(entry.handle)

    def _region_distance(self, entry: RegionEntry, pos: Vec2) -> float:
        probe = self.config.region_probe_radius
        min_dist = math.inf
        response = SATResponse()
        for part in entry.parts:
            response.clear()
            if collide_polygon_circle(part, pos, probe, response):
                min_dist = min(min_dist, -response.overlap)
        if probe + min_dist < 0:
            return 1.0 / (probe + min_dist)
        return probe + min_dist

    def _adjusted_distance(self, entry: Entry, pos: Vec2, biases: Mapping[str, float]) -> float:
        if entry.kind is EntryKind.POINT:
            dist = math.hypot(pos[0] - entry.position[0], pos[1] - entry.position[1])
            return dist - self.point_radius - (biases.get("points") or 0.0)
        if entry.kind is EntryKind.LINE:
            dist, _ = _nearest_on_segment(entry.a, entry.b, pos)
            return dist - self.line_radius - (biases.get("lines") or 0.0) - entry.weight
        if entry.kind is EntryKind.REGION:
            dist = self._region_distance(entry, pos) - (biases.get("regions") or 0.0)
            if dist < 0:
                dist -= entry.depth
            return dist
        raise ValueError(f"unknown entry kind {entry.kind!r}")

    def resolve_selection(
        self,
        position,
        disqualify: Optional[Callable[[EntityID], bool]] = None,
        biases: Optional[Mapping[str, float]] = None,
    ) -> Optional[EntityID]:
        """Id of the entity under ``position``, or ``None``.

        ``biases`` may carry ``points``, ``lines`` and ``regions`` offsets that
        make a kind easier to pick.
        """

        pos = _as_xy(position)
        radius = max(self.point_radius, self.line_radius)
        biases = biases or {}
        best: Optional[Tuple[float, int, int]] = None
        best_id: Optional[EntityID] = None
        for entry in self._quadtree.query(BBox.around(pos, radius)):
            if disqualify is not None and disqualify(entry.id):
                continue
            key = (self._adjusted_distance(entry, pos, biases), _KIND_PRIORITY[entry.kind], entry.handle)
            if best is None or key < best:
                best = key
                best_id = entry.id
        if best is not None and best[0] <= 0:
            return best_id
        return None

    def resolve_selection_box(self, bbox: BBox) -> List[EntityID]:
        """Ids whose every entry lies inside ``bbox``, in order of first hit."""

        seen = set()
        hits: List[EntityID] = []
        for entry in self._quadtree.query(bbox):
            if entry.id in seen:
                continue
            seen.add(entry.id)
            if all(bbox.contains_box(sub.bbox) for sub in self._entries[entry.id]):
                hits.append(entry.id)
        return hits

    def resolve_in_radius_with_snap_positions(
        self,
        position,
        radius: float = 10.0,
        include_points: bool = True,
        include_lines: bool = True,
        point_bias: float = 1.0,
        line_bias: float = 1.0,
    ) -> List[SnapCandidate]:
        """Snap targets within ``radius`` (inclusive), best first.

        Candidates are ordered by distance scaled against each other's bias;
        a polyline contributes its nearest span only.
        """

        pos = _as_xy(position)
        results: List[SnapCandidate] = []
        visited_lines = set()
        for entry in self._quadtree.query(BBox.around(pos, radius)):
            if entry.kind is EntryKind.POINT:
                if not include_points:
                    continue
                dist = math.hypot(pos[0] - entry.position[0], pos[1] - entry.position[1])
                if dist <= radius:
                    results.append(self._snap(entry.id, entry.position, dist, pos, point_bias))
            elif entry.kind is EntryKind.LINE:
                if not include_lines or entry.id in visited_lines:
                    continue
                visited_lines.add(entry.id)
                best_dist = math.inf
                best_point: Optional[Vec2] = None
                for sub in self._entries[entry.id]:
                    dist, nearest = _nearest_on_segment(sub.a, sub.b, pos)
                    if dist < best_dist:
                        best_dist, best_point = dist, nearest
                if best_point is not None and best_dist <= radius:
                    results.append(self._snap(entry.id, best_point, best_dist, pos, line_bias))

        def compare(a: SnapCandidate, b: SnapCandidate) -> int:
            lhs = a.snap_distance * b.bias
            rhs = b.snap_distance * a.bias
            return (lhs > rhs) - (lhs < rhs)

        results.sort(key=cmp_to_key(compare))
        return results

    @staticmethod
    def _snap(entity_id: EntityID, target: Vec2, dist: float, pos: Vec2, bias: float) -> SnapCandidate:
        return SnapCandidate(
            id=entity_id,
            snap_position=target,
            snap_distance=dist,
            snap_offset=(target[0] - pos[0], target[1] - pos[1]),
            bias=bias,
        )

    def check_collisions(self, bbox: BBox, entity_id: EntityID) -> CollisionReport:
        """Lines crossed by the ``bbox`` diagonal from its min to its max corner.

        Lines sharing an endpoint with the diagonal do not count.
        """

        start = (bbox.min_x, bbox.min_y)
        end = (bbox.max_x, bbox.max_y)
        probe = ConvexPolygon([start, end])
        collisions: List[EntityID] = []
        for entry in self._quadtree.query(bbox):
            if entry.kind is not EntryKind.LINE:
                continue
            if entry.a in (start, end) or entry.b in (start, end):
                continue
            if entry.id in collisions:
                continue
            if collide_polygons(probe, ConvexPolygon([entry.a, entry.b])):
                collisions.append(entry.id)
        return CollisionReport(entity_id, collisions)


__all__ = [
    "EntryKind",
    "PointEntry",
    "LineEntry",
    "RegionEntry",
    "Entry",
    "SnapCandidate",
    "CollisionReport",
    "CollisionResolver",
]
