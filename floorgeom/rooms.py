"""Room resolution: planar face tracing over points and (possibly arced) boundaries.

``resolve_rooms`` walks every boundary on both sides to recover the faces of
the boundary graph, discards the outer wrapper face of each connected group,
nests the remaining faces with an :class:`EnclosureTree` and hands stray
boundaries to the room that encloses them. ``combine_rooms`` dissolves the
walls shared by a set of rooms and re-traces what is left into regions.

All traversal scratch state (visited marks, the face on each side of a
boundary) lives in tables owned by one resolution call; the input points and
boundaries are never modified.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence, Set, Tuple

from .config import DEFAULT_RESOLVER_CONFIG, ResolverConfig
from .geometry.arcs import (
    arc_midpoint,
    arc_offset_angle,
    arc_radius,
    chord_length_from_radius_and_angle,
    interpolate_arc_points_by_constraints,
)
from .geometry.enclosure import EnclosureTree
from .logging_utils import apply_debug_logging
from .types import BBox, Boundary, EntityID, IntegrityError, Point, Room, TraversalError, Vec2

logger = logging.getLogger(__name__)

TWO_PI = math.pi * 2.0


@dataclass(eq=False)
class _Cycle:
    bounds: List[EntityID]
    directions: Dict[EntityID, int] = field(default_factory=dict)
    id: int = 0
    wrapper: Optional["_Cycle"] = None
    parent: Optional["_Cycle"] = None
    hole_cycles: List["_Cycle"] = field(default_factory=list)
    holes: List[List[EntityID]] = field(default_factory=list)
    interior: List[EntityID] = field(default_factory=list)


# placeholder face assigned while a walk is in progress
_TRACING = _Cycle([])


class _BoundaryGraph:
    """Adjacency of ingested boundaries plus the side tables of one resolution."""

    def __init__(self, points: Iterable[Point], boundaries: Iterable[Boundary], config: ResolverConfig):
        self.config = config
        self.positions: Dict[EntityID, Vec2] = {p.id: p.xy for p in points}
        self.bounds: Dict[EntityID, Boundary] = {}
        self.adjacency: Dict[EntityID, List[EntityID]] = {pid: [] for pid in self.positions}
        self.offsets: Dict[EntityID, float] = {}

        self.left: Dict[EntityID, Optional[_Cycle]] = {}
        self.right: Dict[EntityID, Optional[_Cycle]] = {}
        self.marked: Set[EntityID] = set()
        self.grouped: Set[_Cycle] = set()

        for boundary in boundaries:
            self._ingest(boundary)
        for point_id in self.positions:
            self._sort_ccw(point_id)

    def _ingest(self, boundary: Boundary) -> None:
        if boundary.start == boundary.end:
            logger.debug("Skipping zero-length boundary %r", boundary.id)
            return
        for point_id in (boundary.start, boundary.end):
            if point_id not in self.positions:
                raise IntegrityError(
                    f"boundary {boundary.id!r} references missing point {point_id!r}"
                )
        # the first boundary already joining both endpoints decides duplication
        for other_id in self.adjacency[boundary.start]:
            other = self.bounds[other_id]
            if boundary.end in (other.start, other.end):
                if other.arc == boundary.arc:
                    logger.debug("Skipping duplicate boundary %r of %r", boundary.id, other_id)
                    return
                break

        self.bounds[boundary.id] = boundary
        self.adjacency[boundary.start].append(boundary.id)
        self.adjacency[boundary.end].append(boundary.id)
        start, end = self.positions[boundary.start], self.positions[boundary.end]
        chord = math.hypot(end[0] - start[0], end[1] - start[1])
        self.offsets[boundary.id] = arc_offset_angle(chord, boundary.arc)

    def _chord(self, bound: Boundary) -> float:
        start, end = self.positions[bound.start], self.positions[bound.end]
        return math.hypot(end[0] - start[0], end[1] - start[1])

    def _sort_ccw(self, point_id: EntityID) -> None:
        bound_ids = self.adjacency[point_id]
        if not bound_ids:
            return
        origin = self.positions[point_id]
        angles: Dict[EntityID, float] = {}
        raw_angles: Dict[EntityID, float] = {}
        offset_found = False
        for bid in bound_ids:
            bound = self.bounds[bid]
            other = self.positions[bound.other_end(point_id)]
            raw = math.atan2(other[1] - origin[1], other[0] - origin[0]) % TWO_PI
            raw_angles[bid] = raw
            offset = self.offsets[bid]
            if offset:
                offset_found = True
                if bound.start == point_id:
                    raw = (raw + TWO_PI + offset) % TWO_PI
                else:
                    raw = (raw + TWO_PI - offset) % TWO_PI
            angles[bid] = raw

        bound_ids.sort(key=angles.__getitem__)
        if offset_found:
            self._correct_arc_overlaps(point_id, bound_ids, angles, raw_angles)

    def _correct_arc_overlaps(
        self,
        point_id: EntityID,
        bound_ids: List[EntityID],
        angles: Dict[EntityID, float],
        raw_angles: Dict[EntityID, float],
    ) -> None:
        # only arc/straight neighbours are considered
        threshold = self.config.arc_overlap_threshold
        count = len(bound_ids)
        for ai in range(count):
            bi = (ai + 1) % count
            a = self.bounds[bound_ids[ai]]
            b = self.bounds[bound_ids[bi]]
            if bool(a.arc) == bool(b.arc):
                continue

            diff = angles[b.id] - angles[a.id]
            if abs(diff) > TWO_PI - threshold:
                diff = diff - TWO_PI if diff > 0 else diff + TWO_PI
            if abs(diff) >= threshold:
                continue

            if a.arc:
                arc_bound, other_bound = a, b
                diff = -diff
            else:
                arc_bound, other_bound = b, a
            arc_offset = angles[arc_bound.id] - raw_angles[arc_bound.id]
            if arc_offset > math.pi:
                arc_offset -= TWO_PI
            elif arc_offset < -math.pi:
                arc_offset += TWO_PI
            if arc_offset * diff <= 0:
                continue

            radius = arc_radius(self._chord(arc_bound), arc_bound.arc)
            crossing = chord_length_from_radius_and_angle(radius, diff)
            if self._chord(other_bound) > crossing:
                logger.warning(
                    "Arc %r overlaps boundary %r at point %r; swapping their order",
                    arc_bound.id,
                    other_bound.id,
                    point_id,
                )
                bound_ids[ai], bound_ids[bi] = bound_ids[bi], bound_ids[ai]

    def bound_to_left(self, point_id: EntityID, bound_id: EntityID) -> EntityID:
        bound_ids = self.adjacency[point_id]
        if len(bound_ids) == 1:
            return bound_id
        try:
            index = bound_ids.index(bound_id)
        except ValueError:
            raise TraversalError(
                f"boundary {bound_id!r} is not attached to point {point_id!r}"
            ) from None
        return bound_ids[index - 1]

    def _other_end(self, bound_id: EntityID, point_id: EntityID) -> EntityID:
        return self.bounds[bound_id].other_end(point_id)

    def _set_side(self, bound_id: EntityID, forwards: bool, cycle: Optional[_Cycle]) -> None:
        if forwards:
            self.left[bound_id] = cycle
        else:
            self.right[bound_id] = cycle

    def _same_sides(self, bound_id: EntityID) -> bool:
        return self.left.get(bound_id) is self.right.get(bound_id)

    def _drop_spur(self, bound_id: EntityID) -> None:
        self.marked.add(bound_id)
        self.left[bound_id] = None
        self.right[bound_id] = None

    def _skip_spurs(self, point_id: EntityID, bound_id: EntityID) -> EntityID:
        hops = 0
        while self._same_sides(bound_id):
            if self.left.get(bound_id) is _TRACING:
                self._drop_spur(bound_id)
            hops += 1
            if hops > self.config.max_point_hops:
                raise TraversalError(f"too many boundary hops around point {point_id!r}")
            bound_id = self.bound_to_left(point_id, bound_id)
        return bound_id

    def trace(self, start_id: EntityID, start_forwards: bool) -> List[_Cycle]:
        """Walk one side of ``start_id`` and split the walk into faces."""

        cap = self.config.max_trace_iterations
        start = self.bounds[start_id]
        self._set_side(start_id, start_forwards, _TRACING)
        walk_start = start.start if start_forwards else start.end

        point = self._other_end(start_id, walk_start)
        bound_id = self.bound_to_left(point, start_id)
        walked = [bound_id]
        forwards = self.bounds[bound_id].start == point
        self._set_side(bound_id, forwards, _TRACING)

        steps = 0
        while bound_id != start_id or forwards != start_forwards:
            steps += 1
            if steps > cap:
                raise TraversalError("too many iterations in boundary walk")
            self._set_side(bound_id, forwards, _TRACING)
            point = self._other_end(bound_id, point)
            bound_id = self.bound_to_left(point, bound_id)
            forwards = point == self.bounds[bound_id].start
            walked.append(bound_id)

        cycles: List[_Cycle] = []
        for first_id in walked:
            if first_id in self.marked:
                continue
            if self._same_sides(first_id):
                self._drop_spur(first_id)
                continue
            first_forwards = self.left.get(first_id) is _TRACING
            cycle = _Cycle([first_id])
            self.marked.add(first_id)
            self._set_side(first_id, first_forwards, cycle)

            first = self.bounds[first_id]
            point = first.end if first_forwards else first.start
            bound_id = self._skip_spurs(point, self.bound_to_left(point, first_id))
            forwards = self.left.get(bound_id) is _TRACING
            steps = 0
            while bound_id != first_id or forwards != first_forwards:
                steps += 1
                if steps > cap:
                    raise TraversalError("too many iterations in face trace")
                cycle.bounds.append(bound_id)
                self.marked.add(bound_id)
                self._set_side(bound_id, forwards, cycle)
                point = self._other_end(bound_id, point)
                bound_id = self._skip_spurs(point, self.bound_to_left(point, bound_id))
                forwards = point == self.bounds[bound_id].start
            logger.debug("Traced face of %d boundaries", len(cycle.bounds))
            cycles.append(cycle)

        # release traced boundaries for the opposite-side pass
        for cycle in cycles:
            self.marked.difference_update(cycle.bounds)
        return cycles

    def resolve_directions(self, bound_ids: Sequence[EntityID]) -> Dict[EntityID, int]:
        """Map each boundary of a closed loop to +1 (start to end) or -1."""

        if not bound_ids:
            return {}
        if len(bound_ids) == 2:
            first, second = (self.bounds[bid] for bid in bound_ids)
            if abs(first.arc) >= abs(second.arc):
                large, small = first, second
            else:
                large, small = second, first
            large_reversed = large.arc > 0
            small_reversed = (not large_reversed) if small.start == large.start else large_reversed
            return {large.id: -1 if large_reversed else 1, small.id: -1 if small_reversed else 1}

        directions: Dict[EntityID, int] = {}
        prev = self.bounds[bound_ids[-1]]
        for bid in bound_ids:
            bound = self.bounds[bid]
            directions[bid] = -1 if bound.end in (prev.start, prev.end) else 1
            prev = bound
        return directions

    def is_ccw(self, bound_ids: Sequence[EntityID]) -> bool:
        """Winding of a closed loop from its summed turning angles, arcs included."""

        # a two-boundary loop reads the same in both directions
        if len(bound_ids) == 2:
            return True

        bounds = [self.bounds[bid] for bid in bound_ids]
        first, last = bounds[0], bounds[-1]
        first_reversed = first.end in (last.start, last.end)
        mid = first.end if first_reversed else first.start
        prev_point = last.other_end(mid)
        prev_bound = last
        prev_reversed = last.end == prev_point

        total = 0.0
        for bound in bounds:
            reversed_ = bound.end == mid
            nxt = bound.start if reversed_ else bound.end
            p0, p1, p2 = self.positions[prev_point], self.positions[mid], self.positions[nxt]
            prev_vec = (p1[0] - p0[0], p1[1] - p0[1])
            next_vec = (p2[0] - p1[0], p2[1] - p1[1])
            dot = next_vec[0] * prev_vec[0] + next_vec[1] * prev_vec[1]
            cross = next_vec[0] * -prev_vec[1] + next_vec[1] * prev_vec[0]
            theta = math.atan2(cross, dot)
            if theta <= -math.pi:
                theta += TWO_PI

            prev_arc = self.offsets[prev_bound.id] * (-1.0 if prev_reversed else 1.0)
            next_arc = self.offsets[bound.id] * (-1.0 if reversed_ else 1.0)
            combined = theta + prev_arc + next_arc
            if combined > math.pi:
                combined -= TWO_PI
            elif combined < -math.pi:
                combined += TWO_PI
            total += combined - prev_arc * 2.0

            prev_bound = bound
            prev_point = mid
            mid = nxt
            prev_reversed = reversed_
        return total > 0

    def make_ccw(self, cycle: _Cycle) -> None:
        cycle.directions = self.resolve_directions(cycle.bounds)
        if not self.is_ccw(cycle.bounds):
            cycle.bounds.reverse()
            for bid in cycle.bounds:
                cycle.directions[bid] *= -1

    def cycle_area(self, cycle: _Cycle) -> float:
        directions = self.resolve_directions(cycle.bounds)
        first = self.bounds[cycle.bounds[0]]
        prev = self.positions[first.end if directions[first.id] == -1 else first.start]
        area = 0.0
        for bid in cycle.bounds:
            bound = self.bounds[bid]
            nxt = self.positions[bound.start if directions[bid] == -1 else bound.end]
            area += prev[0] * nxt[1] - prev[1] * nxt[0]
            prev = nxt
        return abs(area / 2.0)

    def cycle_bbox(self, cycle: _Cycle) -> BBox:
        box = BBox.empty()
        for bid in cycle.bounds:
            bound = self.bounds[bid]
            box = box.expand_by_point(self.positions[bound.start])
            box = box.expand_by_point(self.positions[bound.end])
        return box

    def _connected_group(self, cycle: _Cycle) -> List[_Cycle]:
        cap = self.config.max_trace_iterations
        group: List[_Cycle] = []
        first = cycle.bounds[0]
        self.marked.add(first)
        frontier = [first]
        steps = 0
        while frontier:
            steps += 1
            if steps > cap:
                raise TraversalError("too many iterations while grouping faces")
            bid = frontier.pop()
            left, right = self.left.get(bid), self.right.get(bid)
            if left is None and right is None:
                continue
            for side in (left, right):
                if side is not None and side not in self.grouped:
                    self.grouped.add(side)
                    group.append(side)
            bound = self.bounds[bid]
            for point_id in (bound.start, bound.end):
                for neighbour in self.adjacency[point_id]:
                    if neighbour in self.marked:
                        continue
                    self.marked.add(neighbour)
                    frontier.append(neighbour)
        return group

    def find_cycles(self, bound_ids: Sequence[EntityID]) -> List[_Cycle]:
        """Trace faces reachable from ``bound_ids`` and drop each group's wrapper."""

        bound_ids = [bid for bid in bound_ids if bid in self.bounds]
        traced: List[_Cycle] = []
        for bid in bound_ids:
            if bid not in self.marked and self.left.get(bid) is None:
                traced.extend(self.trace(bid, True))
            if bid not in self.marked and self.right.get(bid) is None:
                traced.extend(self.trace(bid, False))
        logger.debug("Traced %d faces from %d boundaries", len(traced), len(bound_ids))

        groups: List[List[_Cycle]] = []
        for cycle in traced:
            if cycle in self.grouped:
                continue
            self.marked.difference_update(bound_ids)
            groups.append(self._connected_group(cycle))
        logger.debug("Grouped faces into %d connected groups", len(groups))

        rooms: List[_Cycle] = []
        for group in groups:
            if not group:
                continue
            wrapper = self._pick_wrapper(group)
            for cycle in group:
                self.make_ccw(cycle)
                if cycle is not wrapper:
                    cycle.wrapper = wrapper
                    rooms.append(cycle)
        return rooms

    def _pick_wrapper(self, group: Sequence[_Cycle]) -> _Cycle:
        # largest bbox diagonal, then larger area, then fewer boundaries
        best: Optional[_Cycle] = None
        best_key: Optional[Tuple[float, float, int]] = None
        for cycle in group:
            key = (self.cycle_bbox(cycle).diagonal, self.cycle_area(cycle), -len(cycle.bounds))
            if best_key is None or key > best_key:
                best, best_key = cycle, key
        if best is None:
            raise IntegrityError("cannot pick a wrapper from an empty face group")
        return best

    def cycle_polygon(self, cycle: _Cycle) -> List[Vec2]:
        polygon: List[Vec2] = []
        for bid in cycle.bounds:
            bound = self.bounds[bid]
            reversed_ = cycle.directions.get(bid) == -1
            polygon.append(self.positions[bound.end if reversed_ else bound.start])
            if bound.arc:
                arc = interpolate_arc_points_by_constraints(
                    self.positions[bound.start],
                    self.positions[bound.end],
                    bound.arc,
                    0.0,
                    self.config.arc_precision,
                )
                if reversed_:
                    arc.reverse()
                polygon.extend(arc)
        return polygon

    def midpoint(self, bound_id: EntityID) -> Vec2:
        bound = self.bounds[bound_id]
        return arc_midpoint(self.positions[bound.start], self.positions[bound.end], bound.arc)


def _build_enclosure_tree(graph: _BoundaryGraph, cycles: Sequence[_Cycle]) -> Tuple[EnclosureTree, Dict[int, _Cycle]]:
    polygons = [graph.cycle_polygon(cycle) for cycle in cycles]
    bbox = BBox.empty()
    for polygon in polygons:
        for pt in polygon:
            bbox = bbox.expand_by_point(pt)
    tree = EnclosureTree(bbox)
    by_id: Dict[int, _Cycle] = {}
    for index, (cycle, polygon) in enumerate(zip(cycles, polygons)):
        cycle.id = index + 1
        by_id[cycle.id] = cycle
        tree.add_polygon(polygon, cycle.id)
    return tree, by_id


def _assign_holes_and_parents(tree: EnclosureTree, by_id: Dict[int, _Cycle]) -> None:
    visited: List[_Cycle] = []

    def visit(cycle_id, parent_id, depth, mutate) -> None:
        cycle = by_id[cycle_id]
        visited.append(cycle)
        parent = by_id.get(parent_id) if parent_id is not None else None
        # faces of the same connected group are siblings, not parents
        while parent is not None and parent.wrapper is cycle.wrapper:
            parent = parent.parent
        if parent is not None:
            cycle.parent = parent
            parent.hole_cycles.append(cycle)

    tree.traverse_down(visit)
    for cycle in visited:
        wrappers: List[_Cycle] = []
        for child in cycle.hole_cycles:
            if child.wrapper is not None and child.wrapper not in wrappers:
                wrappers.append(child.wrapper)
        cycle.holes = [list(w.bounds) for w in wrappers]


def _assign_interior(
    graph: _BoundaryGraph,
    tree: EnclosureTree,
    cycles: Sequence[_Cycle],
    by_id: Dict[int, _Cycle],
) -> List[EntityID]:
    """Attach boundaries outside every face to the face enclosing their midpoint."""

    used: Set[EntityID] = set()
    for cycle in cycles:
        used.update(cycle.bounds)
    exterior: List[EntityID] = []
    for bid in graph.bounds:
        if bid in used:
            continue
        enclosing = tree.get_enclosing_polygon_id_for_point(graph.midpoint(bid))
        if enclosing is not None and enclosing in by_id:
            by_id[enclosing].interior.append(bid)
        else:
            exterior.append(bid)
    return exterior


def resolve_rooms(
    points: Sequence[Point],
    boundaries: Sequence[Boundary],
    config: Optional[ResolverConfig] = None,
) -> Tuple[List[Room], EnclosureTree]:
    """Derive rooms from a boundary graph.

    Returns the rooms, numbered from 1 in trace order, and the enclosure tree
    of their perimeters relabelled to room ids. Raises :class:`TraversalError`
    when a walk exceeds its iteration cap and :class:`IntegrityError` when a
    boundary references an unknown point.
    """

    config = config or DEFAULT_RESOLVER_CONFIG
    graph = _BoundaryGraph(points, boundaries, config)
    cycles = graph.find_cycles(list(graph.bounds))
    tree, by_id = _build_enclosure_tree(graph, cycles)
    _assign_holes_and_parents(tree, by_id)
    exterior = _assign_interior(graph, tree, cycles, by_id)
    logger.debug("Resolved %d faces, %d exterior boundaries", len(cycles), len(exterior))

    rooms: Dict[int, Room] = {}
    for index, cycle in enumerate(cycles):
        room_id = index + 1
        rooms[cycle.id] = Room(
            id=room_id,
            perimeter=list(cycle.bounds),
            holes=[list(hole) for hole in cycle.holes],
            interior=list(cycle.interior),
        )

    tree.traverse_down(lambda cid, _parent, _depth, mutate: mutate(new_id=rooms[cid].id))
    for cycle in cycles:
        if cycle.parent is not None:
            rooms[cycle.id].parent = rooms[cycle.parent.id].id
    return list(rooms.values()), tree


class _BoundaryGroup:
    """Boundaries of merged room loops, with reference counts shared across groups."""

    def __init__(self, owners: Dict[EntityID, "_BoundaryGroup"], ref_counts: Dict[EntityID, int]):
        self.bounds: List[EntityID] = []
        self.bound_set: Set[EntityID] = set()
        self._owners = owners
        self._ref_counts = ref_counts
        self.skipped = False

    def ingest(self, bound_ids: Iterable[EntityID]) -> "_BoundaryGroup":
        others: List[_BoundaryGroup] = []
        for bid in bound_ids:
            owner = self._owners.get(bid)
            self._ref_counts[bid] = self._ref_counts.get(bid, 0) + 1
            if owner is not None:
                if owner not in others:
                    others.append(owner)
            elif self._ref_counts[bid] == 1:
                self._owners[bid] = self
                self.bounds.append(bid)
                self.bound_set.add(bid)
        merged = self
        for other in others:
            merged = merged.merge(other)
        return merged

    def merge(self, other: "_BoundaryGroup") -> "_BoundaryGroup":
        if other is self:
            return self
        for bid in other.bounds:
            if self._ref_counts.get(bid) == 1:
                self._owners[bid] = self
                self.bounds.append(bid)
                self.bound_set.add(bid)
            else:
                self._owners.pop(bid, None)
                self.bound_set.discard(bid)
        other.skipped = True
        return self


def combine_rooms(
    points: Sequence[Point],
    boundaries: Sequence[Boundary],
    rooms: Sequence[Room],
    config: Optional[ResolverConfig] = None,
) -> Tuple[List[Room], EnclosureTree]:
    """Merge rooms into regions by dissolving the walls they share.

    Shared walls and the rooms' own interior boundaries become interior
    boundaries of the merged regions. Faces at odd depth of the resulting
    enclosure tree are holes: they are flagged as obstacles in the returned
    tree and not emitted. Region ids are the face ids of the tree.
    """

    config = config or DEFAULT_RESOLVER_CONFIG
    owners: Dict[EntityID, _BoundaryGroup] = {}
    ref_counts: Dict[EntityID, int] = {}
    groups: List[_BoundaryGroup] = []
    interior_ids: Set[EntityID] = set()
    for room in rooms:
        for loop in [room.perimeter, *room.holes]:
            groups.append(_BoundaryGroup(owners, ref_counts).ingest(loop))
        interior_ids.update(room.interior)

    live_groups = [g for g in groups if not g.skipped]
    interior_ids.update(bid for bid, count in ref_counts.items() if count > 1)

    single = [b for b in boundaries if ref_counts.get(b.id) == 1]
    graph = _BoundaryGraph(points, single, config)
    cycles: List[_Cycle] = []
    for group in live_groups:
        cycles.extend(graph.find_cycles([bid for bid in graph.bounds if bid in group.bound_set]))
    logger.debug("Combined %d rooms into %d faces", len(rooms), len(cycles))

    tree, by_id = _build_enclosure_tree(graph, cycles)
    _assign_holes_and_parents(tree, by_id)
    interior_graph = _BoundaryGraph(points, [b for b in boundaries if b.id in interior_ids], config)
    _assign_interior(interior_graph, tree, cycles, by_id)

    holes: Set[int] = set()

    def flag_holes(cycle_id, _parent, depth, mutate) -> None:
        if depth % 2:
            holes.add(cycle_id)
            mutate(is_obstacle=True)

    tree.traverse_down(flag_holes)

    regions = [
        Room(
            id=cycle_id,
            perimeter=list(cycle.bounds),
            holes=[list(hole) for hole in cycle.holes],
            interior=list(cycle.interior),
        )
        for cycle_id, cycle in sorted(by_id.items())
        if cycle_id not in holes
    ]
    return regions, tree


apply_debug_logging(globals(), logger=logger)


__all__ = ["resolve_rooms", "combine_rooms"]
