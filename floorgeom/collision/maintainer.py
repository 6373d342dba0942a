"""Keeps a :class:`CollisionResolver` in step with successive floor snapshots."""

from __future__ import annotations

import logging
from typing import Dict, Mapping, Optional, Tuple, TypeVar

from ..config import DEFAULT_COLLISION_CONFIG, CollisionConfig
from ..floor import Entity, FloorState, boundary_points, loop_point_order, nest_depth
from ..types import BBox, Boundary, EntityID, FloorObject, Point, Room
from .resolver import CollisionResolver

logger = logging.getLogger(__name__)

V = TypeVar("V")


def shallow_diff(
    before: Optional[Mapping[EntityID, V]], after: Optional[Mapping[EntityID, V]]
) -> Tuple[Dict[EntityID, V], Dict[EntityID, V], Dict[EntityID, V]]:
    """Split the change between two mappings into added, updated and removed entries.

    Values are compared by identity only.
    """

    if before is None:
        return dict(after or {}), {}, {}
    if after is None:
        return {}, {}, dict(before)
    added = {k: v for k, v in after.items() if k not in before}
    updated = {k: v for k, v in after.items() if k in before and before[k] is not v}
    removed = {k: v for k, v in before.items() if k not in after}
    return added, updated, removed


class ResolverMaintainer:
    """Applies floor snapshots to a collision index incrementally.

    The index is rebuilt from scratch whenever a change reaches outside the
    bounding box it was built for; the box only ever grows.
    """

    def __init__(self, config: Optional[CollisionConfig] = None):
        self.config = config or DEFAULT_COLLISION_CONFIG
        self._bbox = BBox(0.0, 0.0, 0.0, 0.0)
        self._resolver = CollisionResolver(self._bbox, self.config)
        self._latest: Optional[FloorState] = None

    @property
    def bbox(self) -> BBox:
        return self._bbox

    @property
    def resolver(self) -> CollisionResolver:
        return self._resolver

    @property
    def point_radius(self) -> float:
        return self._resolver.point_radius

    @point_radius.setter
    def point_radius(self, value: float) -> None:
        self._resolver.point_radius = value

    @property
    def line_radius(self) -> float:
        return self._resolver.line_radius

    @line_radius.setter
    def line_radius(self, value: float) -> None:
        self._resolver.line_radius = value

    def _boundary_points(self, boundary: Boundary, points: Mapping[EntityID, Point]):
        return boundary_points(
            boundary,
            points,
            self.config.boundary_max_segment_length,
            self.config.boundary_max_angle,
        )

    def _index(self, entity: Entity, state: FloorState, resolver: CollisionResolver) -> None:
        if isinstance(entity, Point):
            resolver.add_point(entity.id, entity.xy)
        elif isinstance(entity, Boundary):
            resolver.add_line(entity.id, self._boundary_points(entity, state.points))
        elif isinstance(entity, FloorObject):
            if entity.is_window:
                if entity.loops:
                    resolver.add_line(entity.id, entity.loops[0], self.config.window_weight)
            else:
                resolver.add_multi_region(entity.id, entity.loops)
        elif isinstance(entity, Room):
            resolver.add_region(
                entity.id,
                loop_point_order(
                    entity.perimeter,
                    state.points,
                    state.boundaries,
                    include_arcs=True,
                    max_segment_length=self.config.boundary_max_segment_length,
                    max_angle=self.config.boundary_max_angle,
                ),
                nest_depth(entity.id, state.rooms),
            )

    def sync(self, state: FloorState) -> None:
        """Bring the index up to date with ``state``."""

        if state is self._latest:
            return

        logger.debug("Diffing floor state (%d entities)", len(state))
        previous = self._latest.entities if self._latest is not None else {}
        added, updated, removed = shallow_diff(previous, state.entities)
        self._latest = state

        change_box = BBox.empty()
        for entity in list(added.values()) + list(updated.values()):
            if isinstance(entity, Point):
                change_box = change_box.expand_by_point(entity.xy)
            elif isinstance(entity, Boundary) and entity.arc:
                for pt in self._boundary_points(entity, state.points):
                    change_box = change_box.expand_by_point(pt)

        if not self._bbox.contains_box(change_box):
            self._bbox = self._bbox.union(change_box)
            logger.debug("Expanding index bounds to %s; rebuilding", self._bbox.to_list())
            resolver = CollisionResolver(self._bbox, self.config)
            resolver.point_radius = self._resolver.point_radius
            resolver.line_radius = self._resolver.line_radius
            for entity in state:
                self._index(entity, state, resolver)
            self._resolver = resolver
            logger.debug("Rebuilt index with %d ids", len(resolver))
            return

        updated_points = [k for k, v in updated.items() if isinstance(v, Point)]
        if updated_points:
            updated.update(state.linked_boundaries(updated_points))

        logger.debug(
            "Applying incremental update: %d added, %d updated, %d removed",
            len(added),
            len(updated),
            len(removed),
        )
        for entity in list(added.values()) + list(updated.values()):
            self._index(entity, state, self._resolver)
        for entity_id in removed:
            self._resolver.remove(entity_id)


__all__ = ["shallow_diff", "ResolverMaintainer"]
