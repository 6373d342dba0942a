"""Containment forest of polygons.

Each node keeps three decompositions of its polygon: the convex parts of the
polygon itself, its convex hull, and the convex "obstacles" filling the gap
between hull and polygon. Hull-vs-hull SAT decides candidate containment and
the obstacles rule out shapes that only sit inside a concavity of the hull.

Nodes live in an arena and refer to each other by index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import IntEnum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Set

from ..types import BBox, CacheVersionError, EntityID, Polygon, Vec2
from .decomposition import decompose_to_convex_hull_and_obstacles, decompose_to_convex_parts, make_ccw
from .quadtree import QuadTree
from .sat import (
    ConvexPolygon,
    SATResponse,
    collide_circle_polygon,
    collide_polygon_circle,
    collide_polygons,
    point_in_polygon,
)

logger = logging.getLogger(__name__)

CACHE_VERSION = 2.1


class ContainmentFlag(IntEnum):
    CONTAINED_BY_OTHER = -1
    NO_COLLISION = 0
    CONTAINS_OTHER = 1
    COLLISION = 2


Mutator = Callable[..., None]
TraverseCallback = Callable[[EntityID, Optional[EntityID], int, Mutator], None]


@dataclass
class EnclosureNode:
    src_id: Optional[EntityID]
    src: Polygon
    inner_convexes: List[ConvexPolygon]
    outer_hull: ConvexPolygon
    outer_obstacles: List[ConvexPolygon]
    is_obstacle: bool = False
    parent: Optional[int] = None
    children: List[int] = field(default_factory=list)
    # broad-phase label of the node's own bbox
    label: int = -1

    @classmethod
    def from_polygon(cls, polygon: Sequence[Vec2], src_id: Optional[EntityID]) -> "EnclosureNode":
        ccw = make_ccw(polygon)
        hull = decompose_to_convex_hull_and_obstacles(ccw)
        parts = decompose_to_convex_parts(ccw)
        return cls(
            src_id=src_id,
            src=[(float(x), float(y)) for x, y in polygon],
            inner_convexes=[ConvexPolygon(part) for part in parts],
            outer_hull=ConvexPolygon(hull.outer_hull),
            outer_obstacles=[ConvexPolygon(obs) for obs in hull.obstacles],
        )

    @classmethod
    def from_cache(cls, cached: Mapping[str, Any]) -> "EnclosureNode":
        return cls(
            src_id=cached.get("srcID"),
            src=[(float(p[0]), float(p[1])) for p in cached.get("src") or []],
            inner_convexes=[ConvexPolygon(part) for part in cached["innerConvexes"]],
            outer_hull=ConvexPolygon(cached["outerHull"]),
            outer_obstacles=[ConvexPolygon(obs) for obs in cached["outerObstacles"]],
            is_obstacle=bool(cached.get("isObstacle", False)),
        )

    def to_cache(self) -> Dict[str, Any]:
        return {
            "srcID": self.src_id,
            "src": [[x, y] for x, y in self.src],
            "innerConvexes": [part.to_list() for part in self.inner_convexes],
            "outerHull": self.outer_hull.to_list(),
            "outerObstacles": [obs.to_list() for obs in self.outer_obstacles],
            "isObstacle": self.is_obstacle,
        }

    @property
    def bbox(self) -> BBox:
        return self.outer_hull.bbox

    def check_node_containment(self, other: "EnclosureNode", hits: Set[int]) -> ContainmentFlag:
        """Classify ``other`` relative to this node."""

        response = SATResponse()
        if not collide_polygons(self.outer_hull, other.outer_hull, response):
            return ContainmentFlag.NO_COLLISION
        # partial overlaps do not affect enclosure
        if not (response.a_in_b or response.b_in_a):
            return ContainmentFlag.NO_COLLISION

        if response.a_in_b:
            for part in self.inner_convexes:
                if part.tag not in hits:
                    continue
                for obstacle in other.outer_obstacles:
                    if collide_polygons(part, obstacle):
                        return ContainmentFlag.NO_COLLISION
            return ContainmentFlag.CONTAINED_BY_OTHER

        for obstacle in self.outer_obstacles:
            if obstacle.tag not in hits:
                continue
            for part in other.inner_convexes:
                if collide_polygons(obstacle, part):
                    return ContainmentFlag.NO_COLLISION
        return ContainmentFlag.CONTAINS_OTHER

    def check_polygon_containment(self, polygon: ConvexPolygon, hits: Set[int]) -> ContainmentFlag:
        response = SATResponse()
        if not collide_polygons(self.outer_hull, polygon, response) or not response.b_in_a:
            return ContainmentFlag.NO_COLLISION
        if response.a_in_b:
            return ContainmentFlag.CONTAINED_BY_OTHER
        for obstacle in self.outer_obstacles:
            if obstacle.tag in hits and collide_polygons(obstacle, polygon):
                return ContainmentFlag.NO_COLLISION
        return ContainmentFlag.CONTAINS_OTHER

    def check_polygon_collision(self, polygon: ConvexPolygon, hits: Set[int]) -> ContainmentFlag:
        for part in self.inner_convexes:
            if part.tag in hits and collide_polygons(polygon, part):
                return ContainmentFlag.COLLISION
        return ContainmentFlag.NO_COLLISION

    def check_circle_containment(self, center: Vec2, radius: float, hits: Set[int]) -> ContainmentFlag:
        response = SATResponse()
        if not collide_polygon_circle(self.outer_hull, center, radius, response) or not response.b_in_a:
            return ContainmentFlag.NO_COLLISION
        if response.a_in_b:
            return ContainmentFlag.CONTAINED_BY_OTHER
        for obstacle in self.outer_obstacles:
            if obstacle.tag in hits and collide_polygon_circle(obstacle, center, radius):
                return ContainmentFlag.NO_COLLISION
        return ContainmentFlag.CONTAINS_OTHER

    def check_circle_collision(self, center: Vec2, radius: float, hits: Set[int]) -> ContainmentFlag:
        for part in self.inner_convexes:
            if part.tag in hits and collide_circle_polygon(center, radius, part):
                return ContainmentFlag.COLLISION
        return ContainmentFlag.NO_COLLISION

    def check_point_collision(self, point: Vec2, hits: Set[int]) -> ContainmentFlag:
        for part in self.inner_convexes:
            if part.tag in hits and point_in_polygon(point, part):
                return ContainmentFlag.COLLISION
        return ContainmentFlag.NO_COLLISION


class EnclosureTree:
    """Forest of polygons ordered by containment.

    ``add_polygon`` places a polygon below every polygon that fully encloses
    it and above every root-layer polygon it encloses. Nodes may later be
    flagged as obstacles through :meth:`traverse_down`; queries then treat
    them as excluded areas that nested islands can reclaim.
    """

    def __init__(self, bbox: BBox):
        self._bbox = bbox
        self._nodes: List[EnclosureNode] = []
        self._roots: List[int] = []
        self._quadtree: QuadTree[int] = QuadTree(bbox, max_items=8)
        self._next_label = 0

    @property
    def bbox(self) -> BBox:
        return self._bbox

    @property
    def roots(self) -> List[int]:
        return list(self._roots)

    def node(self, index: int) -> EnclosureNode:
        return self._nodes[index]

    def __len__(self) -> int:
        return len(self._nodes)

    def _label(self, bbox: BBox) -> int:
        label = self._next_label
        self._next_label += 1
        self._quadtree.insert(label, bbox)
        return label

    def _hits(self, bbox: BBox) -> Set[int]:
        return set(self._quadtree.query(bbox))

    def add_polygon(self, polygon: Sequence[Vec2], src_id: Optional[EntityID]) -> "EnclosureTree":
        """Insert ``polygon`` under ``src_id``; returns ``self`` for chaining."""

        return self._add_node(EnclosureNode.from_polygon(polygon, src_id))

    def _add_node(self, node: EnclosureNode) -> "EnclosureTree":
        index = len(self._nodes)
        self._nodes.append(node)
        # the node bbox is labelled before the lookup so labels stay ordered
        node_box = BBox.from_points(node.src) if node.src else node.bbox
        label = self._next_label
        self._next_label += 1
        node.label = label
        hits = self._hits(node_box)

        self._roots = self._add_to_layer(self._roots, None, index, hits)

        self._quadtree.insert(label, node_box)
        for part in node.inner_convexes + node.outer_obstacles:
            part.tag = self._label(part.bbox)
        return self

    def _add_to_layer(
        self, layer: List[int], parent: Optional[int], index: int, hits: Set[int]
    ) -> List[int]:
        new_node = self._nodes[index]
        contained: List[int] = []
        for existing_index in layer:
            existing = self._nodes[existing_index]
            if existing.label not in hits:
                continue
            flag = existing.check_node_containment(new_node, hits)
            if flag == ContainmentFlag.CONTAINS_OTHER:
                existing.children = self._add_to_layer(existing.children, existing_index, index, hits)
                return layer
            if flag == ContainmentFlag.CONTAINED_BY_OTHER:
                contained.append(existing_index)

        new_node.parent = parent
        layer = layer + [index]
        if contained:
            new_node.children = contained
            for child in contained:
                self._nodes[child].parent = index
            layer = [i for i in layer if i not in contained]
        return layer

    def traverse_down(self, callback: TraverseCallback) -> "EnclosureTree":
        """Visit nodes in pre-order.

        ``callback(src_id, parent_src_id, depth, mutate)`` receives a
        ``mutate(is_obstacle=None, new_id=None)`` function that flags the node
        or relabels it in place. Roots have depth 0.
        """

        def visit(index: int, parent_src: Optional[EntityID], depth: int) -> None:
            node = self._nodes[index]

            def mutate(is_obstacle: Optional[bool] = None, new_id: Optional[EntityID] = None) -> None:
                if is_obstacle is not None:
                    node.is_obstacle = bool(is_obstacle)
                if new_id is not None:
                    node.src_id = new_id

            callback(node.src_id, parent_src, depth, mutate)
            for child in list(node.children):
                visit(child, node.src_id, depth + 1)

        for root in list(self._roots):
            visit(root, None, 0)
        return self

    def _find_enclosing(
        self,
        layer: Sequence[int],
        contains: Callable[[EnclosureNode], bool],
        collides: Callable[[EnclosureNode], bool],
        hits: Set[int],
    ) -> Optional[EnclosureNode]:
        for index in layer:
            node = self._nodes[index]
            if node.label not in hits:
                continue
            matched = collides(node) if node.is_obstacle else contains(node)
            if matched:
                inner = self._find_enclosing(node.children, contains, collides, hits)
                return inner or node
        return None

    def _innermost(
        self,
        bbox: BBox,
        contains: Callable[[EnclosureNode, Set[int]], bool],
        collides: Callable[[EnclosureNode, Set[int]], bool],
    ) -> Optional[EnclosureNode]:
        hits = self._hits(bbox)
        found = self._find_enclosing(
            self._roots, lambda n: contains(n, hits), lambda n: collides(n, hits), hits
        )
        if found is not None and not found.is_obstacle:
            return found
        return None

    def _point_node(self, point: Vec2) -> Optional[EnclosureNode]:
        pt = (float(point[0]), float(point[1]))

        def hit(node: EnclosureNode, hits: Set[int]) -> bool:
            return node.check_point_collision(pt, hits) == ContainmentFlag.COLLISION

        return self._innermost(BBox(pt[0], pt[1], pt[0], pt[1]), hit, hit)

    def get_enclosing_polygon_id_for_point(self, point: Vec2) -> Optional[EntityID]:
        """Source id of the innermost non-obstacle polygon containing ``point``."""

        node = self._point_node(point)
        return node.src_id if node is not None else None

    def check_point_enclosed(self, point: Vec2) -> bool:
        return self._point_node(point) is not None

    def check_polygon_enclosed(self, polygon: Sequence[Vec2]) -> bool:
        probe = ConvexPolygon(polygon)
        node = self._innermost(
            probe.bbox,
            lambda n, hits: n.check_polygon_containment(probe, hits) == ContainmentFlag.CONTAINS_OTHER,
            lambda n, hits: n.check_polygon_collision(probe, hits) == ContainmentFlag.COLLISION,
        )
        return node is not None

    def check_circle_enclosed(self, center: Vec2, radius: float) -> bool:
        c = (float(center[0]), float(center[1]))
        node = self._innermost(
            BBox.around(c, radius),
            lambda n, hits: n.check_circle_containment(c, radius, hits) == ContainmentFlag.CONTAINS_OTHER,
            lambda n, hits: n.check_circle_collision(c, radius, hits) == ContainmentFlag.COLLISION,
        )
        return node is not None

    def _preorder(self) -> List[int]:
        order: List[int] = []
        stack = list(reversed(self._roots))
        while stack:
            index = stack.pop()
            order.append(index)
            stack.extend(reversed(self._nodes[index].children))
        return order

    def to_cache(self) -> Dict[str, Any]:
        return {
            "nodes": [self._nodes[i].to_cache() for i in self._preorder()],
            "bbox": self._bbox.to_list(),
            "version": CACHE_VERSION,
        }

    @classmethod
    def from_cache(cls, data: Mapping[str, Any]) -> "EnclosureTree":
        """Rebuild a tree from :meth:`to_cache` output without re-decomposing.

        Raises :class:`CacheVersionError` when the cache was written by a
        different format version.
        """

        version = data.get("version")
        if version != CACHE_VERSION:
            raise CacheVersionError(
                f"enclosure tree cache version {version!r} does not match {CACHE_VERSION!r}"
            )
        tree = cls(BBox.from_list(data["bbox"]))
        for cached in data["nodes"]:
            tree._add_node(EnclosureNode.from_cache(cached))
        logger.debug("Restored enclosure tree with %d nodes", len(tree))
        return tree


__all__ = ["CACHE_VERSION", "ContainmentFlag", "EnclosureNode", "EnclosureTree"]
