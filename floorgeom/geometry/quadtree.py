"""Region quadtree used as the broad phase for collision and enclosure queries."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Dict, Generic, List, Optional, Tuple, TypeVar

from ..types import BBox

T = TypeVar("T")


@dataclass
class _QuadNode:
    bounds: BBox
    depth: int
    items: List[int] = field(default_factory=list)
    children: Optional[List[int]] = None


class QuadTree(Generic[T]):
    """Quadtree over bounding boxes.

    Items are stored at the deepest node that fully contains their box; a
    leaf splits once it holds more than ``max_items`` entries. Boxes outside
    the world bounds are kept at the root so they stay queryable. Queries
    return items in insertion order.
    """

    def __init__(self, bbox: BBox, max_items: int = 8, max_depth: int = 12):
        if bbox.is_empty():
            bbox = BBox(0.0, 0.0, 0.0, 0.0)
        self._bbox = bbox
        self._max_items = max_items
        self._max_depth = max_depth
        self._nodes: List[_QuadNode] = [_QuadNode(bbox, 0)]
        self._items: Dict[int, Tuple[T, BBox]] = {}
        self._item_node: Dict[int, int] = {}
        self._next_handle = 0

    @property
    def bbox(self) -> BBox:
        return self._bbox

    def __len__(self) -> int:
        return len(self._items)

    def insert(self, item: T, bbox: BBox) -> int:
        handle = self._next_handle
        self._next_handle += 1
        self._items[handle] = (item, bbox)
        self._insert_handle(0, handle, bbox)
        return handle

    def remove(self, handle: int) -> bool:
        node_index = self._item_node.pop(handle, None)
        if node_index is None:
            return False
        self._nodes[node_index].items.remove(handle)
        del self._items[handle]
        return True

    def query(self, bbox: BBox) -> List[T]:
        return [self._items[h][0] for h in self.query_handles(bbox)]

    def query_handles(self, bbox: BBox) -> List[int]:
        if bbox.is_empty():
            return []
        hits: List[int] = []
        stack = [0]
        while stack:
            node = self._nodes[stack.pop()]
            for handle in node.items:
                if self._items[handle][1].intersects(bbox):
                    hits.append(handle)
            if node.children:
                for child_index in node.children:
                    if self._nodes[child_index].bounds.intersects(bbox):
                        stack.append(child_index)
        hits.sort()
        return hits

    def _insert_handle(self, node_index: int, handle: int, bbox: BBox) -> None:
        node = self._nodes[node_index]
        while node.children:
            child_index = self._fit_child(node, bbox)
            if child_index is None:
                break
            node_index = child_index
            node = self._nodes[node_index]
        node.items.append(handle)
        self._item_node[handle] = node_index
        if node.children is None and len(node.items) > self._max_items and node.depth < self._max_depth:
            self._split(node_index)

    def _fit_child(self, node: _QuadNode, bbox: BBox) -> Optional[int]:
        if not node.children:
            return None
        for child_index in node.children:
            if self._nodes[child_index].bounds.contains_box(bbox):
                return child_index
        return None

    def _split(self, node_index: int) -> None:
        node = self._nodes[node_index]
        b = node.bounds
        cx = (b.min_x + b.max_x) * 0.5
        cy = (b.min_y + b.max_y) * 0.5
        quads = [
            BBox(b.min_x, b.min_y, cx, cy),
            BBox(cx, b.min_y, b.max_x, cy),
            BBox(b.min_x, cy, cx, b.max_y),
            BBox(cx, cy, b.max_x, b.max_y),
        ]
        node.children = []
        for quad in quads:
            node.children.append(len(self._nodes))
            self._nodes.append(_QuadNode(quad, node.depth + 1))

        pending, node.items = node.items, []
        for handle in pending:
            bbox = self._items[handle][1]
            child_index = self._fit_child(node, bbox)
            if child_index is None:
                node.items.append(handle)
                self._item_node[handle] = node_index
            else:
                self._insert_handle(child_index, handle, bbox)


__all__ = ["QuadTree"]
