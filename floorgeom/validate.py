"""Referential-integrity checks applied when a serialized floor is loaded."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .floor import Floor
from .logging_utils import apply_debug_logging
from .types import Boundary, EntityID, FloorObject, Point, Room

logger = logging.getLogger(__name__)

BROKEN_BOUNDARY_ENDPOINT = "broken boundary endpoint reference"
BROKEN_ROOM_BOUNDARY = "broken region boundary reference"
BROKEN_ROOM_PARENT = "broken region parent reference"


@dataclass
class IntegrityIssue:
    error: str
    entity_id: Optional[EntityID]
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.error}: {self.entity_id!r}"


def ingest_floor(data: Mapping[str, Any]) -> Tuple[Floor, List[IntegrityIssue]]:
    """Load a floor, dropping entities whose references cannot be resolved.

    Boundaries with a missing endpoint and rooms naming a missing boundary are
    dropped; rooms whose parent is missing are kept as roots. Every problem is
    reported as an :class:`IntegrityIssue` instead of raising.
    """

    issues: List[IntegrityIssue] = []

    points = [Point.from_dict(raw) for raw in data.get("points") or []]
    point_ids = {p.id for p in points}

    boundaries: List[Boundary] = []
    for raw in data.get("boundaries") or []:
        boundary = Boundary.from_dict(raw)
        if boundary.start in point_ids and boundary.end in point_ids:
            boundaries.append(boundary)
        else:
            issues.append(IntegrityIssue(BROKEN_BOUNDARY_ENDPOINT, boundary.id, dict(raw)))
    boundary_ids = {b.id for b in boundaries}

    rooms: List[Room] = []
    raw_rooms: Dict[EntityID, Mapping[str, Any]] = {}
    for raw in data.get("rooms") or []:
        room = Room.from_dict(raw)
        referenced = [*room.perimeter, *room.interior]
        for hole in room.holes:
            referenced.extend(hole)
        if any(bid not in boundary_ids for bid in referenced):
            issues.append(IntegrityIssue(BROKEN_ROOM_BOUNDARY, room.id, dict(raw)))
            continue
        rooms.append(room)
        raw_rooms[room.id] = raw

    room_ids = {r.id for r in rooms}
    for room in rooms:
        if room.parent is not None and room.parent not in room_ids:
            issues.append(IntegrityIssue(BROKEN_ROOM_PARENT, room.id, dict(raw_rooms[room.id])))
            room.parent = None

    objects = [FloorObject.from_dict(raw) for raw in data.get("objects") or []]
    floor = Floor(points, boundaries, rooms, objects, data.get("scale") or 1.0)
    if issues:
        logger.debug("Ingested floor with %d integrity issue(s)", len(issues))
    return floor, issues


apply_debug_logging(globals(), logger=logger)


__all__ = [
    "BROKEN_BOUNDARY_ENDPOINT",
    "BROKEN_ROOM_BOUNDARY",
    "BROKEN_ROOM_PARENT",
    "IntegrityIssue",
    "ingest_floor",
]
