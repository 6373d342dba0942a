"""Selection and snapping index for floor entities."""

from .maintainer import ResolverMaintainer, shallow_diff
from .resolver import (
    CollisionReport,
    CollisionResolver,
    EntryKind,
    LineEntry,
    PointEntry,
    RegionEntry,
    SnapCandidate,
)

__all__ = [
    "CollisionReport",
    "CollisionResolver",
    "EntryKind",
    "LineEntry",
    "PointEntry",
    "RegionEntry",
    "SnapCandidate",
    "ResolverMaintainer",
    "shallow_diff",
]
