import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import Optional, Sequence

from floorgeom import (
    DEFAULT_RESOLVER_CONFIG,
    FloorGeometryError,
    combine_rooms,
    floor_area,
    ingest_floor,
    resolve_rooms,
)

logger = logging.getLogger(__name__)


def _configure_logging(level: str) -> None:
    log_level = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level,
        format="%(levelname)s:%(name)s:%(message)s",
    )


def main(argv: Optional[Sequence[str]] = None) -> None:
    parser = argparse.ArgumentParser(description="Resolve rooms from a floor plan")
    parser.add_argument("path", help="Path to the floor JSON file")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (default: INFO)",
    )
    parser.add_argument(
        "--combine",
        action="store_true",
        help="Combine the floor's existing rooms into regions instead of re-tracing rooms",
    )
    parser.add_argument(
        "--area",
        action="store_true",
        help="Print the total area of the resolved rooms",
    )
    parser.add_argument(
        "--arc-precision",
        type=float,
        help="Maximum angle in radians per interpolated arc segment",
    )
    parser.add_argument(
        "--output",
        help="Write the resolved rooms JSON to the given path instead of stdout",
    )
    args = parser.parse_args(argv)

    _configure_logging(args.log_level)

    with open(args.path) as fin:
        data = json.load(fin)

    logger.info("Loading floor from %s", args.path)
    floor, issues = ingest_floor(data)
    for issue in issues:
        logger.warning("Integrity issue: %s", issue)
    logger.info(
        "Loaded %d point(s), %d boundary(ies), %d room(s)",
        len(floor.points),
        len(floor.boundaries),
        len(floor.rooms),
    )

    config = DEFAULT_RESOLVER_CONFIG
    if args.arc_precision:
        config = replace(config, arc_precision=args.arc_precision)

    try:
        if args.combine:
            rooms, _tree = combine_rooms(floor.points, floor.boundaries, floor.rooms, config)
            logger.info("Combined %d room(s) into %d region(s)", len(floor.rooms), len(rooms))
        else:
            rooms, _tree = resolve_rooms(floor.points, floor.boundaries, config)
            logger.info("Resolved %d room(s)", len(rooms))
    except FloorGeometryError as exc:
        logger.error("Room resolution failed: %s", exc)
        raise SystemExit(1)

    document = json.dumps({"rooms": [room.to_dict() for room in rooms]}, indent=2)
    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        logger.info("Writing rooms to %s", output_path)
        output_path.write_text(document, encoding="utf-8")
    else:
        print(document)

    if args.area:
        floor.rooms = rooms
        print(f"Total area: {floor_area(floor, precision=config.arc_precision):.6f}")


if __name__ == "__main__":
    main(sys.argv[1:])
