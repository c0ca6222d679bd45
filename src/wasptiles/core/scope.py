"""Coordinate scope resolution from the base tile inventory."""

from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Iterable

from .types import Scope

logger = logging.getLogger(__name__)

_COORD_PATTERN = re.compile(r"(\d+)-(\d+)")


def parse_tile_name(name: str) -> tuple[int, int] | None:
    """Extract ``(x, y)`` from a tile file name such as ``50-51.png``.

    Returns:
        The coordinates, or None if the name carries no ``<x>-<y>`` pair
    """
    match = _COORD_PATTERN.search(name)
    if match is None:
        return None
    return int(match.group(1)), int(match.group(2))


def scope_from_names(names: Iterable[str]) -> Scope:
    """Compute the bounding box of every parseable tile name."""
    x1 = y1 = x2 = y2 = None
    for name in names:
        coords = parse_tile_name(name)
        if coords is None:
            continue
        x, y = coords
        if x1 is None:
            x1, x2, y1, y2 = x, x, y, y
            continue
        x1 = min(x1, x)
        x2 = max(x2, x)
        y1 = min(y1, y)
        y2 = max(y2, y)

    if x1 is None:
        return Scope.empty()
    return Scope(x1=x1, y1=y1, x2=x2, y2=y2)


def _iter_source_names(source_dir: Path, layers: Iterable[str], planes: Iterable[int]) -> Iterable[str]:
    for layer in layers:
        for plane in planes:
            plane_dir = source_dir / layer / str(plane)
            if not plane_dir.is_dir():
                logger.debug("No source directory for %s plane %d", layer, plane)
                continue
            for entry in plane_dir.iterdir():
                if entry.is_file():
                    yield entry.name


def resolve_scope(source_dir: Path, layers: Iterable[str], planes: Iterable[int]) -> Scope:
    """Derive the Scope from the zoom-0 source inventory.

    The scope is the union over every plane of every layer so that planes
    with different extents are all covered.

    Args:
        source_dir: Root of the base tiles
        layers: Layers to scan
        planes: Planes to scan

    Returns:
        The resolved Scope, or an empty Scope if no file matched
    """
    scope = scope_from_names(_iter_source_names(Path(source_dir), layers, list(planes)))
    if scope.is_empty:
        logger.warning("No source tiles found under %s, scope is empty", source_dir)
    else:
        logger.info(
            "Resolved scope x=%d..%d y=%d..%d", scope.x1, scope.x2, scope.y1, scope.y2
        )
    return scope
