"""Shared type definitions for the wasptiles core module."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Iterator, NamedTuple


class TileKey(NamedTuple):
    """Identity of one tile in the pyramid.

    Attributes:
        layer: Map layer ("map", "heightmap" or "collision")
        zoom: Zoom level (0 = base resolution, <0 aggregated, >0 magnified)
        plane: Plane (floor) index
        x: Tile column in base-tile coordinates
        y: Tile row in base-tile coordinates (grows upwards)
    """

    layer: str
    zoom: int
    plane: int
    x: int
    y: int

    @property
    def filename(self) -> str:
        return f"{self.x}-{self.y}"

    def __str__(self) -> str:
        return f"{self.layer}/{self.zoom}/{self.plane}/{self.x}-{self.y}"


def step_for_zoom(zoom: int) -> int:
    """Offset between the children of a tile at a negative zoom level.

    A tile at level ``zoom`` covers ``2^|zoom|`` base tiles per side, so its
    four children at ``zoom + 1`` sit half that distance apart:
    0, 1, 2, 4, 8, 16, 32 for |zoom| = 0..6.
    """
    if zoom >= 0:
        return 0
    return 2 ** (-zoom - 1)


def span_for_zoom(zoom: int) -> int:
    """Number of base tiles per side covered by one tile at ``zoom``."""
    if zoom >= 0:
        return 1
    return 2 ** -zoom


@dataclass(frozen=True)
class Scope:
    """Inclusive bounding box of all base tiles.

    An empty inventory yields a degenerate scope where ``x1 > x2``.
    """

    x1: int
    y1: int
    x2: int
    y2: int

    @classmethod
    def empty(cls) -> Scope:
        return cls(x1=0, y1=0, x2=-1, y2=-1)

    @property
    def is_empty(self) -> bool:
        return self.x1 > self.x2 or self.y1 > self.y2

    def contains(self, x: int, y: int) -> bool:
        return self.x1 <= x <= self.x2 and self.y1 <= y <= self.y2

    def is_aligned(self, zoom: int, x: int, y: int) -> bool:
        """True if (x, y) sits on the tile grid of ``zoom`` relative to the origin."""
        span = span_for_zoom(zoom)
        return (x - self.x1) % span == 0 and (y - self.y1) % span == 0

    def aligned_origin(self, zoom: int, x: int, y: int) -> tuple[int, int]:
        """Nearest grid-aligned coordinate at or below (x, y) for ``zoom``."""
        span = span_for_zoom(zoom)
        return (
            self.x1 + (x - self.x1) // span * span,
            self.y1 + (y - self.y1) // span * span,
        )

    def iter_coords(self, zoom: int) -> Iterator[tuple[int, int]]:
        """Yield every aligned (x, y) inside the scope, row by row."""
        span = span_for_zoom(zoom)
        for y in range(self.y1, self.y2 + 1, span):
            for x in range(self.x1, self.x2 + 1, span):
                yield x, y

    def count(self, zoom: int) -> int:
        if self.is_empty:
            return 0
        span = span_for_zoom(zoom)
        cols = (self.x2 - self.x1) // span + 1
        rows = (self.y2 - self.y1) // span + 1
        return cols * rows

    def to_dict(self) -> dict:
        return {"x1": self.x1, "y1": self.y1, "x2": self.x2, "y2": self.y2}


class FailureReason(str, Enum):
    """Why a tile could not be produced from its inputs."""

    MISSING_SOURCE = "missing_source"
    TRANSFORM_FAILURE = "transform_failure"
    PERSIST_FAILURE = "persist_failure"


class TileOrigin(str, Enum):
    """Where the bytes of a TileResult came from."""

    CACHE = "cache"
    COMPUTED = "computed"
    SENTINEL = "sentinel"
    FALLBACK = "fallback"


@dataclass(frozen=True)
class TileResult:
    """Encoded tile bytes plus how they were obtained.

    ``failure`` is set when the bytes are a fallback (or when a computed tile
    could not be persisted); the bytes are always a servable image.
    """

    data: bytes
    origin: TileOrigin
    failure: FailureReason | None = None

    @property
    def ok(self) -> bool:
        return self.failure is None
