"""Centralized configuration for wasptiles.

All tunable parameters are defined here with sensible defaults.
Values can be overridden via environment variables.

Environment Variables:
    WASPTILES_SOURCE_DIR: Base-resolution source tiles (default: ./static/wasp-map-layers)
    WASPTILES_CACHE_DIR: Derived tile cache (default: ./cache)
    WASPTILES_SENTINEL_DIR: Canonical empty/solid tiles (default: ./static)
    WASPTILES_WEBP_QUALITY: Lossy WebP quality for composites (default: 80)
    WASPTILES_WORKERS: Thread pool size for raster work (default: 8)
    WASPTILES_REQUEST_TIMEOUT: On-demand compute timeout in seconds (default: 30)
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_env_int(name: str, default: int) -> int:
    """Get an integer from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return int(value)
        except ValueError:
            logger.warning(
                "Invalid integer for %s: %r, using default %d", name, value, default
            )
    return default


def _get_env_float(name: str, default: float) -> float:
    """Get a float from environment variable with fallback."""
    value = os.environ.get(name)
    if value is not None:
        try:
            return float(value)
        except ValueError:
            logger.warning(
                "Invalid number for %s: %r, using default %s", name, value, default
            )
    return default


def _get_env_path(name: str, default: str) -> Path:
    """Get a Path from environment variable with fallback."""
    return Path(os.environ.get(name, default))


# =============================================================================
# Tile Geometry
# =============================================================================

#: Edge length of a base tile in pixels
TILE_SIZE: int = 256

#: Map layers served by the pyramid
LAYERS: tuple[str, ...] = ("map", "heightmap", "collision")

#: Most zoomed-out level (each tile aggregates 2^6 x 2^6 base tiles)
ZOOM_MIN: int = -6

#: Most zoomed-in level (tiles magnified to (zoom + 1) * TILE_SIZE)
ZOOM_MAX: int = 2

#: Plane (floor) range, inclusive
PLANE_MIN: int = 0
PLANE_MAX: int = 3


# =============================================================================
# Storage Locations
# =============================================================================

SOURCE_DIR: Path = _get_env_path("WASPTILES_SOURCE_DIR", "./static/wasp-map-layers")
CACHE_DIR: Path = _get_env_path("WASPTILES_CACHE_DIR", "./cache")
SENTINEL_DIR: Path = _get_env_path("WASPTILES_SENTINEL_DIR", "./static")

#: File extension of base-resolution source tiles
SOURCE_SUFFIX: str = ".png"

#: File extension of cached tiles
CACHE_SUFFIX: str = ".webp"


# =============================================================================
# Sentinel Tiles
# =============================================================================

#: Sentinel name -> file name inside SENTINEL_DIR
SENTINEL_FILES: dict[str, str] = {
    "blank": "empty.webp",
    "ocean": "empty-blue.webp",
    "walkable": "empty-white.webp",
}

#: Sentinels that apply to every layer
GLOBAL_SENTINELS: tuple[str, ...] = ("blank",)

#: Layer-specific sentinels
LAYER_SENTINELS: dict[str, tuple[str, ...]] = {
    "map": ("ocean",),
    "collision": ("walkable",),
}


# =============================================================================
# Encoding / Execution
# =============================================================================

#: Lossy WebP quality for downscaled composites
WEBP_QUALITY: int = _get_env_int("WASPTILES_WEBP_QUALITY", 80)

#: Threads used for libvips decode/resize/encode and file I/O
WORKERS: int = _get_env_int("WASPTILES_WORKERS", 8)

#: Seconds an on-demand request may spend computing before it is cancelled
REQUEST_TIMEOUT: float = _get_env_float("WASPTILES_REQUEST_TIMEOUT", 30.0)


# =============================================================================
# Validation
# =============================================================================


def _validate_config() -> None:
    """Validate configuration values and log warnings for out-of-range settings."""
    global WEBP_QUALITY, WORKERS, REQUEST_TIMEOUT

    if not 1 <= WEBP_QUALITY <= 100:
        clamped = min(max(WEBP_QUALITY, 1), 100)
        logger.warning(
            "WEBP_QUALITY=%d is out of range, clamping to %d", WEBP_QUALITY, clamped
        )
        WEBP_QUALITY = clamped

    if WORKERS < 1:
        logger.warning("WORKERS=%d is too low, clamping to 1", WORKERS)
        WORKERS = 1

    if REQUEST_TIMEOUT <= 0:
        logger.warning(
            "REQUEST_TIMEOUT=%s is not positive, using 30 seconds", REQUEST_TIMEOUT
        )
        REQUEST_TIMEOUT = 30.0


_validate_config()


@dataclass(frozen=True)
class EngineConfig:
    """Paths and tunables for one tile pyramid.

    Attributes:
        source_dir: Root of the base tiles (``<layer>/<plane>/<x>-<y>.png``)
        cache_dir: Root of the derived tiles (``<layer>/<zoom>/<plane>/<x>-<y>.webp``)
        sentinel_dir: Directory holding the sentinel WebP files
    """

    source_dir: Path
    cache_dir: Path
    sentinel_dir: Path
    tile_size: int = TILE_SIZE
    layers: tuple[str, ...] = LAYERS
    zoom_min: int = ZOOM_MIN
    zoom_max: int = ZOOM_MAX
    plane_min: int = PLANE_MIN
    plane_max: int = PLANE_MAX
    webp_quality: int = WEBP_QUALITY
    workers: int = WORKERS
    request_timeout: float = REQUEST_TIMEOUT

    @property
    def planes(self) -> range:
        return range(self.plane_min, self.plane_max + 1)


def load_config() -> EngineConfig:
    """Build an EngineConfig from the module defaults and environment."""
    return EngineConfig(
        source_dir=SOURCE_DIR,
        cache_dir=CACHE_DIR,
        sentinel_dir=SENTINEL_DIR,
    )
