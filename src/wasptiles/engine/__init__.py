"""Tile pyramid cache engine: sentinels, store, recursive pyramid, orchestration."""

from .backends import VIPSBackend, get_backend, is_vips_available
from .context import TileContext
from .orchestrate import BatchWarmer, WarmSummary, cache_status, resolve_tile
from .pyramid import EngineStats, TilePyramid, child_keys, quadrant_offsets
from .sentinels import Sentinel, SentinelError, SentinelRegistry, fingerprint
from .store import TileStore

__all__ = [
    "BatchWarmer",
    "EngineStats",
    "Sentinel",
    "SentinelError",
    "SentinelRegistry",
    "TileContext",
    "TilePyramid",
    "TileStore",
    "VIPSBackend",
    "WarmSummary",
    "cache_status",
    "child_keys",
    "fingerprint",
    "get_backend",
    "is_vips_available",
    "quadrant_offsets",
    "resolve_tile",
]
