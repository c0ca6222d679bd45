"""Write-once disk store for encoded tiles."""

from __future__ import annotations

import logging
from pathlib import Path

from wasptiles.config import CACHE_SUFFIX
from wasptiles.core.paths import atomic_write_bytes, cache_path
from wasptiles.core.types import TileKey

logger = logging.getLogger(__name__)


class TileStore:
    """Key-addressed tile cache on the local filesystem.

    Entries are never rewritten in place: ``put`` publishes complete files
    with an atomic rename, so concurrent producers of the same key (which
    always produce identical bytes) can race safely and readers never see a
    truncated file.
    """

    def __init__(self, cache_dir: Path) -> None:
        self.cache_dir = Path(cache_dir)

    def path_for(self, key: TileKey) -> Path:
        return cache_path(self.cache_dir, key)

    def get(self, key: TileKey) -> bytes | None:
        """Return the cached bytes for ``key``, or None on a miss."""
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Failed to read cached tile %s: %s", key, e)
            return None

    def put(self, key: TileKey, data: bytes) -> bool:
        """Persist ``data`` for ``key``.

        Returns:
            True if the entry was written, False if the write failed
        """
        path = self.path_for(key)
        try:
            atomic_write_bytes(path, data)
        except OSError as e:
            logger.warning("Failed to persist tile %s to %s: %s", key, path, e)
            return False
        return True

    def contains(self, key: TileKey) -> bool:
        return self.path_for(key).is_file()

    def count(self, layer: str, zoom: int) -> int:
        """Number of cached tiles for one layer and zoom level (all planes)."""
        zoom_dir = self.cache_dir / layer / str(zoom)
        if not zoom_dir.is_dir():
            return 0
        return sum(1 for _ in zoom_dir.glob(f"*/*{CACHE_SUFFIX}"))
