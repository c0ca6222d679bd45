"""Filesystem layout of source and cached tiles."""

from __future__ import annotations

import os
import tempfile
from pathlib import Path

from wasptiles.config import CACHE_SUFFIX, SOURCE_SUFFIX

from .types import TileKey


def source_path(source_dir: Path, layer: str, plane: int, x: int, y: int) -> Path:
    """Location of a base-resolution tile: ``<layer>/<plane>/<x>-<y>.png``."""
    return source_dir / layer / str(plane) / f"{x}-{y}{SOURCE_SUFFIX}"


def cache_path(cache_dir: Path, key: TileKey) -> Path:
    """Location of a cached tile: ``<layer>/<zoom>/<plane>/<x>-<y>.webp``."""
    return (
        cache_dir / key.layer / str(key.zoom) / str(key.plane)
        / f"{key.filename}{CACHE_SUFFIX}"
    )


def atomic_write_bytes(path: Path, data: bytes) -> None:
    """Atomically write bytes to a file.

    Writes to a temp file in the same directory, then replaces the target.
    ``os.replace()`` is atomic on both POSIX and Windows (same filesystem),
    so readers see either no file or the complete file.
    """
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_path = tempfile.mkstemp(
        dir=path.parent, suffix=".tmp", prefix=f".{path.stem}"
    )
    try:
        with os.fdopen(fd, "wb") as f:
            f.write(data)
        os.replace(tmp_path, path)
    except BaseException:
        try:
            os.unlink(tmp_path)
        except OSError:
            pass
        raise
