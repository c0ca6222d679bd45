"""Tests for the write-once tile store."""

from __future__ import annotations

from pathlib import Path

from wasptiles.core.paths import atomic_write_bytes, cache_path
from wasptiles.core.types import TileKey
from wasptiles.engine.store import TileStore

KEY = TileKey("map", -2, 1, 8, 12)


class TestTileStore:
    def test_miss(self, temp_dir: Path) -> None:
        assert TileStore(temp_dir).get(KEY) is None

    def test_put_then_get(self, temp_dir: Path) -> None:
        store = TileStore(temp_dir)
        assert store.put(KEY, b"tile-bytes")
        assert store.get(KEY) == b"tile-bytes"
        assert store.contains(KEY)

    def test_layout(self, temp_dir: Path) -> None:
        store = TileStore(temp_dir)
        store.put(KEY, b"x")
        assert (temp_dir / "map" / "-2" / "1" / "8-12.webp").read_bytes() == b"x"
        assert store.path_for(KEY) == cache_path(temp_dir, KEY)

    def test_no_temp_files_left(self, temp_dir: Path) -> None:
        store = TileStore(temp_dir)
        store.put(KEY, b"first")
        store.put(KEY, b"first")
        files = list(store.path_for(KEY).parent.iterdir())
        assert [f.name for f in files] == ["8-12.webp"]

    def test_put_failure_is_reported(self, temp_dir: Path) -> None:
        """A cache root that is a file makes every write fail."""
        blocker = temp_dir / "cache"
        blocker.write_bytes(b"")
        store = TileStore(blocker)
        assert store.put(KEY, b"data") is False
        assert store.get(KEY) is None

    def test_count(self, temp_dir: Path) -> None:
        store = TileStore(temp_dir)
        store.put(TileKey("map", 0, 0, 1, 1), b"a")
        store.put(TileKey("map", 0, 1, 1, 1), b"b")
        store.put(TileKey("map", -1, 0, 0, 0), b"c")
        assert store.count("map", 0) == 2
        assert store.count("map", -1) == 1
        assert store.count("collision", 0) == 0


class TestAtomicWrite:
    def test_replaces_existing(self, temp_dir: Path) -> None:
        path = temp_dir / "a" / "b" / "tile.webp"
        atomic_write_bytes(path, b"one")
        atomic_write_bytes(path, b"two")
        assert path.read_bytes() == b"two"
        assert [p.name for p in path.parent.iterdir()] == ["tile.webp"]
