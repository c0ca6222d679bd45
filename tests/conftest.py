"""Test fixtures for wasptiles tests."""

from __future__ import annotations

import tempfile
from pathlib import Path
from typing import Callable, Generator

import numpy as np
import pytest
import pyvips

from wasptiles.config import EngineConfig
from wasptiles.core.paths import source_path
from wasptiles.engine.backends import VIPSBackend
from wasptiles.engine.context import TileContext
from wasptiles.engine.pyramid import TilePyramid

TILE_SIZE = 256

BLANK = (0, 0, 0, 0)
OCEAN = (30, 60, 200, 255)
WALKABLE = (255, 255, 255, 255)

RED = (200, 40, 40, 255)
GREEN = (40, 180, 60, 255)
BLUE = (0, 0, 255, 255)
YELLOW = (230, 210, 30, 255)


def new_rgba(width: int, height: int, color: tuple[int, int, int, int]) -> pyvips.Image:
    """Solid-colour 8-bit RGBA image."""
    return (
        pyvips.Image.black(width, height, bands=4)
        .add(list(color))
        .cast("uchar")
        .copy(interpretation="srgb")
    )


def encode_png(img: pyvips.Image) -> bytes:
    """Encode as PNG, the format of base-resolution source tiles."""
    return img.pngsave_buffer()


def solid_png(color: tuple[int, int, int, int], size: int = TILE_SIZE) -> bytes:
    """Encode a solid-colour RGBA tile as PNG."""
    return encode_png(new_rgba(size, size, color))


def decode_rgba(data: bytes) -> np.ndarray:
    """Decode tile bytes to an (H, W, 4) uint8 array."""
    return VIPSBackend.to_numpy(VIPSBackend.decode(data))


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Provide a temporary directory that's cleaned up after tests."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def sentinel_dir(temp_dir: Path) -> Path:
    """Blank, ocean and walkable sentinel tiles as lossless WebP."""
    directory = temp_dir / "static"
    directory.mkdir()
    for filename, color in (
        ("empty.webp", BLANK),
        ("empty-blue.webp", OCEAN),
        ("empty-white.webp", WALKABLE),
    ):
        img = new_rgba(TILE_SIZE, TILE_SIZE, color)
        (directory / filename).write_bytes(VIPSBackend.encode_lossless(img))
    return directory


@pytest.fixture
def engine_config(temp_dir: Path, sentinel_dir: Path) -> EngineConfig:
    source_dir = temp_dir / "source"
    source_dir.mkdir()
    return EngineConfig(
        source_dir=source_dir,
        cache_dir=temp_dir / "cache",
        sentinel_dir=sentinel_dir,
        workers=4,
        webp_quality=80,
    )


@pytest.fixture
def write_source(engine_config: EngineConfig) -> Callable[..., Path]:
    """Write a base tile: ``write_source(layer, plane, x, y, color_or_bytes)``."""

    def _write(layer: str, plane: int, x: int, y: int, content) -> Path:
        path = source_path(engine_config.source_dir, layer, plane, x, y)
        path.parent.mkdir(parents=True, exist_ok=True)
        data = content if isinstance(content, bytes) else solid_png(content)
        path.write_bytes(data)
        return path

    return _write


@pytest.fixture
def make_pyramid(engine_config: EngineConfig) -> Generator[Callable[..., TilePyramid], None, None]:
    """Build a TilePyramid after the source tiles have been written.

    The context (Scope, sentinels) is resolved at call time, matching
    startup behaviour.
    """
    created: list[TilePyramid] = []

    def _make(store=None) -> TilePyramid:
        pyramid = TilePyramid(TileContext.create(engine_config), store=store)
        created.append(pyramid)
        return pyramid

    yield _make

    for pyramid in created:
        pyramid.close()
