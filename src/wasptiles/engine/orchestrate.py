"""Batch warm-up and on-demand resolution on top of TilePyramid."""

from __future__ import annotations

import asyncio
import logging
import time
from collections import Counter
from dataclasses import dataclass, field
from typing import Iterable

from tqdm import tqdm

from wasptiles.config import EngineConfig
from wasptiles.core.types import TileKey, TileResult

from .pyramid import TilePyramid
from .store import TileStore

logger = logging.getLogger(__name__)

#: Tiles computed concurrently by the batch warmer
DEFAULT_BATCH_CONCURRENCY = 64


async def resolve_tile(
    pyramid: TilePyramid, key: TileKey, timeout: float | None = None
) -> TileResult:
    """Compute one tile, materializing only its dependency subtree.

    Args:
        pyramid: Engine to compute with
        key: Validated tile key
        timeout: Seconds before the computation is abandoned (None = no limit)

    Raises:
        TimeoutError: If the tile was not ready within ``timeout``; the
            in-flight fan-out is cancelled and no partial file is left behind
    """
    try:
        return await asyncio.wait_for(pyramid.compute(key), timeout)
    except asyncio.TimeoutError as e:
        logger.warning("Timed out after %.1fs computing %s", timeout, key)
        raise TimeoutError(f"Tile {key} was not ready within {timeout}s") from e


@dataclass
class WarmSummary:
    """Outcome of a batch warm-up."""

    tiles: int = 0
    origins: Counter = field(default_factory=Counter)
    failures: Counter = field(default_factory=Counter)
    elapsed: float = 0.0

    def add(self, result: TileResult) -> None:
        self.tiles += 1
        self.origins[result.origin.value] += 1
        if not result.ok:
            self.failures[result.failure.value] += 1


class BatchWarmer:
    """Eagerly materializes every tile of the configured coordinate space.

    For each layer the downscale pass runs from zoom 0 down to the minimum
    zoom, then the upscale pass from zoom 1 up to the maximum zoom. All
    planes of one zoom level complete before the next level starts.

    Args:
        pyramid: Engine to compute with
        concurrency: Maximum number of tiles in flight at once
        progress: Show a tqdm progress bar per zoom level
    """

    def __init__(
        self,
        pyramid: TilePyramid,
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
        progress: bool = True,
    ) -> None:
        self.pyramid = pyramid
        self.concurrency = max(1, concurrency)
        self.progress = progress

    def zoom_order(self, zoom_min: int, zoom_max: int) -> list[int]:
        """Traversal order of zoom levels: 0, -1, ..., zoom_min, 1, ..., zoom_max."""
        down = list(range(min(0, zoom_max), zoom_min - 1, -1)) if zoom_min <= 0 else []
        up = [z for z in range(max(1, zoom_min), zoom_max + 1)]
        return down + up

    def iter_level(self, layer: str, zoom: int, planes: Iterable[int]) -> Iterable[TileKey]:
        """Every aligned key of one layer and zoom, plane by plane."""
        scope = self.pyramid.context.scope
        for plane in planes:
            for x, y in scope.iter_coords(zoom):
                yield TileKey(layer=layer, zoom=zoom, plane=plane, x=x, y=y)

    def run(
        self,
        layers: Iterable[str] | None = None,
        zoom_min: int | None = None,
        zoom_max: int | None = None,
        planes: Iterable[int] | None = None,
    ) -> WarmSummary:
        """Warm the cache synchronously (drives its own event loop)."""
        return asyncio.run(self.warm(layers, zoom_min, zoom_max, planes))

    async def warm(
        self,
        layers: Iterable[str] | None = None,
        zoom_min: int | None = None,
        zoom_max: int | None = None,
        planes: Iterable[int] | None = None,
    ) -> WarmSummary:
        config = self.pyramid.config
        layers = list(layers) if layers is not None else list(config.layers)
        zoom_min = config.zoom_min if zoom_min is None else zoom_min
        zoom_max = config.zoom_max if zoom_max is None else zoom_max
        planes = list(planes) if planes is not None else list(config.planes)

        summary = WarmSummary()
        start = time.perf_counter()
        for layer in layers:
            layer_start = time.perf_counter()
            logger.info("Warming %s", layer)
            for zoom in self.zoom_order(zoom_min, zoom_max):
                keys = list(self.iter_level(layer, zoom, planes))
                await self._warm_level(keys, f"{layer} zoom {zoom}", summary)
            logger.info(
                "%s warm-up took %.0f ms", layer, (time.perf_counter() - layer_start) * 1000
            )
        summary.elapsed = time.perf_counter() - start
        logger.info("Engine stats: %s", self.pyramid.stats.snapshot())
        return summary

    async def _warm_level(self, keys: list[TileKey], desc: str, summary: WarmSummary) -> None:
        semaphore = asyncio.Semaphore(self.concurrency)

        with tqdm(total=len(keys), desc=desc, disable=not self.progress) as pbar:

            async def one(key: TileKey) -> None:
                async with semaphore:
                    result = await self.pyramid.compute(key)
                summary.add(result)
                pbar.update(1)

            await asyncio.gather(*(one(key) for key in keys))


def cache_status(store: TileStore, config: EngineConfig) -> dict[str, dict[int, int]]:
    """Number of cached tiles per layer and zoom level."""
    return {
        layer: {
            zoom: store.count(layer, zoom)
            for zoom in range(config.zoom_min, config.zoom_max + 1)
        }
        for layer in config.layers
    }
