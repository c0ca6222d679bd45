"""Recursive tile pyramid engine.

Zoom 0 tiles are re-encoded base tiles, positive zoom levels magnify the
base tile, and every negative zoom level is a quadtree reduction of the
level above it:

    zoom -1 (x, y)            ->  zoom 0 children
    +-----------+-----------+
    | (x, y)    | (x+s, y)  |     s = step_for_zoom(zoom)
    +-----------+-----------+
    | (x, y-s)  | (x+s, y-s)|     (y grows upwards on the map)
    +-----------+-----------+

Computation forms a DAG that terminates at zoom 0, so sibling subtrees run
concurrently. Every tile is computed at most once at a time per engine
(single-flight) and persisted write-once through the TileStore.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import asdict, dataclass
from typing import Any, Callable, Sequence

from wasptiles.core.paths import source_path
from wasptiles.core.types import (
    FailureReason,
    TileKey,
    TileOrigin,
    TileResult,
    step_for_zoom,
)

from .backends import VIPSBackend, vips_errors
from .context import TileContext
from .sentinels import Sentinel, fingerprint
from .store import TileStore

logger = logging.getLogger(__name__)

#: Child offsets in units of the step, in canvas order:
#: top-left, bottom-left, top-right, bottom-right
CHILD_DELTAS: tuple[tuple[int, int], ...] = ((0, 0), (0, -1), (1, 0), (1, -1))


def child_keys(key: TileKey) -> list[TileKey]:
    """The four tiles at ``key.zoom + 1`` that make up ``key``."""
    step = step_for_zoom(key.zoom)
    return [
        TileKey(key.layer, key.zoom + 1, key.plane, key.x + dx * step, key.y + dy * step)
        for dx, dy in CHILD_DELTAS
    ]


def quadrant_offsets(tile_size: int) -> list[tuple[int, int]]:
    """Canvas (left, top) offsets matching the order of :func:`child_keys`."""
    half = tile_size // 2
    return [(0, 0), (0, half), (half, 0), (half, half)]


@dataclass
class EngineStats:
    """Counters for one engine; only touched from the event loop thread."""

    cache_hits: int = 0
    cache_misses: int = 0
    coalesced: int = 0
    upscales: int = 0
    composites: int = 0
    sentinel_hits: int = 0
    missing_sources: int = 0
    transform_failures: int = 0
    quadrant_failures: int = 0
    persist_failures: int = 0

    def snapshot(self) -> dict[str, int]:
        return asdict(self)


class _InFlight:
    """A pending computation shared by every concurrent requester of one key."""

    __slots__ = ("task", "waiters", "abandoned")

    def __init__(self, task: asyncio.Task) -> None:
        self.task = task
        self.waiters = 0
        self.abandoned = False


class TilePyramid:
    """Computes and caches every zoom level of every layer.

    Args:
        context: Immutable Scope/sentinel/config context
        store: Tile cache; defaults to a TileStore at ``config.cache_dir``
        executor: Thread pool for libvips and file I/O; created if omitted
    """

    def __init__(
        self,
        context: TileContext,
        store: TileStore | None = None,
        executor: ThreadPoolExecutor | None = None,
    ) -> None:
        self.context = context
        self.config = context.config
        self.store = store or TileStore(context.config.cache_dir)
        self.stats = EngineStats()
        self._owns_executor = executor is None
        self._executor = executor or ThreadPoolExecutor(
            max_workers=self.config.workers, thread_name_prefix="wasptiles"
        )
        self._inflight: dict[TileKey, _InFlight] = {}

    def close(self) -> None:
        """Shut down the worker pool if this engine created it."""
        if self._owns_executor:
            self._executor.shutdown(wait=True)

    def __enter__(self) -> TilePyramid:
        return self

    def __exit__(self, *args) -> None:
        self.close()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    async def compute(self, key: TileKey) -> TileResult:
        """Return the encoded tile for ``key``, computing it if needed.

        Concurrent calls for the same key share one computation. Cancelling
        a caller only detaches it; the shared computation (and its child
        fan-out) is cancelled once no caller is waiting any more.

        The key is assumed valid (see ``validate_request``).
        """
        cell = self._inflight.get(key)
        if cell is None or cell.abandoned:
            cell = _InFlight(asyncio.ensure_future(self._produce(key)))
            self._inflight[key] = cell
            cell.task.add_done_callback(
                lambda _task, key=key, cell=cell: self._release(key, cell)
            )
        else:
            self.stats.coalesced += 1

        cell.waiters += 1
        try:
            return await asyncio.shield(cell.task)
        finally:
            cell.waiters -= 1
            if cell.waiters == 0 and not cell.task.done():
                logger.debug("Cancelling abandoned computation of %s", key)
                cell.abandoned = True
                cell.task.cancel()

    def _release(self, key: TileKey, cell: _InFlight) -> None:
        if self._inflight.get(key) is cell:
            del self._inflight[key]
        if not cell.task.cancelled() and cell.task.exception() is not None:
            logger.error("Computation of %s failed", key, exc_info=cell.task.exception())

    async def _produce(self, key: TileKey) -> TileResult:
        cached = await self._run(self.store.get, key)
        if cached is not None:
            self.stats.cache_hits += 1
            logger.debug("Cache hit %s", key)
            return TileResult(cached, TileOrigin.CACHE)
        self.stats.cache_misses += 1

        if key.zoom >= 0:
            return await self._upscale(key)
        return await self._downscale(key)

    # ------------------------------------------------------------------
    # Upscale (zoom >= 0)
    # ------------------------------------------------------------------

    async def _upscale(self, key: TileKey) -> TileResult:
        path = source_path(self.config.source_dir, key.layer, key.plane, key.x, key.y)
        try:
            source = await self._run(path.read_bytes)
        except FileNotFoundError:
            return await self._fallback(key, FailureReason.MISSING_SOURCE)
        except OSError as e:
            logger.warning("Failed to read source tile %s: %s", path, e)
            return await self._fallback(key, FailureReason.TRANSFORM_FAILURE)

        sentinel = self.context.sentinels.canonicalize(key.layer, fingerprint(source))
        if sentinel is not None:
            return await self._sentinel(key, sentinel)

        self.stats.upscales += 1
        try:
            rendered = await self._run(self._render_upscale, key, source)
        except vips_errors() as e:
            logger.warning("Failed to upscale %s: %s", key, e)
            return await self._fallback(key, FailureReason.TRANSFORM_FAILURE)

        if isinstance(rendered, Sentinel):
            return await self._sentinel(key, rendered)
        return await self._persist(key, rendered)

    def _render_upscale(self, key: TileKey, source: bytes) -> bytes | Sentinel:
        img = VIPSBackend.to_rgba(VIPSBackend.decode(source))
        sentinel = self.context.sentinels.canonicalize_pixels(
            key.layer, VIPSBackend.pixel_digest(img)
        )
        if sentinel is not None:
            return sentinel

        if key.zoom > 0:
            size = (key.zoom + 1) * self.config.tile_size
            img = VIPSBackend.resize_nearest(img, (size, size))
        return VIPSBackend.encode_lossless(img)

    # ------------------------------------------------------------------
    # Downscale (zoom < 0)
    # ------------------------------------------------------------------

    async def _downscale(self, key: TileKey) -> TileResult:
        children = await asyncio.gather(*(self.compute(child) for child in child_keys(key)))
        datas = [child.data for child in children]

        digests = {fingerprint(data) for data in datas}
        if len(digests) == 1:
            sentinel = self.context.sentinels.canonicalize(key.layer, digests.pop())
            if sentinel is not None:
                return await self._sentinel(key, sentinel)

        self.stats.composites += 1
        try:
            rendered, failed = await self._run(self._render_composite, key, datas)
        except vips_errors() as e:
            logger.warning("Failed to composite %s: %s", key, e)
            return await self._fallback(key, FailureReason.TRANSFORM_FAILURE)

        self.stats.quadrant_failures += failed
        if isinstance(rendered, Sentinel):
            return await self._sentinel(key, rendered)
        return await self._persist(key, rendered)

    def _render_composite(
        self, key: TileKey, datas: Sequence[bytes]
    ) -> tuple[bytes | Sentinel, int]:
        tile_size = self.config.tile_size
        blank = self.context.sentinels.blank
        quadrants = []
        failed = 0
        for child, data in zip(child_keys(key), datas):
            try:
                quadrants.append(VIPSBackend.quadrant(data, tile_size))
            except vips_errors() as e:
                logger.warning("Failed to reduce child %s of %s, using blank: %s", child, key, e)
                quadrants.append(VIPSBackend.quadrant(blank.data, tile_size))
                failed += 1

        canvas = VIPSBackend.compose_quadrants(
            quadrants, quadrant_offsets(tile_size), tile_size
        ).copy_memory()
        sentinel = self.context.sentinels.canonicalize_pixels(
            key.layer, VIPSBackend.pixel_digest(canvas)
        )
        if sentinel is not None:
            return sentinel, failed
        return VIPSBackend.encode_lossy(canvas, self.config.webp_quality), failed

    # ------------------------------------------------------------------
    # Results
    # ------------------------------------------------------------------

    async def _sentinel(self, key: TileKey, sentinel: Sentinel) -> TileResult:
        self.stats.sentinel_hits += 1
        logger.debug("%s is the %r sentinel", key, sentinel.name)
        await self._store(key, sentinel.data)
        return TileResult(sentinel.data, TileOrigin.SENTINEL)

    async def _persist(self, key: TileKey, data: bytes) -> TileResult:
        if not await self._store(key, data):
            return TileResult(data, TileOrigin.COMPUTED, FailureReason.PERSIST_FAILURE)
        return TileResult(data, TileOrigin.COMPUTED)

    async def _fallback(self, key: TileKey, reason: FailureReason) -> TileResult:
        """Substitute the blank sentinel for a tile that could not be produced.

        A missing source is permanent and cached like any other tile;
        transform failures are not cached so the tile is retried later.
        """
        blank = self.context.sentinels.blank
        if reason is FailureReason.MISSING_SOURCE:
            self.stats.missing_sources += 1
            await self._store(key, blank.data)
        else:
            self.stats.transform_failures += 1
        return TileResult(blank.data, TileOrigin.FALLBACK, reason)

    async def _store(self, key: TileKey, data: bytes) -> bool:
        written = await self._run(self.store.put, key, data)
        if not written:
            self.stats.persist_failures += 1
        return written

    async def _run(self, fn: Callable[..., Any], *args: Any) -> Any:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, fn, *args)
