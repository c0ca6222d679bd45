"""Immutable per-process context shared by every engine call."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from wasptiles.config import EngineConfig
from wasptiles.core.scope import resolve_scope
from wasptiles.core.types import Scope

from .backends import get_backend
from .sentinels import SentinelRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class TileContext:
    """Configuration, Scope and sentinels, computed once at startup.

    Nothing in here changes after construction, so it is shared read-only
    by every concurrent tile computation.
    """

    config: EngineConfig
    scope: Scope
    sentinels: SentinelRegistry

    @classmethod
    def create(cls, config: EngineConfig) -> TileContext:
        """Resolve the Scope and load the sentinels for ``config``.

        Raises:
            RuntimeError: If PyVIPS is not available
            SentinelError: If the sentinel set cannot be loaded
        """
        get_backend()
        sentinels = SentinelRegistry.load(config.sentinel_dir)
        scope = resolve_scope(config.source_dir, config.layers, config.planes)
        logger.info(
            "Tile context ready: %d sentinel(s), source=%s cache=%s",
            len(sentinels.sentinels), config.source_dir, config.cache_dir,
        )
        return cls(config=config, scope=scope, sentinels=sentinels)
