"""Canonical degenerate tiles (blank, solid ocean, solid walkable).

Uniform regions of the map reproduce the same handful of images at every
zoom level. Each sentinel is loaded once, fingerprinted, and returned as a
shared instance whenever a tile turns out to be identical to it.
"""

from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

from wasptiles.config import GLOBAL_SENTINELS, LAYER_SENTINELS, SENTINEL_FILES

from .backends import VIPSBackend, vips_errors

logger = logging.getLogger(__name__)


class SentinelError(RuntimeError):
    """Raised when the sentinel set cannot be initialised."""


def fingerprint(data: bytes) -> str:
    """Content fingerprint of encoded tile bytes."""
    return hashlib.sha256(data).hexdigest()


@dataclass(frozen=True)
class Sentinel:
    """A canonical tile with its byte and pixel fingerprints."""

    name: str
    data: bytes
    digest: str
    pixel_digest: str


@dataclass(frozen=True)
class SentinelRegistry:
    """Immutable set of sentinels and the layers they apply to.

    Attributes:
        sentinels: Sentinel name -> Sentinel
        layer_sentinels: Layer -> names of layer-specific sentinels
    """

    sentinels: Mapping[str, Sentinel]
    layer_sentinels: Mapping[str, tuple[str, ...]] = field(default_factory=dict)
    global_sentinels: tuple[str, ...] = GLOBAL_SENTINELS

    @classmethod
    def load(
        cls,
        directory: Path,
        files: Mapping[str, str] = SENTINEL_FILES,
        layer_sentinels: Mapping[str, tuple[str, ...]] = LAYER_SENTINELS,
    ) -> SentinelRegistry:
        """Load and fingerprint the sentinel tiles in ``directory``.

        The blank sentinel is mandatory; layer-specific sentinels that are
        missing are skipped with a warning.

        Raises:
            SentinelError: If the blank sentinel is missing or undecodable
        """
        directory = Path(directory)
        sentinels: dict[str, Sentinel] = {}
        for name, filename in files.items():
            path = directory / filename
            try:
                data = path.read_bytes()
            except OSError as e:
                if name in GLOBAL_SENTINELS:
                    raise SentinelError(f"Cannot read sentinel {name!r} at {path}: {e}") from e
                logger.warning("Sentinel %r not found at %s, skipping", name, path)
                continue
            sentinels[name] = cls._make_sentinel(name, data)
            logger.debug("Loaded sentinel %r from %s", name, path)

        return cls(sentinels=sentinels, layer_sentinels=dict(layer_sentinels))

    @staticmethod
    def _make_sentinel(name: str, data: bytes) -> Sentinel:
        try:
            pixel_digest = VIPSBackend.pixel_digest(VIPSBackend.decode(data))
        except vips_errors() as e:
            raise SentinelError(f"Cannot decode sentinel {name!r}: {e}") from e
        return Sentinel(name=name, data=data, digest=fingerprint(data), pixel_digest=pixel_digest)

    def __post_init__(self) -> None:
        if "blank" not in self.sentinels:
            raise SentinelError("The blank sentinel is required")

    @property
    def blank(self) -> Sentinel:
        return self.sentinels["blank"]

    def for_layer(self, layer: str) -> list[Sentinel]:
        """Sentinels that may stand in for tiles of ``layer``."""
        names = list(self.global_sentinels) + list(self.layer_sentinels.get(layer, ()))
        return [self.sentinels[name] for name in names if name in self.sentinels]

    def canonicalize(self, layer: str, digest: str) -> Sentinel | None:
        """Return the sentinel whose encoded bytes have ``digest``, if any."""
        for sentinel in self.for_layer(layer):
            if sentinel.digest == digest:
                return sentinel
        return None

    def canonicalize_pixels(self, layer: str, pixel_digest: str) -> Sentinel | None:
        """Return the sentinel whose decoded pixels have ``pixel_digest``, if any."""
        for sentinel in self.for_layer(layer):
            if sentinel.pixel_digest == pixel_digest:
                return sentinel
        return None
