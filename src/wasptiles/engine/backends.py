"""Raster primitives backed by PyVIPS.

The pyramid engine never touches pixels directly; every decode, resize,
composite and encode goes through :class:`VIPSBackend`:
- WebP lossless encode for base and magnified tiles
- WebP lossy encode for downscaled composites
- Nearest-neighbour magnification (keeps hard map edges)
- Box reduction to a quarter tile for quadtree composition

Usage:
    from wasptiles.engine.backends import VIPSBackend

    img = VIPSBackend.decode(png_bytes)
    big = VIPSBackend.resize_nearest(img, (512, 512))
    data = VIPSBackend.encode_lossless(big)
"""

from __future__ import annotations

import hashlib
import os
from typing import Any, Sequence

import numpy as np

_HAS_VIPS = False
_vips_import_error: str | None = None
pyvips: Any = None

try:
    import pyvips
    _HAS_VIPS = True
except (ImportError, OSError) as e:
    _vips_import_error = str(e)


def is_vips_available() -> bool:
    """Check if PyVIPS is available.

    Returns:
        True if pyvips is installed and working
    """
    return _HAS_VIPS


def _require_vips() -> None:
    if not _HAS_VIPS:
        raise RuntimeError(f"PyVIPS is not available: {_vips_import_error}")


def vips_errors() -> tuple[type[BaseException], ...]:
    """Exception types raised by libvips transforms (for ``except`` clauses)."""
    if _HAS_VIPS:
        return (pyvips.Error,)
    return (RuntimeError,)


class VIPSBackend:
    """PyVIPS-based raster backend for tile pyramids.

    All images leaving this class are 8-bit RGBA so that tiles from every
    layer compose onto the same transparent canvas.
    """

    @staticmethod
    def from_numpy(arr: np.ndarray) -> "pyvips.Image":
        """Convert a numpy array to pyvips format.

        Args:
            arr: numpy array (H, W), (H, W, 3) or (H, W, 4) uint8

        Returns:
            pyvips.Image with as many bands as the array
        """
        _require_vips()

        height, width = arr.shape[:2]
        bands = arr.shape[2] if arr.ndim == 3 else 1
        arr = np.ascontiguousarray(arr, dtype=np.uint8)

        return pyvips.Image.new_from_memory(
            arr.tobytes(),
            width,
            height,
            bands,
            "uchar"
        )

    @staticmethod
    def to_numpy(img: "pyvips.Image") -> np.ndarray:
        """Convert a pyvips image to an RGBA numpy array.

        Returns:
            numpy array (H, W, 4) uint8
        """
        img = VIPSBackend.to_rgba(img)
        data = img.write_to_memory()
        return np.ndarray(
            buffer=data,
            dtype=np.uint8,
            shape=(img.height, img.width, img.bands)
        )

    @staticmethod
    def decode(data: bytes) -> "pyvips.Image":
        """Decode PNG or WebP bytes (format is sniffed from the buffer)."""
        _require_vips()
        return pyvips.Image.new_from_buffer(data, "")

    @staticmethod
    def to_rgba(img: "pyvips.Image") -> "pyvips.Image":
        """Normalise any decoded raster to 8-bit, 4-band RGBA."""
        if img.format == "ushort":
            img = (img / 257).cast("uchar")
        elif img.format != "uchar":
            img = img.cast("uchar")

        if img.bands == 1:
            img = img.bandjoin([img, img]).bandjoin(255)
        elif img.bands == 2:
            grey = img.extract_band(0)
            img = grey.bandjoin([grey, grey, img.extract_band(1)])
        elif img.bands == 3:
            img = img.bandjoin(255)
        elif img.bands > 4:
            img = img.extract_band(0, n=4)
        return img.copy(interpretation="srgb")

    @staticmethod
    def pixel_digest(img: "pyvips.Image") -> str:
        """SHA-256 over the RGBA pixels and dimensions of an image.

        Two rasters with the same digest are pixel-identical regardless of
        how they were encoded.
        """
        img = VIPSBackend.to_rgba(img)
        digest = hashlib.sha256(f"{img.width}x{img.height}:".encode("ascii"))
        digest.update(img.write_to_memory())
        return digest.hexdigest()

    @staticmethod
    def resize_nearest(img: "pyvips.Image", size: tuple[int, int]) -> "pyvips.Image":
        """Magnify an image with nearest-neighbour sampling.

        Integral factors use pixel replication so every output pixel is an
        exact copy of a source pixel.

        Args:
            img: pyvips.Image to magnify
            size: Target size as (width, height)
        """
        target_width, target_height = size
        if target_width % img.width == 0 and target_height % img.height == 0:
            return img.zoom(target_width // img.width, target_height // img.height)

        h_scale = target_width / img.width
        v_scale = target_height / img.height
        return img.resize(h_scale, vscale=v_scale, kernel="nearest")

    @staticmethod
    def shrink_box(img: "pyvips.Image", size: tuple[int, int]) -> "pyvips.Image":
        """Reduce an image with a box filter (block average).

        Args:
            img: pyvips.Image to reduce
            size: Target size as (width, height)
        """
        target_width, target_height = size
        return img.shrink(img.width / target_width, img.height / target_height)

    @staticmethod
    def quadrant(data: bytes, tile_size: int) -> "pyvips.Image":
        """Decode a child tile and box-reduce it to a quarter tile.

        The result is evaluated into memory so decode errors surface here,
        per child, rather than when the composite is encoded.
        """
        half = tile_size // 2
        img = VIPSBackend.to_rgba(VIPSBackend.decode(data))
        return VIPSBackend.shrink_box(img, (half, half)).copy_memory()

    @staticmethod
    def compose_quadrants(
        quadrants: Sequence["pyvips.Image"],
        offsets: Sequence[tuple[int, int]],
        tile_size: int,
    ) -> "pyvips.Image":
        """Insert quarter tiles onto a transparent full-size canvas.

        Args:
            quadrants: Quarter-size RGBA images
            offsets: (left, top) pixel offset of each quadrant
            tile_size: Edge length of the output canvas
        """
        _require_vips()

        canvas = pyvips.Image.black(tile_size, tile_size, bands=4)
        for quad, (left, top) in zip(quadrants, offsets):
            canvas = canvas.insert(quad, left, top)
        return canvas.copy(interpretation="srgb")

    @staticmethod
    def encode_lossless(img: "pyvips.Image") -> bytes:
        """Encode as lossless WebP, keeping RGB under transparent pixels."""
        return img.webpsave_buffer(lossless=True, exact=True)

    @staticmethod
    def encode_lossy(img: "pyvips.Image", quality: int = 80) -> bytes:
        """Encode as lossy WebP.

        Args:
            img: pyvips.Image to encode
            quality: WebP quality (1-100)
        """
        return img.webpsave_buffer(Q=quality)


def get_backend() -> type[VIPSBackend]:
    """Get the raster backend.

    Raises:
        RuntimeError: If PyVIPS is not available
    """
    if not _HAS_VIPS:
        raise RuntimeError(
            f"PyVIPS is required but not available: {_vips_import_error}\n"
            "Install pyvips and libvips: pip install pyvips"
        )
    return VIPSBackend


def set_vips_concurrency(num_threads: int) -> None:
    """Set the number of threads VIPS uses internally.

    This affects VIPS's internal parallelism, separate from the engine's
    ThreadPoolExecutor workers.

    Raises:
        RuntimeError: If PyVIPS is not available
    """
    if not _HAS_VIPS:
        raise RuntimeError("PyVIPS is not available")

    pyvips.cache_set_max(1000)
    os.environ["VIPS_CONCURRENCY"] = str(num_threads)
