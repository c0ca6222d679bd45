"""Range and alignment checks applied before a request reaches the engine."""

from __future__ import annotations

from wasptiles.config import EngineConfig

from .types import Scope, TileKey, span_for_zoom


class InvalidTileRequest(ValueError):
    """Raised when a tile request is out of range or misaligned."""


def validate_request(
    layer: str,
    zoom: int,
    plane: int,
    x: int,
    y: int,
    scope: Scope,
    config: EngineConfig,
) -> TileKey:
    """Check a tile request against the configured ranges and the Scope.

    Negative zoom levels only exist on a grid of ``2^|zoom|`` base tiles
    anchored at the scope origin; misaligned coordinates are rejected,
    never rounded.

    Returns:
        The validated TileKey

    Raises:
        InvalidTileRequest: If any component is out of range or misaligned
    """
    if layer not in config.layers:
        valid = ", ".join(f'"{name}"' for name in config.layers)
        raise InvalidTileRequest(
            f'Map type "{layer}" is not valid. Only valid map types are: {valid}.'
        )
    if not config.zoom_min <= zoom <= config.zoom_max:
        raise InvalidTileRequest(
            f'Zoom "{zoom}" is not valid. Zoom must be between '
            f"{config.zoom_min} and {config.zoom_max}."
        )
    if not config.plane_min <= plane <= config.plane_max:
        raise InvalidTileRequest(
            f'Plane "{plane}" is not valid. Planes must be between '
            f"{config.plane_min} and {config.plane_max}."
        )
    if scope.is_empty:
        raise InvalidTileRequest("No source tiles are available.")
    if not scope.x1 <= x <= scope.x2:
        raise InvalidTileRequest(
            f'X "{x}" is not valid. X must be between {scope.x1} and {scope.x2}.'
        )
    if not scope.y1 <= y <= scope.y2:
        raise InvalidTileRequest(
            f'Y "{y}" is not valid. Y must be between {scope.y1} and {scope.y2}.'
        )
    if zoom < 0 and not scope.is_aligned(zoom, x, y):
        ax, ay = scope.aligned_origin(zoom, x, y)
        raise InvalidTileRequest(
            f"The zoomed out tile you are requesting is not valid at zoom {zoom} "
            f"(grid of {span_for_zoom(zoom)}). Request {ax}-{ay} instead."
        )
    return TileKey(layer=layer, zoom=zoom, plane=plane, x=x, y=y)
