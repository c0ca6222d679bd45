"""Tile identities, coordinate scope and on-disk layout."""

from .scope import resolve_scope
from .types import FailureReason, Scope, TileKey, TileOrigin, TileResult, step_for_zoom
from .validation import InvalidTileRequest, validate_request

__all__ = [
    "FailureReason",
    "InvalidTileRequest",
    "Scope",
    "TileKey",
    "TileOrigin",
    "TileResult",
    "resolve_scope",
    "step_for_zoom",
    "validate_request",
]
