"""Tests for tile keys, zoom steps and the Scope."""

from __future__ import annotations

import pytest

from wasptiles.core.types import Scope, TileKey, span_for_zoom, step_for_zoom


class TestZoomSteps:
    """The child offset doubles with every zoomed-out level."""

    @pytest.mark.parametrize(
        "zoom, expected",
        [(0, 0), (-1, 1), (-2, 2), (-3, 4), (-4, 8), (-5, 16), (-6, 32), (2, 0)],
    )
    def test_step_for_zoom(self, zoom: int, expected: int) -> None:
        assert step_for_zoom(zoom) == expected

    def test_step_is_half_the_span(self) -> None:
        for zoom in range(-6, 0):
            assert step_for_zoom(zoom) * 2 == span_for_zoom(zoom)

    def test_span_for_positive_zoom(self) -> None:
        assert span_for_zoom(0) == 1
        assert span_for_zoom(2) == 1


class TestTileKey:
    def test_filename(self) -> None:
        assert TileKey("map", -2, 1, 12, 34).filename == "12-34"

    def test_str(self) -> None:
        assert str(TileKey("collision", -1, 0, 4, 6)) == "collision/-1/0/4-6"

    def test_hashable(self) -> None:
        assert {TileKey("map", 0, 0, 1, 1), TileKey("map", 0, 0, 1, 1)} == {
            TileKey("map", 0, 0, 1, 1)
        }


class TestScope:
    """Tests for Scope bounds, alignment and iteration."""

    @pytest.fixture
    def scope(self) -> Scope:
        return Scope(x1=10, y1=20, x2=17, y2=23)

    def test_empty(self) -> None:
        empty = Scope.empty()
        assert empty.is_empty
        assert list(empty.iter_coords(0)) == []
        assert empty.count(0) == 0

    def test_contains(self, scope: Scope) -> None:
        assert scope.contains(10, 20)
        assert scope.contains(17, 23)
        assert not scope.contains(9, 20)
        assert not scope.contains(10, 24)

    def test_alignment_is_relative_to_origin(self, scope: Scope) -> None:
        assert scope.is_aligned(-1, 10, 20)
        assert scope.is_aligned(-1, 12, 22)
        assert not scope.is_aligned(-1, 11, 20)
        assert scope.is_aligned(-2, 14, 20)
        assert not scope.is_aligned(-2, 12, 20)

    def test_every_coordinate_aligned_at_non_negative_zoom(self, scope: Scope) -> None:
        assert scope.is_aligned(0, 11, 21)
        assert scope.is_aligned(2, 13, 23)

    def test_aligned_origin(self, scope: Scope) -> None:
        assert scope.aligned_origin(-2, 13, 23) == (10, 20)
        assert scope.aligned_origin(-1, 13, 23) == (12, 22)

    def test_iter_coords_base(self, scope: Scope) -> None:
        coords = list(scope.iter_coords(0))
        assert len(coords) == 8 * 4
        assert coords[0] == (10, 20)
        assert coords[1] == (11, 20)
        assert coords[-1] == (17, 23)

    def test_iter_coords_zoomed_out(self, scope: Scope) -> None:
        assert list(scope.iter_coords(-2)) == [(10, 20), (14, 20)]
        assert scope.count(-2) == 2
        assert scope.count(-1) == len(list(scope.iter_coords(-1))) == 8

    def test_to_dict(self, scope: Scope) -> None:
        assert scope.to_dict() == {"x1": 10, "y1": 20, "x2": 17, "y2": 23}
