"""Tests for the wasptiles command line."""

from __future__ import annotations

import pytest
from click.testing import CliRunner

from wasptiles.__main__ import main

from conftest import GREEN, RED


@pytest.fixture
def paths(write_source, engine_config) -> list[str]:
    write_source("map", 0, 4, 6, RED)
    write_source("collision", 2, 5, 7, GREEN)
    return [
        "--source", str(engine_config.source_dir),
        "--cache", str(engine_config.cache_dir),
        "--sentinels", str(engine_config.sentinel_dir),
    ]


class TestCli:
    def test_scope(self, paths) -> None:
        result = CliRunner().invoke(main, ["scope", *paths])
        assert result.exit_code == 0
        assert "x1=4 y1=6 x2=5 y2=7" in result.output

    def test_scope_empty(self, temp_dir) -> None:
        empty = temp_dir / "nothing"
        empty.mkdir()
        result = CliRunner().invoke(main, ["scope", "--source", str(empty)])
        assert result.exit_code == 1

    def test_warm_then_status(self, paths, engine_config) -> None:
        runner = CliRunner()
        result = runner.invoke(
            main,
            ["warm", *paths, "-l", "map", "-p", "0", "--zoom-min", "-1", "--zoom-max", "0"],
        )
        assert result.exit_code == 0, result.output
        assert "Completed" in result.output
        assert (engine_config.cache_dir / "map" / "0" / "0" / "4-6.webp").is_file()
        assert (engine_config.cache_dir / "map" / "-1" / "0" / "4-6.webp").is_file()

        result = runner.invoke(main, ["status", *paths])
        assert result.exit_code == 0
        assert "zoom  -1: 1" in result.output

    def test_warm_without_blank_sentinel(self, paths, engine_config) -> None:
        (engine_config.sentinel_dir / "empty.webp").unlink()
        result = CliRunner().invoke(main, ["warm", *paths, "-l", "map"])
        assert result.exit_code == 1

    def test_warm_rejects_unknown_layer(self, paths) -> None:
        result = CliRunner().invoke(main, ["warm", *paths, "-l", "terrain"])
        assert result.exit_code == 2
