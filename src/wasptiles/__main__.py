"""CLI entry point for wasptiles."""

from __future__ import annotations

import logging
import sys
from dataclasses import replace
from pathlib import Path

import click

from wasptiles.config import LAYERS, EngineConfig, load_config

logger = logging.getLogger(__name__)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def _engine_config(
    source: str | None, cache: str | None, sentinels: str | None
) -> EngineConfig:
    config = load_config()
    overrides = {}
    if source:
        overrides["source_dir"] = Path(source)
    if cache:
        overrides["cache_dir"] = Path(cache)
    if sentinels:
        overrides["sentinel_dir"] = Path(sentinels)
    return replace(config, **overrides)


def _load_context(config: EngineConfig):
    from wasptiles.engine.context import TileContext

    try:
        return TileContext.create(config)
    except RuntimeError as e:  # SentinelError or missing pyvips
        click.echo(click.style(f"Error: {e}", fg="red"), err=True)
        sys.exit(1)


_path_options = [
    click.option("--source", type=click.Path(file_okay=False), help="Base tile directory"),
    click.option("--cache", type=click.Path(file_okay=False), help="Tile cache directory"),
    click.option("--sentinels", type=click.Path(file_okay=False), help="Sentinel tile directory"),
]


def _with_paths(fn):
    for option in reversed(_path_options):
        fn = option(fn)
    return fn


@click.group()
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def main(verbose: bool) -> None:
    """Tile pyramid cache for the multi-layer map."""
    _setup_logging(verbose)


@main.command()
@_with_paths
@click.option(
    "--layer",
    "-l",
    "layers",
    type=click.Choice(LAYERS),
    multiple=True,
    help="Layer to warm (repeatable, default: all)",
)
@click.option("--zoom-min", type=int, default=None, help="Most zoomed-out level")
@click.option("--zoom-max", type=int, default=None, help="Most zoomed-in level")
@click.option(
    "--plane", "-p", "planes", type=click.IntRange(0, 3), multiple=True,
    help="Plane to warm (repeatable, default: all)",
)
@click.option(
    "--concurrency", "-c", type=click.IntRange(1, 4096), default=64,
    help="Tiles computed concurrently (default: 64)",
)
def warm(
    source: str | None,
    cache: str | None,
    sentinels: str | None,
    layers: tuple[str, ...],
    zoom_min: int | None,
    zoom_max: int | None,
    planes: tuple[int, ...],
    concurrency: int,
) -> None:
    """Precompute every tile of the pyramid.

    Examples:

        # Warm all layers, planes and zoom levels
        python -m wasptiles warm

        # Only the zoomed-out levels of the map layer on plane 0
        python -m wasptiles warm -l map -p 0 --zoom-max 0
    """
    from wasptiles.engine.backends import set_vips_concurrency
    from wasptiles.engine.orchestrate import BatchWarmer
    from wasptiles.engine.pyramid import TilePyramid

    config = _engine_config(source, cache, sentinels)
    context = _load_context(config)

    click.echo(click.style("wasptiles warm-up", fg="cyan", bold=True))
    click.echo(click.style("=" * 40, fg="cyan"))
    if context.scope.is_empty:
        click.echo(click.style(f"No source tiles found in {config.source_dir}", fg="yellow"))
        return
    click.echo(f"Source: {config.source_dir}")
    click.echo(f"Cache:  {config.cache_dir}")
    click.echo(f"Scope:  x={context.scope.x1}..{context.scope.x2} y={context.scope.y1}..{context.scope.y2}")
    click.echo()

    set_vips_concurrency(config.workers)
    with TilePyramid(context) as pyramid:
        warmer = BatchWarmer(pyramid, concurrency=concurrency)
        summary = warmer.run(
            layers=layers or None,
            zoom_min=zoom_min,
            zoom_max=zoom_max,
            planes=planes or None,
        )

    click.echo()
    click.echo(click.style("=" * 40, fg="cyan"))
    parts = [
        click.style(f"{count} {origin}", fg="green" if origin != "fallback" else "yellow")
        for origin, count in sorted(summary.origins.items())
    ]
    click.echo(
        click.style("Completed: ", bold=True)
        + (", ".join(parts) if parts else "Nothing to process")
        + f" in {summary.elapsed:.1f}s"
    )
    if summary.failures:
        click.echo(click.style("Degraded tiles:", fg="yellow"))
        for reason, count in sorted(summary.failures.items()):
            click.echo(f"  {reason}: {count}")


@main.command()
@_with_paths
def scope(source: str | None, cache: str | None, sentinels: str | None) -> None:
    """Print the coordinate scope of the base tiles."""
    from wasptiles.core.scope import resolve_scope

    config = _engine_config(source, cache, sentinels)
    resolved = resolve_scope(config.source_dir, config.layers, config.planes)
    if resolved.is_empty:
        click.echo(f"No source tiles found in {config.source_dir}", err=True)
        sys.exit(1)
    click.echo(f"x1={resolved.x1} y1={resolved.y1} x2={resolved.x2} y2={resolved.y2}")


@main.command()
@_with_paths
def status(source: str | None, cache: str | None, sentinels: str | None) -> None:
    """Show how many tiles are cached per layer and zoom level."""
    from wasptiles.engine.orchestrate import cache_status
    from wasptiles.engine.store import TileStore

    config = _engine_config(source, cache, sentinels)
    counts = cache_status(TileStore(config.cache_dir), config)
    for layer, zooms in counts.items():
        click.echo(click.style(layer, bold=True))
        for zoom, count in zooms.items():
            click.echo(f"  zoom {zoom:>3}: {count}")


@main.command()
@_with_paths
@click.option("--host", default=None, help="Bind address (default: WASPTILES_WEB_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: WASPTILES_WEB_PORT)")
def serve(
    source: str | None,
    cache: str | None,
    sentinels: str | None,
    host: str | None,
    port: int | None,
) -> None:
    """Serve tiles over HTTP, computing them on demand."""
    import uvicorn

    from wasptiles.web.config import load_config as load_server_config
    from wasptiles.web.main import create_app

    server_config = load_server_config()
    server_config = replace(
        server_config,
        engine=_engine_config(source, cache, sentinels),
        host=host or server_config.host,
        port=port or server_config.port,
    )
    uvicorn.run(create_app(server_config), host=server_config.host, port=server_config.port)


if __name__ == "__main__":
    main()
