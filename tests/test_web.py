from __future__ import annotations

import asyncio
import time

import pytest
from fastapi.testclient import TestClient

from wasptiles.core.types import TileKey
from wasptiles.engine.store import TileStore
from wasptiles.web.config import ServerConfig
from wasptiles.web.main import create_app

from conftest import BLUE, GREEN, RED, YELLOW, TILE_SIZE, decode_rgba


@pytest.fixture()
def client(write_source, engine_config):
    for (x, y), color in zip(((2, 4), (3, 4), (2, 5), (3, 5)), (RED, GREEN, BLUE, YELLOW)):
        write_source("map", 1, x, y, color)
    app = create_app(ServerConfig(engine=engine_config))
    with TestClient(app) as test_client:
        yield test_client


def test_scope(client):
    response = client.get("/api/scope")
    assert response.status_code == 200
    assert response.json() == {"x1": 2, "y1": 4, "x2": 3, "y2": 5}


def test_get_tile(client):
    response = client.get("/map/1/1/3-5.webp")
    assert response.status_code == 200
    assert response.headers.get("content-type") == "image/webp"
    assert response.headers.get("cache-control") == "max-age=0, s-maxage=3600"
    assert response.headers.get("x-tile-source") == "computed"
    assert decode_rgba(response.content).shape == (2 * TILE_SIZE, 2 * TILE_SIZE, 4)


def test_second_request_is_cached(client):
    first = client.get("/map/-1/1/2-4.webp")
    second = client.get("/map/-1/1/2-4.webp")
    assert first.status_code == 200
    assert first.headers.get("x-tile-source") == "computed"
    assert second.headers.get("x-tile-source") == "cache"
    assert second.content == first.content


def test_missing_source_serves_blank(client):
    response = client.get("/heightmap/0/0/2-4.webp")
    assert response.status_code == 200
    assert response.headers.get("x-tile-source") == "fallback"
    assert (decode_rgba(response.content)[..., 3] == 0).all()


@pytest.mark.parametrize(
    "path",
    [
        "/terrain/0/0/2-4.webp",
        "/map/-7/0/2-4.webp",
        "/map/3/0/2-4.webp",
        "/map/0/4/2-4.webp",
        "/map/0/0/9-4.webp",
        "/map/0/0/2-9.webp",
    ],
    ids=["layer", "zoom-low", "zoom-high", "plane", "x", "y"],
)
def test_invalid_requests(client, path):
    response = client.get(path)
    assert response.status_code == 404


def test_misaligned_request_names_aligned_tile(client):
    response = client.get("/map/-1/0/3-5.webp")
    assert response.status_code == 404
    assert "Request 2-4 instead" in response.json()["detail"]


def test_server_config_production_cache_control(engine_config):
    config = ServerConfig(engine=engine_config, production=True)
    assert config.cache_control == "max-age=3600, s-maxage=3600"


def test_client_disconnect_cancels_computation(write_source, engine_config, monkeypatch):
    """A client that goes away mid-fan-out stops the subtree computation."""
    write_source("map", 0, 0, 0, RED)
    original_get = TileStore.get

    def slow_get(self, key):
        time.sleep(0.2)
        return original_get(self, key)

    monkeypatch.setattr(TileStore, "get", slow_get)
    app = create_app(ServerConfig(engine=engine_config))
    pyramid = app.state.pyramid
    path = "/map/-3/0/0-0.webp"
    scope = {
        "type": "http",
        "asgi": {"version": "3.0"},
        "http_version": "1.1",
        "method": "GET",
        "scheme": "http",
        "path": path,
        "raw_path": path.encode(),
        "root_path": "",
        "query_string": b"",
        "headers": [],
        "client": ("testclient", 50000),
        "server": ("testserver", 80),
    }

    async def run():
        sent: list[dict] = []
        requested = False
        peak = 0

        async def receive():
            nonlocal requested, peak
            if not requested:
                requested = True
                return {"type": "http.request", "body": b"", "more_body": False}
            await asyncio.sleep(0.5)
            peak = len(pyramid._inflight)
            return {"type": "http.disconnect"}

        async def send(message):
            sent.append(message)

        start = time.perf_counter()
        await app(scope, receive, send)
        elapsed = time.perf_counter() - start
        await asyncio.sleep(0.1)
        return sent, elapsed, peak, dict(pyramid._inflight)

    try:
        sent, elapsed, peak, inflight = asyncio.run(run())
    finally:
        pyramid.close()

    assert sent[0]["status"] == 499
    # the whole zoom -3 subtree takes several seconds at 0.2s per lookup
    assert elapsed < 1.5
    assert peak > 1
    assert inflight == {}
    assert not list(engine_config.cache_dir.rglob("*.tmp"))
    assert not pyramid.store.contains(TileKey("map", -3, 0, 0, 0))
