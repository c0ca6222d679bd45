from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from starlette.middleware.base import BaseHTTPMiddleware

from wasptiles.engine.context import TileContext
from wasptiles.engine.pyramid import TilePyramid

from .config import ServerConfig, load_config
from .routes.tiles import create_tiles_router

logger = logging.getLogger(__name__)


class _TimingMiddleware(BaseHTTPMiddleware):
    """Log how long each request took to serve."""

    async def dispatch(self, request: Request, call_next):  # type: ignore[override]
        start = time.perf_counter()
        response = await call_next(request)
        logger.info(
            "%s took %.2f ms", request.url.path, (time.perf_counter() - start) * 1000
        )
        return response


def create_app(config: ServerConfig | None = None) -> FastAPI:
    config = config or load_config()
    context = TileContext.create(config.engine)
    pyramid = TilePyramid(context)

    @asynccontextmanager
    async def lifespan(_app: FastAPI):
        yield
        pyramid.close()

    app = FastAPI(lifespan=lifespan)
    app.add_middleware(_TimingMiddleware)
    app.state.config = config
    app.state.pyramid = pyramid

    app.include_router(create_tiles_router(pyramid, config.cache_control))
    return app


def main() -> None:
    import uvicorn

    config = load_config()
    uvicorn.run(create_app(config), host=config.host, port=config.port)


if __name__ == "__main__":
    main()
