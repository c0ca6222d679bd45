from __future__ import annotations

import asyncio
import logging

from fastapi import APIRouter, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from wasptiles.core.validation import InvalidTileRequest, validate_request
from wasptiles.engine.orchestrate import resolve_tile
from wasptiles.engine.pyramid import TilePyramid

logger = logging.getLogger(__name__)

#: Non-standard status for a request the client abandoned (nginx convention)
CLIENT_CLOSED_REQUEST = 499


async def _wait_for_disconnect(request: Request) -> None:
    """Return once the client has gone away.

    Request body messages are drained; ASGI servers only deliver
    ``http.disconnect`` after the body has been received.
    """
    while True:
        message = await request.receive()
        if message["type"] == "http.disconnect":
            return


def create_tiles_router(pyramid: TilePyramid, cache_control: str) -> APIRouter:
    router = APIRouter()
    context = pyramid.context
    config = context.config

    @router.get("/api/scope")
    def get_scope() -> JSONResponse:
        return JSONResponse(
            content=context.scope.to_dict(),
            headers={"Cache-Control": "public, max-age=60"},
        )

    @router.get("/{layer}/{zoom}/{plane}/{x}-{y}.webp")
    async def get_tile(
        request: Request, layer: str, zoom: int, plane: int, x: int, y: int
    ) -> Response:
        try:
            key = validate_request(layer, zoom, plane, x, y, context.scope, config)
        except InvalidTileRequest as exc:
            raise HTTPException(status_code=404, detail=str(exc)) from exc

        # A disconnect cancels this request's share of the computation; the
        # engine cancels the fan-out once no other request is waiting on it.
        tile = asyncio.ensure_future(resolve_tile(pyramid, key, config.request_timeout))
        disconnect = asyncio.ensure_future(_wait_for_disconnect(request))
        abandoned = False
        try:
            await asyncio.wait({tile, disconnect}, return_when=asyncio.FIRST_COMPLETED)
        finally:
            disconnect.cancel()
            if not tile.done():
                abandoned = True
                tile.cancel()

        if abandoned:
            logger.info("Client disconnected, abandoned %s", key)
            return Response(status_code=CLIENT_CLOSED_REQUEST)

        try:
            result = tile.result()
        except TimeoutError as exc:
            raise HTTPException(status_code=504, detail=str(exc)) from exc

        if result.failure is not None:
            logger.debug("Serving %s as %s (%s)", key, result.origin.value, result.failure.value)
        return Response(
            content=result.data,
            media_type="image/webp",
            headers={
                "Cache-Control": cache_control,
                "X-Tile-Source": result.origin.value,
            },
        )

    return router
