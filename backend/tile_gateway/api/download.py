"""Whole-archive download endpoint.

Only included in the application when ``download_enabled`` is set; with
the flag off ``/download/...`` falls through to the framework's default
404 handling.
"""

from __future__ import annotations

import logging

import anyio
import fastapi
from fastapi import responses

from tile_gateway import models
from tile_gateway.api import dependencies, routes
from tile_gateway.core import config, errors
from tile_gateway.services import headers as response_headers
from tile_gateway.services import tilesets

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=["download"])


@router.get(routes.DOWNLOAD.template)
async def download_tileset(
    tile_request: models.TileRequest = fastapi.Depends(dependencies.get_tile_request),  # noqa: B008
    settings: config.Settings = fastapi.Depends(dependencies.get_settings),  # noqa: B008
    error_tile: bytes = fastapi.Depends(dependencies.get_error_tile),  # noqa: B008
) -> responses.Response:
    """Stream a tileset's ``.mbtiles`` file.

    The tileset check and the stat run under the request deadline; the
    file transfer itself does not.

    Args:
        tile_request: Parsed request carrying the tileset id.
        settings: Application settings (injected via FastAPI Depends).
        error_tile: Error tile bytes (injected via FastAPI Depends).

    Returns:
        The raw archive, a 404 carrying the error tile if the tileset
        does not exist, or a 500 if the deadline expired. Errors while
        streaming the file propagate to the application's exception
        handler.
    """
    try:
        with anyio.fail_after(settings.request_timeout_seconds):
            handle = await tilesets.resolve_tileset(
                settings.tiles_dir,
                tile_request.tileset_id,
            )
            if handle is None:
                return dependencies.error_tile_response(error_tile)
            cache = await tilesets.load_cache_metadata(handle)
    except TimeoutError:
        logger.warning("Download of %s timed out", tile_request.tileset_id)
        return responses.PlainTextResponse(errors.TIMED_OUT, status_code=500)

    headers = response_headers.merge_headers(
        cache.as_headers() if cache else None,
        settings.header_defaults,
    )
    return responses.FileResponse(
        handle.path,
        headers=headers,
        media_type="application/octet-stream",
        filename=f"{tile_request.tileset_id}.mbtiles",
    )
