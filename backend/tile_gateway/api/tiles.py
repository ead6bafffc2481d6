"""Tile, grid, formatter and legend endpoints.

Every endpoint runs the same pipeline: the tileset id is resolved to
``<tiles_dir>/<id>.mbtiles``, cache headers are derived from the file,
the tile source renders the request and the outcome is turned into a
response. A missing tileset always answers 404 with the error tile,
whatever the route.

The whole pipeline runs under one ``request_timeout_seconds`` deadline.
When it expires, image tiles answer the error tile and the other routes
answer 500 ``"Request timed out"``.

Status policy per route:

- image tiles: 200 with the image, otherwise 404 with the error tile.
  Render errors are reported as "not found" on purpose.
- formatter/legend: 200 with ``{"<kind>": data}``, 404 with
  ``"<kind>.json not found"`` when the archive has no entry, 500 with
  the error text on any other failure.
- grids: 200 with the (optionally JSONP wrapped) grid, 404 with
  ``"Grid not found"`` when there is no grid, 500 with the error text.

Example:
    Request a tile and its interaction grid:
        >>> client.get("/1.0.0/world/2/1/1.png")
        >>> client.get("/1.0.0/world/2/1/1.grid.json?callback=grid")
"""

from __future__ import annotations

import json
import logging

import anyio
import fastapi
from anyio import to_thread
from fastapi import responses

from tile_gateway import models
from tile_gateway.api import dependencies, routes
from tile_gateway.core import config, errors
from tile_gateway.services import grids, render, tilesets
from tile_gateway.services import headers as response_headers

logger = logging.getLogger(__name__)

router = fastapi.APIRouter(tags=["tiles"])

TileSource = render.TileSourceProtocol


async def _resolve(
    tile_request: models.TileRequest,
    settings: config.Settings,
) -> tuple[models.TilesetHandle, dict[str, str]] | None:
    """Validate the tileset and derive its cache headers.

    Returns:
        The tileset handle and cache headers (empty if the file could
        not be stat'ed), or None if the tileset does not exist.
    """
    handle = await tilesets.resolve_tileset(
        settings.tiles_dir,
        tile_request.tileset_id,
    )
    if handle is None:
        return None
    cache = await tilesets.load_cache_metadata(handle)
    return handle, cache.as_headers() if cache else {}


async def _render(
    source: TileSource,
    handle: models.TilesetHandle,
    tile_request: models.TileRequest,
) -> models.RenderOutcome:
    return await render.dispatch(
        source,
        handle.path,
        tile_request.fmt,
        tile_request.xyz,
    )


def _timed_out(tile_request: models.TileRequest) -> None:
    logger.warning(
        "Request for %s %s %s timed out",
        tile_request.tileset_id,
        tile_request.fmt,
        tile_request.xyz,
    )


@router.get(routes.TILE.template)
async def get_tile(
    tile_request: models.TileRequest = fastapi.Depends(dependencies.get_tile_request),  # noqa: B008
    settings: config.Settings = fastapi.Depends(dependencies.get_settings),  # noqa: B008
    source: TileSource = fastapi.Depends(dependencies.get_tile_source),  # noqa: B008
    error_tile: bytes = fastapi.Depends(dependencies.get_error_tile),  # noqa: B008
) -> responses.Response:
    """Serve an image tile from a tileset.

    Args:
        tile_request: Parsed request carrying the tileset id, the signed
            ``z/x/y`` coordinate and the image format.
        settings: Application settings (injected via FastAPI Depends).
        source: Tile source (injected via FastAPI Depends).
        error_tile: Error tile bytes (injected via FastAPI Depends).

    Returns:
        The tile with merged cache, default and source headers, or a 404
        carrying the error tile if the tileset is missing, the render
        failed or the deadline expired.
    """
    try:
        with anyio.fail_after(settings.request_timeout_seconds):
            resolved = await _resolve(tile_request, settings)
            if resolved is None:
                return dependencies.error_tile_response(error_tile)
            handle, cache_headers = resolved
            outcome = await _render(source, handle, tile_request)
    except TimeoutError:
        _timed_out(tile_request)
        return dependencies.error_tile_response(error_tile)

    if not isinstance(outcome, models.Success):
        return dependencies.error_tile_response(error_tile)

    content_type = (
        outcome.content_type or models.FORMAT_MEDIA_TYPES[tile_request.fmt]
    )
    headers = response_headers.merge_headers(
        cache_headers,
        settings.header_defaults,
        outcome.headers,
        {"Content-Type": content_type},
    )
    return responses.Response(content=outcome.payload, headers=headers)


async def _metadata(
    tile_request: models.TileRequest,
    settings: config.Settings,
    source: TileSource,
    error_tile: bytes,
) -> responses.Response:
    """Serve a formatter or legend document."""
    try:
        with anyio.fail_after(settings.request_timeout_seconds):
            resolved = await _resolve(tile_request, settings)
            if resolved is None:
                return dependencies.error_tile_response(error_tile)
            handle, cache_headers = resolved
            outcome = await _render(source, handle, tile_request)
    except TimeoutError:
        _timed_out(tile_request)
        return responses.PlainTextResponse(errors.TIMED_OUT, status_code=500)

    if isinstance(outcome, models.Empty) or (
        isinstance(outcome, models.Failure) and outcome.is_empty_row
    ):
        return responses.PlainTextResponse(
            f"{tile_request.fmt} not found",
            status_code=404,
        )
    if isinstance(outcome, models.Failure):
        return responses.PlainTextResponse(outcome.message, status_code=500)

    key = tile_request.kind.value
    body = json.dumps({key: outcome.payload}, ensure_ascii=False)
    headers = response_headers.merge_headers(
        {"Content-Type": "text/javascript"},
        cache_headers,
        settings.header_defaults,
    )
    return responses.Response(content=body, headers=headers)


@router.get(routes.FORMATTER.template)
async def get_formatter(
    tile_request: models.TileRequest = fastapi.Depends(dependencies.get_tile_request),  # noqa: B008
    settings: config.Settings = fastapi.Depends(dependencies.get_settings),  # noqa: B008
    source: TileSource = fastapi.Depends(dependencies.get_tile_source),  # noqa: B008
    error_tile: bytes = fastapi.Depends(dependencies.get_error_tile),  # noqa: B008
) -> responses.Response:
    """Serve a tileset's formatter as ``{"formatter": ...}``."""
    return await _metadata(tile_request, settings, source, error_tile)


@router.get(routes.LEGEND.template)
async def get_legend(
    tile_request: models.TileRequest = fastapi.Depends(dependencies.get_tile_request),  # noqa: B008
    settings: config.Settings = fastapi.Depends(dependencies.get_settings),  # noqa: B008
    source: TileSource = fastapi.Depends(dependencies.get_tile_source),  # noqa: B008
    error_tile: bytes = fastapi.Depends(dependencies.get_error_tile),  # noqa: B008
) -> responses.Response:
    """Serve a tileset's legend as ``{"legend": ...}``."""
    return await _metadata(tile_request, settings, source, error_tile)


@router.get(routes.GRID.template)
async def get_grid(
    tile_request: models.TileRequest = fastapi.Depends(dependencies.get_tile_request),  # noqa: B008
    settings: config.Settings = fastapi.Depends(dependencies.get_settings),  # noqa: B008
    source: TileSource = fastapi.Depends(dependencies.get_tile_source),  # noqa: B008
    error_tile: bytes = fastapi.Depends(dependencies.get_error_tile),  # noqa: B008
) -> responses.Response:
    """Serve an interaction grid, JSONP-wrapped when ``callback`` is set.

    The stored grid is inflated completely before any header is sent,
    so a corrupt or oversized grid yields a 500 rather than a truncated
    body. Inflation runs in a worker thread that is abandoned when the
    deadline expires. The inflated text is then streamed verbatim
    between the JSON framing and the freshly serialized ``grid_data``.

    Args:
        tile_request: Parsed request carrying the tileset id, the signed
            ``z/x/y`` coordinate and the optional ``callback``.
        settings: Application settings (injected via FastAPI Depends).
        source: Tile source (injected via FastAPI Depends).
        error_tile: Error tile bytes (injected via FastAPI Depends).

    Returns:
        Streaming ``text/javascript`` response with the grid body, or a
        404/400/500 plain-text response.
    """
    callback = tile_request.callback
    try:
        with anyio.fail_after(settings.request_timeout_seconds):
            resolved = await _resolve(tile_request, settings)
            if resolved is None:
                return dependencies.error_tile_response(error_tile)
            handle, cache_headers = resolved

            if callback and not grids.is_valid_callback(callback):
                return responses.PlainTextResponse(
                    "Invalid callback",
                    status_code=400,
                )

            outcome = await _render(source, handle, tile_request)
            if isinstance(outcome, models.Failure):
                return responses.PlainTextResponse(
                    outcome.message,
                    status_code=500,
                )
            if isinstance(outcome, models.Empty):
                return responses.PlainTextResponse(
                    "Grid not found",
                    status_code=404,
                )

            try:
                grid = await to_thread.run_sync(
                    grids.inflate,
                    outcome.payload,
                    settings.grid_max_bytes,
                    abandon_on_cancel=True,
                )
            except errors.GridDecodeError as exc:
                logger.warning("Could not inflate grid %s: %s", handle.path, exc)
                return responses.PlainTextResponse(str(exc), status_code=500)
    except TimeoutError:
        _timed_out(tile_request)
        return responses.PlainTextResponse(errors.TIMED_OUT, status_code=500)

    headers = response_headers.merge_headers(
        {"Content-Type": "text/javascript"},
        cache_headers,
        settings.header_defaults,
    )
    return responses.StreamingResponse(
        grids.iter_grid_body(grid, outcome.data, callback),
        headers=headers,
    )
