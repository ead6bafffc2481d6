"""FastAPI dependencies shared by the tile and download routers.

Settings and the error tile are read from ``app.state``, where
``create_app`` stores them once at startup. The tile source is resolved
through :func:`get_tile_source` so tests can swap it with
``app.dependency_overrides``.
"""

from __future__ import annotations

import fastapi
from fastapi import responses

from tile_gateway import models
from tile_gateway.api import routes
from tile_gateway.core import config
from tile_gateway.services import mbtiles, render


def get_settings(request: fastapi.Request) -> config.Settings:
    """Return the settings the application was created with."""
    return request.app.state.settings


def get_error_tile(request: fastapi.Request) -> bytes:
    """Return the error tile loaded at startup."""
    return request.app.state.error_tile


def get_tile_source() -> render.TileSourceProtocol:
    """Resolve the tile source dependency.

    Returns:
        TileSourceProtocol implementation (MBTilesSource in production).
    """
    return mbtiles.MBTilesSource()


def get_tile_request(
    request: fastapi.Request,
    settings: config.Settings = fastapi.Depends(get_settings),  # noqa: B008
) -> models.TileRequest:
    """Classify the request path with the gateway's route table.

    The path is taken relative to the ASGI ``root_path`` so the app can
    be mounted under a prefix.

    Raises:
        HTTPException: 404 if the path is not a gateway route, which only
            happens when an endpoint is mounted at a foreign path.
    """
    path = request.scope["path"]
    root_path = request.scope.get("root_path", "")
    if root_path and path.startswith(root_path):
        path = path[len(root_path):]
    tile_request = routes.match_path(
        path,
        request.query_params,
        download_enabled=settings.download_enabled,
    )
    if tile_request is None:
        raise fastapi.HTTPException(status_code=404)
    return tile_request


def error_tile_response(error_tile: bytes) -> responses.Response:
    """Build the 404 response carrying the error tile."""
    return responses.Response(
        content=error_tile,
        status_code=404,
        media_type="image/png",
    )
