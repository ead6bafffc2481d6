"""FastAPI application entrypoint and configuration.

This module provides the application factory that loads the error tile,
sets up logging and CORS middleware, includes the tile router (and the
download router when the feature is enabled) and exposes a health check
endpoint for monitoring.

Example:
    The application can be run with uvicorn:
        $ uvicorn tile_gateway.main:app

    Or created with explicit settings:
        >>> from tile_gateway.core.config import Settings
        >>> from tile_gateway.main import create_app
        >>> app = create_app(Settings(tiles_dir=Path("/srv/tiles")))
"""

from __future__ import annotations

import logging

import fastapi
from fastapi import responses
from fastapi.middleware import cors

from tile_gateway.api import download, tiles
from tile_gateway.core import config

logger = logging.getLogger(__name__)


def load_error_tile(settings: config.Settings) -> bytes:
    """Read the error tile served for missing tilesets and failed tiles.

    Args:
        settings: Application settings naming the error tile location.

    Returns:
        The PNG bytes. They are read once and shared by every request.
    """
    return settings.resolve_error_tile_path().read_bytes()


async def _unhandled_error(
    request: fastapi.Request,
    exc: Exception,
) -> responses.Response:
    logger.exception("Unhandled error on %s", request.url.path, exc_info=exc)
    return responses.PlainTextResponse(str(exc), status_code=500)


def create_app(settings: config.Settings | None = None) -> fastapi.FastAPI:
    """Create and configure the FastAPI application.

    Loads the error tile, stores it together with the settings on
    ``app.state``, adds CORS middleware, includes the tile router and,
    if ``download_enabled`` is set, the download router. A catch-all
    exception handler turns unexpected errors into plain-text 500s.

    Args:
        settings: Settings to use. Defaults to :func:`config.get_settings`.

    Returns:
        Configured FastAPI application instance ready for ASGI server.
    """
    settings = settings or config.get_settings()
    logging.basicConfig(level=settings.log_level.upper())

    app = fastapi.FastAPI(title="Tile Gateway", version="0.1.0")
    app.state.settings = settings
    app.state.error_tile = load_error_tile(settings)

    if settings.download_enabled:
        app.include_router(download.router)
    app.include_router(tiles.router)
    app.add_exception_handler(Exception, _unhandled_error)

    app.add_middleware(
        cors.CORSMiddleware,  # type: ignore[arg-type]
        allow_origins=settings.allow_origins,
        allow_methods=["GET", "HEAD"],
        allow_headers=["*"],
    )

    @app.get("/health")
    async def health() -> dict[str, str]:  # type: ignore[misc]
        """Health check endpoint for monitoring and load balancers.

        Returns:
            Dictionary with status "ok" if the service is running.
        """
        return {"status": "ok"}

    logger.info(
        "Serving tilesets from %s (download %s)",
        settings.tiles_dir,
        "enabled" if settings.download_enabled else "disabled",
    )
    return app


app = create_app()
