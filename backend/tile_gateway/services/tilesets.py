"""Tileset resolution and cache-validation metadata.

Tileset ids map to ``<tiles_dir>/<id>.mbtiles``. Existence and file
metadata are looked up on every request through ``anyio.Path`` so the
event loop is never blocked and a replaced archive is picked up without
a restart.

Example:
    Resolve a tileset and derive its cache headers:
        >>> handle = await resolve_tileset(settings.tiles_dir, "world")
        >>> if handle is not None:
        ...     meta = await load_cache_metadata(handle)
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import anyio

from tile_gateway import models

if TYPE_CHECKING:
    import pathlib

logger = logging.getLogger(__name__)

TILESET_SUFFIX = ".mbtiles"


def tileset_path(root: pathlib.Path | str, tileset_id: str) -> anyio.Path:
    """Return the archive path for a tileset id under ``root``."""
    return anyio.Path(root) / f"{tileset_id}{TILESET_SUFFIX}"


async def resolve_tileset(
    root: pathlib.Path | str,
    tileset_id: str,
) -> models.TilesetHandle | None:
    """Resolve a tileset id to an existing archive.

    Args:
        root: Storage root holding the ``.mbtiles`` files.
        tileset_id: Tileset name as captured from the request path.

    Returns:
        A handle for the archive, or None if no such file exists.
    """
    path = tileset_path(root, tileset_id)
    if not await path.is_file():
        logger.debug("Tileset %s not found at %s", tileset_id, path)
        return None
    return models.TilesetHandle(path=str(path), exists=True)


async def load_cache_metadata(
    handle: models.TilesetHandle,
) -> models.CacheMetadata | None:
    """Stat a resolved tileset and derive its cache-validation metadata.

    A failed stat is not an error for the request: the response is sent
    without ``Last-Modified`` and ``E-Tag``.

    Args:
        handle: Handle returned by :func:`resolve_tileset`.

    Returns:
        Cache metadata, or None if the file could not be stat'ed.
    """
    try:
        stat = await anyio.Path(handle.path).stat()
    except OSError as exc:
        logger.debug("Could not stat %s: %s", handle.path, exc)
        return None
    return models.CacheMetadata.from_stat(
        size=stat.st_size,
        mtime=stat.st_mtime,
    )
