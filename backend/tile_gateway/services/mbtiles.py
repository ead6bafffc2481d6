"""MBTiles-backed tile source.

Reads tiles, UTFGrids and formatter/legend metadata straight from the
MBTiles SQLite schema. Queries run in Starlette's thread pool with a
short-lived read-only connection per call.

The ``/1.0.0/`` routes follow the TMS scheme MBTiles uses on disk, so
rows are looked up exactly as requested without flipping ``y``.

Example:
    >>> source = MBTilesSource()
    >>> data, headers = await source.render(
    ...     "/srv/tiles/world.mbtiles", "png", (0, 0, 0))
    >>> headers["Content-Type"]
    'image/png'
"""

from __future__ import annotations

import contextlib
import json
import pathlib
import sqlite3
from typing import TYPE_CHECKING, Any

from anyio import to_thread

from tile_gateway import models
from tile_gateway.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterator

TILE_SQL = (
    "SELECT tile_data FROM tiles "
    "WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?"
)
GRID_SQL = (
    "SELECT grid FROM grids "
    "WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?"
)
GRID_DATA_SQL = (
    "SELECT key_name, key_json FROM grid_data "
    "WHERE zoom_level = ? AND tile_column = ? AND tile_row = ?"
)
METADATA_SQL = "SELECT value FROM metadata WHERE name = ?"

METADATA_FORMATS = {
    "formatter.json": "formatter",
    "legend.json": "legend",
}


def sniff_media_type(data: bytes, fmt: str) -> str:
    """Guess an image media type from magic bytes, falling back to fmt."""
    if data.startswith(b"\x89PNG\r\n\x1a\n"):
        return "image/png"
    if data.startswith(b"\xff\xd8\xff"):
        return "image/jpeg"
    return models.FORMAT_MEDIA_TYPES.get(fmt, "application/octet-stream")


@contextlib.contextmanager
def _connect(datasource: str) -> Iterator[sqlite3.Connection]:
    uri = f"{pathlib.Path(datasource).resolve().as_uri()}?mode=ro"
    try:
        conn = sqlite3.connect(uri, uri=True)
    except sqlite3.Error as exc:
        raise errors.TileSourceError(str(exc)) from exc
    try:
        yield conn
    except sqlite3.Error as exc:
        raise errors.TileSourceError(str(exc)) from exc
    finally:
        conn.close()


class MBTilesSource:
    """Tile source reading ``.mbtiles`` archives."""

    async def render(
        self,
        datasource: str,
        fmt: str,
        xyz: tuple[int, int, int] | None = None,
    ) -> tuple[Any, Any] | None:
        """Render a tile, grid or metadata document from an archive.

        Args:
            datasource: Path of the ``.mbtiles`` file.
            fmt: ``png``/``jpg``/``jpeg``, ``grid.json``,
                ``formatter.json`` or ``legend.json``.
            xyz: ``(x, y, z)`` coordinate for tiles and grids.

        Returns:
            ``(tile bytes, headers)`` for images, ``(compressed grid,
            grid_data)`` for grids, ``(value, None)`` for metadata, or
            None when a grid is missing.

        Raises:
            TileSourceError: If the archive cannot be read, or with the
                message ``"empty row"`` when a tile or metadata entry is
                missing.
        """
        # The connection lives inside the worker thread, so a request
        # deadline may abandon it.
        return await to_thread.run_sync(
            self._render_sync, datasource, fmt, xyz, abandon_on_cancel=True,
        )

    def _render_sync(
        self,
        datasource: str,
        fmt: str,
        xyz: tuple[int, int, int] | None,
    ) -> tuple[Any, Any] | None:
        with _connect(datasource) as conn:
            if fmt in METADATA_FORMATS:
                return self._read_metadata(conn, METADATA_FORMATS[fmt])
            if xyz is None:
                raise errors.TileSourceError(f"Format {fmt} needs a coordinate")
            x, y, z = xyz
            if fmt == "grid.json":
                return self._read_grid(conn, z, x, y)
            if fmt in models.FORMAT_MEDIA_TYPES:
                return self._read_tile(conn, z, x, y, fmt)
            raise errors.TileSourceError(f"Unsupported format: {fmt}")

    @staticmethod
    def _read_tile(
        conn: sqlite3.Connection,
        z: int,
        x: int,
        y: int,
        fmt: str,
    ) -> tuple[bytes, dict[str, str]]:
        row = conn.execute(TILE_SQL, (z, x, y)).fetchone()
        if row is None or row[0] is None:
            raise errors.TileSourceError(errors.EMPTY_ROW)
        data = bytes(row[0])
        return data, {"Content-Type": sniff_media_type(data, fmt)}

    @staticmethod
    def _read_grid(
        conn: sqlite3.Connection,
        z: int,
        x: int,
        y: int,
    ) -> tuple[bytes, dict[str, Any]] | None:
        row = conn.execute(GRID_SQL, (z, x, y)).fetchone()
        if row is None or row[0] is None:
            return None
        grid_data = {
            key: json.loads(value)
            for key, value in conn.execute(GRID_DATA_SQL, (z, x, y))
        }
        return bytes(row[0]), grid_data

    @staticmethod
    def _read_metadata(
        conn: sqlite3.Connection,
        name: str,
    ) -> tuple[str, None]:
        row = conn.execute(METADATA_SQL, (name,)).fetchone()
        if row is None or not row[0]:
            raise errors.TileSourceError(errors.EMPTY_ROW)
        return row[0], None
