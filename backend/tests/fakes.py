"""Test doubles and archive builders shared across the test modules."""

from __future__ import annotations

import gzip
import json
import sqlite3
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    import pathlib

PNG_BYTES = b"\x89PNG\r\n\x1a\n" + b"tile"
JPEG_BYTES = b"\xff\xd8\xff\xe0" + b"tile"


class FakeTileSource:
    """A fake tile source returning a canned result or raising an error."""

    def __init__(
        self,
        result: Any = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result
        self.error = error
        self.calls: list[tuple[str, str, tuple[int, int, int] | None]] = []

    async def render(
        self,
        datasource: str,
        fmt: str,
        xyz: tuple[int, int, int] | None = None,
    ) -> Any:
        self.calls.append((datasource, fmt, xyz))
        if self.error is not None:
            raise self.error
        return self.result


def write_mbtiles(
    path: pathlib.Path,
    tiles: dict[tuple[int, int, int], bytes] | None = None,
    grids: dict[tuple[int, int, int], tuple[str, dict[str, Any]]] | None = None,
    metadata: dict[str, str] | None = None,
) -> pathlib.Path:
    """Create an MBTiles archive keyed by ``(z, x, y)``.

    Grids are given as ``(grid json text, grid_data)`` and stored gzipped
    like real archives store them.
    """
    conn = sqlite3.connect(path)
    try:
        conn.executescript(
            """
            CREATE TABLE metadata (name TEXT, value TEXT);
            CREATE TABLE tiles (zoom_level INTEGER, tile_column INTEGER,
                                tile_row INTEGER, tile_data BLOB);
            CREATE TABLE grids (zoom_level INTEGER, tile_column INTEGER,
                                tile_row INTEGER, grid BLOB);
            CREATE TABLE grid_data (zoom_level INTEGER, tile_column INTEGER,
                                    tile_row INTEGER, key_name TEXT,
                                    key_json TEXT);
            """,
        )
        for (z, x, y), data in (tiles or {}).items():
            conn.execute(
                "INSERT INTO tiles VALUES (?, ?, ?, ?)",
                (z, x, y, data),
            )
        for (z, x, y), (grid, grid_data) in (grids or {}).items():
            conn.execute(
                "INSERT INTO grids VALUES (?, ?, ?, ?)",
                (z, x, y, gzip.compress(grid.encode("utf-8"))),
            )
            for key, value in grid_data.items():
                conn.execute(
                    "INSERT INTO grid_data VALUES (?, ?, ?, ?, ?)",
                    (z, x, y, key, json.dumps(value)),
                )
        for name, value in (metadata or {}).items():
            conn.execute("INSERT INTO metadata VALUES (?, ?)", (name, value))
        conn.commit()
    finally:
        conn.close()
    return path
