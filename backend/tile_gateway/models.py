"""Request-scoped value objects for the tile pipeline.

Every object here is created fresh for one inbound request and discarded
once the response has been emitted. The only long-lived value in the
gateway, the error tile bytes, lives on the application state instead.

Example:
    A tile request for a dotted tileset id:
        >>> from tile_gateway.models import RouteKind, TileRequest
        >>> request = TileRequest(
        ...     tileset_id="world.v2",
        ...     kind=RouteKind.TILE,
        ...     fmt="png",
        ...     z=3,
        ...     x=-1,
        ...     y=4,
        ... )
        >>> request.xyz
        (-1, 4, 3)

    Cache metadata for a file of 1024 bytes:
        >>> meta = CacheMetadata.from_stat(size=1024, mtime=1700000000.0)
        >>> meta.etag
        '1024-1700000000000'
"""

from __future__ import annotations

import dataclasses
import email.utils
import enum
from typing import Any, Literal

from tile_gateway.core import errors

Format = Literal[
    "png",
    "jpg",
    "jpeg",
    "grid.json",
    "formatter.json",
    "legend.json",
    "mbtiles",
]

FORMAT_MEDIA_TYPES: dict[str, str] = {
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
}


class RouteKind(enum.Enum):
    """The kinds of request the gateway answers."""

    TILE = "tile"
    GRID = "grid"
    FORMATTER = "formatter"
    LEGEND = "legend"
    DOWNLOAD = "download"


@dataclasses.dataclass(frozen=True)
class TileRequest:
    """A parsed gateway request.

    Attributes:
        tileset_id: Tileset name, may contain dots and dashes.
        kind: Route kind the path matched.
        fmt: Requested format, e.g. ``"png"`` or ``"grid.json"``.
        z: Zoom level, only set for tile and grid routes.
        x: Column, only set for tile and grid routes.
        y: Row, only set for tile and grid routes.
        callback: JSONP callback name from the query string.
    """

    tileset_id: str
    kind: RouteKind
    fmt: Format
    z: int | None = None
    x: int | None = None
    y: int | None = None
    callback: str | None = None

    @property
    def xyz(self) -> tuple[int, int, int] | None:
        """Coordinate in the ``(x, y, z)`` order tile sources expect."""
        if self.z is None or self.x is None or self.y is None:
            return None
        return (self.x, self.y, self.z)


@dataclasses.dataclass(frozen=True)
class TilesetHandle:
    """A tileset file resolved under the storage root."""

    path: str
    exists: bool
    size: int | None = None
    modified_at: float | None = None


@dataclasses.dataclass(frozen=True)
class CacheMetadata:
    """Cache-validation values derived from a tileset file's stat.

    Attributes:
        last_modified: Modification time in epoch seconds.
        etag: ``"<size>-<mtime in epoch milliseconds>"``.
    """

    last_modified: float
    etag: str

    @classmethod
    def from_stat(cls, size: int, mtime: float) -> CacheMetadata:
        """Build metadata from a file size and modification time."""
        return cls(last_modified=mtime, etag=f"{size}-{int(mtime * 1000)}")

    def as_headers(self) -> dict[str, str]:
        """Render the metadata as response headers."""
        return {
            "Last-Modified": email.utils.formatdate(
                self.last_modified,
                usegmt=True,
            ),
            "E-Tag": self.etag,
        }


@dataclasses.dataclass(frozen=True)
class Success:
    """A tile source produced a payload.

    Attributes:
        payload: First element of the render result (image bytes,
            compressed grid, or formatter/legend data).
        headers: Headers supplied by the tile source.
        data: Auxiliary value of the render result, e.g. grid_data.
    """

    payload: Any
    headers: dict[str, str] = dataclasses.field(default_factory=dict)
    data: Any = None

    @property
    def content_type(self) -> str | None:
        """Content type announced by the tile source, if any."""
        for key, value in self.headers.items():
            if key.lower() == "content-type":
                return value
        return None


@dataclasses.dataclass(frozen=True)
class Empty:
    """A tile source found nothing for the request."""


@dataclasses.dataclass(frozen=True)
class Failure:
    """A tile source failed.

    Attributes:
        message: Text of the underlying error.
    """

    message: str

    @property
    def is_empty_row(self) -> bool:
        """Whether the failure only signals a missing archive entry."""
        return self.message == errors.EMPTY_ROW


RenderOutcome = Success | Empty | Failure
