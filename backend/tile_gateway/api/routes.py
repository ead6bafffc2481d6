"""Declarative route table for the tile gateway.

Each :class:`RouteSpec` pairs a route kind with a Starlette path template.
The templates use three custom convertors registered here. Starlette's
convertor registry is process-wide, so their names carry a ``tg_``
prefix:

- ``tg_tileset``: word characters, digits, dots and dashes, matched
  non-greedily so a dotted id such as ``world.v2`` never swallows the
  ``.mbtiles`` or coordinate suffix,
- ``tg_signed``: an integer with an optional leading minus sign,
- ``tg_image_format``: ``png``, ``jpg`` or ``jpeg``.

The same table drives the FastAPI routers and :func:`match_path`. The
routers only decide which endpoint runs; every endpoint then obtains its
:class:`~tile_gateway.models.TileRequest` from :func:`match_path`
through the ``get_tile_request`` dependency.

Example:
    >>> match_path("/1.0.0/world.v2/3/-1/4.png")
    TileRequest(tileset_id='world.v2', kind=<RouteKind.TILE: 'tile'>, ...)
    >>> match_path("/1.0.0/world/legend.json").kind
    <RouteKind.LEGEND: 'legend'>
    >>> match_path("/download/world.mbtiles") is None  # flag off
    True
"""

from __future__ import annotations

import dataclasses
import functools
import re
from typing import TYPE_CHECKING, Any

from starlette import convertors, routing

from tile_gateway import models

if TYPE_CHECKING:
    from collections.abc import Mapping


class TilesetConvertor(convertors.Convertor[str]):
    """Tileset ids: word characters, dots and dashes."""

    regex = r"[\w.\-]+?"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


class SignedIntConvertor(convertors.Convertor[int]):
    """Tile coordinates, negative values included."""

    regex = r"-?\d+"

    def convert(self, value: str) -> int:
        return int(value)

    def to_string(self, value: int) -> str:
        return str(value)


class ImageFormatConvertor(convertors.Convertor[str]):
    """Image tile formats."""

    regex = "png|jpg|jpeg"

    def convert(self, value: str) -> str:
        return value

    def to_string(self, value: str) -> str:
        return value


convertors.register_url_convertor("tg_tileset", TilesetConvertor())
convertors.register_url_convertor("tg_signed", SignedIntConvertor())
convertors.register_url_convertor("tg_image_format", ImageFormatConvertor())


@dataclasses.dataclass(frozen=True)
class RouteSpec:
    """One entry of the route table.

    Attributes:
        kind: Route kind produced on match.
        template: Starlette path template.
        fmt: Fixed format for routes whose path does not carry one.
    """

    kind: models.RouteKind
    template: str
    fmt: models.Format | None = None

    @property
    def pattern(self) -> re.Pattern[str]:
        """Compiled regex of the template."""
        return _compile(self.template)[0]

    @property
    def param_convertors(self) -> dict[str, convertors.Convertor[Any]]:
        """Convertors for the template's parameters."""
        return _compile(self.template)[2]

    def build(
        self,
        params: Mapping[str, Any],
        query: Mapping[str, str] | None = None,
    ) -> models.TileRequest:
        """Create a TileRequest from converted path parameters."""
        fmt = self.fmt or params["fmt"]
        callback = None
        if self.kind is models.RouteKind.GRID and query:
            callback = query.get("callback") or None
        return models.TileRequest(
            tileset_id=params["tileset"],
            kind=self.kind,
            fmt=fmt,
            z=params.get("z"),
            x=params.get("x"),
            y=params.get("y"),
            callback=callback,
        )


@functools.lru_cache
def _compile(template: str) -> tuple[re.Pattern[str], str, dict[str, Any]]:
    return routing.compile_path(template)


_COORDS = "{z:tg_signed}/{x:tg_signed}/{y:tg_signed}"

DOWNLOAD = RouteSpec(
    kind=models.RouteKind.DOWNLOAD,
    template="/download/{tileset:tg_tileset}.mbtiles",
    fmt="mbtiles",
)
TILE = RouteSpec(
    kind=models.RouteKind.TILE,
    template=f"/1.0.0/{{tileset:tg_tileset}}/{_COORDS}.{{fmt:tg_image_format}}",
)
FORMATTER = RouteSpec(
    kind=models.RouteKind.FORMATTER,
    template="/1.0.0/{tileset:tg_tileset}/formatter.json",
    fmt="formatter.json",
)
LEGEND = RouteSpec(
    kind=models.RouteKind.LEGEND,
    template="/1.0.0/{tileset:tg_tileset}/legend.json",
    fmt="legend.json",
)
GRID = RouteSpec(
    kind=models.RouteKind.GRID,
    template=f"/1.0.0/{{tileset:tg_tileset}}/{_COORDS}.grid.json",
    fmt="grid.json",
)

ROUTE_TABLE: tuple[RouteSpec, ...] = (DOWNLOAD, TILE, FORMATTER, LEGEND, GRID)


def match_path(
    path: str,
    query: Mapping[str, str] | None = None,
    download_enabled: bool = False,
) -> models.TileRequest | None:
    """Classify a request path against the route table.

    Args:
        path: Request path, without query string.
        query: Query parameters; only ``callback`` is read.
        download_enabled: Whether the download route is active.

    Returns:
        The parsed request, or None if no gateway route matches.
    """
    for spec in ROUTE_TABLE:
        if spec is DOWNLOAD and not download_enabled:
            continue
        match = spec.pattern.match(path)
        if match is None:
            continue
        params = {
            name: spec.param_convertors[name].convert(value)
            for name, value in match.groupdict().items()
        }
        return spec.build(params, query)
    return None
