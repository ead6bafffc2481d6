"""Render dispatch over a pluggable tile source.

The gateway never decodes archives itself. A :class:`TileSourceProtocol`
implementation answers ``render(datasource, fmt, xyz)`` with a
``(payload, extra)`` pair, and :func:`dispatch` folds every possible
outcome into one of three values the routes know how to answer:

- :class:`~tile_gateway.models.Success` with the payload, the headers the
  source supplied and any auxiliary data (grid_data for grids),
- :class:`~tile_gateway.models.Empty` when the source found nothing,
- :class:`~tile_gateway.models.Failure` carrying the error text.

Example:
    >>> outcome = await dispatch(source, "/tiles/world.mbtiles", "png",
    ...                          (0, 0, 0), timeout=5.0)
    >>> match outcome:
    ...     case models.Success(payload=payload):
    ...         ...
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Protocol

import anyio

from tile_gateway import models

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

RenderResult = tuple[Any, Any]


class TileSourceProtocol(Protocol):
    """Interface of the external tile/grid renderer.

    ``render`` returns ``(payload, extra)`` where ``payload`` is the image
    bytes, the compressed grid or the formatter/legend data and ``extra``
    is a header mapping for images or the grid_data value for grids. It
    may return None when nothing exists and raises on failure.
    """

    async def render(
        self,
        datasource: str,
        fmt: str,
        xyz: tuple[int, int, int] | None = None,
    ) -> RenderResult | None: ...


def _normalize(fmt: str, result: RenderResult | None) -> models.RenderOutcome:
    """Classify a raw render result.

    Raises:
        TypeError, ValueError: If the source returned something other
            than a ``(payload, extra)`` pair or a grid that is not binary.
    """
    if not result or not result[0]:
        return models.Empty()
    payload, extra = result
    if fmt == "grid.json":
        # Text grids are binary strings, one character per byte.
        if isinstance(payload, str):
            payload = payload.encode("latin-1")
        return models.Success(payload=bytes(payload), data=extra)
    headers: Mapping[str, str] = extra or {}
    return models.Success(payload=payload, headers=dict(headers))


async def dispatch(
    source: TileSourceProtocol,
    datasource: str,
    fmt: str,
    xyz: tuple[int, int, int] | None = None,
    timeout: float | None = None,
) -> models.RenderOutcome:
    """Render a tile, grid or metadata document and classify the outcome.

    Args:
        source: Tile source to render with.
        datasource: Path of the validated tileset archive.
        fmt: Requested format (``png``, ``grid.json``, ``legend.json``...).
        xyz: ``(x, y, z)`` coordinate for tiles and grids.
        timeout: Seconds before the render is abandoned. The endpoints
            leave this unset and bound the whole request instead.

    Returns:
        The normalized render outcome. This function never raises for
        errors coming from the tile source, malformed results included.
    """
    try:
        with anyio.fail_after(timeout):
            result = await source.render(datasource, fmt, xyz)
        return _normalize(fmt, result)
    except TimeoutError:
        logger.warning("Render of %s %s %s timed out", datasource, fmt, xyz)
        return models.Failure(message="Render timed out")
    except Exception as exc:  # noqa: BLE001
        logger.warning("Render of %s %s %s failed: %s",
                       datasource, fmt, xyz, exc)
        return models.Failure(message=str(exc))
