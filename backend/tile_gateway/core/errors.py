"""Exceptions raised inside the tile request pipeline."""

EMPTY_ROW = "empty row"
TIMED_OUT = "Request timed out"


class TileSourceError(Exception):
    """A tile source could not produce the requested tile, grid or metadata.

    The message ``"empty row"`` means the archive has no entry for the
    request, which some routes report as "not found" rather than as a
    server error.
    """


class GridDecodeError(Exception):
    """A stored interaction grid could not be inflated."""
