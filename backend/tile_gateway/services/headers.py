"""Response header composition.

Every successful response merges three header sources: the cache headers
derived from the tileset file, the deployment defaults from settings, and
the headers supplied by the tile source. Later sources win on collision.

Example:
    >>> merge_headers(
    ...     {"E-Tag": "10-1000"},
    ...     {"Cache-Control": "max-age=60"},
    ...     {"Cache-Control": "no-cache"},
    ... )
    {'E-Tag': '10-1000', 'Cache-Control': 'no-cache'}
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Mapping


def merge_headers(*sources: Mapping[str, str] | None) -> dict[str, str]:
    """Merge header mappings, later sources overriding earlier ones.

    Keys are compared case-insensitively so that ``content-type`` from a
    tile source replaces a ``Content-Type`` default. The spelling of the
    winning source is kept.

    Args:
        *sources: Header mappings in increasing order of precedence.
            ``None`` entries are skipped.

    Returns:
        A new dictionary with unique header names.
    """
    merged: dict[str, str] = {}
    names: dict[str, str] = {}
    for source in sources:
        if not source:
            continue
        for key, value in source.items():
            previous = names.get(key.lower())
            if previous is not None:
                del merged[previous]
            names[key.lower()] = key
            merged[key] = str(value)
    return merged
