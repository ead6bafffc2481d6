"""UTFGrid response bodies.

Grids are stored gzip-compressed as pre-encoded UTF-8 JSON. The inflated
text is spliced into the response verbatim and only the auxiliary
``grid_data`` value is serialized here, so the stored bytes reach the
client untouched.

Body layout::

    [callback(]{"grid":<grid text>,"grid_data":<json>}[);]
"""

from __future__ import annotations

import json
import re
import zlib
from typing import TYPE_CHECKING, Any

from tile_gateway.core import errors

if TYPE_CHECKING:
    from collections.abc import Iterator

# Accept gzip and zlib headers alike.
_AUTO_HEADER_WBITS = 32 + zlib.MAX_WBITS
_CHUNK_SIZE = 16 * 1024
_CALLBACK_RE = re.compile(r"^[A-Za-z_$][\w$]*(\.[A-Za-z_$][\w$]*)*$")


def is_valid_callback(callback: str) -> bool:
    """Check that a JSONP callback is a plain JavaScript name path."""
    return bool(_CALLBACK_RE.match(callback))


def inflate(compressed: bytes, max_size: int | None = None) -> str:
    """Inflate a stored grid into text.

    The payload is fed to the decompressor in chunks and the output
    accumulated, stopping at the first error or as soon as the output
    grows past ``max_size``.

    Args:
        compressed: gzip or zlib compressed grid JSON.
        max_size: Largest accepted inflated size in bytes, or None for
            no limit.

    Returns:
        The decompressed grid as a string.

    Raises:
        GridDecodeError: If the payload is not valid compressed UTF-8 or
            inflates to more than ``max_size`` bytes.
    """
    decompressor = zlib.decompressobj(_AUTO_HEADER_WBITS)
    chunks: list[bytes] = []
    remaining = max_size
    try:
        for start in range(0, len(compressed), _CHUNK_SIZE):
            chunk = compressed[start:start + _CHUNK_SIZE]
            if remaining is None:
                chunks.append(decompressor.decompress(chunk))
                continue
            # One byte past the limit is enough to detect an overflow.
            out = decompressor.decompress(chunk, remaining + 1)
            if len(out) > remaining:
                raise errors.GridDecodeError(
                    f"Grid exceeds {max_size} bytes when inflated",
                )
            remaining -= len(out)
            chunks.append(out)
        tail = decompressor.flush()
        if remaining is not None and len(tail) > remaining:
            raise errors.GridDecodeError(
                f"Grid exceeds {max_size} bytes when inflated",
            )
        chunks.append(tail)
        if not decompressor.eof:
            raise errors.GridDecodeError("Truncated grid data")
        return b"".join(chunks).decode("utf-8")
    except zlib.error as exc:
        raise errors.GridDecodeError(str(exc)) from exc
    except UnicodeDecodeError as exc:
        raise errors.GridDecodeError(str(exc)) from exc


def iter_grid_body(
    grid: str,
    grid_data: Any,
    callback: str | None = None,
) -> Iterator[str]:
    """Yield the pieces of a grid response body in write order.

    Args:
        grid: Inflated grid JSON text, written as-is.
        grid_data: Auxiliary value serialized with ``json.dumps``.
        callback: Optional JSONP callback name.

    Yields:
        Body fragments to be written one after another.
    """
    if callback:
        yield f"{callback}("
    yield '{"grid":'
    yield grid
    yield ',"grid_data":'
    yield json.dumps(grid_data, ensure_ascii=False, separators=(",", ":"))
    yield "}"
    if callback:
        yield ");"
