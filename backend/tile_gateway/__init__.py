"""Read-only HTTP gateway for MBTiles tilesets.

Serves image tiles, UTFGrid interaction grids, formatter/legend metadata
and whole archives from ``<tiles_dir>/<tileset>.mbtiles`` files, with
cache-validation headers suitable for long-TTL caching.

- Tilesets are validated and stat'ed on every request; nothing is cached
- Rendering is delegated to a pluggable tile source (MBTiles by default)
- Missing tilesets and failed image tiles answer with a shared error tile
- Grids are inflated and spliced verbatim, optionally as JSONP

See the module docstrings for details on each pipeline stage.
"""
