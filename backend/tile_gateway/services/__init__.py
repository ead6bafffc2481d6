"""Request pipeline services: tileset lookup, rendering, grids, headers."""
