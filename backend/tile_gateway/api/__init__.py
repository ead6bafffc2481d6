"""API router subpackage for the tile gateway.

This package organizes the HTTP surface of the gateway. Each module
exposes its own APIRouter for composition in the application's main
FastAPI instance.

Submodules:
    - routes: Declarative route table and path classifier.
    - tiles: Image tile, UTFGrid, formatter and legend endpoints.
    - download: Whole-archive download, enabled by a feature flag.
    - dependencies: Settings, error tile and tile source dependencies.
"""
