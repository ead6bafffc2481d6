"""Shared fixtures for the tile gateway tests.

Provides a temporary tileset directory, settings pointing at it, and a
helper that builds a TestClient with a fake tile source injected through
``app.dependency_overrides``.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

import pytest
from fastapi import testclient

from tile_gateway import main
from tile_gateway.api import dependencies
from tile_gateway.core import config

if TYPE_CHECKING:
    import pathlib
    from collections.abc import Callable, Iterator

    import fakes


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def tiles_dir(tmp_path: pathlib.Path) -> pathlib.Path:
    path = tmp_path / "tiles"
    path.mkdir()
    return path


@pytest.fixture
def settings(tiles_dir: pathlib.Path) -> config.Settings:
    return config.Settings(
        tiles_dir=tiles_dir,
        header_defaults={"Cache-Control": "max-age=3600"},
    )


@pytest.fixture
def make_client(
    settings: config.Settings,
) -> Iterator[Callable[..., testclient.TestClient]]:
    """Build TestClients with an optional fake tile source injected."""
    apps = []

    def _make(
        source: fakes.FakeTileSource | None = None,
        **overrides: Any,
    ) -> testclient.TestClient:
        app = main.create_app(settings.model_copy(update=overrides))
        if source is not None:
            app.dependency_overrides[dependencies.get_tile_source] = (
                lambda: source
            )
        apps.append(app)
        return testclient.TestClient(app)

    yield _make
    for app in apps:
        app.dependency_overrides.clear()
