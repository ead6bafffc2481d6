"""Application settings and configuration management.

This module provides Pydantic-based settings management that loads
configuration from environment variables or a .env file. Settings include
the storage root for MBTiles tilesets, the download feature flag, the
deployment default response headers, the error tile location, the
per-request render deadline, CORS origins and the log level.

Example:
    Settings can be accessed via the cached get_settings() function:
        >>> from tile_gateway.core.config import get_settings
        >>> settings = get_settings()
        >>> print(settings.tiles_dir)

    Environment variables can override defaults:
        >>> TILES_DIR=/srv/tiles
        >>> DOWNLOAD_ENABLED=true
        >>> HEADER_DEFAULTS='{"Cache-Control": "max-age=86400"}'
"""

import functools
import pathlib

import pydantic_settings

PACKAGE_DIR = pathlib.Path(__file__).resolve().parent.parent
DEFAULT_ERROR_TILE = PACKAGE_DIR / "static" / "errortile.png"


class Settings(pydantic_settings.BaseSettings):
    """Runtime configuration pulled from environment variables or defaults.

    All settings can be overridden via environment variables or .env file.
    The tileset directory is created on initialization via
    ensure_directories().

    Attributes:
        tiles_dir: Directory holding ``<tileset>.mbtiles`` files.
        download_enabled: Register the ``/download/<tileset>.mbtiles`` route.
        header_defaults: Headers added to every successful response. They
            override the derived cache headers and are overridden by
            headers supplied by the tile source.
        error_tile_path: PNG served for missing tilesets and failed
            tiles. Defaults to the packaged error tile.
        request_timeout_seconds: Deadline for producing a response,
            covering tileset validation, rendering and grid inflation.
        grid_max_bytes: Largest inflated grid accepted, in bytes.
        allow_origins: List of allowed CORS origins (["*"] allows all).
        log_level: Root logging level.

    Example:
        Create settings with custom values:
            >>> settings = Settings(
            ...     tiles_dir=Path("/srv/tiles"),
            ...     download_enabled=True,
            ... )
            >>> settings.ensure_directories()
    """

    tiles_dir: pathlib.Path = pathlib.Path("/tmp/tile_gateway/tiles")
    download_enabled: bool = False
    header_defaults: dict[str, str] = {"Cache-Control": "max-age=3600"}
    error_tile_path: pathlib.Path | None = None
    request_timeout_seconds: float = 30.0
    grid_max_bytes: int = 16 * 1024 * 1024
    allow_origins: list[str] = ["*"]
    log_level: str = "INFO"

    model_config = pydantic_settings.SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    def ensure_directories(self) -> None:
        """Create the tileset directory if it does not exist yet."""
        self.tiles_dir.mkdir(parents=True, exist_ok=True)

    def resolve_error_tile_path(self) -> pathlib.Path:
        """Return the configured error tile, or the packaged one."""
        return self.error_tile_path or DEFAULT_ERROR_TILE


@functools.lru_cache
def get_settings() -> Settings:
    """Get cached settings instance with directories initialized.

    Settings are loaded from environment variables or .env file and cached
    for the lifetime of the application. The tileset directory is created
    on first call.

    Returns:
        Settings instance with all configuration values populated.

    Example:
        The settings are cached, so multiple calls return the same instance:
            >>> settings1 = get_settings()
            >>> settings2 = get_settings()
            >>> assert settings1 is settings2  # Same instance
    """
    settings = Settings()
    settings.ensure_directories()
    return settings
