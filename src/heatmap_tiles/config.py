"""
Heatmap Tiles Configuration
===========================

This module handles configuration loading for the tile server.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    HEATMAP_DATA_DIR          -> data.directory
    HEATMAP_TILE_SIZE         -> tiles.tile_size
    HEATMAP_MAX_ZOOM          -> tiles.max_zoom
    HEATMAP_NODE_CAPACITY     -> tiles.node_capacity
    HEATMAP_COLOR_SCALE       -> rendering.scale
    HEATMAP_SATURATION_COUNT  -> rendering.saturation_count
    HEATMAP_PORT              -> server.port
    PORT                      -> server.port (container platforms)
    HEATMAP_LOG_LEVEL         -> logging.level
    DEBUG=1                   -> logging.level = DEBUG

Example:
    from heatmap_tiles.config import settings

    print(settings.data.directory)
    print(settings.tiles.max_zoom)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional, Tuple

import yaml
from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Configuration Models
# =============================================================================

class ServiceConfig(BaseModel):
    """Service identification configuration."""

    name: str = Field(default="heatmap-tiles", description="Service name")
    version: str = Field(default="v0.1.0", description="Service version")


class DataConfig(BaseModel):
    """Input dataset location and column names."""

    directory: str = Field(
        default="partition",
        description="Directory searched recursively for columnar files",
    )
    file_extension: str = Field(
        default="parquet",
        description="File extension of input files (case-insensitive)",
    )
    longitude_column: str = Field(default="longitude", description="Longitude column")
    latitude_column: str = Field(default="latitude", description="Latitude column")
    timestamp_column: str = Field(default="BaseDateTime", description="Timestamp column")


class TilesConfig(BaseModel):
    """Tile pyramid and index configuration."""

    tile_size: int = Field(
        default=256,
        ge=1,
        le=4096,
        description="Tile raster width and height in pixels",
    )
    max_zoom: int = Field(
        default=22,
        ge=0,
        le=30,
        description="Highest zoom level served",
    )
    node_capacity: int = Field(
        default=16,
        ge=2,
        description="Maximum children per R-tree node",
    )


class RenderingConfig(BaseModel):
    """Count-to-colour scale and encoder configuration."""

    scale: str = Field(
        default="log",
        description="Count normalisation: 'log' or 'linear'",
    )
    gamma: float = Field(
        default=0.5,
        gt=0,
        description="Exponent applied to the normalised count",
    )
    saturation_count: Optional[int] = Field(
        default=None,
        ge=1,
        description="Fixed count mapped to the most intense colour (None = tile maximum)",
    )
    color_stops: List[Tuple[int, int, int, int]] = Field(
        default_factory=lambda: [(0, 0, 255, 255), (255, 0, 0, 255)],
        min_length=2,
        description="RGBA colours from lowest to highest density",
    )
    png_compression: int = Field(
        default=3,
        ge=0,
        le=9,
        description="PNG compression level",
    )

    @field_validator("scale")
    @classmethod
    def validate_scale(cls, v: str) -> str:
        """Only log and linear scales are supported."""
        v = v.lower()
        if v not in ("log", "linear"):
            raise ValueError("scale must be 'log' or 'linear'")
        return v

    @field_validator("color_stops")
    @classmethod
    def validate_color_stops(
        cls, v: List[Tuple[int, int, int, int]]
    ) -> List[Tuple[int, int, int, int]]:
        """Ensure every channel fits in a byte."""
        for stop in v:
            if any(c < 0 or c > 255 for c in stop):
                raise ValueError(f"Colour stop out of range: {stop}")
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: int = Field(default=8080, ge=1, le=65535, description="Bind port")
    workers: int = Field(
        default=8,
        ge=1,
        description="Worker threads for the tile endpoint (also the benchmark default)",
    )


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="json", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for the tile server.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    service: ServiceConfig = Field(default_factory=ServiceConfig)
    data: DataConfig = Field(default_factory=DataConfig)
    tiles: TilesConfig = Field(default_factory=TilesConfig)
    rendering: RenderingConfig = Field(default_factory=RenderingConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


# =============================================================================
# Configuration Loading
# =============================================================================

def load_config(config_path: Optional[str] = None) -> Settings:
    """
    Load configuration from YAML file and environment variables.

    Priority (highest to lowest):
        1. Environment variables
        2. YAML config file
        3. Default values

    Args:
        config_path: Path to config.yaml. If None, searches common locations.

    Returns:
        Settings: Loaded configuration
    """
    if config_path is None:
        search_paths = [
            Path("config.yaml"),
            Path("config.yml"),
            Path("/app/config.yaml"),
            Path(__file__).parent.parent.parent / "config.yaml",
        ]
        for path in search_paths:
            if path.exists():
                config_path = str(path)
                break

    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    else:
        logger.warning("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Data settings
    if env_dir := os.environ.get("HEATMAP_DATA_DIR"):
        config_data.setdefault("data", {})["directory"] = env_dir

    # Tile settings
    if env_size := os.environ.get("HEATMAP_TILE_SIZE"):
        config_data.setdefault("tiles", {})["tile_size"] = int(env_size)
    if env_zoom := os.environ.get("HEATMAP_MAX_ZOOM"):
        config_data.setdefault("tiles", {})["max_zoom"] = int(env_zoom)
    if env_cap := os.environ.get("HEATMAP_NODE_CAPACITY"):
        config_data.setdefault("tiles", {})["node_capacity"] = int(env_cap)

    # Rendering settings
    if env_scale := os.environ.get("HEATMAP_COLOR_SCALE"):
        config_data.setdefault("rendering", {})["scale"] = env_scale
    if env_sat := os.environ.get("HEATMAP_SATURATION_COUNT"):
        config_data.setdefault("rendering", {})["saturation_count"] = int(env_sat)

    # Server settings (container platforms use PORT)
    if env_port := os.environ.get("PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)
    elif env_port := os.environ.get("HEATMAP_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("HEATMAP_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if os.environ.get("DEBUG") == "1":
        config_data.setdefault("logging", {})["level"] = "DEBUG"


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
