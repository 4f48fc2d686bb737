"""
dash-wallclock Configuration
============================

This module handles configuration loading for the wall clock streamer.

Configuration Sources (in order of precedence):
    1. Command line options (applied by main)
    2. Environment variables
    3. config.yaml file
    4. Default values (lowest priority)

Environment Variable Mapping:
    WALLCLOCK_WIDTH         -> video.width
    WALLCLOCK_HEIGHT        -> video.height
    WALLCLOCK_FPS           -> video.fps
    WALLCLOCK_MAX_DURATION  -> stream.max_duration_seconds (-1 = unbounded)
    WALLCLOCK_OUTPUT_DIR    -> stream.output_dir
    WALLCLOCK_FFMPEG        -> transcoder.binary
    WALLCLOCK_PORT          -> server.port (-1 = disabled)
    WALLCLOCK_LOG_LEVEL     -> logging.level

Example:
    from dash_wallclock.config import load_config, setup_logging

    settings = load_config()
    setup_logging(settings)
    print(settings.video.fps)
"""

import os
import logging
from pathlib import Path
from typing import List, Optional

import yaml
from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


# Sentinel accepted from the command line and environment
DISABLED = -1


# =============================================================================
# Configuration Models
# =============================================================================

class VideoConfig(BaseModel):
    """Rendered video configuration."""

    width: int = Field(default=1920, ge=16, description="Frame width in pixels")
    height: int = Field(default=1080, ge=16, description="Frame height in pixels")
    fps: int = Field(default=30, ge=1, le=240, description="Frames per second")
    jpeg_quality: int = Field(default=90, ge=1, le=100, description="JPEG quality")


class StreamConfig(BaseModel):
    """Streaming pipeline configuration."""

    output_dir: str = Field(
        default="./tmp",
        description="Working directory for the pipe, manifest and segments",
    )
    max_duration_seconds: Optional[float] = Field(
        default=None,
        gt=0,
        description="End streaming after this many seconds (None = unbounded)",
    )

    @field_validator("max_duration_seconds", mode="before")
    @classmethod
    def _unbounded_sentinel(cls, value):
        if value is not None and float(value) <= DISABLED:
            return None
        return value


class TranscoderConfig(BaseModel):
    """External transcoder configuration."""

    binary: str = Field(default="ffmpeg", description="ffmpeg executable")
    segment_seconds: int = Field(default=2, ge=1, description="DASH segment duration")
    window_size: int = Field(default=30, ge=1, description="Segments kept in manifest")
    update_period: int = Field(default=6, ge=1, description="Manifest update period")
    command: Optional[List[str]] = Field(
        default=None,
        description=(
            "Full command template replacing the ffmpeg defaults; "
            "placeholders: {input}, {output}, {fps}, {remove_at_exit}"
        ),
    )


class ServerConfig(BaseModel):
    """File server configuration."""

    host: str = Field(default="0.0.0.0", description="Bind host")
    port: Optional[int] = Field(
        default=None,
        ge=1,
        le=65535,
        description="Serving port (None = server disabled)",
    )
    workers: int = Field(default=5, ge=1, description="Request worker pool size")

    @field_validator("port", mode="before")
    @classmethod
    def _disabled_sentinel(cls, value):
        if value is not None and int(value) <= DISABLED:
            return None
        return value


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for dash-wallclock.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    video: VideoConfig = Field(default_factory=VideoConfig)
    stream: StreamConfig = Field(default_factory=StreamConfig)
    transcoder: TranscoderConfig = Field(default_factory=TranscoderConfig)
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
    # Find config file
    if config_path is None:
        for path in (Path("config.yaml"), Path("config.yml")):
            if path.exists():
                config_path = str(path)
                break

    # Load from YAML if exists
    config_data = {}
    if config_path and Path(config_path).exists():
        logger.info(f"Loading config from: {config_path}")
        with open(config_path, "r") as f:
            config_data = yaml.safe_load(f) or {}
    elif config_path:
        logger.warning(f"Config file not found: {config_path}, using defaults")

    # Apply environment variable overrides
    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Video settings
    if env_width := os.environ.get("WALLCLOCK_WIDTH"):
        config_data.setdefault("video", {})["width"] = int(env_width)
    if env_height := os.environ.get("WALLCLOCK_HEIGHT"):
        config_data.setdefault("video", {})["height"] = int(env_height)
    if env_fps := os.environ.get("WALLCLOCK_FPS"):
        config_data.setdefault("video", {})["fps"] = int(env_fps)

    # Stream settings
    if env_msd := os.environ.get("WALLCLOCK_MAX_DURATION"):
        config_data.setdefault("stream", {})["max_duration_seconds"] = float(env_msd)
    if env_dir := os.environ.get("WALLCLOCK_OUTPUT_DIR"):
        config_data.setdefault("stream", {})["output_dir"] = env_dir

    # Transcoder settings
    if env_ffmpeg := os.environ.get("WALLCLOCK_FFMPEG"):
        config_data.setdefault("transcoder", {})["binary"] = env_ffmpeg

    # Server settings
    if env_port := os.environ.get("WALLCLOCK_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("WALLCLOCK_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log


def setup_logging(settings: Settings) -> None:
    """Configure logging based on settings."""
    log_level = getattr(logging, settings.logging.level.upper(), logging.INFO)

    if settings.logging.format == "json":
        log_format = '{"time": "%(asctime)s", "level": "%(levelname)s", "module": "%(name)s", "thread": "%(threadName)s", "message": "%(message)s"}'
    else:
        log_format = "%(asctime)s - %(name)s - %(threadName)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        datefmt="%Y-%m-%dT%H:%M:%S",
    )
