"""
QuickRewind Configuration
=========================

This module handles configuration loading for the capture core.

Configuration Sources (in order of precedence):
    1. Environment variables (highest priority)
    2. config.yaml file
    3. Default values (lowest priority)

Environment Variable Mapping:
    QUICKREWIND_OUTPUT_FOLDER         -> capture.output_folder
    QUICKREWIND_BUFFER_SECONDS        -> capture.buffer_seconds
    QUICKREWIND_RECORDING_FPS         -> capture.recording_fps
    QUICKREWIND_MAX_RECORDING_MINUTES -> capture.max_recording_minutes
    QUICKREWIND_PORT                  -> server.port
    QUICKREWIND_LOG_LEVEL             -> logging.level
    QUICKREWIND_LOG_FORMAT            -> logging.format

Capture limits are clamped into range rather than rejected, so a hand-edited
config file with buffer_seconds: 300 still starts with a 60 second buffer.

Example:
    from quickrewind.config import settings

    print(settings.capture.output_folder)
    print(settings.capture.buffer_seconds)
"""

import os
import logging
from pathlib import Path
from typing import Optional

import yaml
from pydantic import BaseModel, Field, field_validator


logger = logging.getLogger(__name__)


# =============================================================================
# Limits
# =============================================================================

BUFFER_SECONDS_RANGE = (10, 60)
RECORDING_FPS_RANGE = (5, 30)
MAX_RECORDING_MINUTES_RANGE = (1, 15)


def _clamp(value: int, bounds: tuple) -> int:
    low, high = bounds
    return max(low, min(high, value))


def _default_output_folder() -> str:
    return str(Path.home() / "QuickRewind")


# =============================================================================
# Configuration Models
# =============================================================================

class CaptureConfig(BaseModel):
    """
    Capture and export configuration.

    Read by the scheduler at construction only. To apply new values,
    build a new scheduler (see QuickRewindService.reconfigure).
    """

    output_folder: str = Field(
        default_factory=_default_output_folder,
        description="Folder exported GIFs and fallbacks are written to",
    )
    buffer_seconds: int = Field(
        default=30,
        description="Length of the rolling buffer in seconds (10-60)",
    )
    recording_fps: int = Field(
        default=10,
        description="Frame rate of active recording (5-30)",
    )
    max_recording_minutes: int = Field(
        default=5,
        description="Hard ceiling on active recording length (1-15)",
    )
    rolling_scale: float = Field(
        default=0.5,
        gt=0,
        le=1.0,
        description="Downscale factor for always-on rolling capture",
    )
    recording_scale: float = Field(
        default=0.8,
        gt=0,
        le=1.0,
        description="Downscale factor for active recording",
    )

    @field_validator("output_folder")
    @classmethod
    def _expand_output_folder(cls, value: str) -> str:
        return os.path.expanduser(value)

    @field_validator("buffer_seconds")
    @classmethod
    def _clamp_buffer_seconds(cls, value: int) -> int:
        return _clamp(value, BUFFER_SECONDS_RANGE)

    @field_validator("recording_fps")
    @classmethod
    def _clamp_recording_fps(cls, value: int) -> int:
        return _clamp(value, RECORDING_FPS_RANGE)

    @field_validator("max_recording_minutes")
    @classmethod
    def _clamp_max_recording_minutes(cls, value: int) -> int:
        return _clamp(value, MAX_RECORDING_MINUTES_RANGE)


class ServerConfig(BaseModel):
    """Local control API configuration."""

    host: str = Field(default="127.0.0.1", description="Bind host")
    port: int = Field(default=8765, ge=1, le=65535, description="Bind port")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = Field(default="INFO", description="Log level")
    format: str = Field(default="text", description="Log format: json or text")


class Settings(BaseModel):
    """
    Main settings class for QuickRewind.

    Loads configuration from YAML file and environment variables.
    Environment variables take precedence over file values.
    """

    capture: CaptureConfig = Field(default_factory=CaptureConfig)
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
            Path.home() / ".quickrewind" / "config.yaml",
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
        logger.debug("No config file found, using defaults and environment variables")

    _apply_env_overrides(config_data)

    return Settings.model_validate(config_data)


def _apply_env_overrides(config_data: dict) -> None:
    """Apply environment variable overrides to config data."""

    # Capture settings
    if env_folder := os.environ.get("QUICKREWIND_OUTPUT_FOLDER"):
        config_data.setdefault("capture", {})["output_folder"] = env_folder
    if env_buffer := os.environ.get("QUICKREWIND_BUFFER_SECONDS"):
        config_data.setdefault("capture", {})["buffer_seconds"] = int(env_buffer)
    if env_fps := os.environ.get("QUICKREWIND_RECORDING_FPS"):
        config_data.setdefault("capture", {})["recording_fps"] = int(env_fps)
    if env_minutes := os.environ.get("QUICKREWIND_MAX_RECORDING_MINUTES"):
        config_data.setdefault("capture", {})["max_recording_minutes"] = int(env_minutes)

    # Server settings
    if env_port := os.environ.get("QUICKREWIND_PORT"):
        config_data.setdefault("server", {})["port"] = int(env_port)

    # Logging settings
    if env_log := os.environ.get("QUICKREWIND_LOG_LEVEL"):
        config_data.setdefault("logging", {})["level"] = env_log
    if env_format := os.environ.get("QUICKREWIND_LOG_FORMAT"):
        config_data.setdefault("logging", {})["format"] = env_format


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


# =============================================================================
# Global Settings Instance
# =============================================================================

# Global settings instance - loaded on import
settings = load_config()
setup_logging(settings)
