"""
Core module for playlist-exporter.

This module provides the foundational components used throughout the application:
    - exceptions: Custom exception classes for error handling
    - config: Configuration loading and validation
    - logger: Console and rotating file logging

Usage:
    from playlist_exporter.core import (
        Config, load_config,
        setup_logging, get_logger,
        PlaylistExporterError, ConfigError
    )
"""

from playlist_exporter.core.config import (
    Config,
    FilterConfig,
    LoggingConfig,
    OutputConfig,
    PaginationConfig,
    SpotifyConfig,
    load_config,
)
from playlist_exporter.core.exceptions import (
    AuthError,
    AuthTimeoutError,
    ConfigError,
    PaginationError,
    PlaylistExporterError,
    PortInUseError,
    ReportError,
    SpotifyError,
    StateMismatchError,
)
from playlist_exporter.core.logger import (
    get_logger,
    parse_size,
    setup_logging,
    shutdown_logging,
)

__all__ = [
    # Config
    "Config",
    "SpotifyConfig",
    "FilterConfig",
    "PaginationConfig",
    "OutputConfig",
    "LoggingConfig",
    "load_config",
    # Exceptions
    "PlaylistExporterError",
    "ConfigError",
    "PortInUseError",
    "AuthError",
    "StateMismatchError",
    "AuthTimeoutError",
    "SpotifyError",
    "PaginationError",
    "ReportError",
    # Logger
    "setup_logging",
    "get_logger",
    "parse_size",
    "shutdown_logging",
]
