"""
Configuration management for playlist-exporter.

This module handles loading, validating, and providing access to the
application configuration.

Configuration Sources (highest precedence first):
    1. Process environment, including values loaded from a .env file
    2. Optional YAML file (config.yaml in the working directory, or --config)
    3. Built-in defaults

Environment variables use the SPOTIFY_ prefix. The YAML file is a flat
mapping using the same names in lowercase without the prefix.

Example .env:
    SPOTIFY_CLIENT_ID=your_client_id_here
    SPOTIFY_CLIENT_SECRET=your_client_secret_here
    SPOTIFY_REDIRECT_URI=http://localhost:8081/callback
    SPOTIFY_PORT=8081
    SPOTIFY_TOP_TRACKS_PATTERN=your top songs
    SPOTIFY_START_YEAR=2020
    SPOTIFY_END_YEAR=2025

Example config.yaml:
    top_tracks_pattern: "your top songs"
    start_year: "2020"
    end_year: "2025"
    include_other_playlists: true
    output_dir: "~/Documents/playlists"
"""

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping
from urllib.parse import urlparse

import yaml
from dotenv import load_dotenv

from playlist_exporter.core.exceptions import ConfigError
from playlist_exporter.core.logger import get_logger, parse_size


logger = get_logger(__name__)

# Default YAML file name (looked up in current working directory)
CONFIG_FILENAME = "config.yaml"
ENV_PREFIX = "SPOTIFY_"

REQUIRED_KEYS = (
    "client_id",
    "client_secret",
    "redirect_uri",
    "port",
    "top_tracks_pattern",
    "start_year",
    "end_year",
)

DEFAULTS: dict[str, str] = {
    "include_other_playlists": "false",
    "overwrite_files": "",
    "output_dir": "playlists",
    "log_file": "logs/spotify-analysis.log",
    "log_rotate_size": "10MB",
    "log_keep_files": "7",
    "playlist_page_size": "50",
    "track_page_size": "100",
    "auth_timeout": "300",
}

# Provider-imposed maxima for a single page
MAX_PLAYLIST_PAGE_SIZE = 50
MAX_TRACK_PAGE_SIZE = 100


@dataclass(frozen=True)
class SpotifyConfig:
    """
    Spotify application credentials and callback listener settings.

    Attributes:
        client_id: Spotify application client ID.
        client_secret: Spotify application client secret.
        redirect_uri: Redirect URI registered in the Developer Dashboard.
                      Must point at this machine's callback listener.
        port: Port the callback listener binds to.
        auth_timeout: Seconds to wait for the authorization callback.
    """
    client_id: str
    client_secret: str
    redirect_uri: str
    port: int
    auth_timeout: float = 300.0

    @property
    def callback_path(self) -> str:
        """Path component of the redirect URI the listener must serve."""
        return urlparse(self.redirect_uri).path or "/callback"


@dataclass(frozen=True)
class FilterConfig:
    """
    Classification settings.

    Attributes:
        top_tracks_pattern: Substring identifying top-tracks playlists.
        start_year: Inclusive start of the release-year window (4 digits).
        end_year: Inclusive end of the release-year window (4 digits).
        include_other_playlists: Whether playlists owned by other users
                                 are fetched and reported.
    """
    top_tracks_pattern: str
    start_year: str
    end_year: str
    include_other_playlists: bool = False


@dataclass(frozen=True)
class PaginationConfig:
    """
    Page sizes for the remote listing operations.

    Attributes:
        playlist_page_size: Playlists requested per page (provider max 50).
        track_page_size: Playlist items requested per page (provider max 100).
    """
    playlist_page_size: int = MAX_PLAYLIST_PAGE_SIZE
    track_page_size: int = MAX_TRACK_PAGE_SIZE


@dataclass(frozen=True)
class OutputConfig:
    """
    Report output settings.

    Attributes:
        directory: Directory receiving the CSV reports.
        overwrite_files: Replace existing reports instead of failing.
    """
    directory: Path
    overwrite_files: bool = True


@dataclass(frozen=True)
class LoggingConfig:
    """
    Log file settings.

    Attributes:
        log_file: Path of the active log file.
        rotate_size: Size string ("10MB") after which the file is rotated.
        keep_files: Number of rotated files kept on disk.
    """
    log_file: Path
    rotate_size: str = "10MB"
    keep_files: int = 7


@dataclass(frozen=True)
class Config:
    """
    Complete application configuration.

    Created by load_config() and treated as immutable (frozen dataclass).

    Example:
        config = load_config()
        print(f"Listening on port {config.spotify.port}")
        print(f"Year window: {config.filter.start_year}-{config.filter.end_year}")
    """
    spotify: SpotifyConfig
    filter: FilterConfig
    pagination: PaginationConfig
    output: OutputConfig
    logging: LoggingConfig


def load_config(
    config_path: Path | None = None,
    env_file: Path | None = None,
    environ: Mapping[str, str] | None = None
) -> Config:
    """
    Load and validate configuration from .env, YAML and the environment.

    Args:
        config_path: Optional explicit YAML file. If None, config.yaml in
                     the current working directory is used when present.
        env_file: Optional dotenv file. If None, python-dotenv searches
                  for a .env file. A missing .env file is not an error.
        environ: Mapping to read variables from. Defaults to os.environ
                 (read after the dotenv file has been loaded into it).

    Returns:
        Config: A frozen dataclass containing all configuration values.

    Raises:
        ConfigError: If a required value is missing or any value is invalid.
    """
    if environ is None:
        if env_file is not None and not env_file.exists():
            raise ConfigError(
                f"Environment file not found: {env_file}",
                details={"file_path": str(env_file)}
            )
        load_dotenv(dotenv_path=env_file)
        environ = os.environ

    yaml_values = _load_yaml(config_path)
    raw = _merge_sources(environ, yaml_values)

    missing = [ENV_PREFIX + key.upper() for key in REQUIRED_KEYS if not raw.get(key)]
    if missing:
        raise ConfigError(
            f"Missing required settings: {', '.join(missing)}",
            details={"missing": missing}
        )

    _log_loaded_values(raw)

    spotify_config = SpotifyConfig(
        client_id=raw["client_id"],
        client_secret=raw["client_secret"],
        redirect_uri=raw["redirect_uri"],
        port=_parse_port(raw["port"]),
        auth_timeout=_parse_positive_float("auth_timeout", raw["auth_timeout"]),
    )

    start_year = _parse_year("start_year", raw["start_year"])
    end_year = _parse_year("end_year", raw["end_year"])
    if start_year > end_year:
        raise ConfigError(
            f"Start year {start_year} is after end year {end_year}",
            details={"start_year": start_year, "end_year": end_year}
        )

    filter_config = FilterConfig(
        top_tracks_pattern=raw["top_tracks_pattern"],
        start_year=start_year,
        end_year=end_year,
        include_other_playlists=raw["include_other_playlists"].lower() == "true",
    )

    pagination_config = PaginationConfig(
        playlist_page_size=_parse_page_size(
            "playlist_page_size", raw["playlist_page_size"], MAX_PLAYLIST_PAGE_SIZE
        ),
        track_page_size=_parse_page_size(
            "track_page_size", raw["track_page_size"], MAX_TRACK_PAGE_SIZE
        ),
    )

    output_config = OutputConfig(
        directory=Path(raw["output_dir"]).expanduser(),
        overwrite_files=_parse_overwrite(raw["overwrite_files"]),
    )

    logging_config = _parse_logging_config(raw)

    return Config(
        spotify=spotify_config,
        filter=filter_config,
        pagination=pagination_config,
        output=output_config,
        logging=logging_config,
    )


def _load_yaml(config_path: Path | None) -> dict[str, Any]:
    """
    Read the optional YAML file.

    An explicit path must exist; the default config.yaml is optional.

    Raises:
        ConfigError: If the file cannot be read or is not a YAML mapping.
    """
    if config_path is None:
        config_path = Path.cwd() / CONFIG_FILENAME
        if not config_path.exists():
            return {}
    elif not config_path.exists():
        raise ConfigError(
            f"Configuration file not found: {config_path}",
            details={"file_path": str(config_path)}
        )

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            content = yaml.safe_load(f)
    except IOError as e:
        raise ConfigError(
            f"Failed to read configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            f"Invalid YAML syntax in configuration file: {e}",
            details={"file_path": str(config_path), "original_error": str(e)}
        ) from e

    if content is None:
        return {}
    if not isinstance(content, dict):
        raise ConfigError(
            "Configuration file must contain a YAML dictionary",
            details={"file_path": str(config_path)}
        )

    logger.debug(f"Loaded configuration file: {config_path}")
    return content


def _merge_sources(environ: Mapping[str, str], yaml_values: dict[str, Any]) -> dict[str, str]:
    """
    Combine defaults, YAML and environment into one string-valued mapping.

    YAML booleans and numbers are converted to their string form so every
    value goes through the same parsing path as environment variables.
    """
    merged: dict[str, str] = dict(DEFAULTS)

    for key, value in yaml_values.items():
        if value is None:
            continue
        if isinstance(value, bool):
            value = "true" if value else "false"
        merged[str(key).lower()] = str(value).strip()

    for key in (*REQUIRED_KEYS, *DEFAULTS):
        env_value = environ.get(ENV_PREFIX + key.upper())
        if env_value is not None and env_value.strip():
            merged[key] = env_value.strip()

    return merged


def _log_loaded_values(raw: dict[str, str]) -> None:
    """Log configuration values, excluding credentials."""
    logger.debug("Configuration loaded:")
    for key in (
        "redirect_uri", "port", "top_tracks_pattern", "start_year", "end_year",
        "include_other_playlists", "overwrite_files", "output_dir",
        "log_file", "log_rotate_size", "log_keep_files",
    ):
        logger.debug(f"  {key}: {raw.get(key, '')}")


def _parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError as e:
        raise ConfigError(
            f"Invalid port number: {value}",
            details={"field": "SPOTIFY_PORT", "value": value}
        ) from e

    if not 1 <= port <= 65535:
        raise ConfigError(
            f"Port out of range: {port}",
            details={"field": "SPOTIFY_PORT", "value": port}
        )
    return port


def _parse_year(field: str, value: str) -> str:
    # Years are compared as strings, so they must be zero-padded 4-digit values
    if len(value) != 4 or not value.isdigit():
        raise ConfigError(
            f"'{ENV_PREFIX}{field.upper()}' must be a 4-digit year, got {value!r}",
            details={"field": field, "value": value}
        )
    return value


def _parse_page_size(field: str, value: str, maximum: int) -> int:
    try:
        size = int(value)
    except ValueError as e:
        raise ConfigError(
            f"'{ENV_PREFIX}{field.upper()}' must be an integer, got {value!r}",
            details={"field": field, "value": value}
        ) from e

    if not 1 <= size <= maximum:
        raise ConfigError(
            f"'{ENV_PREFIX}{field.upper()}' must be between 1 and {maximum}",
            details={"field": field, "value": size}
        )
    return size


def _parse_positive_float(field: str, value: str) -> float:
    try:
        number = float(value)
    except ValueError as e:
        raise ConfigError(
            f"'{ENV_PREFIX}{field.upper()}' must be a number, got {value!r}",
            details={"field": field, "value": value}
        ) from e

    if number <= 0:
        raise ConfigError(
            f"'{ENV_PREFIX}{field.upper()}' must be positive",
            details={"field": field, "value": number}
        )
    return number


def _parse_overwrite(value: str) -> bool:
    """
    Parse SPOTIFY_OVERWRITE_FILES.

    Only "true" and "false" are recognised. Anything else (including an
    unset value) falls back to overwriting, with a warning for typos.
    """
    lowered = value.lower()
    if lowered == "true":
        logger.debug("File overwriting enabled")
        return True
    if lowered == "false":
        logger.debug("File overwriting disabled")
        return False

    if value:
        logger.warning(f"SPOTIFY_OVERWRITE_FILES invalid ({value}), defaulting to true")
    return True


def _parse_logging_config(raw: dict[str, str]) -> LoggingConfig:
    rotate_size = raw["log_rotate_size"]
    try:
        parse_size(rotate_size)
    except ValueError as e:
        raise ConfigError(
            f"Invalid log rotate size: {rotate_size}",
            details={"field": "log_rotate_size", "value": rotate_size}
        ) from e

    try:
        keep_files = int(raw["log_keep_files"])
    except ValueError as e:
        raise ConfigError(
            f"Invalid log keep files value: {raw['log_keep_files']}",
            details={"field": "log_keep_files", "value": raw["log_keep_files"]}
        ) from e

    if keep_files < 0:
        raise ConfigError(
            "Log keep files must not be negative",
            details={"field": "log_keep_files", "value": keep_files}
        )

    return LoggingConfig(
        log_file=Path(raw["log_file"]).expanduser(),
        rotate_size=rotate_size,
        keep_files=keep_files,
    )
