"""
playlist-exporter: Export Spotify playlists and flag tracks missing from your top tracks.

Logs in to Spotify through a local OAuth2 callback, reads every playlist of
the user, and writes one CSV row per track. A track is flagged when it was
released inside a configured year window but does not appear in any of the
user's "top tracks" playlists.

Architecture:
    The export runs in strictly ordered stages:

    auth/       Reclaim the callback port, run the OAuth2 handshake and
                hand over exactly one authenticated spotipy client
    spotify/    Page through playlists and playlist tracks
    classify/   Build the top-tracks index, then classify every track
    output/     Write user_playlists.csv and other_playlists.csv

Modules:
    core/       - Configuration, logging, exceptions
    auth/       - Port reclamation and authorization handshake
    spotify/    - Spotify API wrapper, pagination, data models
    classify/   - Top-tracks index, classification, export pipeline
    output/     - CSV report writer
    cli.py      - Command-line interface

Usage:
    Command Line:
        playlist-export
        playlist-export --include-others --output-dir ~/exports

    Python API:
        from playlist_exporter.core import load_config, setup_logging
        from playlist_exporter.auth import authenticate
        from playlist_exporter.spotify import CatalogClient
        from playlist_exporter.classify import run_export

        config = load_config()
        setup_logging(config.logging)

        spotify = authenticate(config.spotify)
        summary = run_export(CatalogClient(spotify), config)

Configuration:
    Read from the environment (SPOTIFY_* variables, optionally loaded from
    a .env file) and an optional config.yaml:

        SPOTIFY_CLIENT_ID=...
        SPOTIFY_CLIENT_SECRET=...
        SPOTIFY_REDIRECT_URI=http://localhost:8081/callback
        SPOTIFY_PORT=8081
        SPOTIFY_TOP_TRACKS_PATTERN=your top songs
        SPOTIFY_START_YEAR=2016
        SPOTIFY_END_YEAR=2024

Dependencies:
    - spotipy: Spotify API client and OAuth2 manager
    - click / rich-click: CLI framework and colors
    - python-dotenv: .env loading
    - pyyaml: Configuration file parsing
    - tqdm: Progress bars
    - colorama: Colored console output on Windows
    - requests: HTTP errors raised through spotipy
"""

__version__ = "0.1.0"
__author__ = "playlist-exporter"
__license__ = "MIT"

# Convenience imports for common usage
from playlist_exporter.core import (
    AuthError,
    AuthTimeoutError,
    Config,
    ConfigError,
    PaginationError,
    PlaylistExporterError,
    PortInUseError,
    ReportError,
    SpotifyError,
    StateMismatchError,
    get_logger,
    load_config,
    setup_logging,
)
from playlist_exporter.auth import authenticate
from playlist_exporter.classify import run_export
from playlist_exporter.spotify import CatalogClient, ClassifiedTrack, PlaylistRecord

__all__ = [
    # Version
    "__version__",
    # Core
    "Config",
    "load_config",
    "setup_logging",
    "get_logger",
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
    # Workflow
    "authenticate",
    "run_export",
    "CatalogClient",
    # Models
    "PlaylistRecord",
    "ClassifiedTrack",
]
