"""
Command-line interface for playlist-exporter.

This module implements the CLI using Click, with rich-click for the
output colors.

Usage:
    playlist-export                               # Export using .env / config.yaml
    playlist-export --config settings.yaml        # Explicit YAML file
    playlist-export --env-file prod.env           # Explicit dotenv file
    playlist-export --output-dir ~/exports        # Override report directory
    playlist-export --include-others              # Also export followed playlists
    playlist-export --no-browser                  # Only print the login URL

Run sequence:
    load config -> setup logging -> install signal watcher -> handshake
    -> current user -> playlists -> top-tracks index -> classify -> reports

Exit codes:
    0    Export completed (including when single playlists were skipped)
    1    Configuration error or unexpected error
    2    Callback port could not be reclaimed or bound
    3    Authorization failed, was forged or timed out
    4    Spotify API error (user lookup, playlist enumeration)
    5    Report could not be written
    130  Interrupted (Ctrl+C or SIGTERM)
"""

import dataclasses
import signal
import sys
from pathlib import Path
from typing import Any, Callable

import rich_click as click

click.rich_click.USE_RICH_MARKUP = True
click.rich_click.STYLE_ERRORS_SUGGESTION = "magenta italic"
click.rich_click.ERRORS_SUGGESTION = ""
click.rich_click.MAX_WIDTH = 100
click.rich_click.OPTION_GROUPS = {
    "cli": [
        {
            "name": "Configuration",
            "options": ["--config", "--env-file"],
        },
        {
            "name": "Export Options",
            "options": ["--output-dir", "--include-others", "--no-browser"],
        },
        {
            "name": "Info",
            "options": ["--version", "--help"],
        },
    ],
}

from playlist_exporter import __version__
from playlist_exporter.auth import AuthSession, authenticate
from playlist_exporter.classify import ExportSummary, run_export
from playlist_exporter.core import (
    AuthError,
    AuthTimeoutError,
    Config,
    ConfigError,
    PlaylistExporterError,
    PortInUseError,
    ReportError,
    SpotifyError,
    get_logger,
    load_config,
    setup_logging,
    shutdown_logging,
)
from playlist_exporter.spotify import CatalogClient

logger = get_logger(__name__)


@click.command()
@click.option(
    "--config",
    "config_path",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<config.yaml>",
    help="YAML configuration file (default: ./config.yaml if present)"
)
@click.option(
    "--env-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    metavar="<.env>",
    help="Dotenv file with SPOTIFY_* variables (default: .env)"
)
@click.option(
    "--output-dir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    metavar="<dir>",
    help="Directory for the CSV reports (overrides SPOTIFY_OUTPUT_DIR)"
)
@click.option(
    "--include-others/--no-include-others",
    default=None,
    help="Also export playlists owned by other users"
)
@click.option(
    "--no-browser",
    is_flag=True,
    help="Do not open a browser, only print the login URL"
)
@click.version_option(__version__, "--version", prog_name="playlist-exporter")
def cli(
    config_path: Path | None,
    env_file: Path | None,
    output_dir: Path | None,
    include_others: bool | None,
    no_browser: bool
) -> None:
    """
    playlist-exporter: Find the tracks missing from your Spotify top-tracks playlists.

    Logs in to Spotify, reads all your playlists and writes one CSV row per
    track. Tracks released inside the configured year window that are not
    in any top-tracks playlist are flagged in the NotInTopTrackPlaylist
    column.

    \b
    OUTPUT:
        playlists/user_playlists.csv       Your own playlists
        playlists/other_playlists.csv      Followed playlists (--include-others)
    """
    _run_export(
        config_path=config_path,
        env_file=env_file,
        output_dir=output_dir,
        include_others=include_others,
        open_browser=not no_browser,
    )


def _run_export(
    config_path: Path | None,
    env_file: Path | None,
    output_dir: Path | None,
    include_others: bool | None,
    open_browser: bool
) -> None:
    """
    Execute the export workflow and map failures to exit codes.

    Raises:
        SystemExit: On fatal errors (with appropriate exit code).
    """
    watcher = SignalWatcher()

    try:
        config = _load_configuration(config_path, env_file, output_dir, include_others)

        setup_logging(config.logging)
        logger.info(f"playlist-exporter {__version__} starting")

        watcher.install()

        spotify = authenticate(
            config.spotify,
            open_browser=open_browser,
            on_session=watcher.watch,
        )

        summary = run_export(CatalogClient(spotify), config)
        _print_summary(summary)

        logger.info("playlist-exporter completed successfully")

    except ConfigError as e:
        click.echo(f"Configuration error: {e.message}", err=True)
        sys.exit(1)

    except PortInUseError as e:
        click.echo(f"Port error: {e.message}", err=True)
        logger.error(f"Port error: {e.message}", exc_info=True)
        sys.exit(2)

    except (AuthError, AuthTimeoutError) as e:
        click.echo(f"Authorization error: {e.message}", err=True)
        logger.error(f"Authorization error: {e.message}", exc_info=True)
        sys.exit(3)

    except SpotifyError as e:
        click.echo(f"Spotify error: {e.message}", err=True)
        if e.is_auth_error:
            click.echo("Check SPOTIFY_CLIENT_ID and SPOTIFY_CLIENT_SECRET", err=True)
        if e.is_rate_limit:
            click.echo("Spotify rate limit reached, try again later", err=True)
        logger.error(f"Spotify error: {e.message}", exc_info=True)
        sys.exit(4)

    except ReportError as e:
        click.echo(f"Report error: {e.message}", err=True)
        logger.error(f"Report error: {e.message}", exc_info=True)
        sys.exit(5)

    except PlaylistExporterError as e:
        click.echo(f"Error: {e.message}", err=True)
        logger.error(f"Error: {e.message}", exc_info=True)
        sys.exit(1)

    except KeyboardInterrupt:
        click.echo("\nInterrupted by user", err=True)
        logger.info("Interrupted by user")
        sys.exit(130)

    except Exception as e:
        click.echo(f"Unexpected error: {e}", err=True)
        logger.exception("Unexpected error")
        sys.exit(1)

    finally:
        watcher.uninstall()
        shutdown_logging()


def _load_configuration(
    config_path: Path | None,
    env_file: Path | None,
    output_dir: Path | None,
    include_others: bool | None
) -> Config:
    """
    Load configuration and apply command-line overrides.

    Raises:
        ConfigError: If configuration is invalid or missing.
    """
    config = load_config(config_path=config_path, env_file=env_file)

    if output_dir is not None:
        config = dataclasses.replace(
            config,
            output=dataclasses.replace(config.output, directory=output_dir.expanduser()),
        )
    if include_others is not None:
        config = dataclasses.replace(
            config,
            filter=dataclasses.replace(config.filter, include_other_playlists=include_others),
        )

    return config


def _print_summary(summary: ExportSummary) -> None:
    result = summary.result

    click.echo()
    click.echo(f"Playlists found:        {summary.playlist_count}")
    click.echo(f"Top tracks indexed:     {summary.top_tracks_count}")
    click.echo(f"Tracks (your lists):    {len(result.user)}")
    click.echo(f"Tracks (other lists):   {len(result.other)}")
    click.echo(f"Missing from top lists: {result.missing_count}")
    if result.skipped_playlists:
        click.echo(f"Skipped playlists:      {len(result.skipped_playlists)}")
    for path in summary.report_paths:
        click.echo(f"Report written:         {path}")


class SignalWatcher:
    """
    Closes the active AuthSession on SIGINT/SIGTERM and aborts the run.

    The listener is closed from the signal handler; the KeyboardInterrupt
    it raises then unwinds the main flow to the exit-code mapping.
    Closing is idempotent, so the normal cleanup path may close again.
    """

    SIGNALS = ("SIGINT", "SIGTERM")

    def __init__(self) -> None:
        self._session: AuthSession | None = None
        self._previous: dict[int, Any] = {}

    def watch(self, session: AuthSession) -> None:
        self._session = session

    def install(self) -> None:
        for name in self.SIGNALS:
            signum = getattr(signal, name, None)
            if signum is None:
                continue
            try:
                self._previous[signum] = signal.signal(signum, self._handle)
            except ValueError:
                # Not the main thread
                logger.debug(f"Cannot install handler for {name}")

    def uninstall(self) -> None:
        for signum, handler in self._previous.items():
            signal.signal(signum, handler)
        self._previous.clear()

    def _handle(self, signum: int, frame: Any) -> None:
        logger.warning(f"Received {signal.Signals(signum).name}, shutting down...")
        if self._session is not None:
            self._session.close()
        raise KeyboardInterrupt


def main() -> None:
    """
    Entry point for the CLI.

    This function is called when running `playlist-export` from the
    command line.
    """
    cli()


if __name__ == "__main__":
    main()
