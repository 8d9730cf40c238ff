"""
Export pipeline for playlist-exporter.

Runs the stages that follow a successful authorization, strictly in order:

    1. Look up the authorized user (ownership key)
    2. Enumerate all playlists (any failure aborts the run)
    3. Build the top-tracks index from matching playlists
    4. Classify the tracks of every reported playlist
    5. Hand the partitioned rows to the report writer

Stage 3 completes before stage 4 starts, so the classifier always reads
a finished index.
"""

from dataclasses import dataclass, field
from pathlib import Path

from playlist_exporter.classify.classifier import ClassificationResult, PlaylistClassifier
from playlist_exporter.classify.top_tracks import TopTracksIndex, build_top_tracks_index
from playlist_exporter.core.config import Config
from playlist_exporter.core.logger import get_logger
from playlist_exporter.output.csv_report import ReportWriter
from playlist_exporter.spotify.client import CatalogClient

logger = get_logger(__name__)


@dataclass
class ExportSummary:
    """
    Outcome of a completed export.

    Attributes:
        user_id: Spotify ID of the authorized user.
        playlist_count: Playlists found in the listing.
        top_tracks_count: Unique tracks in the top-tracks index.
        result: Classified rows.
        report_paths: Files written by the report writer.
    """
    user_id: str
    playlist_count: int
    top_tracks_count: int
    result: ClassificationResult
    report_paths: list[Path] = field(default_factory=list)


def run_export(
    client: CatalogClient,
    config: Config,
    writer: ReportWriter | None = None
) -> ExportSummary:
    """
    Run the whole export for an authorized client.

    Args:
        client: Catalog client built from the handshake's spotipy client.
        config: Loaded application configuration.
        writer: Report writer. Defaults to one writing to config.output.

    Returns:
        ExportSummary describing what was exported.

    Raises:
        SpotifyError: If the current user cannot be read.
        PaginationError: If playlist enumeration fails.
        ReportError: If a report file cannot be written.
    """
    user = client.current_user()
    user_id = user["id"]
    logger.info(f"Fetching playlists for user: {user.get('display_name') or user_id}")

    playlists = list(client.iter_playlists(page_size=config.pagination.playlist_page_size))
    logger.info(f"Found {len(playlists)} total playlists")

    logger.info("Collecting tracks from top tracks playlists...")
    top_tracks: TopTracksIndex = build_top_tracks_index(
        client,
        playlists,
        config.filter.top_tracks_pattern,
        page_size=config.pagination.track_page_size,
    )

    classifier = PlaylistClassifier(
        client,
        top_tracks,
        start_year=config.filter.start_year,
        end_year=config.filter.end_year,
        include_other_playlists=config.filter.include_other_playlists,
        page_size=config.pagination.track_page_size,
    )
    result = classifier.classify(playlists, user_id)

    if writer is None:
        writer = ReportWriter(config.output.directory, overwrite=config.output.overwrite_files)
    report_paths = writer.write_reports(result)

    return ExportSummary(
        user_id=user_id,
        playlist_count=len(playlists),
        top_tracks_count=len(top_tracks),
        result=result,
        report_paths=report_paths,
    )
