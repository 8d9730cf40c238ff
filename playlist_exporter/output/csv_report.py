"""
CSV report writer for playlist-exporter.

Writes the classified rows into two files in the output directory:

    user_playlists.csv      Tracks from playlists the user owns (always written)
    other_playlists.csv     Tracks from other users' playlists (only if any)

Files start with a UTF-8 byte order mark so spreadsheet applications
detect the encoding, followed by the header row:

    Playlist, Track Name, Artist(s), Album, Release Date, Release Year,
    NotInTopTrackPlaylist
"""

import csv
from pathlib import Path
from typing import TYPE_CHECKING, Sequence

from playlist_exporter.core.exceptions import ReportError
from playlist_exporter.core.logger import get_logger
from playlist_exporter.spotify.models import ClassifiedTrack

if TYPE_CHECKING:
    from playlist_exporter.classify.classifier import ClassificationResult

logger = get_logger(__name__)


USER_REPORT_FILENAME = "user_playlists.csv"
OTHER_REPORT_FILENAME = "other_playlists.csv"

REPORT_HEADERS = [
    "Playlist",
    "Track Name",
    "Artist(s)",
    "Album",
    "Release Date",
    "Release Year",
    "NotInTopTrackPlaylist",
]

# Log a progress line every N rows
PROGRESS_INTERVAL = 100


class ReportWriter:
    """
    Writes ClassificationResult partitions to CSV files.

    Attributes:
        output_dir: Directory receiving the reports (created if missing).
        overwrite: Replace existing reports. If False, an existing report
                   raises ReportError and nothing is written to it.
    """

    def __init__(self, output_dir: Path, overwrite: bool = True) -> None:
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite

        try:
            self.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ReportError(
                f"Failed to create output directory: {e}",
                details={"output_dir": str(self.output_dir)}
            ) from e

    def write_reports(self, result: "ClassificationResult") -> list[Path]:
        """
        Write the user report and, if it has rows, the other report.

        Returns:
            Paths of the files written, user report first.

        Raises:
            ReportError: If a file exists with overwrite disabled, or
                         cannot be written.
        """
        paths = [self.write_csv(USER_REPORT_FILENAME, result.user)]

        if result.other:
            paths.append(self.write_csv(OTHER_REPORT_FILENAME, result.other))

        return paths

    def write_csv(self, filename: str, tracks: Sequence[ClassifiedTrack]) -> Path:
        """
        Write one report file.

        Args:
            filename: File name inside output_dir.
            tracks: Rows in report order.

        Returns:
            Path of the written file.
        """
        path = self.output_dir / filename

        if path.exists():
            if not self.overwrite:
                raise ReportError(
                    f"File {filename} already exists and overwrite is disabled",
                    details={"file_path": str(path)}
                )
            logger.info(f"File {filename} already exists. Replacing it...")

        total = len(tracks)
        logger.info(f"Writing {total} tracks to {filename}...")

        try:
            # utf-8-sig writes the BOM
            with open(path, "w", newline="", encoding="utf-8-sig") as f:
                writer = csv.writer(f)
                writer.writerow(REPORT_HEADERS)

                for i, track in enumerate(tracks, start=1):
                    writer.writerow(track.to_row())
                    if i % PROGRESS_INTERVAL == 0:
                        logger.debug(f"Progress: {i}/{total} tracks written to {filename}")
        except OSError as e:
            raise ReportError(
                f"Failed to write {filename}: {e}",
                details={"file_path": str(path), "original_error": str(e)}
            ) from e

        logger.info(f"Successfully wrote {total} tracks to {filename}")
        return path
