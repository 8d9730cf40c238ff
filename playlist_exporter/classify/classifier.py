"""
Track classification for playlist-exporter.

Every track of every reported playlist becomes a ClassifiedTrack row.
A row is flagged "TRUE" in the NotInTopTrackPlaylist column when:

    1. its album release year is known,
    2. start_year <= release year <= end_year, and
    3. its track ID is not in the top-tracks index.

Years are compared as strings, which is correct because all of them are
4-digit values.

Playlists are split by owner: playlists owned by the current user go to
the "user" partition, the rest to the "other" partition. Other users'
playlists are not fetched at all unless include_other_playlists is set.
"""

from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from tqdm import tqdm

from playlist_exporter.core.logger import get_logger
from playlist_exporter.spotify.client import CatalogClient
from playlist_exporter.spotify.models import (
    MISSING_FLAG,
    ClassifiedTrack,
    PlaylistRecord,
    extract_release_year,
    join_artist_names,
)
from playlist_exporter.spotify.pagination import ErrorPolicy

logger = get_logger(__name__)


@dataclass
class ClassificationResult:
    """
    Classified rows partitioned by playlist ownership.

    Attributes:
        user: Rows from playlists owned by the current user.
        other: Rows from playlists owned by other users (empty unless enabled).
        skipped_playlists: Names of other users' playlists that were not fetched.
    """
    user: list[ClassifiedTrack] = field(default_factory=list)
    other: list[ClassifiedTrack] = field(default_factory=list)
    skipped_playlists: list[str] = field(default_factory=list)

    @property
    def missing_count(self) -> int:
        return sum(1 for row in (*self.user, *self.other) if row.is_missing)


def missing_flag(
    track_id: str,
    release_year: str,
    top_tracks: Mapping[str, Any],
    start_year: str,
    end_year: str
) -> str:
    """
    Compute the NotInTopTrackPlaylist value for one track.

    Returns:
        "TRUE" if release_year is non-empty, inside [start_year, end_year]
        and track_id is not a key of top_tracks; "" otherwise.
    """
    if not release_year:
        return ""
    if not start_year <= release_year <= end_year:
        return ""
    if track_id in top_tracks:
        return ""
    return MISSING_FLAG


def classify_track(
    playlist_name: str,
    track_data: dict[str, Any],
    top_tracks: Mapping[str, Any],
    start_year: str,
    end_year: str
) -> ClassifiedTrack:
    """
    Build the report row for one track object.

    Args:
        playlist_name: Playlist the track was found in.
        track_data: Track object from the playlist items listing.
        top_tracks: Top-tracks index (only key membership is used).
        start_year: Inclusive start of the year window.
        end_year: Inclusive end of the year window.
    """
    album = track_data.get("album") or {}
    release_date = album.get("release_date") or ""
    release_year = extract_release_year(release_date)

    return ClassifiedTrack(
        playlist_name=playlist_name,
        track_name=track_data.get("name") or "",
        artists=join_artist_names(track_data),
        album=album.get("name") or "",
        release_date=release_date,
        release_year=release_year,
        not_in_top_tracks=missing_flag(
            track_data.get("id") or "", release_year, top_tracks, start_year, end_year
        ),
    )


class PlaylistClassifier:
    """
    Walks playlists and classifies their tracks against a top-tracks index.

    The index must be fully built before the classifier is created; it is
    treated as a read-only snapshot.

    Attributes:
        _client: Catalog client used to read playlist tracks.
        _top_tracks: Top-tracks index.
        _start_year / _end_year: Inclusive release-year window.
        _include_other_playlists: Whether other users' playlists are read.
        _page_size: Items requested per page.
    """

    def __init__(
        self,
        client: CatalogClient,
        top_tracks: Mapping[str, Any],
        start_year: str,
        end_year: str,
        include_other_playlists: bool = False,
        page_size: int = 100
    ) -> None:
        self._client = client
        self._top_tracks = top_tracks
        self._start_year = start_year
        self._end_year = end_year
        self._include_other_playlists = include_other_playlists
        self._page_size = page_size

    def classify(
        self,
        playlists: Iterable[PlaylistRecord],
        current_user_id: str
    ) -> ClassificationResult:
        """
        Classify the tracks of every playlist, partitioned by owner.

        Args:
            playlists: Playlists in listing order.
            current_user_id: Spotify ID of the authorized user.

        Returns:
            ClassificationResult with rows in playlist order, then track order.

        Note:
            A playlist whose track listing fails keeps the rows read before
            the failure; the error is logged and the run continues.
        """
        result = ClassificationResult()
        playlists = list(playlists)

        for playlist in tqdm(
            playlists, desc="Playlists", unit="playlist", leave=False, disable=None
        ):
            owned = playlist.is_owned_by(current_user_id)

            if not owned and not self._include_other_playlists:
                logger.info(
                    f"Skipping playlist '{playlist.name}' (Created by: {playlist.owner_name})"
                )
                result.skipped_playlists.append(playlist.name)
                continue

            logger.info(
                f"Processing playlist: {playlist.name} (Created by: {playlist.owner_name})"
            )
            rows = self.classify_playlist(playlist)

            if owned:
                result.user.extend(rows)
            else:
                result.other.extend(rows)
            logger.info(f"Completed playlist: {playlist.name} ({len(rows)} tracks)")

        logger.info(
            f"Processing complete. Found {len(result.user)} tracks in your playlists "
            f"and {len(result.other)} tracks in other playlists"
        )
        return result

    def classify_playlist(self, playlist: PlaylistRecord) -> list[ClassifiedTrack]:
        """Classify every readable track of one playlist."""
        return [
            classify_track(
                playlist.name, track, self._top_tracks, self._start_year, self._end_year
            )
            for track in self._client.iter_playlist_tracks(
                playlist, page_size=self._page_size, policy=ErrorPolicy.SKIP
            )
        ]
