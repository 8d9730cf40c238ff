"""
Top-tracks index for playlist-exporter.

A "top tracks" playlist is any playlist whose name contains the configured
pattern, compared case-insensitively after typographic quotes have been
replaced by their ASCII forms (Spotify's own yearly playlists are titled
with U+2019, while users type the pattern with a plain apostrophe).

The index maps track ID to TrackIdentity for every track found in those
playlists. It is built once per run and only read afterwards.
"""

from typing import Iterable

from playlist_exporter.core.logger import get_logger
from playlist_exporter.spotify.client import CatalogClient
from playlist_exporter.spotify.models import PlaylistRecord, TrackIdentity
from playlist_exporter.spotify.pagination import ErrorPolicy

logger = get_logger(__name__)


TopTracksIndex = dict[str, TrackIdentity]

# Left/right single and double quotation marks
_QUOTE_TABLE = str.maketrans({
    "\u2018": "'",
    "\u2019": "'",
    "\u201c": '"',
    "\u201d": '"',
})


def normalize_quotes(text: str) -> str:
    """Replace typographic quotes with ASCII quotes."""
    return text.translate(_QUOTE_TABLE)


def normalize_playlist_name(name: str) -> str:
    """Lowercase a playlist name, then replace typographic quotes."""
    return normalize_quotes(name.lower())


def matches_top_tracks_pattern(name: str, pattern: str) -> bool:
    """
    Check whether a playlist name marks a top-tracks playlist.

    Examples:
        matches_top_tracks_pattern("Your Top Songs 2023", "top songs") -> True
        matches_top_tracks_pattern("Today’s Top Hits", "today's") -> True
    """
    return pattern.lower() in normalize_playlist_name(name)


def build_top_tracks_index(
    client: CatalogClient,
    playlists: Iterable[PlaylistRecord],
    pattern: str,
    page_size: int = 100
) -> TopTracksIndex:
    """
    Collect the tracks of every playlist whose name matches the pattern.

    Args:
        client: Catalog client used to read playlist tracks.
        playlists: All playlists of the user, in listing order.
        pattern: Substring identifying top-tracks playlists.
        page_size: Items requested per page.

    Returns:
        Mapping of track ID to TrackIdentity. A track present in several
        matching playlists appears once (last occurrence wins).

    Note:
        A playlist whose tracks cannot be fetched contributes the tracks
        read before the failure; the error is logged and the next
        playlist is processed.
    """
    index: TopTracksIndex = {}
    scanned = 0

    for playlist in playlists:
        if not matches_top_tracks_pattern(playlist.name, pattern):
            continue

        scanned += 1
        logger.info(f"Processing top tracks playlist: {playlist.name}")
        for track in client.iter_playlist_tracks(
            playlist, page_size=page_size, policy=ErrorPolicy.SKIP
        ):
            identity = TrackIdentity.from_spotify_api(track)
            index[identity.track_id] = identity

    if scanned == 0:
        logger.warning(f"No playlist name contains the top tracks pattern '{pattern}'")
    logger.info(
        f"Found {len(index)} unique tracks in {scanned} top tracks playlists"
    )
    return index
