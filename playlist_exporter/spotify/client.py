"""
Spotify catalog client for playlist-exporter.

This module wraps an authenticated spotipy.Spotify instance and exposes
only the remote operations an export needs:

    - current_user()                  Who authorized the run
    - current_user_playlists()        One page of the user's playlists
    - playlist_items()                One page of a playlist's items
    - iter_playlists()                All playlists (aborts on failure)
    - iter_playlist_tracks()          All tracks of one playlist

Every spotipy.SpotifyException is converted to SpotifyError (or
PaginationError for page fetches) at this boundary, so the rest of the
code never sees spotipy types. No call is retried.

Usage:
    client = CatalogClient(spotify)  # spotify from the auth handshake
    user = client.current_user()
    for playlist in client.iter_playlists(page_size=50):
        ...
"""

from typing import Any, Iterator

import requests
import spotipy

from playlist_exporter.core.exceptions import PaginationError, SpotifyError
from playlist_exporter.core.logger import get_logger
from playlist_exporter.spotify.models import PlaylistRecord
from playlist_exporter.spotify.pagination import ErrorPolicy, paginate_all

logger = get_logger(__name__)


class CatalogClient:
    """
    Thin error-translating wrapper around spotipy.Spotify.

    Attributes:
        _spotify: The underlying authenticated spotipy.Spotify instance.
    """

    def __init__(self, spotify_instance: spotipy.Spotify) -> None:
        self._spotify = spotify_instance

    # =========================================================================
    # User Operations
    # =========================================================================

    def current_user(self) -> dict[str, Any]:
        """
        Get the profile of the user who authorized this run.

        Returns:
            User object; 'id' is used as the ownership key.

        Raises:
            SpotifyError: On any API or network failure.
        """
        try:
            result = self._spotify.current_user()
        except spotipy.SpotifyException as e:
            raise _translate(e, "Failed to get current user", {}) from e
        except requests.exceptions.RequestException as e:
            raise SpotifyError(
                f"Failed to get current user: {e}",
                details={"original_error": str(e)}
            ) from e

        if not result or not result.get("id"):
            raise SpotifyError("Failed to get current user: empty response")
        return result

    # =========================================================================
    # Playlist Operations
    # =========================================================================

    def current_user_playlists(self, limit: int = 50, offset: int = 0) -> list[PlaylistRecord]:
        """
        Get one page of the current user's playlists.

        Args:
            limit: Maximum number of playlists to return (max 50).
            offset: Index of first playlist to return.

        Returns:
            PlaylistRecords for the page, in listing order.

        Raises:
            PaginationError: On any API or network failure.
        """
        items = self._playlist_page(limit=limit, offset=offset)
        return [PlaylistRecord.from_spotify_api(item) for item in items if item]

    def _playlist_page(self, limit: int, offset: int) -> list[dict[str, Any] | None]:
        # Raw items, nulls included, so the page length matches what was returned
        details = {"offset": offset, "limit": limit}
        try:
            response = self._spotify.current_user_playlists(limit=limit, offset=offset)
        except spotipy.SpotifyException as e:
            raise _translate(e, "Failed to get playlists", details, paginated=True) from e
        except requests.exceptions.RequestException as e:
            raise PaginationError(f"Failed to get playlists: {e}", offset, limit) from e

        return (response or {}).get("items") or []

    def playlist_items(
        self,
        playlist_id: str,
        limit: int = 100,
        offset: int = 0
    ) -> list[dict[str, Any]]:
        """
        Get one page of a playlist's items.

        Args:
            playlist_id: Spotify playlist ID.
            limit: Maximum number of items to return (max 100).
            offset: Index of first item to return.

        Returns:
            Raw playlist item objects. An item's 'track' may be None for
            tracks that are no longer available.

        Raises:
            PaginationError: On any API or network failure.
        """
        details = {"playlist_id": playlist_id, "offset": offset, "limit": limit}
        try:
            response = self._spotify.playlist_items(
                playlist_id,
                limit=limit,
                offset=offset,
                additional_types=["track"]
            )
        except spotipy.SpotifyException as e:
            raise _translate(e, "Failed to get tracks", details, paginated=True) from e
        except requests.exceptions.RequestException as e:
            raise PaginationError(
                f"Failed to get tracks: {e}", offset, limit,
                details={"playlist_id": playlist_id}
            ) from e

        return (response or {}).get("items") or []

    def iter_playlists(self, page_size: int = 50) -> Iterator[PlaylistRecord]:
        """
        Iterate over all of the current user's playlists.

        Any page failure aborts the iteration with PaginationError.
        """
        def fetch_page(offset: int, limit: int) -> list[dict[str, Any] | None]:
            return self._playlist_page(limit=limit, offset=offset)

        for item in paginate_all(
            fetch_page,
            limit=page_size,
            policy=ErrorPolicy.ABORT,
            description="playlists"
        ):
            if item:
                yield PlaylistRecord.from_spotify_api(item)

    def iter_playlist_tracks(
        self,
        playlist: PlaylistRecord,
        page_size: int = 100,
        policy: ErrorPolicy = ErrorPolicy.SKIP
    ) -> Iterator[dict[str, Any]]:
        """
        Iterate over the track objects of one playlist.

        Args:
            playlist: Playlist to read.
            page_size: Items requested per page (max 100).
            policy: What to do when a page fails. SKIP (default) logs the
                    failure and ends the iteration for this playlist.

        Yields:
            Track objects (the 'track' field of each playlist item).
            Items without a track are skipped.
        """
        def fetch_page(offset: int, limit: int) -> list[dict[str, Any]]:
            return self.playlist_items(playlist.playlist_id, limit=limit, offset=offset)

        skipped = 0
        for item in paginate_all(
            fetch_page,
            limit=page_size,
            policy=policy,
            description=f"tracks of playlist '{playlist.name}'"
        ):
            track = item.get("track") if item else None
            if not track:
                skipped += 1
                continue
            yield track

        if skipped:
            logger.debug(f"Skipped {skipped} unavailable items in playlist '{playlist.name}'")


def _translate(
    error: spotipy.SpotifyException,
    message: str,
    details: dict[str, Any],
    paginated: bool = False
) -> SpotifyError:
    """
    Convert a spotipy exception into SpotifyError or PaginationError.

    HTTP 429 marks the error as a rate limit and 401 as an auth error.
    """
    is_rate_limit = error.http_status == 429
    is_auth_error = error.http_status == 401
    full_details = {**details, "http_status": error.http_status, "original_error": str(error)}
    full_message = f"{message}: {error.msg}" if error.msg else message

    if paginated:
        return PaginationError(
            full_message,
            offset=details.get("offset", 0),
            limit=details.get("limit", 0),
            details=full_details,
            is_auth_error=is_auth_error,
            is_rate_limit=is_rate_limit
        )
    return SpotifyError(
        full_message,
        details=full_details,
        is_auth_error=is_auth_error,
        is_rate_limit=is_rate_limit
    )
