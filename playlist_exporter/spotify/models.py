"""
Data models for Spotify entities.

This module defines immutable dataclasses for the objects an export run
passes between its stages: playlists from the listing, track identities
for the top-tracks index, and classified report rows.

Design Decisions:
    - All dataclasses are frozen (immutable) to prevent accidental modification
    - Factories read Spotify API response dicts defensively (.get with defaults)
    - The "missing from top tracks" marker is a string ("TRUE" or ""),
      because that is exactly what the report column contains

Usage:
    from playlist_exporter.spotify.models import PlaylistRecord, ClassifiedTrack

    playlist = PlaylistRecord.from_spotify_api(item)
"""

from dataclasses import dataclass
from typing import Any


# Value written to the NotInTopTrackPlaylist column for flagged tracks
MISSING_FLAG = "TRUE"


@dataclass(frozen=True)
class TrackIdentity:
    """
    Unique identifier of a track paired with its display name.

    Used only as a membership key in the top-tracks index.

    Attributes:
        track_id: Spotify track ID. Empty string for local files, which
                  Spotify returns without an ID.
        name: Track title.
    """
    track_id: str
    name: str

    @classmethod
    def from_spotify_api(cls, track_data: dict[str, Any]) -> "TrackIdentity":
        return cls(
            track_id=track_data.get("id") or "",
            name=track_data.get("name") or "",
        )


@dataclass(frozen=True)
class PlaylistRecord:
    """
    Playlist metadata as returned by the current user's playlist listing.

    Attributes:
        playlist_id: Spotify playlist ID.
        name: Playlist display name.
        owner_id: Spotify user ID of the owner.
        owner_name: Owner display name (falls back to owner_id).
        track_total: Number of items reported by the listing (0 if absent).
    """
    playlist_id: str
    name: str
    owner_id: str
    owner_name: str
    track_total: int = 0

    @classmethod
    def from_spotify_api(cls, playlist_data: dict[str, Any]) -> "PlaylistRecord":
        """
        Create a PlaylistRecord from a simplified playlist object.

        Args:
            playlist_data: One entry of current_user_playlists()['items'].

        Returns:
            PlaylistRecord populated with the extracted data.
        """
        owner = playlist_data.get("owner") or {}
        owner_id = owner.get("id") or ""
        tracks = playlist_data.get("tracks") or {}

        return cls(
            playlist_id=playlist_data["id"],
            name=playlist_data.get("name") or "",
            owner_id=owner_id,
            owner_name=owner.get("display_name") or owner_id,
            track_total=tracks.get("total") or 0,
        )

    def is_owned_by(self, user_id: str) -> bool:
        return self.owner_id == user_id


@dataclass(frozen=True)
class ClassifiedTrack:
    """
    One report row: a playlist track with its derived fields.

    Attributes:
        playlist_name: Name of the playlist the track was found in.
        track_name: Track title.
        artists: Artist names joined with ", " in provider order.
        album: Album name.
        release_date: Raw album release date ("2021-05-04", "1999-03" or "1999").
        release_year: First "-" separated segment of release_date, or "".
        not_in_top_tracks: "TRUE" if the release year is inside the year
                           window and the track is absent from the
                           top-tracks index, "" otherwise.
    """
    playlist_name: str
    track_name: str
    artists: str
    album: str
    release_date: str
    release_year: str
    not_in_top_tracks: str = ""

    @property
    def is_missing(self) -> bool:
        return self.not_in_top_tracks == MISSING_FLAG

    def to_row(self) -> list[str]:
        """Return the fields in report column order."""
        return [
            self.playlist_name,
            self.track_name,
            self.artists,
            self.album,
            self.release_date,
            self.release_year,
            self.not_in_top_tracks,
        ]


def join_artist_names(track_data: dict[str, Any]) -> str:
    """Join artist names with ", ", preserving the order Spotify returns."""
    return ", ".join(
        artist.get("name") or "" for artist in track_data.get("artists") or []
    )


def extract_release_year(release_date: str) -> str:
    """
    Extract the year from a Spotify release date.

    Handles "YYYY", "YYYY-MM" and "YYYY-MM-DD". Any other format yields
    its first "-" separated segment.

    Examples:
        extract_release_year("2021-05-04") -> "2021"
        extract_release_year("1999") -> "1999"
        extract_release_year("") -> ""
    """
    if not release_date:
        return ""
    return release_date.split("-")[0]
