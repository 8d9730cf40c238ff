"""
Spotify integration module for playlist-exporter.

This module provides all functionality for reading from the Spotify API:
    - CatalogClient: Error-translating wrapper over an authorized spotipy client
    - paginate_all, ErrorPolicy: Offset/limit pagination with per-call-site error policy
    - TrackIdentity, PlaylistRecord, ClassifiedTrack: Data models

Usage:
    from playlist_exporter.spotify import CatalogClient, ErrorPolicy

    client = CatalogClient(spotify)
    playlists = list(client.iter_playlists(page_size=50))
"""

from playlist_exporter.spotify.client import CatalogClient
from playlist_exporter.spotify.models import (
    MISSING_FLAG,
    ClassifiedTrack,
    PlaylistRecord,
    TrackIdentity,
    extract_release_year,
    join_artist_names,
)
from playlist_exporter.spotify.pagination import ErrorPolicy, paginate_all

__all__ = [
    # Client
    "CatalogClient",
    # Pagination
    "ErrorPolicy",
    "paginate_all",
    # Models
    "TrackIdentity",
    "PlaylistRecord",
    "ClassifiedTrack",
    "MISSING_FLAG",
    "extract_release_year",
    "join_artist_names",
]
