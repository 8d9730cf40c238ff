"""
Classification module for playlist-exporter.

This module turns playlists into report rows:
    - build_top_tracks_index: Tracks of playlists matching the top-tracks pattern
    - PlaylistClassifier: Flags in-window tracks missing from that index
    - run_export: Runs user lookup, enumeration, indexing, classification, reporting

Usage:
    from playlist_exporter.classify import run_export

    summary = run_export(CatalogClient(spotify), config)
"""

from playlist_exporter.classify.classifier import (
    ClassificationResult,
    PlaylistClassifier,
    classify_track,
    missing_flag,
)
from playlist_exporter.classify.pipeline import ExportSummary, run_export
from playlist_exporter.classify.top_tracks import (
    TopTracksIndex,
    build_top_tracks_index,
    matches_top_tracks_pattern,
    normalize_playlist_name,
    normalize_quotes,
)

__all__ = [
    # Top tracks
    "TopTracksIndex",
    "build_top_tracks_index",
    "matches_top_tracks_pattern",
    "normalize_playlist_name",
    "normalize_quotes",
    # Classification
    "ClassificationResult",
    "PlaylistClassifier",
    "classify_track",
    "missing_flag",
    # Pipeline
    "ExportSummary",
    "run_export",
]
