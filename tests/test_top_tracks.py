"""Test the top-tracks index"""

import logging

from playlist_exporter.classify.top_tracks import (
    build_top_tracks_index,
    matches_top_tracks_pattern,
    normalize_playlist_name,
    normalize_quotes,
)
from playlist_exporter.spotify.client import CatalogClient
from playlist_exporter.spotify.models import PlaylistRecord, TrackIdentity


class TestNameMatching:
    """Test playlist name normalization and matching"""

    def test_normalize_quotes(self):
        """Test all four typographic quotes become ASCII"""
        assert normalize_quotes("‘a’ “b”") == "'a' \"b\""

    def test_normalize_playlist_name(self):
        """Test names are lowercased and de-quoted"""
        assert normalize_playlist_name("Today’s TOP Hits") == "today's top hits"

    def test_right_single_quote_matches_apostrophe(self):
        """Test a name with U+2019 matches a pattern typed with an apostrophe"""
        assert matches_top_tracks_pattern("Today’s Top Hits", "today's")

    def test_double_quotes(self):
        """Test a name with curly double quotes matches straight quotes"""
        assert matches_top_tracks_pattern("The “Best” of 2021", 'the "best"')

    def test_case_insensitive(self):
        """Test matching ignores case on both sides"""
        assert matches_top_tracks_pattern("Your Top Songs 2023", "TOP SONGS")

    def test_no_match(self):
        """Test unrelated names do not match"""
        assert not matches_top_tracks_pattern("Road Trip", "top tracks")
        assert not matches_top_tracks_pattern("Todays Top Hits", "today's")


class TestBuildTopTracksIndex:
    """Test build_top_tracks_index"""

    def _playlists(self):
        return [
            PlaylistRecord("pl_2021", "Your Top Songs 2021", "spotify", "Spotify"),
            PlaylistRecord("pl_road", "Road Trip", "me", "me"),
            PlaylistRecord("pl_2022", "Your Top Songs 2022", "spotify", "Spotify"),
        ]

    def _spotify(self, spotify_factory, track_factory):
        return spotify_factory(items={
            "pl_2021": [{"track": track_factory("t1", "One")}, {"track": track_factory("t2", "Two")}],
            "pl_road": [{"track": track_factory("t9", "Nine")}],
            "pl_2022": [{"track": track_factory("t2", "Two (Remastered)")}, {"track": track_factory("t3", "Three")}],
        })

    def test_collects_tracks_of_matching_playlists(self, spotify_factory, track_factory):
        """Test only matching playlists are read and indexed"""
        spotify = self._spotify(spotify_factory, track_factory)

        index = build_top_tracks_index(CatalogClient(spotify), self._playlists(), "top songs")

        assert set(index) == {"t1", "t2", "t3"}
        assert spotify.fetched_playlist_ids() == ["pl_2021", "pl_2022"]

    def test_last_occurrence_wins(self, spotify_factory, track_factory):
        """Test a duplicate ID keeps the identity from the later playlist"""
        spotify = self._spotify(spotify_factory, track_factory)

        index = build_top_tracks_index(CatalogClient(spotify), self._playlists(), "top songs")

        assert index["t2"] == TrackIdentity("t2", "Two (Remastered)")

    def test_rebuild_is_idempotent(self, spotify_factory, track_factory):
        """Test building twice from the same playlists yields the same keys"""
        spotify = self._spotify(spotify_factory, track_factory)
        client = CatalogClient(spotify)

        first = build_top_tracks_index(client, self._playlists(), "top songs")
        second = build_top_tracks_index(client, self._playlists(), "top songs")

        assert set(first) == set(second)

    def test_broken_playlist_is_skipped(self, spotify_factory, track_factory):
        """Test a failing top tracks playlist does not stop the index build"""
        spotify = self._spotify(spotify_factory, track_factory)
        spotify.failures = {"pl_2021": 0}

        index = build_top_tracks_index(CatalogClient(spotify), self._playlists(), "top songs")

        assert set(index) == {"t2", "t3"}

    def test_no_matching_playlist(self, spotify_factory, track_factory, caplog):
        """Test an empty index is returned with a warning"""
        spotify = self._spotify(spotify_factory, track_factory)

        with caplog.at_level(logging.WARNING):
            index = build_top_tracks_index(CatalogClient(spotify), self._playlists(), "wrapped")

        assert index == {}
        assert spotify.fetched_playlist_ids() == []
        assert "wrapped" in caplog.text
