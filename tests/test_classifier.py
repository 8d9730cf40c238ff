"""Test track classification and the export pipeline"""

import csv

from playlist_exporter.classify.classifier import (
    PlaylistClassifier,
    classify_track,
    missing_flag,
)
from playlist_exporter.classify.pipeline import run_export
from playlist_exporter.classify.top_tracks import build_top_tracks_index
from playlist_exporter.spotify.client import CatalogClient
from playlist_exporter.spotify.models import ClassifiedTrack, PlaylistRecord, TrackIdentity


INDEX = {"in_index": TrackIdentity("in_index", "Known")}


class TestMissingFlag:
    """Test the NotInTopTrackPlaylist computation"""

    def test_in_range_and_absent(self):
        """Test a track inside the window and missing from the index is flagged"""
        assert missing_flag("other", "2022", INDEX, "2020", "2025") == "TRUE"

    def test_in_index(self):
        """Test indexed tracks are never flagged"""
        assert missing_flag("in_index", "2022", INDEX, "2020", "2025") == ""

    def test_window_is_inclusive(self):
        """Test both window bounds are inside the range"""
        assert missing_flag("other", "2020", INDEX, "2020", "2025") == "TRUE"
        assert missing_flag("other", "2025", INDEX, "2020", "2025") == "TRUE"

    def test_outside_window(self):
        """Test tracks released outside the window are not flagged"""
        assert missing_flag("other", "2019", INDEX, "2020", "2025") == ""
        assert missing_flag("other", "2026", INDEX, "2020", "2025") == ""

    def test_unknown_year(self):
        """Test an empty release year is never flagged"""
        assert missing_flag("other", "", INDEX, "2020", "2025") == ""


class TestClassifyTrack:
    """Test classify_track"""

    def test_builds_row(self, track_factory):
        """Test every report field is filled from the track object"""
        track = track_factory(
            "t1", "Song", release_date="2021-05-04",
            artists=("First", "Second"), album="Record",
        )

        row = classify_track("Road Trip", track, INDEX, "2020", "2025")

        assert row == ClassifiedTrack(
            playlist_name="Road Trip",
            track_name="Song",
            artists="First, Second",
            album="Record",
            release_date="2021-05-04",
            release_year="2021",
            not_in_top_tracks="TRUE",
        )

    def test_missing_album(self):
        """Test a track without album data yields empty album fields"""
        row = classify_track("P", {"id": "t1", "name": "Song", "artists": []}, INDEX, "2020", "2025")

        assert row.album == ""
        assert row.release_year == ""
        assert row.not_in_top_tracks == ""


class TestPlaylistClassifier:
    """Test PlaylistClassifier"""

    def _classify(self, spotify, include_other=False):
        client = CatalogClient(spotify)
        playlists = list(client.iter_playlists())
        index = build_top_tracks_index(client, playlists, "top tracks")
        classifier = PlaylistClassifier(
            client, index, "2020", "2025", include_other_playlists=include_other
        )
        return classifier.classify(playlists, "me")

    def test_end_to_end_scenario(self, scenario_spotify):
        """Test the three playlist scenario with other playlists disabled"""
        result = self._classify(scenario_spotify)

        road_trip = [row for row in result.user if row.playlist_name == "Road Trip"]
        assert [(row.track_name, row.not_in_top_tracks) for row in road_trip] == [
            ("Track A", ""),
            ("Track B", "TRUE"),
        ]
        assert result.other == []
        assert result.skipped_playlists == ["Shared Mix"]
        assert "pl_shared" not in scenario_spotify.fetched_playlist_ids()

    def test_top_tracks_playlist_is_reported(self, scenario_spotify):
        """Test the user's own top tracks playlist is part of the user report"""
        result = self._classify(scenario_spotify)

        assert [row.playlist_name for row in result.user] == [
            "My Top Tracks 2022", "Road Trip", "Road Trip",
        ]
        assert result.missing_count == 1

    def test_include_other_playlists(self, scenario_spotify):
        """Test other users' playlists go to the other partition when enabled"""
        result = self._classify(scenario_spotify, include_other=True)

        assert [(row.track_name, row.not_in_top_tracks) for row in result.other] == [
            ("Track C", "TRUE"),
        ]
        assert result.skipped_playlists == []

    def test_failing_playlist_is_isolated(self, scenario_spotify):
        """Test one failing playlist does not abort the classification"""
        scenario_spotify.playlists.insert(
            1, {"id": "pl_broken", "name": "Broken", "owner": {"id": "me"}}
        )
        scenario_spotify.failures = {"pl_broken": 0}

        result = self._classify(scenario_spotify)

        assert "Broken" not in {row.playlist_name for row in result.user}
        assert [row.track_name for row in result.user if row.playlist_name == "Road Trip"] == [
            "Track A", "Track B",
        ]

    def test_classify_playlist(self, spotify_factory, track_factory):
        """Test a single playlist keeps track order"""
        spotify = spotify_factory(items={"p1": [
            {"track": track_factory("t2", "Second", release_date="2010")},
            {"track": track_factory("t1", "First", release_date="2024-02-02")},
        ]})
        classifier = PlaylistClassifier(CatalogClient(spotify), {}, "2020", "2025")

        rows = classifier.classify_playlist(PlaylistRecord("p1", "Mix", "me", "me"))

        assert [(r.track_name, r.not_in_top_tracks) for r in rows] == [
            ("Second", ""),
            ("First", "TRUE"),
        ]


class TestRunExport:
    """Test the export pipeline"""

    def test_writes_user_report(self, scenario_spotify, app_config):
        """Test the full pipeline produces the user report only"""
        summary = run_export(CatalogClient(scenario_spotify), app_config)

        assert summary.user_id == "me"
        assert summary.playlist_count == 3
        assert summary.top_tracks_count == 1
        assert summary.report_paths == [app_config.output.directory / "user_playlists.csv"]
        assert not (app_config.output.directory / "other_playlists.csv").exists()

        with open(summary.report_paths[0], newline="", encoding="utf-8-sig") as f:
            rows = list(csv.reader(f))

        assert rows[0][0] == "Playlist"
        assert rows[-1] == ["Road Trip", "Track B", "Test Artist", "Test Album", "2023-01-01", "2023", "TRUE"]

    def test_index_is_complete_before_classification(self, scenario_spotify, app_config):
        """Test all top tracks playlists are read before any other playlist"""
        scenario_spotify.playlists.append(
            {"id": "pl_top_2", "name": "Top Tracks 2023", "owner": {"id": "me"}}
        )

        run_export(CatalogClient(scenario_spotify), app_config)

        fetched = scenario_spotify.fetched_playlist_ids()
        assert fetched[:2] == ["pl_top", "pl_top_2"]
        assert fetched[2:] == ["pl_top", "pl_road", "pl_top_2"]
