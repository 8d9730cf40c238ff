"""Test configuration and fixtures"""

import socket
from pathlib import Path

import pytest
import spotipy

from playlist_exporter.core.config import (
    Config,
    FilterConfig,
    LoggingConfig,
    OutputConfig,
    PaginationConfig,
    SpotifyConfig,
)


def make_track(track_id, name, release_date="2022-01-01", artists=("Test Artist",), album="Test Album"):
    """Track object as found in a playlist item"""
    return {
        "id": track_id,
        "name": name,
        "artists": [{"id": f"artist_{i}", "name": artist} for i, artist in enumerate(artists)],
        "album": {
            "id": f"album_{name}",
            "name": album,
            "release_date": release_date,
        },
    }


def make_playlist(playlist_id, name, owner_id, owner_name=None, total=0):
    """Simplified playlist object as returned by current_user_playlists"""
    return {
        "id": playlist_id,
        "name": name,
        "owner": {"id": owner_id, "display_name": owner_name or owner_id},
        "tracks": {"total": total},
    }


class FakeSpotify:
    """In-memory stand-in for spotipy.Spotify exposing the methods the exporter calls"""

    def __init__(self, user_id="me", playlists=None, items=None, failures=None):
        self.user = {"id": user_id, "display_name": user_id.title()}
        self.playlists = playlists or []
        # playlist_id -> list of playlist items ({"track": ...})
        self.items = items or {}
        # playlist_id -> offset whose page request fails
        self.failures = failures or {}
        self.calls = []

    def current_user(self):
        self.calls.append(("current_user",))
        return self.user

    def current_user_playlists(self, limit=50, offset=0):
        self.calls.append(("current_user_playlists", offset, limit))
        return {
            "items": self.playlists[offset:offset + limit],
            "total": len(self.playlists),
        }

    def playlist_items(self, playlist_id, limit=100, offset=0, additional_types=("track",)):
        self.calls.append(("playlist_items", playlist_id, offset, limit))
        if self.failures.get(playlist_id) == offset:
            raise spotipy.SpotifyException(500, -1, "Internal server error")
        items = self.items.get(playlist_id, [])
        return {"items": items[offset:offset + limit], "total": len(items)}

    def fetched_playlist_ids(self):
        return [call[1] for call in self.calls if call[0] == "playlist_items"]


@pytest.fixture
def track_factory():
    """Factory for track objects"""
    return make_track


@pytest.fixture
def playlist_factory():
    """Factory for simplified playlist objects"""
    return make_playlist


@pytest.fixture
def spotify_factory():
    """Factory for FakeSpotify instances"""
    return FakeSpotify


@pytest.fixture
def scenario_spotify():
    """
    Three playlists: a top tracks playlist with A, the user's Road Trip
    with A and B, and another user's Shared Mix with C
    """
    track_a = make_track("track_a", "Track A", release_date="2022-06-01")
    track_b = make_track("track_b", "Track B", release_date="2023-01-01")
    track_c = make_track("track_c", "Track C", release_date="2022-01-01")

    return FakeSpotify(
        user_id="me",
        playlists=[
            make_playlist("pl_top", "My Top Tracks 2022", "me"),
            make_playlist("pl_road", "Road Trip", "me"),
            make_playlist("pl_shared", "Shared Mix", "friend", "Friend"),
        ],
        items={
            "pl_top": [{"track": track_a}],
            "pl_road": [{"track": track_a}, {"track": track_b}],
            "pl_shared": [{"track": track_c}],
        },
    )


@pytest.fixture
def free_port():
    """A localhost TCP port that was free a moment ago"""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


@pytest.fixture
def spotify_config(free_port):
    """Spotify settings pointing at a free local port"""
    return SpotifyConfig(
        client_id="test_client_id",
        client_secret="test_client_secret",
        redirect_uri=f"http://127.0.0.1:{free_port}/callback",
        port=free_port,
        auth_timeout=5.0,
    )


@pytest.fixture
def app_config(tmp_path: Path, spotify_config):
    """Complete configuration writing into tmp_path"""
    return Config(
        spotify=spotify_config,
        filter=FilterConfig(
            top_tracks_pattern="top tracks",
            start_year="2020",
            end_year="2025",
        ),
        pagination=PaginationConfig(),
        output=OutputConfig(directory=tmp_path / "playlists"),
        logging=LoggingConfig(log_file=tmp_path / "logs" / "test.log"),
    )
