"""
Authorization module for playlist-exporter.

    - ports: Reclaims the callback port from a stale process
    - handshake: OAuth2 authorization code flow with a local callback listener

Usage:
    from playlist_exporter.auth import authenticate

    spotify = authenticate(config.spotify)
"""

from playlist_exporter.auth.handshake import SCOPES, AuthSession, authenticate
from playlist_exporter.auth.ports import (
    PortInspector,
    UnixPortInspector,
    WindowsPortInspector,
    reclaim_port,
    select_inspector,
)

__all__ = [
    # Handshake
    "AuthSession",
    "authenticate",
    "SCOPES",
    # Ports
    "PortInspector",
    "UnixPortInspector",
    "WindowsPortInspector",
    "reclaim_port",
    "select_inspector",
]
