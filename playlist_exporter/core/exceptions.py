"""
Exception classes for playlist-exporter.

This module defines all custom exceptions used throughout the application.
Each exception maps to one failure mode of an export run, and the CLI
maps each of them to its own process exit code.

Exception Hierarchy:
    PlaylistExporterError (base)
        ConfigError - Missing or invalid settings
        PortInUseError - Callback port could not be reclaimed
        AuthError - Authorization handshake failure
            StateMismatchError - Callback carried the wrong anti-forgery state
        AuthTimeoutError - No callback arrived in time
        SpotifyError - Remote catalog API failure
            PaginationError - A single page fetch failed
        ReportError - Report files could not be written
"""


class PlaylistExporterError(Exception):
    """
    Base exception for all playlist-exporter errors.
    
    All custom exceptions in this project inherit from this class,
    allowing callers to catch every export failure with a single
    except clause if desired.
    
    Attributes:
        message: Human-readable error description.
        details: Optional dictionary with additional context (e.g., playlist, port).
    
    Example:
        try:
            # some operation
        except PlaylistExporterError as e:
            logger.error(f"Operation failed: {e.message}")
            if e.details:
                logger.debug(f"Details: {e.details}")
    """
    
    def __init__(self, message: str, details: dict | None = None) -> None:
        """
        Initialize the base exception.
        
        Args:
            message: Human-readable error description that will be shown to the user.
            details: Optional dictionary containing additional context about the error.
                     Common keys include:
                     - 'playlist_name': Playlist being processed
                     - 'port': Listener port involved in the error
                     - 'original_error': The underlying exception if wrapping another error
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}
    
    def __str__(self) -> str:
        """Return the error message for display."""
        return self.message


class ConfigError(PlaylistExporterError):
    """
    Raised when a required setting is missing or has an invalid value.
    
    This is a CRITICAL error: the process does not start.
    
    Common causes:
        - SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set
        - SPOTIFY_PORT is not an integer
        - Start/end year not a 4-digit year, or start after end
        - Unparseable log rotate size
    
    Example:
        raise ConfigError(
            "Missing required setting: SPOTIFY_PORT",
            details={'missing': ['SPOTIFY_PORT']}
        )
    """
    pass


class PortInUseError(PlaylistExporterError):
    """
    Raised when the callback port is held by another process and could not be freed.
    
    This is a CRITICAL error: the handshake listener cannot bind.
    
    Common causes:
        - lsof / netstat not installed
        - Permission denied when terminating the holding process
        - PID column could not be parsed from the inspection output
        - Bind still fails after the holder was terminated
    """
    pass


class AuthError(PlaylistExporterError):
    """
    Raised when the authorization handshake cannot complete safely.
    
    This is a CRITICAL error.
    
    Common causes:
        - The provider redirected back with an 'error' parameter (access denied)
        - The authorization code could not be exchanged for a token
        - The callback carried no authorization code
    """
    pass


class StateMismatchError(AuthError):
    """
    Raised when the callback's 'state' parameter differs from the one we issued.
    
    Guards the local callback against cross-site request forgery. The run
    must not proceed after this error.
    
    Attributes:
        expected: State value generated for this run.
        received: State value found on the callback request.
    """
    
    def __init__(self, expected: str, received: str | None) -> None:
        super().__init__(
            "State mismatch on authorization callback",
            details={"received_state": received}
        )
        self.expected = expected
        self.received = received


class AuthTimeoutError(PlaylistExporterError):
    """
    Raised when no valid callback arrives within the authorization window.
    
    This is a CRITICAL error. The listener is always closed before this
    error reaches the caller.
    
    Attributes:
        timeout: Seconds waited before giving up.
    """
    
    def __init__(self, timeout: float) -> None:
        super().__init__(
            f"Authentication timed out after {timeout:g} seconds. "
            "Complete the login in your browser and run again.",
            details={"timeout": timeout}
        )
        self.timeout = timeout


class SpotifyError(PlaylistExporterError):
    """
    Raised when there's an issue with the Spotify API.
    
    Can be CRITICAL (user lookup, playlist enumeration) or NON-CRITICAL
    (track listing of a single playlist).
    
    Attributes:
        is_auth_error: True if this is an authentication error (CRITICAL).
        is_rate_limit: True if the provider answered 429.
    
    Example:
        raise SpotifyError(
            "Failed to fetch current user",
            details={'status_code': 401},
            is_auth_error=True
        )
    """
    
    def __init__(
        self, 
        message: str, 
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        """
        Initialize Spotify error with additional flags.
        
        Args:
            message: Human-readable error description.
            details: Optional dictionary with additional context.
            is_auth_error: Set to True if this is an authentication failure.
            is_rate_limit: Set to True if this is a rate limit error.
                          No retry is attempted either way.
        """
        super().__init__(message, details)
        self.is_auth_error = is_auth_error
        self.is_rate_limit = is_rate_limit


class PaginationError(SpotifyError):
    """
    Raised when a single page of a paginated listing could not be fetched.
    
    Whether this is fatal depends on the call site: playlist enumeration
    aborts the run, track listing of one playlist skips that playlist's
    remaining tracks.
    
    Attributes:
        offset: Offset of the page that failed.
        limit: Page size that was requested.
    """
    
    def __init__(
        self,
        message: str,
        offset: int,
        limit: int,
        details: dict | None = None,
        is_auth_error: bool = False,
        is_rate_limit: bool = False
    ) -> None:
        merged = {"offset": offset, "limit": limit, **(details or {})}
        super().__init__(message, merged, is_auth_error, is_rate_limit)
        self.offset = offset
        self.limit = limit


class ReportError(PlaylistExporterError):
    """
    Raised when a report file cannot be written.
    
    Common causes:
        - Report already exists and overwriting is disabled
        - Permission denied or disk full
    """
    pass
