"""
Authorization handshake for playlist-exporter.

Implements the OAuth2 authorization code flow with a short-lived local
callback listener:

    Idle -> ListenerBound -> BrowserLaunched -> AwaitingCallback
         -> Authenticated | TimedOut | StateMismatch

1. Reclaim the callback port, then bind the listener (AuthSession.start)
2. Open the authorization URL in the browser and print it as a fallback
   (AuthSession.launch_browser)
3. Block until the callback delivers a client or the timeout fires
   (AuthSession.wait)
4. Close the listener exactly once (AuthSession.close)

Each run owns one AuthSession holding the anti-forgery state value, the
listener and a one-shot Future used as the handoff. Request handlers reach
the session through their server instance; there is no module-level state.

The handoff delivers at most one value. A second callback (browser retry,
double submit) is answered immediately and never blocks or overwrites the
first result.

Usage:
    spotify = authenticate(config.spotify)

    # or, step by step
    with AuthSession(config.spotify) as session:
        session.start()
        session.launch_browser()
        spotify = session.wait()
"""

import html
import secrets
import threading
import webbrowser
from concurrent import futures
from http.server import BaseHTTPRequestHandler, ThreadingHTTPServer
from typing import Any, Callable
from urllib.parse import parse_qs, urlparse

import spotipy
from spotipy.cache_handler import MemoryCacheHandler
from spotipy.oauth2 import SpotifyOAuth

from playlist_exporter.auth.ports import reclaim_port
from playlist_exporter.core.config import SpotifyConfig
from playlist_exporter.core.exceptions import (
    AuthError,
    AuthTimeoutError,
    PortInUseError,
    StateMismatchError,
)
from playlist_exporter.core.logger import get_logger

logger = get_logger(__name__)


# Read-only playlist access
SCOPES = "playlist-read-private playlist-read-collaborative"

# Socket read/write timeout for a single callback connection, in seconds
HANDLER_TIMEOUT = 10

RESPONSE_PAGE = """<html>
<head><title>{title}</title></head>
<body style="font-family: Arial, sans-serif; text-align: center; margin-top: 50px;">
    <h1>{title}</h1>
    <p>{message}</p>
</body>
</html>
"""


def _default_client_factory(oauth: SpotifyOAuth) -> spotipy.Spotify:
    # No retries on failed calls
    return spotipy.Spotify(auth_manager=oauth, retries=0, status_retries=0)


def _first(params: dict[str, list[str]], name: str) -> str | None:
    values = params.get(name)
    return values[0] if values else None


class CallbackHandler(BaseHTTPRequestHandler):
    """
    HTTP request handler for the OAuth2 callback.

    Parses the query string (and, for POST, the form body) and hands the
    parameters to the owning AuthSession, which decides the response.
    """

    server: "CallbackServer"
    timeout = HANDLER_TIMEOUT

    def do_GET(self) -> None:
        parsed = urlparse(self.path)
        self._dispatch(parsed.path, parse_qs(parsed.query))

    def do_POST(self) -> None:
        parsed = urlparse(self.path)
        params = parse_qs(parsed.query)

        length = int(self.headers.get("Content-Length") or 0)
        if length:
            body = self.rfile.read(length).decode("utf-8", errors="replace")
            for name, values in parse_qs(body).items():
                params.setdefault(name, []).extend(values)

        self._dispatch(parsed.path, params)

    def _dispatch(self, path: str, params: dict[str, list[str]]) -> None:
        status, title, message = self.server.session.handle_callback(path, params)

        page = RESPONSE_PAGE.format(title=html.escape(title), message=html.escape(message))
        body = page.encode("utf-8")

        self.send_response(status)
        self.send_header("Content-Type", "text/html; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)

    def log_message(self, format: str, *args: Any) -> None:
        logger.debug(f"Callback listener: {format % args}")


class CallbackServer(ThreadingHTTPServer):
    """ThreadingHTTPServer bound to one AuthSession."""

    daemon_threads = True

    def __init__(self, address: tuple[str, int], session: "AuthSession") -> None:
        self.session = session
        super().__init__(address, CallbackHandler)


class AuthSession:
    """
    State of one authorization handshake.

    Attributes:
        config: Spotify credentials, redirect URI, port and timeout.
        state: Anti-forgery value sent with the authorization URL and
               expected back on the callback.
        oauth: spotipy OAuth manager used to build the URL and exchange
               the code. Tokens are cached in memory only.
        host: Interface the listener binds to.
    """

    def __init__(
        self,
        config: SpotifyConfig,
        oauth: SpotifyOAuth | None = None,
        reclaimer: Callable[[int], Any] = reclaim_port,
        browser_opener: Callable[[str], bool] = webbrowser.open,
        client_factory: Callable[[Any], Any] = _default_client_factory,
        host: str = "localhost"
    ) -> None:
        self.config = config
        self.state = secrets.token_urlsafe(16)
        self.oauth = oauth or SpotifyOAuth(
            client_id=config.client_id,
            client_secret=config.client_secret,
            redirect_uri=config.redirect_uri,
            scope=SCOPES,
            state=self.state,
            cache_handler=MemoryCacheHandler(),
            open_browser=False,
        )
        self.host = host

        self._reclaimer = reclaimer
        self._browser_opener = browser_opener
        self._client_factory = client_factory

        self._result: futures.Future = futures.Future()
        self._exchange_lock = threading.Lock()
        # Reentrant so a signal handler interrupting close() does not deadlock
        self._close_lock = threading.RLock()
        self._closed = False

        self._server: CallbackServer | None = None
        self._thread: threading.Thread | None = None

    def __enter__(self) -> "AuthSession":
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.close()

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def server_address(self) -> tuple[str, int] | None:
        """Address the listener is bound to, or None before start()."""
        if self._server is None:
            return None
        return self._server.server_address[:2]

    # =========================================================================
    # Listener lifecycle
    # =========================================================================

    def start(self) -> None:
        """
        Reclaim the callback port and start the listener thread.

        Raises:
            PortInUseError: If the port cannot be reclaimed or bound.
        """
        if self._closed:
            raise AuthError("Authorization session is already closed")

        port = self.config.port
        self._reclaimer(port)

        try:
            server = CallbackServer((self.host, port), self)
        except OSError as e:
            raise PortInUseError(
                f"Cannot bind the callback listener to port {port}: {e}",
                details={"host": self.host, "port": port, "original_error": str(e)}
            ) from e

        with self._close_lock:
            self._server = server
            self._thread = threading.Thread(
                target=server.serve_forever,
                name="auth-callback",
                daemon=True,
            )
            self._thread.start()

        logger.debug(f"Callback listener bound to {self.host}:{port}")

    def close(self) -> None:
        """
        Stop the listener and wait for its thread to finish.

        Safe to call more than once and from a signal handler; only the
        first call does any work.
        """
        with self._close_lock:
            if self._closed:
                return
            self._closed = True
            server, thread = self._server, self._thread

        if server is not None:
            server.shutdown()
            server.server_close()
        if thread is not None:
            thread.join()

        # Nobody will deliver after the listener is gone
        self._fail(AuthError("Authorization session closed"))
        logger.debug("Callback listener closed")

    # =========================================================================
    # Browser and waiting
    # =========================================================================

    def authorize_url(self) -> str:
        return self.oauth.get_authorize_url(state=self.state)

    def launch_browser(self, open_browser: bool = True) -> str:
        """
        Show the authorization URL and try to open it in the browser.

        The URL is always logged so the user can open it by hand when no
        browser is available.

        Returns:
            The authorization URL.
        """
        url = self.authorize_url()

        logger.info("Opening browser for Spotify authorization...")
        logger.info(f"If browser doesn't open, visit: {url}")

        if open_browser:
            try:
                opened = self._browser_opener(url)
            except webbrowser.Error as e:
                logger.warning(f"Could not launch a browser: {e}")
            else:
                if not opened:
                    logger.warning("Could not launch a browser, open the URL above manually")

        return url

    def wait(self, timeout: float | None = None) -> Any:
        """
        Block until the callback delivers a client.

        Args:
            timeout: Seconds to wait. Defaults to config.auth_timeout.

        Returns:
            The authenticated client.

        Raises:
            AuthTimeoutError: If no callback arrives in time.
            StateMismatchError: If the callback carried a foreign state.
            AuthError: If authorization was denied or the token exchange failed.
        """
        if timeout is None:
            timeout = self.config.auth_timeout

        logger.info("Waiting for authorization callback...")
        try:
            return self._result.result(timeout=timeout)
        except futures.TimeoutError:
            error = AuthTimeoutError(timeout)
            if not self._fail(error):
                # A callback won the race against the timer
                return self._result.result()
            raise error from None

    # =========================================================================
    # Callback handling
    # =========================================================================

    def handle_callback(
        self,
        path: str,
        params: dict[str, list[str]]
    ) -> tuple[int, str, str]:
        """
        Process one request received by the listener.

        Args:
            path: Request path without the query string.
            params: Query and form parameters.

        Returns:
            Tuple of (HTTP status, page title, page message).
        """
        if path != self.config.callback_path:
            return 404, "Not Found", f"No handler for {path}"

        # Serialises token exchange so a duplicate callback sees the first result
        with self._exchange_lock:
            if self._result.done():
                return 200, "Login already completed", "You can close this window."

            received = _first(params, "state")
            if received != self.state:
                logger.error("State mismatch on authorization callback")
                self._fail(StateMismatchError(self.state, received))
                return 404, "State mismatch", "This login link is not valid for the running export."

            error = _first(params, "error")
            if error:
                self._fail(AuthError(
                    f"Authorization failed: {error}",
                    details={"error": error}
                ))
                return 400, "Authorization Failed", f"Error: {error}"

            code = _first(params, "code")
            if not code:
                self._fail(AuthError("No authorization code received"))
                return 400, "Authorization Failed", "No authorization code received."

            try:
                self.oauth.get_access_token(code, as_dict=False, check_cache=False)
                client = self._client_factory(self.oauth)
            except Exception as e:
                logger.error(f"Couldn't get token: {e}")
                self._fail(AuthError(
                    f"Failed to exchange authorization code for token: {e}",
                    details={"original_error": str(e)}
                ))
                return 403, "Authorization Failed", "Couldn't get token."

            if not self._deliver(client):
                logger.warning("Authorization callback arrived after the login window closed")
                return 408, "Login Window Expired", "The export is no longer waiting for this login."

        logger.info("Authorization successful!")
        return 200, "Login Completed!", "You can now close this window and return to the terminal."

    def _deliver(self, client: Any) -> bool:
        try:
            self._result.set_result(client)
        except futures.InvalidStateError:
            return False
        return True

    def _fail(self, error: BaseException) -> bool:
        try:
            self._result.set_exception(error)
        except futures.InvalidStateError:
            return False
        return True


def authenticate(
    config: SpotifyConfig,
    open_browser: bool = True,
    on_session: Callable[[AuthSession], Any] | None = None,
    **session_options: Any
) -> Any:
    """
    Run the whole handshake and return an authenticated spotipy client.

    Args:
        config: Spotify section of the application config.
        open_browser: Try to open the authorization URL in a browser.
        on_session: Called with the AuthSession before the listener starts,
                    so a signal handler can close it.
        **session_options: Forwarded to AuthSession.

    Raises:
        PortInUseError, AuthError, StateMismatchError, AuthTimeoutError

    Note:
        The listener is closed before this function returns or raises.
    """
    with AuthSession(config, **session_options) as session:
        if on_session is not None:
            on_session(session)
        session.start()
        session.launch_browser(open_browser)
        return session.wait()
