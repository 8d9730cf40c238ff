"""Test the authorization handshake"""

import dataclasses
import socket
import threading
from unittest.mock import Mock

import pytest
import requests

from playlist_exporter.auth.handshake import (
    SCOPES,
    AuthSession,
    _default_client_factory,
    authenticate,
)
from playlist_exporter.core.exceptions import (
    AuthError,
    AuthTimeoutError,
    PortInUseError,
    StateMismatchError,
)


AUTHORIZE_URL = "https://accounts.spotify.com/authorize?client_id=test_client_id"


@pytest.fixture
def oauth():
    """OAuth manager double that accepts any code"""
    manager = Mock()
    manager.get_authorize_url.return_value = AUTHORIZE_URL
    manager.get_access_token.return_value = "access-token"
    return manager


@pytest.fixture
def session_factory(spotify_config, oauth):
    """Builds AuthSessions on 127.0.0.1 without touching other processes"""
    sessions = []

    def factory(**overrides):
        options = {
            "oauth": oauth,
            "reclaimer": Mock(return_value=None),
            "browser_opener": Mock(return_value=True),
            "client_factory": lambda manager: {"client_for": manager},
            "host": "127.0.0.1",
        }
        options.update(overrides)
        session = AuthSession(spotify_config, **options)
        sessions.append(session)
        return session

    yield factory

    for session in sessions:
        session.close()


def _callback(session, method="get", path="/callback", **params):
    url = f"http://127.0.0.1:{session.config.port}{path}"
    if method == "post":
        return requests.post(url, data=params, timeout=5)
    return requests.get(url, params=params, timeout=5)


def _port_is_bindable(port):
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        # Same option the listener uses, so closed connections in TIME_WAIT do not count
        sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        try:
            sock.bind(("127.0.0.1", port))
        except OSError:
            return False
    return True


class TestAuthSession:
    """Test AuthSession setup"""

    def test_state_is_random_per_session(self, spotify_config, oauth):
        """Test every session gets its own anti-forgery state"""
        first = AuthSession(spotify_config, oauth=oauth)
        second = AuthSession(spotify_config, oauth=oauth)

        assert first.state != second.state
        assert len(first.state) >= 16

    def test_default_oauth_manager(self, spotify_config):
        """Test the spotipy manager is built from the config"""
        session = AuthSession(spotify_config)

        assert session.oauth.client_id == "test_client_id"
        assert session.oauth.redirect_uri == spotify_config.redirect_uri
        assert set(session.oauth.scope.split()) == set(SCOPES.split())
        assert f"state={session.state}" in session.authorize_url()

    def test_default_client_does_not_retry(self):
        """Test the built spotipy client gives up after the first failure"""
        client = _default_client_factory(Mock())

        assert client.retries == 0
        assert client.status_retries == 0

    def test_start_reclaims_port_before_binding(self, session_factory, spotify_config):
        """Test the reclaimer runs with the configured port"""
        session = session_factory()
        session.start()

        session._reclaimer.assert_called_once_with(spotify_config.port)
        assert session.server_address == ("127.0.0.1", spotify_config.port)

    def test_port_still_taken(self, session_factory, spotify_config):
        """Test a port that cannot be bound is a PortInUseError"""
        with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as blocker:
            blocker.bind(("127.0.0.1", spotify_config.port))
            blocker.listen()

            with pytest.raises(PortInUseError):
                session_factory().start()

    def test_reclaimer_failure(self, session_factory):
        """Test a reclamation failure stops the handshake before binding"""
        session = session_factory(reclaimer=Mock(side_effect=PortInUseError("cannot kill")))

        with pytest.raises(PortInUseError):
            session.start()
        assert session.server_address is None


class TestLaunchBrowser:
    """Test AuthSession.launch_browser"""

    def test_opens_browser_and_prints_url(self, session_factory, caplog):
        """Test the URL is opened and always logged"""
        session = session_factory()

        with caplog.at_level("INFO"):
            url = session.launch_browser()

        assert url == AUTHORIZE_URL
        session._browser_opener.assert_called_once_with(AUTHORIZE_URL)
        session.oauth.get_authorize_url.assert_called_once_with(state=session.state)
        assert f"If browser doesn't open, visit: {AUTHORIZE_URL}" in caplog.text

    def test_no_browser(self, session_factory, caplog):
        """Test the URL is only printed when the browser is disabled"""
        session = session_factory()

        with caplog.at_level("INFO"):
            session.launch_browser(open_browser=False)

        session._browser_opener.assert_not_called()
        assert AUTHORIZE_URL in caplog.text

    def test_browser_unavailable(self, session_factory, caplog):
        """Test a browser that cannot be opened only logs a warning"""
        session = session_factory(browser_opener=Mock(return_value=False))

        session.launch_browser()

        assert "open the URL above manually" in caplog.text


class TestCallback:
    """Test callback handling over HTTP"""

    def test_successful_login(self, session_factory, oauth):
        """Test a valid callback delivers the client"""
        session = session_factory()
        session.start()

        response = _callback(session, state=session.state, code="auth-code")

        assert response.status_code == 200
        assert "Login Completed!" in response.text
        assert session.wait(timeout=5) == {"client_for": oauth}
        oauth.get_access_token.assert_called_once_with("auth-code", as_dict=False, check_cache=False)

    def test_form_post(self, session_factory, oauth):
        """Test the callback also accepts form-encoded POST requests"""
        session = session_factory()
        session.start()

        response = _callback(session, method="post", state=session.state, code="auth-code")

        assert response.status_code == 200
        assert session.wait(timeout=5) == {"client_for": oauth}

    def test_duplicate_callback(self, session_factory, oauth):
        """Test a second valid callback is answered without a second delivery"""
        session = session_factory()
        session.start()

        first = _callback(session, state=session.state, code="auth-code")
        second = _callback(session, state=session.state, code="auth-code")

        assert first.status_code == 200
        assert second.status_code == 200
        assert "already completed" in second.text
        assert session.wait(timeout=5) == {"client_for": oauth}
        assert oauth.get_access_token.call_count == 1

    def test_concurrent_duplicate_callbacks(self, session_factory, oauth):
        """Test two simultaneous callbacks result in exactly one token exchange"""
        session = session_factory()
        session.start()
        responses = []

        def send():
            responses.append(_callback(session, state=session.state, code="auth-code"))

        threads = [threading.Thread(target=send) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert sorted(r.status_code for r in responses) == [200, 200]
        assert sum("Login Completed!" in r.text for r in responses) == 1
        assert oauth.get_access_token.call_count == 1

    def test_state_mismatch(self, session_factory, oauth):
        """Test a foreign state is rejected with 404 and fails the handshake"""
        session = session_factory()
        session.start()

        response = _callback(session, state="forged", code="auth-code")

        assert response.status_code == 404
        with pytest.raises(StateMismatchError) as exc_info:
            session.wait(timeout=5)
        assert exc_info.value.received == "forged"
        oauth.get_access_token.assert_not_called()

    def test_missing_state(self, session_factory):
        """Test a callback without state counts as a mismatch"""
        session = session_factory()
        session.start()

        assert _callback(session, code="auth-code").status_code == 404
        with pytest.raises(StateMismatchError):
            session.wait(timeout=5)

    def test_access_denied(self, session_factory):
        """Test an error parameter fails the handshake"""
        session = session_factory()
        session.start()

        response = _callback(session, state=session.state, error="access_denied")

        assert response.status_code == 400
        with pytest.raises(AuthError, match="access_denied"):
            session.wait(timeout=5)

    def test_missing_code(self, session_factory):
        """Test a callback without a code fails the handshake"""
        session = session_factory()
        session.start()

        assert _callback(session, state=session.state).status_code == 400
        with pytest.raises(AuthError):
            session.wait(timeout=5)

    def test_token_exchange_failure(self, session_factory, oauth):
        """Test a failed code exchange answers 403 and fails the handshake"""
        oauth.get_access_token.side_effect = RuntimeError("invalid_grant")
        session = session_factory()
        session.start()

        response = _callback(session, state=session.state, code="expired")

        assert response.status_code == 403
        with pytest.raises(AuthError, match="invalid_grant"):
            session.wait(timeout=5)

    def test_unknown_path(self, session_factory):
        """Test other paths return 404 without touching the handoff"""
        session = session_factory()
        session.start()

        response = _callback(session, path="/favicon.ico", state=session.state, code="auth-code")

        assert response.status_code == 404
        with pytest.raises(AuthTimeoutError):
            session.wait(timeout=0.2)


class TestTimeoutAndCleanup:
    """Test timeout and listener shutdown"""

    def test_timeout_closes_listener(self, session_factory, spotify_config):
        """Test a timed-out handshake leaves the port free after close"""
        session = session_factory()
        session.start()

        with pytest.raises(AuthTimeoutError) as exc_info:
            session.wait(timeout=0.2)
        session.close()

        assert exc_info.value.timeout == 0.2
        assert _port_is_bindable(spotify_config.port)

    def test_late_callback_after_timeout(self, session_factory):
        """Test a callback arriving after the timeout does not deliver a client"""
        session = session_factory()
        session.start()

        with pytest.raises(AuthTimeoutError):
            session.wait(timeout=0.1)
        response = _callback(session, state=session.state, code="auth-code")

        assert response.status_code == 200
        assert "already completed" in response.text
        assert isinstance(session._result.exception(timeout=0), AuthTimeoutError)

    def test_timeout_during_token_exchange(self, session_factory, oauth):
        """Test a login finishing after the timeout is told the window expired"""
        release = threading.Event()
        oauth.get_access_token.side_effect = lambda *args, **kwargs: release.wait(5)
        session = session_factory()
        session.start()
        responses = []
        sender = threading.Thread(
            target=lambda: responses.append(
                _callback(session, state=session.state, code="auth-code")
            )
        )
        sender.start()

        with pytest.raises(AuthTimeoutError):
            session.wait(timeout=0.2)
        release.set()
        sender.join(timeout=10)

        assert responses[0].status_code == 408
        assert "Login Window Expired" in responses[0].text
        assert "Login Completed!" not in responses[0].text
        assert isinstance(session._result.exception(timeout=0), AuthTimeoutError)

    def test_close_is_idempotent(self, session_factory):
        """Test repeated close calls are harmless"""
        session = session_factory()
        session.start()

        session.close()
        session.close()

        assert session.closed

    def test_close_without_start(self, session_factory):
        """Test closing a session that never bound does nothing"""
        session = session_factory()
        session.close()
        assert session.closed

    def test_close_unblocks_wait(self, session_factory):
        """Test closing from another thread ends a pending wait"""
        session = session_factory()
        session.start()
        threading.Timer(0.2, session.close).start()

        with pytest.raises(AuthError):
            session.wait(timeout=5)

    def test_closed_session_cannot_start(self, session_factory):
        """Test a closed session refuses to bind again"""
        session = session_factory()
        session.close()

        with pytest.raises(AuthError):
            session.start()


class TestAuthenticate:
    """Test the authenticate helper"""

    def test_full_handshake(self, spotify_config, oauth):
        """Test authenticate returns the client and releases the port"""
        captured = []

        def browser(url):
            session = captured[0]
            threading.Thread(
                target=_callback,
                args=(session,),
                kwargs={"state": session.state, "code": "auth-code"},
            ).start()
            return True

        client = authenticate(
            spotify_config,
            on_session=captured.append,
            oauth=oauth,
            reclaimer=Mock(return_value=None),
            browser_opener=browser,
            client_factory=lambda manager: "spotify-client",
            host="127.0.0.1",
        )

        assert client == "spotify-client"
        assert captured[0].closed
        assert _port_is_bindable(spotify_config.port)

    def test_timeout(self, spotify_config, oauth):
        """Test authenticate raises on timeout and still closes the listener"""
        config = dataclasses.replace(spotify_config, auth_timeout=0.2)
        captured = []

        with pytest.raises(AuthTimeoutError):
            authenticate(
                config,
                open_browser=False,
                on_session=captured.append,
                oauth=oauth,
                reclaimer=Mock(return_value=None),
                host="127.0.0.1",
            )

        assert captured[0].closed
        assert _port_is_bindable(spotify_config.port)
