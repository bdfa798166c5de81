"""Tests for the local OAuth redirect listener."""

import socket
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from typing import List

import pytest
import requests

from clients.auth.errors import CallbackTimeoutError, RedirectError
from clients.auth.oauth_server import OAuthCallbackServer


@pytest.fixture
def server():
    srv = OAuthCallbackServer("127.0.0.1", 0)
    yield srv
    srv.destroy()


def _url(srv: OAuthCallbackServer, query: str = "") -> str:
    return f"http://127.0.0.1:{srv.port}/{query}"


def test_code_is_returned(server: OAuthCallbackServer) -> None:
    response = requests.get(_url(server, "?code=ABC123"), timeout=5)

    assert response.status_code == 200
    assert "Successful" in response.text
    assert server.get_auth_code(timeout=5) == "ABC123"


def test_waiter_is_released_when_redirect_arrives(server: OAuthCallbackServer) -> None:
    result: List[str] = []
    waiter = threading.Thread(target=lambda: result.append(server.get_auth_code(timeout=5)))
    waiter.start()
    time.sleep(0.1)

    requests.get(_url(server, "?code=ABC123"), timeout=5)
    waiter.join(timeout=2)

    assert not waiter.is_alive()
    assert result == ["ABC123"]


def test_only_first_redirect_counts(server: OAuthCallbackServer) -> None:
    requests.get(_url(server, "?code=FIRST"), timeout=5)
    assert server.get_auth_code(timeout=5) == "FIRST"

    response = requests.get(_url(server, "?code=SECOND"), timeout=5)

    assert response.status_code == 200
    assert server.get_auth_code(timeout=5) == "FIRST"


def test_missing_code_gets_error_page(server: OAuthCallbackServer) -> None:
    response = requests.get(_url(server, "?error=access_denied"), timeout=5)

    assert response.status_code == 400
    assert "Unsuccessful" in response.text
    with pytest.raises(RedirectError) as excinfo:
        server.get_auth_code(timeout=5)
    assert excinfo.value.error == "access_denied"


def test_request_without_query_is_an_error(server: OAuthCallbackServer) -> None:
    response = requests.get(_url(server), timeout=5)

    assert response.status_code == 400
    with pytest.raises(RedirectError):
        server.get_auth_code(timeout=5)


def test_abort_hook_runs_after_error_page() -> None:
    aborted: List[RedirectError] = []
    called = threading.Event()

    def abort(error: RedirectError) -> None:
        aborted.append(error)
        called.set()

    srv = OAuthCallbackServer("127.0.0.1", 0, on_error=abort)
    try:
        response = requests.get(_url(srv, "?nothing=here"), timeout=5)
        assert called.wait(timeout=5)
    finally:
        srv.destroy()

    assert response.status_code == 400
    assert len(aborted) == 1
    assert isinstance(aborted[0], RedirectError)


def test_state_mismatch_is_rejected() -> None:
    srv = OAuthCallbackServer("127.0.0.1", 0, expected_state="expected")
    try:
        response = requests.get(_url(srv, "?code=ABC123&state=forged"), timeout=5)
        assert response.status_code == 400
        with pytest.raises(RedirectError):
            srv.get_auth_code(timeout=5)
    finally:
        srv.destroy()


def test_matching_state_is_accepted() -> None:
    srv = OAuthCallbackServer("127.0.0.1", 0, expected_state="expected")
    try:
        requests.get(_url(srv, "?code=ABC123&state=expected"), timeout=5)
        assert srv.get_auth_code(timeout=5) == "ABC123"
    finally:
        srv.destroy()


def test_favicon_does_not_settle_the_outcome(server: OAuthCallbackServer) -> None:
    assert requests.get(_url(server, "favicon.ico"), timeout=5).status_code == 404

    requests.get(_url(server, "?code=ABC123"), timeout=5)
    assert server.get_auth_code(timeout=5) == "ABC123"


def test_timeout(server: OAuthCallbackServer) -> None:
    with pytest.raises(CallbackTimeoutError):
        server.get_auth_code(timeout=0.1)


def test_destroy_releases_port(free_port: int) -> None:
    srv = OAuthCallbackServer("127.0.0.1", free_port)
    srv.destroy()
    srv.destroy()

    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", free_port))


def test_context_manager_destroys(free_port: int) -> None:
    with OAuthCallbackServer("127.0.0.1", free_port):
        pass

    again = OAuthCallbackServer("127.0.0.1", free_port)
    again.destroy()


def test_from_redirect_uri(free_port: int) -> None:
    srv = OAuthCallbackServer.from_redirect_uri(f"http://127.0.0.1:{free_port}/callback")
    try:
        assert srv.host == "127.0.0.1"
        assert srv.port == free_port
    finally:
        srv.destroy()


def test_later_redirect_sees_outcome_decided_before_release(server: OAuthCallbackServer) -> None:
    code, error, first = server.settle({"error": ["access_denied"]})
    assert (code, first) == (None, True)

    # A concurrent redirect arriving before the first page is written
    code, later_error, first = server.settle({"code": ["ABC123"]})
    assert (code, first) == (None, False)
    assert later_error is error

    server.release()
    with pytest.raises(RedirectError):
        server.get_auth_code(timeout=5)


@pytest.mark.parametrize("run", range(3))
def test_concurrent_redirects_get_the_page_for_the_recorded_outcome(
    server: OAuthCallbackServer, run: int
) -> None:
    queries = ["?code=ABC123", "?error=access_denied"] * 5
    start = threading.Barrier(len(queries))

    def fire(query: str) -> int:
        start.wait(timeout=5)
        return requests.get(_url(server, query), timeout=5).status_code

    with ThreadPoolExecutor(max_workers=len(queries)) as pool:
        statuses = list(pool.map(fire, queries))

    try:
        server.get_auth_code(timeout=5)
        expected = 200
    except RedirectError:
        expected = 400
    assert statuses == [expected] * len(queries)
