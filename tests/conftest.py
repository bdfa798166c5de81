"""Shared fixtures for the Spotify CLI tests."""

import socket
from typing import Callable, List, Optional
from unittest.mock import MagicMock

import pytest
import requests

from clients.auth.credentials import Credentials


SPOTIFY_ENV_VARS = (
    "SPOTIFY_CLIENT_ID",
    "SPOTIFY_CLIENT_SECRET",
    "SPOTIFY_REDIRECT_URI",
    "SPOTIFY_AUTH_FLOW",
    "SPOTIFY_AUTH_SCOPES",
    "SPOTIFY_TOKEN_CACHE_PATH",
    "SPOTIFY_CALLBACK_TIMEOUT",
    "SPOTIFY_SHOW_DIALOG",
    "DISABLE_TOKEN_CACHING",
    "DISABLE_TOKEN_REFRESH",
    "LOG_LEVEL",
)


@pytest.fixture(autouse=True)
def clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep developer environment variables out of the tests."""
    for name in SPOTIFY_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def free_port() -> int:
    """A local port that was free a moment ago."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as sock:
        sock.bind(("127.0.0.1", 0))
        return sock.getsockname()[1]


def _make_response(
    status_code: int = 200,
    json_data: Optional[object] = None,
    text: str = "",
) -> MagicMock:
    response = MagicMock(spec=requests.Response)
    response.status_code = status_code
    response.headers = {}
    if json_data is None:
        response.json.side_effect = ValueError("No JSON body")
    else:
        response.json.return_value = json_data
    response.text = text or str(json_data)

    if status_code >= 400:
        response.raise_for_status.side_effect = requests.exceptions.HTTPError(
            f"HTTP {status_code}", response=response
        )
    else:
        response.raise_for_status.return_value = None
    return response


@pytest.fixture
def make_response() -> Callable[..., MagicMock]:
    """Factory for mocked ``requests.Response`` objects."""
    return _make_response


@pytest.fixture
def token_payload() -> Callable[..., dict]:
    """Factory for token endpoint JSON bodies."""

    def _payload(
        access_token: str = "AT1",
        refresh_token: Optional[str] = "RT1",
        expires_in: int = 3600,
    ) -> dict:
        data = {
            "access_token": access_token,
            "token_type": "Bearer",
            "expires_in": expires_in,
        }
        if refresh_token is not None:
            data["refresh_token"] = refresh_token
        return data

    return _payload


class StubFlow:
    """Authorization flow double that records how it was used."""

    def __init__(
        self,
        name: str = "PKCE",
        refreshable: bool = True,
        requires_secret: bool = False,
        client_secret: Optional[str] = None,
        authorize_results: Optional[List[Optional[Credentials]]] = None,
        refresh_results: Optional[List[Optional[Credentials]]] = None,
    ):
        self.name = name
        self.refreshable = refreshable
        self.requires_secret = requires_secret
        self.client_secret = client_secret
        self.authorize_results = list(authorize_results or [])
        self.refresh_results = list(refresh_results or [])
        self.authorize_calls = 0
        self.refresh_calls = 0

    def is_refreshable(self) -> bool:
        return self.refreshable

    def requires_client_secret(self) -> bool:
        return self.requires_secret

    def authorize(self) -> Optional[Credentials]:
        self.authorize_calls += 1
        return self.authorize_results.pop(0) if self.authorize_results else None

    def refresh(self) -> Optional[Credentials]:
        self.refresh_calls += 1
        return self.refresh_results.pop(0) if self.refresh_results else None


@pytest.fixture
def stub_flow() -> Callable[..., StubFlow]:
    return StubFlow
