"""
Spotify OAuth 2.0 authorization flows.

Each flow knows how to obtain a brand-new credential set (``authorize``),
how to renew one if it can (``refresh``), and declares whether it supports
refreshing and whether it needs the client secret.

    flow                  refreshable   requires client secret
    PKCEFlow              yes           no
    AuthorizationCodeFlow yes           yes
    ClientCredentialsFlow no            yes
"""
import dataclasses
import secrets
import urllib.parse
import webbrowser
from typing import Optional, Dict

import requests

from config import SpotifyConfig, ConfigurationError
from clients.spotify_api import SpotifyAPIClient
from .credentials import Credentials
from .errors import TokenRequestError, CallbackTimeoutError
from .oauth_server import OAuthCallbackServer
from .pkce import generate_pkce_pair
from utils import setup_logger, retry_on_failure, parse_token_error


logger = setup_logger(__name__)


AUTH_URL = "https://accounts.spotify.com/authorize"
TOKEN_URL = "https://accounts.spotify.com/api/token"

# Token endpoint descriptions meaning the refresh token itself is dead
TERMINAL_REFRESH_ERRORS = ("Invalid refresh token", "Refresh token revoked")


class AuthorizationFlow:
    """Shared plumbing for talking to the accounts service token endpoint."""

    name = ''
    REFRESHABLE = False
    REQUIRES_CLIENT_SECRET = False

    def __init__(
        self,
        client_id: str,
        api_client: SpotifyAPIClient,
        client_secret: Optional[str] = None,
        session: Optional[requests.Session] = None,
        token_url: str = TOKEN_URL
    ):
        """
        Args:
            client_id: Spotify application client ID
            api_client: Client whose tokens this flow reads when refreshing
            client_secret: Application secret, for flows that need one
            session: HTTP session for token requests
            token_url: Token endpoint
        """
        self.client_id = client_id
        self.client_secret = client_secret
        self.api_client = api_client
        self.session = session or requests.Session()
        self.token_url = token_url

    def is_refreshable(self) -> bool:
        return self.REFRESHABLE

    def requires_client_secret(self) -> bool:
        return self.REQUIRES_CLIENT_SECRET

    def authorize(self) -> Optional[Credentials]:
        raise NotImplementedError

    def refresh(self) -> Optional[Credentials]:
        return None

    @retry_on_failure(max_retries=2)
    def _post(self, data: Dict[str, str]) -> requests.Response:
        return self.session.post(self.token_url, data=data, timeout=30)

    def _request_token(
        self,
        data: Dict[str, str],
        fallback_refresh_token: Optional[str] = None
    ) -> Credentials:
        """
        POST to the token endpoint and build credentials from the reply.

        Raises:
            TokenRequestError: If the endpoint rejects the request
            requests.exceptions.RequestException: On network failure
        """
        response = self._post(data)

        if response.status_code != 200:
            error, description = parse_token_error(response)
            raise TokenRequestError(error, description, response.status_code)

        try:
            return Credentials.from_token_response(response.json(), fallback_refresh_token)
        except (ValueError, KeyError, TypeError) as e:
            raise TokenRequestError('invalid_response', f"Malformed token response: {e}",
                                    response.status_code)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(client_id='{self.client_id}')"


class _BrowserFlow(AuthorizationFlow):
    """Authorization code grant driven through the user's browser."""

    REFRESHABLE = True

    def __init__(
        self,
        client_id: str,
        api_client: SpotifyAPIClient,
        redirect_uri: str,
        client_secret: Optional[str] = None,
        scope: Optional[str] = None,
        state: Optional[str] = None,
        show_dialog: bool = False,
        callback_host: Optional[str] = None,
        callback_port: Optional[int] = None,
        callback_timeout: Optional[float] = 300,
        session: Optional[requests.Session] = None,
        auth_url: str = AUTH_URL,
        token_url: str = TOKEN_URL
    ):
        super().__init__(client_id, api_client, client_secret, session, token_url)
        parsed = urllib.parse.urlparse(redirect_uri)
        self.redirect_uri = redirect_uri
        self.scope = scope
        self.state = state
        self.show_dialog = show_dialog
        self.callback_host = callback_host or parsed.hostname or '0.0.0.0'
        self.callback_port = callback_port if callback_port is not None else (parsed.port or 8080)
        self.callback_timeout = callback_timeout
        self.auth_url = auth_url

    def _authorization_params(self) -> Dict[str, str]:
        return {}

    def _exchange_params(self) -> Dict[str, str]:
        return {}

    def _refresh_params(self) -> Dict[str, str]:
        return {}

    def get_authorization_url(self) -> str:
        """
        Build authorization URL for OAuth flow.

        Returns:
            Authorization URL
        """
        params = {
            'client_id': self.client_id,
            'response_type': 'code',
            'redirect_uri': self.redirect_uri,
            'show_dialog': 'true' if self.show_dialog else 'false',
        }
        if self.state is not None:
            params['state'] = self.state
        if self.scope:
            params['scope'] = self.scope
        params.update(self._authorization_params())

        return f"{self.auth_url}?{urllib.parse.urlencode(params)}"

    def _open_browser(self, auth_url: str) -> None:
        opened = False
        try:
            opened = webbrowser.open(auth_url)
        except webbrowser.Error as e:
            logger.warning(f"Couldn't open browser: {e}")

        if opened:
            logger.info("Opened browser for authorization")
        else:
            print("Please navigate to this url in a browser and authorize the application:")
            print(f"URI: {auth_url}")

    def _wait_for_code(self) -> Optional[str]:
        """
        Start the callback server, send the user to Spotify and wait.

        Returns:
            Authorization code, or None if the server could not start or timed out

        Raises:
            RedirectError: If the redirect carried no usable code
        """
        try:
            server = OAuthCallbackServer(self.callback_host, self.callback_port,
                                         expected_state=self.state)
        except OSError as e:
            logger.error(f"Couldn't start callback server on {self.callback_host}:{self.callback_port}: {e}")
            return None

        with server:
            self._open_browser(self.get_authorization_url())
            try:
                return server.get_auth_code(self.callback_timeout)
            except CallbackTimeoutError as e:
                logger.error(str(e))
                return None

    def authorize(self) -> Optional[Credentials]:
        """
        Perform OAuth authentication flow.
        Opens browser for user authorization.

        Returns:
            New credentials, or None if the code exchange failed
        """
        logger.info(f"Starting {self.name} authorization...")
        if self.scope:
            logger.info(f"Requesting scope: {self.scope}")

        authorization_code = self._wait_for_code()
        if not authorization_code:
            return None

        logger.info("Exchanging authorization code for tokens...")
        data = {
            'grant_type': 'authorization_code',
            'code': authorization_code,
            'redirect_uri': self.redirect_uri,
            'client_id': self.client_id,
        }
        data.update(self._exchange_params())

        try:
            credentials = self._request_token(data)
        except (TokenRequestError, requests.exceptions.RequestException) as e:
            logger.error(f"Token exchange failed: {e}")
            return None

        logger.info("Tokens obtained")
        return credentials

    def refresh(self) -> Optional[Credentials]:
        """
        Exchange the current refresh token for new credentials.

        Returns:
            New credentials, or None if refreshing is not possible
        """
        refresh_token = self.api_client.refresh_token
        if not refresh_token:
            logger.info("No refresh token available, a full authorization is required")
            return None

        logger.info("Refreshing access token...")
        data = {
            'grant_type': 'refresh_token',
            'refresh_token': refresh_token,
            'client_id': self.client_id,
        }
        data.update(self._refresh_params())

        try:
            credentials = self._request_token(data, fallback_refresh_token=refresh_token)
        except TokenRequestError as e:
            if e.description in TERMINAL_REFRESH_ERRORS:
                logger.info(f"{e.description}, a full authorization will be required")
            else:
                logger.error(f"Token refresh failed: {e}")
            return None
        except requests.exceptions.RequestException as e:
            logger.error(f"Token refresh failed: {e}")
            return None

        logger.info("Access token refreshed")
        return credentials


class PKCEFlow(_BrowserFlow):
    """Authorization code flow with PKCE; needs no client secret."""

    name = 'PKCE'
    REQUIRES_CLIENT_SECRET = False

    def __init__(self, client_id: str, api_client: SpotifyAPIClient, redirect_uri: str, **kwargs):
        super().__init__(client_id, api_client, redirect_uri, **kwargs)
        self.code_verifier, self.code_challenge = generate_pkce_pair()
        logger.debug(f"PKCE code challenge generated: {self.code_challenge}")

    def _authorization_params(self) -> Dict[str, str]:
        return {
            'code_challenge_method': 'S256',
            'code_challenge': self.code_challenge,
        }

    def _exchange_params(self) -> Dict[str, str]:
        return {'code_verifier': self.code_verifier}


class AuthorizationCodeFlow(_BrowserFlow):
    """Classic authorization code flow; authenticates with the client secret."""

    name = 'CodeFlow'
    REQUIRES_CLIENT_SECRET = True

    def _exchange_params(self) -> Dict[str, str]:
        return {'client_secret': self.client_secret or ''}

    def _refresh_params(self) -> Dict[str, str]:
        return {'client_secret': self.client_secret or ''}


class ClientCredentialsFlow(AuthorizationFlow):
    """App-only token from client id and secret; no user, no refresh token."""

    name = 'ClientCredentials'
    REFRESHABLE = False
    REQUIRES_CLIENT_SECRET = True

    def authorize(self) -> Optional[Credentials]:
        """
        Exchange client id and secret for an application token.

        Returns:
            New credentials without a refresh token, or None on failure
        """
        logger.info("Requesting client credentials token...")
        data = {
            'grant_type': 'client_credentials',
            'client_id': self.client_id,
            'client_secret': self.client_secret or '',
        }

        try:
            credentials = self._request_token(data)
        except (TokenRequestError, requests.exceptions.RequestException) as e:
            logger.error(f"Client credentials request failed: {e}")
            return None

        return dataclasses.replace(credentials, refresh_token=None)

    def refresh(self) -> Optional[Credentials]:
        return None


FLOW_TYPES = {
    flow.name.lower(): flow
    for flow in (PKCEFlow, AuthorizationCodeFlow, ClientCredentialsFlow)
}


def create_flow(
    flow_type: str,
    config: SpotifyConfig,
    api_client: SpotifyAPIClient,
    session: Optional[requests.Session] = None
) -> AuthorizationFlow:
    """
    Build the flow named by ``flow_type`` from configuration.

    Args:
        flow_type: 'PKCE', 'CodeFlow' or 'ClientCredentials' (case-insensitive)
        config: Spotify configuration
        api_client: Downstream API client
        session: HTTP session for token requests

    Raises:
        ConfigurationError: If the flow type is unknown
    """
    flow_class = FLOW_TYPES.get((flow_type or '').lower())
    if flow_class is None:
        supported = ', '.join(flow.name for flow in FLOW_TYPES.values())
        raise ConfigurationError(f"Unknown auth flow '{flow_type}' (supported: {supported})")

    logger.info(f"{flow_class.name} flow selected")

    if flow_class is ClientCredentialsFlow:
        return ClientCredentialsFlow(
            config.client_id,
            api_client,
            client_secret=config.client_secret,
            session=session
        )

    return flow_class(
        config.client_id,
        api_client,
        config.redirect_uri,
        client_secret=config.client_secret,
        scope=config.scopes,
        state=secrets.token_urlsafe(16),
        show_dialog=config.show_dialog,
        callback_host=config.callback_host,
        callback_port=config.callback_port,
        callback_timeout=config.callback_timeout,
        session=session
    )
