"""
Authentication manager.
Decides how to get a working access token: cached, refreshed, or freshly authorized.
"""
from enum import Enum
from typing import Optional

from clients.spotify_api import SpotifyAPIClient
from .credentials import Credentials
from .errors import ConfigurationError
from .flows import AuthorizationFlow
from .token_cache import TokenCache
from utils import setup_logger


logger = setup_logger(__name__)


class AuthStatus(Enum):
    SUCCESS = 'success'
    FAIL = 'fail'


class AuthManager:
    """
    Orchestrates the three authentication tiers, cheapest first.

    1. Load tokens from the cache and probe them.
    2. Refresh the cached refresh token (refreshable flows only).
    3. Run the flow's full authorization, which may need the user.

    A failed probe or refresh only moves on to the next tier; FAIL is
    returned once all tiers are exhausted.
    """

    def __init__(
        self,
        authorization_flow: AuthorizationFlow,
        api_client: SpotifyAPIClient,
        token_cache: Optional[TokenCache] = None,
        disable_token_caching: bool = False,
        disable_token_refresh: bool = False
    ):
        """
        Initialize auth manager.

        Args:
            authorization_flow: Flow used to authorize and refresh
            api_client: Client the obtained tokens are applied to
            token_cache: Token cache; caching is disabled without one
            disable_token_caching: Skip the cache (also disables refresh)
            disable_token_refresh: Skip the refresh tier
        """
        self.authorization_flow = authorization_flow
        self.api_client = api_client
        self.token_cache = token_cache
        self.token_caching_enabled = token_cache is not None and not disable_token_caching
        # Refreshing reads the refresh token from the cache
        self.token_refresh_enabled = self.token_caching_enabled and not disable_token_refresh
        self._credentials: Optional[Credentials] = None

    @property
    def credentials(self) -> Optional[Credentials]:
        """Credential set currently applied to the API client."""
        return self._credentials

    def check_configuration(self) -> None:
        """
        Fail fast when the flow needs a client secret that is not set.

        Raises:
            ConfigurationError: If the secret is missing
        """
        flow = self.authorization_flow
        if flow.requires_client_secret() and not flow.client_secret:
            raise ConfigurationError(
                f"The {flow.name} auth flow requires a client secret; "
                f"set SPOTIFY_CLIENT_SECRET or pass --client-secret"
            )

    def _apply(self, credentials: Credentials) -> None:
        self.api_client.set_access_token(credentials.access_token)
        # Not every flow hands out refresh tokens
        if self.authorization_flow.is_refreshable() and credentials.refresh_token:
            self.api_client.set_refresh_token(credentials.refresh_token)
        self._credentials = credentials

    def _cache(self, credentials: Credentials) -> None:
        if self.token_caching_enabled:
            self.token_cache.cache_tokens(credentials)

    def authenticate_with_token_cache(self) -> AuthStatus:
        """Try the cached access token."""
        if not self.token_caching_enabled:
            logger.info("Cannot load tokens from cache, token caching is disabled")
            return AuthStatus.FAIL

        if not self.token_cache.is_valid():
            logger.info("Cannot load tokens from cache, token cache is not usable")
            return AuthStatus.FAIL

        logger.info("Attempting to load tokens from the cache")
        credentials = self.token_cache.load_tokens()
        if credentials is None:
            return AuthStatus.FAIL

        self._apply(credentials)
        if self.api_client.probe():
            return AuthStatus.SUCCESS

        logger.info("Cached token was invalid")
        return AuthStatus.FAIL

    def authenticate_with_token_refresh(self) -> AuthStatus:
        """Try refreshing with the cached refresh token."""
        # Always check is_refreshable() before invoking refresh on a flow
        if not (self.token_refresh_enabled
                and self.authorization_flow.is_refreshable()
                and self.token_cache.exists()):
            return AuthStatus.FAIL

        logger.info("Attempting to refresh the access token using the cached refresh token")

        # Tier 1 skips expired records, so the refresh token may not be applied yet
        if not self.api_client.refresh_token:
            cached = self.token_cache.load_tokens()
            if cached is not None and cached.refresh_token:
                self.api_client.set_refresh_token(cached.refresh_token)

        credentials = self.authorization_flow.refresh()
        if credentials is None:
            return AuthStatus.FAIL

        self._apply(credentials)
        if not self.api_client.probe():
            return AuthStatus.FAIL

        self._cache(credentials)
        logger.info("Successfully refreshed the access token")
        return AuthStatus.SUCCESS

    def authenticate_with_full_sign_in(self) -> AuthStatus:
        """Run the flow's full authorization; the user may have to sign in."""
        logger.info("A full authorization is required, you may be asked to sign in")
        credentials = self.authorization_flow.authorize()
        if credentials is None:
            logger.error("Authorization did not return any tokens")
            return AuthStatus.FAIL

        self._apply(credentials)
        self._cache(credentials)

        if self.api_client.probe():
            logger.info("Successfully retrieved a new access token from Spotify")
            return AuthStatus.SUCCESS
        return AuthStatus.FAIL

    def authenticate(self) -> AuthStatus:
        """
        Authenticate the API client, cheapest method first.

        Returns:
            AuthStatus.SUCCESS once a token passes the probe, else AuthStatus.FAIL

        Raises:
            ConfigurationError: If the flow needs a client secret that is not set
            RedirectError: If the browser redirect was malformed
        """
        self.check_configuration()

        if self.authenticate_with_token_cache() is AuthStatus.SUCCESS:
            return AuthStatus.SUCCESS

        if self.authenticate_with_token_refresh() is AuthStatus.SUCCESS:
            return AuthStatus.SUCCESS

        return self.authenticate_with_full_sign_in()
