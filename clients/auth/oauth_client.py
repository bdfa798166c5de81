"""
OAuth Client wrapper.
Wires configuration, flow, token cache and API client together.
"""
from typing import Optional

import requests

from config import SpotifyConfig
from clients.spotify_api import SpotifyAPIClient
from .auth_manager import AuthManager, AuthStatus
from .flows import AuthorizationFlow, create_flow
from .token_cache import TokenCache
from utils import setup_logger


logger = setup_logger(__name__)


class OAuthClient:
    """
    Simple OAuth client wrapper.
    Provides convenience methods for common OAuth operations.
    """

    def __init__(
        self,
        config: SpotifyConfig,
        api_client: Optional[SpotifyAPIClient] = None,
        session: Optional[requests.Session] = None
    ):
        """
        Initialize OAuth client.

        Args:
            config: Spotify configuration
            api_client: API client to authenticate (a new one by default)
            session: HTTP session for token requests
        """
        self.config = config
        self.api_client = api_client or SpotifyAPIClient()
        self.token_cache = TokenCache(config.token_cache_path)
        self.flow: AuthorizationFlow = create_flow(config.auth_flow, config, self.api_client, session)
        self.auth_manager = AuthManager(
            self.flow,
            self.api_client,
            token_cache=self.token_cache,
            disable_token_caching=config.disable_token_caching,
            disable_token_refresh=config.disable_token_refresh
        )

        logger.info(f"Token caching {'disabled' if config.disable_token_caching else 'enabled'}")
        logger.info(f"Token refresh {'disabled' if config.disable_token_refresh else 'enabled'}")

    def authenticate(self) -> AuthStatus:
        """Authenticate the API client."""
        return self.auth_manager.authenticate()

    def is_authenticated(self) -> bool:
        """
        Check if the cache holds a token that has not expired.

        Returns:
            True if authenticated, False otherwise
        """
        return self.token_cache.is_valid()

    def clear_tokens(self) -> None:
        """Clear stored tokens."""
        self.token_cache.clear_tokens()
        logger.info("Tokens cleared - re-authentication required")


__all__ = ['OAuthClient']
