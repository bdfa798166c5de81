"""
Authentication module for Spotify OAuth.
Handles authorization flows, token caching, and the redirect listener.
"""
from .credentials import Credentials
from .errors import (
    AuthError,
    ConfigurationError,
    RedirectError,
    CallbackTimeoutError,
    TokenRequestError
)
from .pkce import generate_code_verifier, generate_code_challenge, generate_pkce_pair
from .token_cache import TokenCache, CacheState
from .oauth_server import OAuthCallbackServer
from .flows import (
    AuthorizationFlow,
    PKCEFlow,
    AuthorizationCodeFlow,
    ClientCredentialsFlow,
    create_flow
)
from .auth_manager import AuthManager, AuthStatus
from .oauth_client import OAuthClient

__all__ = [
    'Credentials',
    'AuthError',
    'ConfigurationError',
    'RedirectError',
    'CallbackTimeoutError',
    'TokenRequestError',
    'generate_code_verifier',
    'generate_code_challenge',
    'generate_pkce_pair',
    'TokenCache',
    'CacheState',
    'OAuthCallbackServer',
    'AuthorizationFlow',
    'PKCEFlow',
    'AuthorizationCodeFlow',
    'ClientCredentialsFlow',
    'create_flow',
    'AuthManager',
    'AuthStatus',
    'OAuthClient'
]
