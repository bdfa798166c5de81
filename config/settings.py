"""
Centralized configuration from environment variables.
Loads all secrets and settings without hardcoding.

Precedence, highest first: explicit overrides (command line flags),
process environment, variables set in a .env file, built-in defaults.
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Any
from urllib.parse import urlparse

from dotenv import load_dotenv


DEFAULT_CLIENT_ID = 'e896df19119b4105a6e49585b8013bb9'
DEFAULT_REDIRECT_URI = 'http://localhost:8080'
DEFAULT_AUTH_FLOW = 'PKCE'
DEFAULT_TOKEN_CACHE_PATH = 'token_cache.txt'
DEFAULT_CALLBACK_TIMEOUT = 300.0
DEFAULT_CALLBACK_HOST = '0.0.0.0'
DEFAULT_CALLBACK_PORT = 8080


class ConfigurationError(ValueError):
    """Raised when required configuration is missing or invalid."""
    pass


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in ('1', 'true', 'yes', 'on')


def _choose(env_var: str, override: Any = None, default: Any = None) -> Any:
    """Pick the override, then the environment variable, then the default."""
    if override is not None:
        return override
    value = os.getenv(env_var)
    if value is None or value.strip() in ('', 'null'):
        return default
    return value.strip()


@dataclass(frozen=True)
class SpotifyConfig:
    """Spotify API and authentication configuration."""
    client_id: str
    redirect_uri: str
    client_secret: Optional[str] = None
    auth_flow: str = DEFAULT_AUTH_FLOW
    scopes: Optional[str] = None
    token_cache_path: Path = Path(DEFAULT_TOKEN_CACHE_PATH)
    disable_token_caching: bool = False
    disable_token_refresh: bool = False
    callback_timeout: Optional[float] = DEFAULT_CALLBACK_TIMEOUT
    show_dialog: bool = False

    @classmethod
    def from_env(cls, **overrides: Any) -> 'SpotifyConfig':
        """
        Load from environment variables.

        Args:
            **overrides: Field values that take precedence over the
                environment (None means "not given")
        """
        scopes = _choose('SPOTIFY_AUTH_SCOPES', overrides.get('scopes'))
        if scopes:
            scopes = scopes.replace(',', ' ')

        timeout = _choose('SPOTIFY_CALLBACK_TIMEOUT', overrides.get('callback_timeout'),
                          DEFAULT_CALLBACK_TIMEOUT)
        timeout = float(timeout)

        return cls(
            client_id=_choose('SPOTIFY_CLIENT_ID', overrides.get('client_id'), DEFAULT_CLIENT_ID),
            client_secret=_choose('SPOTIFY_CLIENT_SECRET', overrides.get('client_secret')),
            redirect_uri=_choose('SPOTIFY_REDIRECT_URI', overrides.get('redirect_uri'),
                                 DEFAULT_REDIRECT_URI),
            auth_flow=_choose('SPOTIFY_AUTH_FLOW', overrides.get('auth_flow'), DEFAULT_AUTH_FLOW),
            scopes=scopes,
            token_cache_path=Path(_choose('SPOTIFY_TOKEN_CACHE_PATH',
                                          overrides.get('token_cache_path'),
                                          DEFAULT_TOKEN_CACHE_PATH)),
            disable_token_caching=_parse_bool(
                _choose('DISABLE_TOKEN_CACHING', overrides.get('disable_token_caching'), False)),
            disable_token_refresh=_parse_bool(
                _choose('DISABLE_TOKEN_REFRESH', overrides.get('disable_token_refresh'), False)),
            callback_timeout=timeout if timeout > 0 else None,
            show_dialog=_parse_bool(
                _choose('SPOTIFY_SHOW_DIALOG', overrides.get('show_dialog'), False)),
        )

    @property
    def callback_host(self) -> str:
        """Host the redirect listener binds to, taken from the redirect URI."""
        return urlparse(self.redirect_uri).hostname or DEFAULT_CALLBACK_HOST

    @property
    def callback_port(self) -> int:
        """Port the redirect listener binds to, taken from the redirect URI."""
        return urlparse(self.redirect_uri).port or DEFAULT_CALLBACK_PORT

    def validate(self) -> None:
        """Validate required fields are present."""
        if not self.client_id:
            raise ConfigurationError("SPOTIFY_CLIENT_ID is required")
        if not self.redirect_uri:
            raise ConfigurationError("SPOTIFY_REDIRECT_URI is required")

        parsed = urlparse(self.redirect_uri)
        if parsed.scheme not in ('http', 'https') or not parsed.hostname:
            raise ConfigurationError(f"Redirect URI is invalid: {self.redirect_uri}")


@dataclass(frozen=True)
class AppConfig:
    """Application-wide configuration."""
    spotify: SpotifyConfig
    log_level: str = "INFO"

    @classmethod
    def load(cls, env_file: Optional[str] = None, **overrides: Any) -> 'AppConfig':
        """
        Load all configuration.

        Args:
            env_file: Path to .env file (optional, will search parent dirs)
            **overrides: SpotifyConfig field values given on the command line
        """
        # Load environment from .env file if it exists; real environment wins
        if env_file:
            load_dotenv(env_file)
        else:
            load_dotenv()  # Searches parent directories

        log_level = overrides.pop('log_level', None)

        config = cls(
            spotify=SpotifyConfig.from_env(**overrides),
            log_level=log_level or os.getenv('LOG_LEVEL', 'INFO')
        )

        # Validate critical settings
        config.spotify.validate()

        return config
