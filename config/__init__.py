"""
Configuration package for the Spotify CLI.
Centralized configuration management using environment variables.
"""
from .settings import (
    SpotifyConfig,
    AppConfig,
    ConfigurationError
)

__all__ = [
    'SpotifyConfig',
    'AppConfig',
    'ConfigurationError'
]
