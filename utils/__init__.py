"""
Utilities package for the Spotify CLI.
Provides common utilities for logging and API helpers.
"""
from .logger import setup_logger, set_log_level, ColoredFormatter
from .api_utils import APIError, retry_on_failure, validate_response, parse_token_error

__all__ = [
    'setup_logger',
    'set_log_level',
    'ColoredFormatter',
    'APIError',
    'retry_on_failure',
    'validate_response',
    'parse_token_error'
]
