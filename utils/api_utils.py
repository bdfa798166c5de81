"""
API Utilities Module

Single Responsibility: Provide retry logic and error handling
- Retry failed requests with exponential backoff
- Handle common HTTP errors
- Parse Web API and token endpoint error bodies

This module contains helper functions for robust API communication.
"""

import time
from functools import wraps
from typing import Callable, Any, Optional, Tuple

import requests

from .logger import setup_logger


logger = setup_logger(__name__)


class APIError(Exception):
    """Raised when API requests fail after retries."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


def retry_on_failure(
    max_retries: int = 3,
    backoff_factor: float = 2.0,
    initial_delay: float = 1.0,
    exceptions: tuple = (requests.exceptions.ConnectionError, requests.exceptions.Timeout),
    status_codes_to_retry: tuple = (500, 502, 503, 504)
) -> Callable:
    """
    Decorator: Retry function with exponential backoff on failures.

    Only transport errors and 5xx responses are retried. Any other
    response is returned to the caller untouched.

    Args:
        max_retries: Maximum number of retry attempts
        backoff_factor: Multiplier for delay between retries
        initial_delay: Initial delay in seconds
        exceptions: Exceptions to catch and retry on
        status_codes_to_retry: HTTP codes to retry on

    Usage:
        @retry_on_failure()
        def api_call():
            return requests.post(...)
    """
    def decorator(func: Callable) -> Callable:
        @wraps(func)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            delay = initial_delay

            for attempt in range(max_retries + 1):
                try:
                    result = func(*args, **kwargs)
                except exceptions as e:
                    if attempt >= max_retries:
                        raise
                    logger.warning(
                        f"Network error: {e}. Retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{max_retries})..."
                    )
                else:
                    retryable = (
                        isinstance(result, requests.Response)
                        and result.status_code in status_codes_to_retry
                    )
                    if not retryable or attempt >= max_retries:
                        return result
                    logger.warning(
                        f"Error {result.status_code}, retrying in {delay:.1f}s "
                        f"(attempt {attempt + 1}/{max_retries})..."
                    )
                time.sleep(delay)
                delay *= backoff_factor
        return wrapper
    return decorator


def validate_response(response: requests.Response) -> dict:
    """
    Validate and parse API response.

    Args:
        response: requests.Response object

    Returns:
        Parsed JSON response

    Raises:
        APIError: If response is invalid (non-2xx or bad JSON)
    """
    # Check status code
    try:
        response.raise_for_status()
    except requests.exceptions.HTTPError as e:
        # Try to get error message from response (Spotify JSON format)
        try:
            error_data = response.json()
            error = error_data.get('error', {})
            if isinstance(error, dict):
                error_msg = error.get('message', str(e))
            else:
                error_msg = error_data.get('error_description', error)
        except ValueError:
            error_msg = str(e)
        raise APIError(f"API request failed: {error_msg}", response.status_code)

    # Parse JSON
    try:
        data = response.json()
    except ValueError as e:
        raise APIError(f"Invalid JSON response: {e}", response.status_code)

    return data


def parse_token_error(response: requests.Response) -> Tuple[str, str]:
    """
    Extract the OAuth error code and description from a token endpoint reply.

    The accounts service answers failed token requests with
    ``{"error": "invalid_grant", "error_description": "Invalid refresh token"}``.

    Args:
        response: Failed token endpoint response

    Returns:
        Tuple of (error, error_description)
    """
    try:
        body = response.json()
    except ValueError:
        return 'http_error', (response.text or '').strip() or f"HTTP {response.status_code}"

    if not isinstance(body, dict):
        return 'http_error', str(body)

    error = body.get('error', 'http_error')
    if isinstance(error, dict):
        # Web API style body
        return str(error.get('status', 'http_error')), str(error.get('message', ''))

    return str(error), str(body.get('error_description', ''))
