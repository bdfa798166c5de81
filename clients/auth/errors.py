"""
Authentication error types.
"""
from typing import Optional

from config import ConfigurationError


class AuthError(Exception):
    """Base class for authentication failures."""
    pass


class RedirectError(AuthError):
    """The OAuth redirect did not carry a usable authorization code."""

    def __init__(self, message: str, error: Optional[str] = None):
        super().__init__(message)
        self.error = error


class CallbackTimeoutError(RedirectError):
    """No redirect arrived before the listener timeout elapsed."""
    pass


class TokenRequestError(AuthError):
    """The token endpoint rejected a request."""

    def __init__(self, error: str, description: str = '', status_code: Optional[int] = None):
        message = f"{error}: {description}" if description else error
        super().__init__(message)
        self.error = error
        self.description = description
        self.status_code = status_code


__all__ = [
    'AuthError',
    'ConfigurationError',
    'RedirectError',
    'CallbackTimeoutError',
    'TokenRequestError'
]
