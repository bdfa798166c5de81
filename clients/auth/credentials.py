"""
Credential set returned by authorization flows and stored in the token cache.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional, Dict, Any


TIMESTAMP_FORMAT = '%Y-%m-%d %H:%M:%S'
DEFAULT_EXPIRES_IN = 3600


def _now() -> datetime:
    return datetime.now().replace(microsecond=0)


@dataclass(frozen=True)
class Credentials:
    """
    An access token plus its optional refresh token and expiry metadata.

    Instances are never mutated; a successful authorize or refresh
    produces a new one.
    """
    access_token: str
    refresh_token: Optional[str] = None
    expires_in: int = DEFAULT_EXPIRES_IN
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def from_token_response(
        cls,
        payload: Dict[str, Any],
        fallback_refresh_token: Optional[str] = None
    ) -> 'Credentials':
        """
        Build credentials from a token endpoint JSON body.

        Args:
            payload: Decoded token response
            fallback_refresh_token: Kept when the response carries no new
                refresh token (refresh responses often omit it)

        Raises:
            KeyError: If the response has no access token
        """
        return cls(
            access_token=payload['access_token'],
            refresh_token=payload.get('refresh_token') or fallback_refresh_token,
            expires_in=int(payload.get('expires_in', DEFAULT_EXPIRES_IN)),
        )

    @property
    def expires_at(self) -> datetime:
        return self.created_at + timedelta(seconds=self.expires_in)

    def is_expired(self, buffer_seconds: int = 300) -> bool:
        """True if the access token expires within ``buffer_seconds``."""
        return datetime.now() + timedelta(seconds=buffer_seconds) >= self.expires_at

    def __repr__(self) -> str:
        # Never print full tokens
        refresh = 'set' if self.refresh_token else None
        return (
            f"Credentials(access_token='{self.access_token[:6]}...', refresh_token={refresh}, "
            f"expires_in={self.expires_in}, created_at='{self.created_at.strftime(TIMESTAMP_FORMAT)}')"
        )
