"""
Token cache for storing and retrieving OAuth tokens.
Persists the most recent credential set to a single local file.
"""
import os
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Optional, Dict

from .credentials import Credentials, TIMESTAMP_FORMAT
from utils import setup_logger


logger = setup_logger(__name__)


class CacheState(Enum):
    CACHE_DNE = 'cache_dne'
    ACCESS_TOKEN_EXPIRED = 'access_token_expired'
    ACCESS_TOKEN_VALID = 'access_token_valid'
    ACCESS_TOKEN_INVALID = 'access_token_invalid'


class TokenCache:
    """
    Manages OAuth token storage and retrieval.

    Stores one credential set as tab separated ``KEY\\tvalue`` lines:

        ACCESS_TOKEN            access token
        REFRESH_TOKEN           refresh token (empty when absent)
        ACCESS_DURATION_SECONDS token lifetime
        ACCESS_CREATION_TIMESTAMP  creation time, YYYY-MM-DD HH:MM:SS
        ACCESS_CREATION_FORMAT  format tag

    Read and write failures are logged and reported as an unusable cache,
    never raised.
    """

    FIELDS = (
        'ACCESS_TOKEN',
        'REFRESH_TOKEN',
        'ACCESS_DURATION_SECONDS',
        'ACCESS_CREATION_TIMESTAMP',
    )
    FORMAT_TAG = ('ACCESS_CREATION_FORMAT', 'YY:MM:DD:HH:MM:SS')

    def __init__(self, storage_path: Path = Path('token_cache.txt'), expiry_buffer: int = 300):
        """
        Initialize token cache.

        Args:
            storage_path: Path to token cache file
            expiry_buffer: Seconds before expiry at which a token counts as expired
        """
        self.storage_path = Path(storage_path)
        self.expiry_buffer = expiry_buffer

    def exists(self) -> bool:
        """True if a cache record has been written."""
        return self.storage_path.is_file()

    def cache_tokens(self, credentials: Credentials) -> bool:
        """
        Save tokens to storage, replacing the whole record.

        Args:
            credentials: Credential set to persist

        Returns:
            True if the record was written
        """
        values = (
            credentials.access_token,
            credentials.refresh_token or '',
            str(credentials.expires_in),
            credentials.created_at.strftime(TIMESTAMP_FORMAT),
        )
        lines = [f"{key}\t{value}" for key, value in zip(self.FIELDS, values)]
        lines.append('\t'.join(self.FORMAT_TAG))

        tmp_path = self.storage_path.with_name(self.storage_path.name + '.tmp')
        try:
            self.storage_path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, 'w', encoding='utf-8') as f:
                f.write('\n'.join(lines) + '\n')
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.storage_path)
        except OSError as e:
            logger.error(f"Failed to cache tokens to {self.storage_path}: {e}")
            try:
                tmp_path.unlink()
            except OSError:
                pass
            return False

        logger.info(f'Cached tokens to file with name "{self.storage_path}"')
        logger.debug(f"Wrote {credentials!r}")
        return True

    def _read_record(self) -> Optional[Dict[str, str]]:
        try:
            with open(self.storage_path, 'r', encoding='utf-8') as f:
                lines = f.read().splitlines()
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read token cache {self.storage_path}: {e}")
            return None

        record = {}
        for line in lines:
            if not line.strip():
                continue
            key, sep, value = line.partition('\t')
            if not sep:
                logger.warning(f"Malformed token cache line in {self.storage_path}: {line!r}")
                return None
            record[key] = value.strip()
        return record

    def _parse(self, record: Dict[str, str]) -> Optional[Credentials]:
        try:
            access_token = record['ACCESS_TOKEN']
            refresh_token = record.get('REFRESH_TOKEN') or None
            expires_in = int(record['ACCESS_DURATION_SECONDS'])
            timestamp = record.get('ACCESS_CREATION_TIMESTAMP')
        except (KeyError, ValueError) as e:
            logger.warning(f"Token cache {self.storage_path} is malformed: {e}")
            return None

        if not access_token:
            logger.warning(f"Token cache {self.storage_path} has no access token")
            return None

        # Older cache files hold a literal "null" for a missing refresh token
        if refresh_token == 'null':
            refresh_token = None

        kwargs = {}
        if timestamp:
            try:
                kwargs['created_at'] = datetime.strptime(timestamp, TIMESTAMP_FORMAT)
            except ValueError as e:
                logger.warning(f"Token cache {self.storage_path} has a bad timestamp: {e}")
                return None

        if expires_in < 0:
            logger.warning(f"Token cache {self.storage_path} has a negative duration: {expires_in}")
            return None

        credentials = Credentials(access_token=access_token, refresh_token=refresh_token,
                                  expires_in=expires_in, **kwargs)
        # Durations past datetime's range cannot be compared against the clock
        try:
            credentials.expires_at
        except OverflowError as e:
            logger.warning(f"Token cache {self.storage_path} has an out of range duration: {e}")
            return None
        return credentials

    def load_tokens(self) -> Optional[Credentials]:
        """
        Load tokens from storage.

        Returns:
            Cached credentials or None if missing or unreadable
        """
        if not self.exists():
            logger.debug("No cached tokens found")
            return None

        record = self._read_record()
        if record is None:
            return None

        credentials = self._parse(record)
        if credentials is not None:
            logger.info(f'Loaded tokens from file with name "{self.storage_path}"')
            logger.debug(f"Loaded {credentials!r}")
        return credentials

    def get_state(self) -> CacheState:
        """Describe the persisted record."""
        if not self.exists():
            return CacheState.CACHE_DNE

        credentials = self.load_tokens()
        if credentials is None:
            return CacheState.ACCESS_TOKEN_INVALID
        if credentials.is_expired(self.expiry_buffer):
            return CacheState.ACCESS_TOKEN_EXPIRED
        return CacheState.ACCESS_TOKEN_VALID

    def is_valid(self) -> bool:
        """
        Check whether the cached access token can be used as is.

        Returns:
            True if the record exists, parses, and is not expired
        """
        state = self.get_state()

        if state is CacheState.CACHE_DNE:
            logger.info("Token cache does not exist")
        elif state is CacheState.ACCESS_TOKEN_EXPIRED:
            logger.info("Cached token was expired")
        elif state is CacheState.ACCESS_TOKEN_INVALID:
            logger.info("Token cache is unreadable")

        return state is CacheState.ACCESS_TOKEN_VALID

    def clear_tokens(self) -> None:
        """Delete stored tokens."""
        try:
            self.storage_path.unlink()
        except FileNotFoundError:
            return
        except OSError as e:
            logger.error(f"Failed to delete token cache {self.storage_path}: {e}")
            return
        logger.info("Tokens cleared")
