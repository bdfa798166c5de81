"""
Spotify Web API client.
Holds the current tokens and issues authenticated requests.
"""
import time
from typing import Dict, Any, Optional

import requests

from utils import setup_logger, APIError, validate_response


logger = setup_logger(__name__)


class SpotifyAPIClient:
    """
    Spotify Web API client.

    Responsibilities:
    - Hold the access/refresh tokens applied by the auth manager
    - Probe whether the current access token is accepted
    - Fetch artists, albums and tracks
    - Retry with exponential backoff and respect rate limits
    """

    BASE_URL = "https://api.spotify.com/v1"

    # Weezer; any stable public artist works for the connectivity probe
    PROBE_ARTIST_ID = "3jOstUTkEu2JkjvRdBA5Gu"

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        request_timeout: float = 30
    ):
        """
        Initialize API client.

        Args:
            session: HTTP session to use (a new one by default)
            max_retries: Attempts per request
            retry_delay: Initial backoff delay in seconds
            request_timeout: Per request timeout in seconds
        """
        self.session = session or requests.Session()
        self.max_retries = max_retries
        self.retry_delay = retry_delay
        self.request_timeout = request_timeout
        self._access_token: Optional[str] = None
        self._refresh_token: Optional[str] = None

    @property
    def access_token(self) -> Optional[str]:
        return self._access_token

    @property
    def refresh_token(self) -> Optional[str]:
        return self._refresh_token

    def set_access_token(self, access_token: str) -> None:
        self._access_token = access_token

    def set_refresh_token(self, refresh_token: str) -> None:
        self._refresh_token = refresh_token

    def _make_request(
        self,
        endpoint: str,
        params: Optional[Dict] = None,
        method: str = 'GET',
        max_retries: Optional[int] = None
    ) -> Dict:
        """
        Make authenticated API request with retry logic.

        Args:
            endpoint: API endpoint (e.g., '/artists/{id}')
            params: Query parameters
            method: HTTP method
            max_retries: Override for the number of attempts

        Returns:
            Response JSON

        Raises:
            APIError: If the request fails or all retries are exhausted
        """
        if not self._access_token:
            raise APIError("No access token set")

        url = f"{self.BASE_URL}{endpoint}"
        attempts = max_retries or self.max_retries

        for attempt in range(attempts):
            headers = {
                'Authorization': f'Bearer {self._access_token}',
                'Content-Type': 'application/json'
            }

            try:
                response = self.session.request(
                    method=method,
                    url=url,
                    headers=headers,
                    params=params,
                    timeout=self.request_timeout
                )
            except requests.exceptions.RequestException as e:
                if attempt < attempts - 1:
                    wait_time = self.retry_delay * (2 ** attempt)
                    logger.warning(f"Request failed: {e}. Retrying in {wait_time}s...")
                    time.sleep(wait_time)
                    continue
                raise APIError(f"API request failed after {attempts} attempts: {e}")

            # Handle rate limiting
            if response.status_code == 429 and attempt < attempts - 1:
                retry_after = self._retry_after(response)
                logger.warning(f"Rate limited. Waiting {retry_after}s...")
                time.sleep(retry_after)
                continue

            # Server errors are worth another try; client errors are final
            if response.status_code >= 500 and attempt < attempts - 1:
                wait_time = self.retry_delay * (2 ** attempt)
                logger.warning(f"API error {response.status_code}, retrying in {wait_time}s...")
                time.sleep(wait_time)
                continue

            return validate_response(response)

        raise APIError("Max retries exceeded")

    def _retry_after(self, response: requests.Response) -> float:
        """Seconds to wait after a 429; falls back to retry_delay when the header is unusable."""
        try:
            retry_after = float(response.headers.get('Retry-After', self.retry_delay))
        except (TypeError, ValueError):
            return self.retry_delay
        return retry_after if 0 <= retry_after < float('inf') else self.retry_delay

    def probe(self) -> bool:
        """
        Check that the current access token is accepted.

        Returns:
            True if a minimal read request succeeds
        """
        try:
            self._make_request(f'/artists/{self.PROBE_ARTIST_ID}', max_retries=1)
        except APIError as e:
            logger.info("Spotify connection test with current tokens FAILED")
            logger.debug(f"Probe error: {e}")
            return False

        logger.info("Spotify connection test with current tokens SUCCEEDED")
        return True

    def get_artist(self, artist_id: str) -> Dict[str, Any]:
        """Fetch an artist by Spotify ID."""
        return self._make_request(f'/artists/{artist_id}')

    def get_album(self, album_id: str) -> Dict[str, Any]:
        """Fetch an album by Spotify ID."""
        return self._make_request(f'/albums/{album_id}')

    def get_track(self, track_id: str) -> Dict[str, Any]:
        """Fetch a track by Spotify ID."""
        return self._make_request(f'/tracks/{track_id}')

    def get_current_user(self) -> Dict[str, Any]:
        """Fetch the profile of the user who authorized the app."""
        return self._make_request('/me')
