"""Tests for the tab separated token cache."""

from datetime import datetime, timedelta
from pathlib import Path

from clients.auth.credentials import Credentials
from clients.auth.token_cache import CacheState, TokenCache


def _credentials(**kwargs) -> Credentials:
    defaults = {"access_token": "AT1", "refresh_token": "RT1", "expires_in": 3600}
    defaults.update(kwargs)
    return Credentials(**defaults)


def test_missing_file_is_not_valid(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")

    assert cache.exists() is False
    assert cache.is_valid() is False
    assert cache.get_state() is CacheState.CACHE_DNE
    assert cache.load_tokens() is None


def test_round_trip(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")
    original = _credentials()

    assert cache.cache_tokens(original) is True
    loaded = cache.load_tokens()

    assert loaded is not None
    assert loaded.access_token == original.access_token
    assert loaded.refresh_token == original.refresh_token
    assert loaded.expires_in == original.expires_in
    assert loaded.created_at == original.created_at
    assert cache.is_valid() is True


def test_caching_twice_gives_same_result(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")
    credentials = _credentials()

    cache.cache_tokens(credentials)
    first = cache.load_tokens()
    cache.cache_tokens(credentials)
    second = cache.load_tokens()

    assert first == second


def test_file_layout(tmp_path: Path) -> None:
    path = tmp_path / "token_cache.txt"
    created = datetime(2021, 10, 29, 14, 2, 16)
    TokenCache(path).cache_tokens(_credentials(created_at=created))

    assert path.read_text().splitlines() == [
        "ACCESS_TOKEN\tAT1",
        "REFRESH_TOKEN\tRT1",
        "ACCESS_DURATION_SECONDS\t3600",
        "ACCESS_CREATION_TIMESTAMP\t2021-10-29 14:02:16",
        "ACCESS_CREATION_FORMAT\tYY:MM:DD:HH:MM:SS",
    ]


def test_missing_refresh_token_round_trips_as_none(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")
    cache.cache_tokens(_credentials(refresh_token=None))

    assert cache.load_tokens().refresh_token is None


def test_legacy_null_refresh_token_and_no_timestamp(tmp_path: Path) -> None:
    path = tmp_path / "token_cache.txt"
    path.write_text("ACCESS_TOKEN\tAT0\nREFRESH_TOKEN\tnull\nACCESS_DURATION_SECONDS\t3600")

    loaded = TokenCache(path).load_tokens()

    assert loaded.access_token == "AT0"
    assert loaded.refresh_token is None


def test_expired_record_exists_but_is_not_valid(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")
    cache.cache_tokens(_credentials(created_at=datetime.now() - timedelta(hours=2)))

    assert cache.exists() is True
    assert cache.get_state() is CacheState.ACCESS_TOKEN_EXPIRED
    assert cache.is_valid() is False
    assert cache.load_tokens().refresh_token == "RT1"


def test_token_inside_expiry_buffer_is_expired(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")
    cache.cache_tokens(_credentials(expires_in=120))

    assert cache.is_valid() is False


def test_malformed_file_is_unusable_not_fatal(tmp_path: Path) -> None:
    path = tmp_path / "token_cache.txt"
    path.write_text("this is not a token cache\n")
    cache = TokenCache(path)

    assert cache.load_tokens() is None
    assert cache.get_state() is CacheState.ACCESS_TOKEN_INVALID
    assert cache.is_valid() is False


def test_non_numeric_duration_is_unusable(tmp_path: Path) -> None:
    path = tmp_path / "token_cache.txt"
    path.write_text("ACCESS_TOKEN\tAT1\nREFRESH_TOKEN\tRT1\nACCESS_DURATION_SECONDS\tsoon\n")

    assert TokenCache(path).load_tokens() is None


def test_write_failure_is_logged_not_raised(tmp_path: Path) -> None:
    blocker = tmp_path / "not_a_dir"
    blocker.write_text("")
    cache = TokenCache(blocker / "token_cache.txt")

    assert cache.cache_tokens(_credentials()) is False
    assert cache.load_tokens() is None


def test_write_creates_parent_directory(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "nested" / "dir" / "token_cache.txt")

    assert cache.cache_tokens(_credentials()) is True
    assert cache.exists() is True


def test_clear_tokens(tmp_path: Path) -> None:
    cache = TokenCache(tmp_path / "token_cache.txt")
    cache.cache_tokens(_credentials())

    cache.clear_tokens()
    cache.clear_tokens()

    assert cache.exists() is False


def test_credentials_from_token_response_keeps_previous_refresh_token() -> None:
    credentials = Credentials.from_token_response(
        {"access_token": "AT2", "expires_in": 1800}, fallback_refresh_token="RT1"
    )

    assert credentials.access_token == "AT2"
    assert credentials.refresh_token == "RT1"
    assert credentials.expires_in == 1800


def test_credentials_repr_hides_tokens() -> None:
    text = repr(_credentials(access_token="secret-access-token", refresh_token="secret-refresh"))

    assert "secret-access-token" not in text
    assert "secret-refresh" not in text


def test_undecodable_file_is_unusable(tmp_path: Path) -> None:
    path = tmp_path / "token_cache.txt"
    path.write_bytes(b"ACCESS_TOKEN\t\xff\xfe\x80\n")
    cache = TokenCache(path)

    assert cache.load_tokens() is None
    assert cache.get_state() is CacheState.ACCESS_TOKEN_INVALID
    assert cache.is_valid() is False


def test_out_of_range_duration_is_unusable(tmp_path: Path) -> None:
    path = tmp_path / "token_cache.txt"
    for duration in ("999999999999999", "-5"):
        path.write_text(f"ACCESS_TOKEN\tAT1\nREFRESH_TOKEN\tRT1\nACCESS_DURATION_SECONDS\t{duration}\n")
        cache = TokenCache(path)

        assert cache.load_tokens() is None
        assert cache.get_state() is CacheState.ACCESS_TOKEN_INVALID
