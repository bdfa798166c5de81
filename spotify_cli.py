"""
Command line interface for interacting with Spotify.

Authenticates using cached tokens, a refreshed token, or a full browser
sign in (in that order), then runs the requested command.
"""
import argparse
import sys
from typing import Optional, List

from config import AppConfig, ConfigurationError
from clients.auth import OAuthClient, AuthStatus, RedirectError
from utils import setup_logger, set_log_level, APIError


logger = setup_logger(__name__)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog='spotify-cli',
        description='A CLI for interacting with Spotify'
    )
    parser.add_argument('--client-id', help='The client ID to use')
    parser.add_argument(
        '--client-secret',
        help='The client secret to use (if one is required for the selected auth flow)'
    )
    parser.add_argument(
        '--auth-flow',
        choices=['PKCE', 'CodeFlow', 'ClientCredentials'],
        help='The authorization flow to use (default: PKCE)'
    )
    parser.add_argument('--redirect-uri', help='The redirect URI registered for the app')
    parser.add_argument('--scopes', help='Comma or space separated scopes to request')
    parser.add_argument('--token-cache', dest='token_cache_path', help='Path of the token cache file')
    parser.add_argument(
        '--disable-token-caching',
        action='store_true',
        default=None,
        help='Do not read or write the token cache (also disables refresh)'
    )
    parser.add_argument(
        '--disable-token-refresh',
        action='store_true',
        default=None,
        help='Do not refresh expired tokens; sign in again instead'
    )
    parser.add_argument('--env-file', help='Path to a .env file')
    parser.add_argument(
        '--log-level',
        choices=['DEBUG', 'INFO', 'WARNING', 'ERROR'],
        help='Logging level (default: INFO)'
    )

    subparsers = parser.add_subparsers(dest='command', required=True)
    subparsers.add_parser('auth', help='Authenticate and cache tokens')
    subparsers.add_parser('logout', help='Delete cached tokens')
    subparsers.add_parser('me', help='Show the signed in user (needs a user auth flow)')

    info = subparsers.add_parser('info', help='Show information about an item')
    info.add_argument('item_type', choices=['artist', 'album', 'track'])
    info.add_argument('item_id', help='Spotify ID of the item')

    return parser


def load_config(args: argparse.Namespace) -> AppConfig:
    return AppConfig.load(
        env_file=args.env_file,
        client_id=args.client_id,
        client_secret=args.client_secret,
        auth_flow=args.auth_flow,
        redirect_uri=args.redirect_uri,
        scopes=args.scopes,
        token_cache_path=args.token_cache_path,
        disable_token_caching=args.disable_token_caching,
        disable_token_refresh=args.disable_token_refresh,
        log_level=args.log_level
    )


def show_item(client: OAuthClient, item_type: str, item_id: str) -> None:
    api = client.api_client
    fetch = {
        'artist': api.get_artist,
        'album': api.get_album,
        'track': api.get_track,
    }[item_type]

    item = fetch(item_id)
    print(f"{item_type.capitalize()}: {item.get('name')}")
    artists = item.get('artists') or []
    if artists:
        print(f"Artists: {', '.join(a.get('name', '') for a in artists)}")
    if item.get('external_urls', {}).get('spotify'):
        print(f"URL: {item['external_urls']['spotify']}")


def show_current_user(client: OAuthClient) -> None:
    user = client.api_client.get_current_user()
    print(f"User: {user.get('display_name') or user.get('id')}")
    if user.get('email'):
        print(f"Email: {user['email']}")
    if user.get('product'):
        print(f"Plan: {user['product']}")


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        config = load_config(args)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    set_log_level(config.log_level)

    try:
        client = OAuthClient(config.spotify)
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1

    if args.command == 'logout':
        client.clear_tokens()
        return 0

    try:
        status = client.authenticate()
    except ConfigurationError as e:
        print(f"ERROR: {e}", file=sys.stderr)
        return 1
    except RedirectError as e:
        logger.error(f"Authorization was rejected: {e}")
        return 1

    if status is AuthStatus.FAIL:
        logger.error("Authentication failed")
        return 1

    if args.command == 'auth':
        print("Authenticated with Spotify")
        return 0

    try:
        if args.command == 'me':
            show_current_user(client)
        else:
            show_item(client, args.item_type, args.item_id)
    except APIError as e:
        logger.error(f"Request failed: {e}")
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
