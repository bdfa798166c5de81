"""
PKCE (Proof Key for Code Exchange) helpers.
"""
import base64
import hashlib
import secrets
from typing import NamedTuple


VERIFIER_BYTES = 32


class PKCEPair(NamedTuple):
    verifier: str
    challenge: str


def generate_code_verifier() -> str:
    """Generate PKCE code verifier."""
    return base64.urlsafe_b64encode(secrets.token_bytes(VERIFIER_BYTES)).decode('utf-8').rstrip('=')


def generate_code_challenge(verifier: str) -> str:
    """Generate PKCE code challenge from verifier."""
    digest = hashlib.sha256(verifier.encode('ascii')).digest()
    return base64.urlsafe_b64encode(digest).decode('utf-8').rstrip('=')


def generate_pkce_pair() -> PKCEPair:
    """Generate a fresh verifier and its S256 challenge."""
    verifier = generate_code_verifier()
    return PKCEPair(verifier, generate_code_challenge(verifier))
