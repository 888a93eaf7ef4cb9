"""
Project credential generation and hashing.

Security notes:
  • Both identifiers are drawn from `secrets` (CSPRNG) over a 62-symbol
    alphanumeric alphabet.
      public_id     kp_       + 12 chars  ≈  71 bits (not secret)
      secret_token  kal_live_ + 32 chars  ≈ 190 bits (sole ping credential)
  • SHA-256 is used for token hashing. It is acceptable because tokens are
    high-entropy random strings, not low-entropy passwords.
  • generate_credentials() returns the raw token exactly once; the caller
    must display it to the owner immediately. It is never stored.
"""

from __future__ import annotations

import hashlib
import secrets
import string
from dataclasses import dataclass

ALPHABET = string.digits + string.ascii_letters

PUBLIC_ID_PREFIX = "kp_"
PUBLIC_ID_LENGTH = 12
TOKEN_PREFIX = "kal_live_"
TOKEN_LENGTH = 32
# Characters of the raw token kept for display (prefix + 3 random chars)
TOKEN_DISPLAY_LENGTH = 12


@dataclass(frozen=True, slots=True)
class ProjectCredentials:
    """A freshly issued credential pair.

    Attributes:
        public_id:    External project identifier (safe to show).
        secret_token: Raw bearer token, shown once, never persisted.
        token_hash:   SHA-256 hex digest stored for lookup.
        token_prefix: Leading characters of the raw token for logs/UI.
    """

    public_id: str
    secret_token: str
    token_hash: str
    token_prefix: str


def _random_chars(length: int) -> str:
    return "".join(secrets.choice(ALPHABET) for _ in range(length))


def generate_public_id() -> str:
    """Return a new public project id, e.g. ``kp_5d9s8d7f6g5h``."""
    return f"{PUBLIC_ID_PREFIX}{_random_chars(PUBLIC_ID_LENGTH)}"


def generate_secret_token() -> str:
    """Return a new secret ping token, e.g. ``kal_live_9s8d…``."""
    return f"{TOKEN_PREFIX}{_random_chars(TOKEN_LENGTH)}"


def hash_secret_token(raw_token: str) -> str:
    """
    Hash a raw secret token using SHA-256.

    Returns the hex digest string for storage/lookup.
    """
    return hashlib.sha256(raw_token.encode("utf-8")).hexdigest()


def generate_credentials() -> ProjectCredentials:
    """Issue the (public_id, secret_token) pair for one new project."""
    raw_token = generate_secret_token()
    return ProjectCredentials(
        public_id=generate_public_id(),
        secret_token=raw_token,
        token_hash=hash_secret_token(raw_token),
        token_prefix=raw_token[:TOKEN_DISPLAY_LENGTH],
    )
