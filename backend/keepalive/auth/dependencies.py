"""
Bearer-token authentication for the ping channel.

Flow:
  1. Extract Bearer token from Authorization header (no storage access)
  2. Hash the token (SHA-256)
  3. Look up the project by hash (timing depends on the digest only)
  4. Constant-time compare of project_id, when one is supplied
  5. Return the Project

Security:
  • Malformed headers fail fast with 401, before any lookup
  • Unknown, deleted and mismatched tokens share one 403
  • Raw tokens are NEVER logged
"""

from __future__ import annotations

import hmac
import logging

from fastapi import Header

from keepalive.auth.credentials import hash_secret_token
from keepalive.auth.errors import InvalidTokenError, MalformedHeaderError
from keepalive.models.project import Project
from keepalive.services.ping_store import PingStore

logger = logging.getLogger(__name__)

_BEARER_SCHEME = "Bearer"


def parse_bearer_token(authorization: str | None) -> str:
    """
    Return the token from an `Authorization: Bearer <token>` header.

    Raises MalformedHeaderError for:
      - Missing header
      - Any scheme other than exactly "Bearer"
      - Empty token, or extra whitespace-separated parts
    """
    if not authorization:
        raise MalformedHeaderError("missing Authorization header")

    scheme, _, token = authorization.partition(" ")
    if scheme != _BEARER_SCHEME:
        raise MalformedHeaderError("unsupported Authorization scheme")
    if not token or token != token.strip() or " " in token:
        raise MalformedHeaderError("empty or malformed bearer token")

    return token


async def get_bearer_token(
    authorization: str | None = Header(default=None, alias="Authorization"),
) -> str:
    """FastAPI dependency — resolves the Authorization header to a raw token."""
    return parse_bearer_token(authorization)


async def authenticate(
    store: PingStore,
    presented_token: str,
    public_id: str | None = None,
) -> Project:
    """
    Resolve a presented token to its Project. Read-only.

    When `public_id` is given, the token must also belong to that project.
    Raises InvalidTokenError otherwise; the caller cannot tell an unknown
    token from a mismatched one.

    The lookup is keyed by the SHA-256 digest, never the raw token, so
    lookup timing reveals nothing about how much of a guess was right.
    """
    token_hash = hash_secret_token(presented_token)
    project = await store.find_by_token_hash(token_hash)

    if project is None:
        raise InvalidTokenError("unknown token")

    if public_id is not None and not hmac.compare_digest(
        project.public_id.encode("utf-8"), public_id.encode("utf-8")
    ):
        logger.warning(
            "Token %s presented with mismatched project_id", project.token_prefix
        )
        raise InvalidTokenError("token does not match project_id")

    return project
