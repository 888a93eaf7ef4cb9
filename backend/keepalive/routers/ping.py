"""
Ping router — the single entry point for heartbeat ingestion.

POST /api/ping
  1. Extracts the Bearer token (401 if missing/malformed, no DB access).
  2. Derives the outcome from the optional body (never rejects on it).
  3. Applies the ping with one conditional UPDATE keyed by token,
     inside a fixed time budget.
  4. Falls back to a read-only lookup when nothing was updated:
     unknown token → 403, superseded ping → 200 without state change.
  5. Returns {"success": true, "message": ...} with 200 OK.

Failure bodies are produced by the exception handlers in keepalive.main.
"""

import asyncio
import datetime
import logging
from typing import Annotated

from fastapi import APIRouter, Depends, Request, status

from keepalive.auth.credentials import hash_secret_token
from keepalive.auth.dependencies import authenticate, get_bearer_token
from keepalive.core.config import settings
from keepalive.schemas.ping import PingResponse
from keepalive.services.liveness import parse_outcome
from keepalive.services.ping_store import PersistenceError, PingStore, get_ping_store

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Ingestion"])

# Type aliases for cleaner signatures
Store = Annotated[PingStore, Depends(get_ping_store)]
BearerToken = Annotated[str, Depends(get_bearer_token)]


@router.post(
    "/ping",
    response_model=PingResponse,
    response_model_exclude_none=True,
    status_code=status.HTTP_200_OK,
    summary="Record a heartbeat for the token's project",
    description=(
        "Authenticates the Bearer token, records the ping with an optional "
        '{"status": "ok" | "<anything else>"} outcome and acknowledges it. '
        "A failure outcome is still a successful ingestion."
    ),
    responses={
        401: {"model": PingResponse, "description": "Missing or malformed Authorization header"},
        403: {"model": PingResponse, "description": "Invalid API Token"},
        500: {"model": PingResponse, "description": "Internal Server Error"},
    },
)
async def record_ping(
    request: Request,
    token: BearerToken,
    store: Store,
) -> PingResponse:
    """
    Core ingestion endpoint.

    The body is read raw so that an unparseable payload degrades to the
    default success outcome instead of a 422.
    """

    # ── 1. Outcome from the optional body ───────────────────
    outcome, payload = parse_outcome(await request.body())
    now = datetime.datetime.now(datetime.timezone.utc)

    # ── 2. Authenticate + update, bounded ───────────────────
    try:
        async with asyncio.timeout(settings.PING_TIMEOUT_SECONDS):
            project = await store.record_ping(
                hash_secret_token(token),
                outcome,
                now,
                public_id=payload.project_id,
            )
            if project is not None:
                return PingResponse(success=True, message="Ping recorded")

            # Nothing updated: unknown token, or a newer ping already won.
            project = await authenticate(store, token, public_id=payload.project_id)
    except TimeoutError as exc:
        raise PersistenceError("ping exceeded its time budget") from exc

    logger.info("Superseded ping for %s ignored", project.public_id)
    return PingResponse(success=True, message="Ping recorded")
