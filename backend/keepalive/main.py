"""
FastAPI application entrypoint.

Lifespan:
  • On startup: verify DB connectivity (non-fatal).
  • On shutdown: dispose the engine cleanly.

Routers:
  • /api/ping — heartbeat ingestion
  • /health   — shallow health check

Error mapping (body is always {"success": false, "error": ...}):
  • MalformedHeaderError → 401
  • InvalidTokenError    → 403
  • PersistenceError     → 500, detail logged server-side only
  • anything else        → 500, same opaque body
"""

import logging
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy import text

from keepalive.auth.errors import InvalidTokenError, MalformedHeaderError
from keepalive.core.config import settings
from keepalive.core.database import engine
from keepalive.routers.ping import router as ping_router
from keepalive.services.ping_store import PersistenceError

logging.basicConfig(
    level=logging.DEBUG if settings.DEBUG else logging.INFO,
    format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan ────────────────────────────────────────────────
@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""

    # Startup — verify DB is reachable
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
        logger.info("Database connection verified ✓")
    except Exception:
        logger.warning(
            "Could not reach the database on startup. "
            "The app will start, but pings will fail until the DB is available."
        )

    yield  # ← application runs here

    # Shutdown — clean up connection pool
    await engine.dispose()
    logger.info("Database engine disposed ✓")


# ── Error handlers ──────────────────────────────────────────
def _error(status_code: int, message: str, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"success": False, "error": message},
        headers=headers,
    )


async def malformed_header_handler(_request: Request, exc: MalformedHeaderError) -> JSONResponse:
    logger.info("Rejected ping: %s", exc)
    return _error(
        status.HTTP_401_UNAUTHORIZED,
        "Missing or malformed Authorization header",
        headers={"WWW-Authenticate": "Bearer"},
    )


async def invalid_token_handler(_request: Request, exc: InvalidTokenError) -> JSONResponse:
    logger.info("Rejected ping: %s", exc)
    return _error(status.HTTP_403_FORBIDDEN, "Invalid API Token")


async def persistence_error_handler(_request: Request, exc: PersistenceError) -> JSONResponse:
    logger.error("Ping failed: %s", exc, exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


async def unhandled_error_handler(_request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled error during request: %r", exc, exc_info=exc)
    return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "Internal Server Error")


# ── App ─────────────────────────────────────────────────────
def create_app() -> FastAPI:
    """Build the FastAPI application (also used by tests)."""
    app = FastAPI(
        title=settings.APP_NAME,
        version="0.1.0",
        description=(
            "Dead-man's-switch monitoring: scheduled jobs ping, "
            "silence turns a project dead."
        ),
        lifespan=lifespan,
    )

    app.add_exception_handler(MalformedHeaderError, malformed_header_handler)
    app.add_exception_handler(InvalidTokenError, invalid_token_handler)
    app.add_exception_handler(PersistenceError, persistence_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)

    # Mount routers
    app.include_router(ping_router, prefix="/api")

    # ── Health check ────────────────────────────────────────
    @app.get(
        "/health",
        tags=["System"],
        summary="Health check",
    )
    async def health_check() -> dict[str, str]:
        """Shallow health check: confirms the process is alive."""
        return {"status": "healthy"}

    return app


app = create_app()
