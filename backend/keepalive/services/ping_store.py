"""
Narrow storage handle for the ping channel.

The ingestion route receives a PingStore, never the raw session, so the
only authority it holds is:
  • find_by_token_hash — point lookup for authentication
  • record_ping        — monotonic conditional update keyed by token
  • create_project     — credential issuance + insert (owner flows)

record_ping is a single UPDATE … WHERE token_hash = :h
AND (last_ping_at IS NULL OR last_ping_at <= :now) RETURNING *.
Authentication and mutation happen in one statement, so there is no
check-then-act gap, and concurrent pings for one project can only move
last_ping_at forward. Works on PostgreSQL and SQLite ≥ 3.35.
"""

from __future__ import annotations

import datetime
import logging
import uuid
from typing import Annotated

from fastapi import Depends
from sqlalchemy import or_, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from keepalive.auth.credentials import generate_credentials
from keepalive.core.database import get_db_session
from keepalive.models.project import Project
from keepalive.services.liveness import (
    LivenessState,
    Outcome,
    ProjectStatus,
    apply_ping,
)

logger = logging.getLogger(__name__)

# Connect-time driver failures (asyncpg refusing, DNS, sockets) surface as
# OSError rather than being wrapped by SQLAlchemy.
_STORAGE_ERRORS = (SQLAlchemyError, OSError)


class PersistenceError(Exception):
    """Raised when the store cannot complete an operation.

    Details are logged server-side; the client gets an opaque 500.
    """


class PingStore:
    """Project persistence scoped to what the ping channel needs."""

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def find_by_token_hash(self, token_hash: str) -> Project | None:
        """Point lookup by token digest. Read-only."""
        stmt = select(Project).where(Project.token_hash == token_hash)
        try:
            result = await self._session.execute(stmt)
        except _STORAGE_ERRORS as exc:
            raise PersistenceError("project lookup failed") from exc
        return result.scalar_one_or_none()

    async def record_ping(
        self,
        token_hash: str,
        outcome: Outcome,
        now: datetime.datetime,
        public_id: str | None = None,
    ) -> Project | None:
        """
        Apply one ping atomically.

        Returns the updated Project, or None when nothing was updated:
        either the token is unknown (or does not belong to `public_id`)
        or a ping at least as recent is already stored. The caller
        tells the two apart with a read-only lookup.
        """
        # The transition itself comes from the state machine; the SQL guard
        # below is the stored-row half of apply_ping's monotonic check.
        target = apply_ping(LivenessState(), outcome, now)

        conditions = [
            Project.token_hash == token_hash,
            or_(
                Project.last_ping_at.is_(None),
                Project.last_ping_at <= target.last_ping_at,
            ),
        ]
        if public_id is not None:
            conditions.append(Project.public_id == public_id)

        stmt = (
            update(Project)
            .where(*conditions)
            .values(last_ping_at=target.last_ping_at, status=target.status.value)
            .returning(Project)
            .execution_options(synchronize_session=False, populate_existing=True)
        )
        try:
            result = await self._session.execute(stmt)
            project = result.scalar_one_or_none()
            await self._session.commit()
        except _STORAGE_ERRORS as exc:
            await self._session.rollback()
            raise PersistenceError("ping update failed") from exc

        if project is not None:
            logger.info(
                "Ping recorded for %s (outcome=%s)", project.public_id, outcome.value
            )
        return project

    async def create_project(
        self,
        owner_id: uuid.UUID,
        name: str,
    ) -> tuple[Project, str]:
        """
        Create a project with a fresh credential pair.

        Returns:
            (project, raw_secret_token). The raw token is shown once and
            never stored.
        """
        credentials = generate_credentials()
        project = Project(
            owner_id=owner_id,
            name=name,
            public_id=credentials.public_id,
            token_hash=credentials.token_hash,
            token_prefix=credentials.token_prefix,
            status=ProjectStatus.PENDING.value,
        )
        try:
            self._session.add(project)
            await self._session.commit()
            await self._session.refresh(project)
        except _STORAGE_ERRORS as exc:
            await self._session.rollback()
            logger.exception("Failed to create project for owner %s", owner_id)
            raise PersistenceError("project creation failed") from exc

        logger.info("Created project %s (%s)", project.public_id, project.token_prefix)
        return project, credentials.secret_token


# ── Dependency ──────────────────────────────────────────────
async def get_ping_store(
    session: Annotated[AsyncSession, Depends(get_db_session)],
) -> PingStore:
    """FastAPI dependency — wraps the request session in a PingStore."""
    return PingStore(session)
