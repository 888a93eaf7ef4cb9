"""
Project model — one monitored unit of the dead-man's switch.

Security notes:
  • The raw secret token is NEVER stored. Only a SHA-256 hash is persisted.
  • `token_prefix` keeps the first 12 characters (e.g. "kal_live_a1B")
    for identification in logs/UI without exposing the full token.
  • public_id and token_hash are written once, in the same INSERT,
    and there is no update path for either.

Status is written on every accepted ping, but it is also re-derived at
read time (see services.liveness.effective_status) so a silent project
turns dead without a background sweep.
"""

import datetime
import uuid

from sqlalchemy import CheckConstraint, DateTime, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column
from sqlalchemy.sql import func

from keepalive.core.database import Base


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


class Project(Base):
    """A monitored project and its ping credentials."""

    __tablename__ = "projects"

    # ── Identity ────────────────────────────────────────────
    id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        primary_key=True,
        default=uuid.uuid4,
    )
    public_id: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        unique=True,
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        Uuid,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(Text, nullable=False)

    # ── Credential ──────────────────────────────────────────
    token_hash: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        unique=True,
    )
    token_prefix: Mapped[str] = mapped_column(String(16), nullable=False)

    # ── Liveness ────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        default="pending",
        server_default="pending",
    )
    last_ping_at: Mapped[datetime.datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    created_at: Mapped[datetime.datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=func.now(),
    )

    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'active', 'dead')",
            name="ck_projects_status_valid",
        ),
    )

    def __repr__(self) -> str:
        return (
            f"<Project public_id={self.public_id!r} "
            f"status={self.status} last_ping_at={self.last_ping_at}>"
        )
