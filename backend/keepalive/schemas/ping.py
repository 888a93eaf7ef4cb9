"""
Pydantic v2 schemas for the ping ingestion endpoint.

Separation:
  • PingPayload  — what the scheduled job MAY send (the body is optional).
  • PingResponse — what the server always returns.

The payload is deliberately lenient: unknown fields are ignored and
scalar values are coerced to strings, so that a job able to reach the
network is never rejected for the shape of its body.
"""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator

SUCCESS_MARKER = "ok"


# ── Request schema ──────────────────────────────────────────
class PingPayload(BaseModel):
    """
    Optional JSON body accepted by POST /api/ping.

    status absent or "ok" → success; any other value → failure.
    project_id is an optional cross-check against the token's project.
    """

    model_config = ConfigDict(extra="ignore")

    status: str | None = Field(
        default=None,
        examples=["ok", "failed"],
        description='Outcome of the health check; anything but "ok" is a failure.',
    )
    project_id: str | None = Field(
        default=None,
        examples=["kp_5d9s8d7f6g5h"],
        description="Public project id, checked against the bearer token.",
    )

    @field_validator("status", "project_id", mode="before")
    @classmethod
    def _coerce_scalar(cls, value: Any) -> str | None:
        if value is None or isinstance(value, str):
            return value
        return str(value)


# ── Response schema ─────────────────────────────────────────
class PingResponse(BaseModel):
    """Acknowledgement body for every /api/ping response."""

    model_config = ConfigDict(extra="forbid")

    success: bool
    message: str | None = None
    error: str | None = None
