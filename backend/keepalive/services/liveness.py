"""
Liveness state machine — turns a sparse stream of pings into a status.

Two pure evaluations share one LivenessPolicy:
  • apply_ping()       — write time; PingStore.record_ping builds its UPDATE from it.
  • effective_status() — read time, reclassifies silent projects as dead.

Transitions:
  pending → active     first success
  active  → active     later success (refreshes last_ping_at)
  *       → dead       explicit failure, including a first ping (last_ping_at still advances)
  dead    → active     later success
  pending/active → dead  at read time, once the window is exceeded

A ping older than the stored last_ping_at never changes state, so
replayed or racing pings cannot move last_ping_at backward. The same
guard is expressed in SQL by PingStore.record_ping.
"""

from __future__ import annotations

import datetime
import enum
import logging
from dataclasses import dataclass

from pydantic import ValidationError

from keepalive.core.config import Settings, settings
from keepalive.schemas.ping import SUCCESS_MARKER, PingPayload

logger = logging.getLogger(__name__)


class ProjectStatus(str, enum.Enum):
    PENDING = "pending"
    ACTIVE = "active"
    DEAD = "dead"


class Outcome(str, enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"


@dataclass(frozen=True, slots=True)
class LivenessPolicy:
    """Liveness window plus the external ping cadence.

    Attributes:
        window:           Longest tolerated silence before a project is dead.
        cadence_weekdays: Days the scheduled job runs (Monday = 0).
        cadence_hour:     UTC hour of the scheduled run.
        cadence_minute:   UTC minute of the scheduled run.
    """

    window: datetime.timedelta
    cadence_weekdays: tuple[int, ...] = (1, 3)
    cadence_hour: int = 0
    cadence_minute: int = 0

    @classmethod
    def from_settings(cls, config: Settings = settings) -> LivenessPolicy:
        return cls(
            window=datetime.timedelta(hours=config.LIVENESS_WINDOW_HOURS),
            cadence_weekdays=tuple(sorted(set(config.PING_CADENCE_WEEKDAYS))),
            cadence_hour=config.PING_CADENCE_HOUR,
            cadence_minute=config.PING_CADENCE_MINUTE,
        )


@dataclass(frozen=True, slots=True)
class LivenessState:
    """The mutable part of a Project, as seen by the state machine."""

    status: ProjectStatus = ProjectStatus.PENDING
    last_ping_at: datetime.datetime | None = None


def as_utc(value: datetime.datetime) -> datetime.datetime:
    """Attach UTC to naive timestamps (SQLite drops tzinfo on read)."""
    if value.tzinfo is None:
        return value.replace(tzinfo=datetime.timezone.utc)
    return value.astimezone(datetime.timezone.utc)


# ── Outcome parsing ─────────────────────────────────────────
def parse_outcome(body: bytes | None) -> tuple[Outcome, PingPayload]:
    """
    Derive the ping outcome from an optional raw request body.

    Empty or unparseable bodies default to SUCCESS: legacy callers ping
    with no body at all, and a body-encoding slip must not turn into a
    rejected heartbeat.
    """
    payload = PingPayload()
    if body and body.strip():
        try:
            payload = PingPayload.model_validate_json(body)
        except ValidationError:
            logger.debug("Unparseable ping body ignored; defaulting to success")

    if payload.status is None or payload.status == SUCCESS_MARKER:
        return Outcome.SUCCESS, payload
    return Outcome.FAILURE, payload


# ── Write-time evaluation ───────────────────────────────────
def status_for(outcome: Outcome) -> ProjectStatus:
    """Status written by an accepted ping with the given outcome."""
    if outcome is Outcome.SUCCESS:
        return ProjectStatus.ACTIVE
    return ProjectStatus.DEAD


def apply_ping(
    state: LivenessState,
    outcome: Outcome,
    now: datetime.datetime,
) -> LivenessState:
    """Record one ping. Pings older than the stored one are ignored."""
    now = as_utc(now)
    if state.last_ping_at is not None and now < as_utc(state.last_ping_at):
        return state
    return LivenessState(status=status_for(outcome), last_ping_at=now)


# ── Read-time evaluation ────────────────────────────────────
def is_stale(
    reference: datetime.datetime,
    now: datetime.datetime,
    policy: LivenessPolicy,
) -> bool:
    return as_utc(now) - as_utc(reference) > policy.window


def effective_status(
    status: ProjectStatus | str,
    last_ping_at: datetime.datetime | None,
    created_at: datetime.datetime,
    now: datetime.datetime,
    policy: LivenessPolicy,
) -> ProjectStatus:
    """
    Status as it should be displayed at `now`.

    A never-pinged project is measured from its creation time, so it
    reads as dead (not merely pending) once it sits silent past the window.
    """
    status = ProjectStatus(status)
    if status is ProjectStatus.DEAD:
        return status

    reference = last_ping_at if last_ping_at is not None else created_at
    if is_stale(reference, now, policy):
        return ProjectStatus.DEAD
    return status
