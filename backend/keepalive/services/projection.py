"""
Status projection — display fields derived from a stored Project.

Pure and read-only: nothing here touches the database. Status is
re-evaluated against the liveness window at render time, so a project
that stopped pinging reads as dead even though no write marked it so.
The "next expected" slot comes from the cadence policy, never from
stored data.
"""

from __future__ import annotations

import datetime
from dataclasses import dataclass

from keepalive.models.project import Project
from keepalive.services.liveness import (
    LivenessPolicy,
    ProjectStatus,
    as_utc,
    effective_status,
)

WAITING_LABEL = "Waiting..."
NO_NEXT_LABEL = "-"


@dataclass(frozen=True, slots=True)
class StatusView:
    """What the dashboard shows for one project."""

    status: ProjectStatus
    last_seen_label: str
    next_expected_label: str


def _plural(count: int, unit: str) -> str:
    return f"{count} {unit}" if count == 1 else f"{count} {unit}s"


def last_seen_label(
    last_ping_at: datetime.datetime | None,
    now: datetime.datetime,
) -> str:
    """Relative label such as "2 mins ago" or "8 days ago"."""
    if last_ping_at is None:
        return WAITING_LABEL

    seconds = int((as_utc(now) - as_utc(last_ping_at)).total_seconds())
    if seconds < 60:
        return "just now"
    if seconds < 3600:
        return f"{_plural(seconds // 60, 'min')} ago"
    if seconds < 86400:
        return f"{_plural(seconds // 3600, 'hour')} ago"
    return f"{_plural(seconds // 86400, 'day')} ago"


def next_expected_at(
    now: datetime.datetime,
    policy: LivenessPolicy,
) -> datetime.datetime | None:
    """First cadence slot strictly after `now` (UTC), or None without a cadence."""
    if not policy.cadence_weekdays:
        return None

    now = as_utc(now)
    midnight = now.replace(hour=0, minute=0, second=0, microsecond=0)
    # 8 days covers a full week plus today's already-passed slot
    for offset in range(8):
        day = midnight + datetime.timedelta(days=offset)
        if day.weekday() not in policy.cadence_weekdays:
            continue
        slot = day.replace(hour=policy.cadence_hour, minute=policy.cadence_minute)
        if slot > now:
            return slot
    return None


def project_status(
    project: Project,
    now: datetime.datetime,
    policy: LivenessPolicy,
) -> StatusView:
    """Build the StatusView for `project` as of `now`."""
    status = effective_status(
        project.status,
        project.last_ping_at,
        project.created_at,
        now,
        policy,
    )

    next_label = NO_NEXT_LABEL
    if status is not ProjectStatus.DEAD:
        slot = next_expected_at(now, policy)
        if slot is not None:
            next_label = slot.strftime("%A %H:%M")

    return StatusView(
        status=status,
        last_seen_label=last_seen_label(project.last_ping_at, now),
        next_expected_label=next_label,
    )
