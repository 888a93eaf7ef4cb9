"""
Print the current status of every project owned by an account.

Usage:
    python -m scripts.list_projects <owner-uuid>

Status is evaluated at read time, so projects that went silent show
as dead here even if their last stored ping was a success.
"""

import argparse
import asyncio
import datetime
import uuid

from sqlalchemy import select

from keepalive.core.database import async_session_factory, engine
from keepalive.models.project import Project
from keepalive.services.liveness import LivenessPolicy
from keepalive.services.projection import project_status


async def main(owner_id: uuid.UUID) -> None:
    policy = LivenessPolicy.from_settings()
    now = datetime.datetime.now(datetime.timezone.utc)

    async with async_session_factory() as session:
        stmt = (
            select(Project)
            .where(Project.owner_id == owner_id)
            .order_by(Project.created_at.asc())
        )
        projects = (await session.execute(stmt)).scalars().all()

    print(f"{'PROJECT ID':<16} {'STATUS':<8} {'LAST PING':<14} {'NEXT CHECK':<16} NAME")
    for project in projects:
        view = project_status(project, now, policy)
        print(
            f"{project.public_id:<16} {view.status.value:<8} "
            f"{view.last_seen_label:<14} {view.next_expected_label:<16} {project.name}"
        )

    await engine.dispose()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="List KeepAlive projects.")
    parser.add_argument("owner_id", type=uuid.UUID, help="UUID of the owning account")
    asyncio.run(main(parser.parse_args().owner_id))
