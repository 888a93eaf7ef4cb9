"""
Create a monitored project and print its ping credentials.

Usage:
    python -m scripts.create_project <owner-uuid> "Project name"

This will:
  1. Create the project (status: pending)
  2. Generate its public id and secret token in the same insert
  3. Print the credentials ONCE, as the env block a CI job stores

The raw token is shown exactly once. Copy it immediately.
"""

import argparse
import asyncio
import uuid

from keepalive.core.config import settings
from keepalive.core.database import async_session_factory, engine
from keepalive.services.ping_store import PingStore


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Create a KeepAlive project.")
    parser.add_argument("owner_id", type=uuid.UUID, help="UUID of the owning account")
    parser.add_argument("name", help="Human-readable project name")
    return parser.parse_args()


async def main(owner_id: uuid.UUID, name: str) -> None:
    async with async_session_factory() as session:
        project, raw_token = await PingStore(session).create_project(owner_id, name)

    endpoint = settings.PUBLIC_BASE_URL.rstrip("/")

    # ── Print results ───────────────────────────────────────
    print()
    print("=" * 60)
    print("  Project Created")
    print("=" * 60)
    print()
    print(f"  Project:    {project.name}")
    print(f"  Status:     {project.status}")
    print()
    print(f"  KEEPALIVE_PROJECT_ID={project.public_id}")
    print(f"  KEEPALIVE_TOKEN={raw_token}")
    print(f"  KEEPALIVE_ENDPOINT={endpoint}")
    print()
    print(f"  curl -X POST {endpoint}/api/ping \\")
    print('       -H "Authorization: Bearer $KEEPALIVE_TOKEN"')
    print()
    print("  ⚠  Copy the token now, it will NEVER be shown again.")
    print("=" * 60)
    print()

    await engine.dispose()


if __name__ == "__main__":
    args = _parse_args()
    asyncio.run(main(args.owner_id, args.name))
