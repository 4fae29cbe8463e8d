# studio/seeding/seeds/core.py
# Demo users every module seeder relies on

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import insert, select
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import users

ADMIN_EMAIL = "admin@preview.local"
ALICE_EMAIL = "alice@preview.local"
BOB_EMAIL = "bob@preview.local"

DEMO_USERS: list[dict[str, str]] = [
    {"email": ADMIN_EMAIL, "name": "Preview Admin", "role": "ADMIN"},
    {"email": ALICE_EMAIL, "name": "Alice Johnson", "role": "USER"},
    {"email": BOB_EMAIL, "name": "Bob Smith", "role": "USER"},
]


async def seed_core(conn: AsyncConnection) -> None:
    """Create the admin and sample users. Must run before any module seeder."""
    now = datetime.now(timezone.utc)
    await conn.execute(insert(users), [{**u, "created_at": now} for u in DEMO_USERS])


async def demo_user_ids(conn: AsyncConnection) -> dict[str, int]:
    """Map demo user email -> id; raises if the core seed has not run."""
    result = await conn.execute(select(users.c.email, users.c.id))
    ids = {row.email: row.id for row in result}
    missing = [u["email"] for u in DEMO_USERS if u["email"] not in ids]
    if missing:
        raise LookupError(f"Core demo users missing: {', '.join(missing)}")
    return ids
