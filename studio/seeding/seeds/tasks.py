# studio/seeding/seeds/tasks.py

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import task_projects, tasks
from studio.seeding.seeds.core import ADMIN_EMAIL, ALICE_EMAIL, BOB_EMAIL, demo_user_ids


async def seed_tasks(conn: AsyncConnection) -> None:
    ids = await demo_user_ids(conn)

    project_ids = []
    for name in ("Website Redesign", "Mobile App Launch"):
        result = await conn.execute(
            insert(task_projects).values(name=name, owner_id=ids[ADMIN_EMAIL]).returning(task_projects.c.id)
        )
        project_ids.append(result.scalar_one())

    web, mobile = project_ids
    rows = [
        (web, "Audit current site content", ALICE_EMAIL, "DONE", "MEDIUM"),
        (web, "Draft new information architecture", ALICE_EMAIL, "IN_PROGRESS", "HIGH"),
        (web, "Design homepage mockups", BOB_EMAIL, "TODO", "HIGH"),
        (web, "Set up staging environment", None, "TODO", "LOW"),
        (mobile, "Finalize app store listing", BOB_EMAIL, "IN_REVIEW", "MEDIUM"),
        (mobile, "Fix crash on login screen", ALICE_EMAIL, "IN_PROGRESS", "URGENT"),
        (mobile, "Write release notes", None, "TODO", "LOW"),
    ]
    await conn.execute(
        insert(tasks),
        [
            {"project_id": project, "title": title, "assignee_id": ids[email] if email else None,
             "status": status, "priority": priority}
            for project, title, email, status, priority in rows
        ],
    )
