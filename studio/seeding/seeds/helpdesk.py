# studio/seeding/seeds/helpdesk.py

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import helpdesk_categories, tickets
from studio.seeding.seeds.core import ADMIN_EMAIL, ALICE_EMAIL, BOB_EMAIL, demo_user_ids


async def seed_helpdesk(conn: AsyncConnection) -> None:
    ids = await demo_user_ids(conn)

    category_ids = {}
    for name in ("Billing", "Technical Support"):
        result = await conn.execute(
            insert(helpdesk_categories).values(name=name).returning(helpdesk_categories.c.id)
        )
        category_ids[name] = result.scalar_one()

    await conn.execute(
        insert(tickets),
        [
            {"subject": "Charged twice for my subscription", "category_id": category_ids["Billing"],
             "requester_id": ids[ALICE_EMAIL], "assignee_id": ids[ADMIN_EMAIL], "priority": "HIGH", "status": "OPEN"},
            {"subject": "Cannot reset password", "category_id": category_ids["Technical Support"],
             "requester_id": ids[BOB_EMAIL], "assignee_id": ids[ADMIN_EMAIL], "priority": "MEDIUM", "status": "PENDING"},
            {"subject": "Feature request: dark mode", "category_id": category_ids["Technical Support"],
             "requester_id": ids[ALICE_EMAIL], "assignee_id": None, "priority": "LOW", "status": "OPEN"},
            {"subject": "Invoice shows wrong VAT", "category_id": category_ids["Billing"],
             "requester_id": ids[BOB_EMAIL], "assignee_id": None, "priority": "URGENT", "status": "OPEN"},
            {"subject": "Export to CSV is slow", "category_id": category_ids["Technical Support"],
             "requester_id": ids[ALICE_EMAIL], "assignee_id": ids[ADMIN_EMAIL], "priority": "LOW", "status": "RESOLVED"},
        ],
    )
