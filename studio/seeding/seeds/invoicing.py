# studio/seeding/seeds/invoicing.py

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import invoicing_clients, invoices

CLIENTS = [
    {"name": "Sarah Connor", "email": "sarah@cyberdyne.example", "company": "Cyberdyne Systems"},
    {"name": "Tony Stark", "email": "tony@stark.example", "company": "Stark Industries"},
    {"name": "Bruce Wayne", "email": "bruce@wayne.example", "company": "Wayne Enterprises"},
]


async def seed_invoicing(conn: AsyncConnection) -> None:
    client_ids = []
    for client in CLIENTS:
        result = await conn.execute(insert(invoicing_clients).values(**client).returning(invoicing_clients.c.id))
        client_ids.append(result.scalar_one())

    now = datetime.now(timezone.utc)
    await conn.execute(
        insert(invoices),
        [
            {"number": "INV-0001", "client_id": client_ids[0], "total": Decimal("1250.00"),
             "status": "PAID", "issued_at": now - timedelta(days=30)},
            {"number": "INV-0002", "client_id": client_ids[1], "total": Decimal("4800.00"),
             "status": "SENT", "issued_at": now - timedelta(days=7)},
            {"number": "INV-0003", "client_id": client_ids[2], "total": Decimal("320.50"),
             "status": "OVERDUE", "issued_at": now - timedelta(days=45)},
            {"number": "INV-0004", "client_id": client_ids[0], "total": Decimal("990.00"),
             "status": "DRAFT", "issued_at": now},
        ],
    )
