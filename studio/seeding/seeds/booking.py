# studio/seeding/seeds/booking.py

from datetime import datetime, timedelta, timezone

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import booking_services, bookings
from studio.seeding.seeds.core import ADMIN_EMAIL, ALICE_EMAIL, BOB_EMAIL, demo_user_ids


async def seed_booking(conn: AsyncConnection) -> None:
    ids = await demo_user_ids(conn)
    services = [
        {"name": "Strategy Consultation", "slug": "strategy-consultation", "duration_minutes": 60, "price": 15000},
        {"name": "Code Review Session", "slug": "code-review-session", "duration_minutes": 45, "price": 9000},
        {"name": "Quick Intro Call", "slug": "quick-intro-call", "duration_minutes": 15, "price": 0},
    ]
    service_ids = []
    for service in services:
        result = await conn.execute(
            insert(booking_services)
            .values(**service, provider_id=ids[ADMIN_EMAIL])
            .returning(booking_services.c.id)
        )
        service_ids.append(result.scalar_one())

    # Upcoming appointments relative to provisioning time so the calendar is never empty
    tomorrow = (datetime.now(timezone.utc) + timedelta(days=1)).replace(hour=10, minute=0, second=0, microsecond=0)
    await conn.execute(
        insert(bookings),
        [
            {"service_id": service_ids[0], "customer_id": ids[ALICE_EMAIL], "starts_at": tomorrow, "status": "CONFIRMED"},
            {"service_id": service_ids[1], "customer_id": ids[BOB_EMAIL],
             "starts_at": tomorrow + timedelta(days=2, hours=4), "status": "PENDING"},
        ],
    )
