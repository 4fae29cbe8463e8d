# studio/seeding/seeds/events.py

from datetime import datetime, timedelta, timezone

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import event_venues, events, event_registrations
from studio.seeding.seeds.core import ADMIN_EMAIL, ALICE_EMAIL, BOB_EMAIL, demo_user_ids


async def seed_events(conn: AsyncConnection) -> None:
    ids = await demo_user_ids(conn)

    venue = await conn.execute(
        insert(event_venues)
        .values(name="Moscone Center", city="San Francisco", capacity=2000)
        .returning(event_venues.c.id)
    )
    venue_id = venue.scalar_one()

    now = datetime.now(timezone.utc)
    event_ids = []
    for title, offset, online in (
        ("Tech Summit 2026", 14, False),
        ("Design Systems Meetup", 21, False),
        ("Remote Work Webinar", 3, True),
    ):
        result = await conn.execute(
            insert(events)
            .values(
                title=title,
                venue_id=None if online else venue_id,
                organizer_id=ids[ADMIN_EMAIL],
                starts_at=now + timedelta(days=offset),
                is_online=online,
            )
            .returning(events.c.id)
        )
        event_ids.append(result.scalar_one())

    await conn.execute(
        insert(event_registrations),
        [
            {"event_id": event_ids[0], "user_id": ids[ALICE_EMAIL], "status": "CONFIRMED"},
            {"event_id": event_ids[2], "user_id": ids[BOB_EMAIL], "status": "WAITLISTED"},
        ],
    )
