# studio/seeding/seeds/lms.py

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import lms_categories, lms_courses, lms_enrollments
from studio.seeding.seeds.core import ADMIN_EMAIL, ALICE_EMAIL, BOB_EMAIL, demo_user_ids

CATEGORIES = [
    {"name": "Web Development", "slug": "web-development", "display_order": 1},
    {"name": "Design", "slug": "design", "display_order": 2},
    {"name": "Data Science", "slug": "data-science", "display_order": 3},
]


async def seed_lms(conn: AsyncConnection) -> None:
    ids = await demo_user_ids(conn)

    category_ids = {}
    for category in CATEGORIES:
        result = await conn.execute(insert(lms_categories).values(**category).returning(lms_categories.c.id))
        category_ids[category["slug"]] = result.scalar_one()

    courses = [
        {"title": "Modern React with TypeScript", "slug": "modern-react-typescript",
         "category_id": category_ids["web-development"], "price": 4999, "level": "intermediate"},
        {"title": "UI/UX Design Fundamentals", "slug": "ui-ux-design-fundamentals",
         "category_id": category_ids["design"], "price": 3999, "level": "beginner"},
        {"title": "Python for Data Analysis", "slug": "python-data-analysis",
         "category_id": category_ids["data-science"], "price": 5999, "level": "beginner"},
    ]
    course_ids = []
    for course in courses:
        result = await conn.execute(
            insert(lms_courses)
            .values(**course, instructor_id=ids[ADMIN_EMAIL], status="PUBLISHED")
            .returning(lms_courses.c.id)
        )
        course_ids.append(result.scalar_one())

    await conn.execute(
        insert(lms_enrollments),
        [
            {"course_id": course_ids[0], "user_id": ids[ALICE_EMAIL], "progress": 40},
            {"course_id": course_ids[1], "user_id": ids[BOB_EMAIL], "progress": 0},
        ],
    )
