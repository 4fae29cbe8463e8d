# studio/seeding/seeds/ecommerce.py

from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncConnection

from studio.models.demo_tables import product_categories, products, ecommerce_orders
from studio.seeding.seeds.core import ALICE_EMAIL, BOB_EMAIL, demo_user_ids

CATALOG = {
    "electronics": [
        ("Wireless Headphones", 12999, 40),
        ("Mechanical Keyboard", 8999, 25),
        ("USB-C Hub", 3999, 120),
    ],
    "home-office": [
        ("Standing Desk", 44999, 8),
        ("Ergonomic Chair", 29999, 12),
    ],
    "accessories": [
        ("Laptop Sleeve", 2499, 60),
        ("Desk Mat", 1999, 75),
    ],
}


def _slugify(name: str) -> str:
    return name.lower().replace(" ", "-")


async def seed_ecommerce(conn: AsyncConnection) -> None:
    ids = await demo_user_ids(conn)

    for category_slug, items in CATALOG.items():
        result = await conn.execute(
            insert(product_categories)
            .values(name=category_slug.replace("-", " ").title(), slug=category_slug)
            .returning(product_categories.c.id)
        )
        category_id = result.scalar_one()
        await conn.execute(
            insert(products),
            [
                {"name": name, "slug": _slugify(name), "category_id": category_id, "price": price, "stock": stock}
                for name, price, stock in items
            ],
        )

    await conn.execute(
        insert(ecommerce_orders),
        [
            {"customer_id": ids[ALICE_EMAIL], "total": 21998, "status": "DELIVERED"},
            {"customer_id": ids[BOB_EMAIL], "total": 44999, "status": "PROCESSING"},
        ],
    )
