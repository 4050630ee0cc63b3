"""Seed script for local development.

Creates:
- Serviceable cities
- 3 locations with a handful of menu items each
- 1 admin user (ADMIN_USER_ID env var, defaults to a fixed UUID)

Safe to run repeatedly: rows are merged by primary key / skipped if present.

Usage:
    cd apps/api && uv run python -m scripts.seed_catalog
"""

import asyncio
import os

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.database import async_session_maker
from app.models.catalog import Location, MenuItem, ServiceableCity
from app.models.profile import Admin

ADMIN_USER_ID = os.environ.get("ADMIN_USER_ID", "aaaaaaaa-0000-0000-0000-000000000001")

CITIES = ["Ambernath", "Badlapur", "Kalyan", "Ulhasnagar"]

LOCATIONS = [
    {
        "id": "loc1",
        "name": "Rameshwaram Dosa Center",
        "address": "123 Main Street, Downtown",
        "highlights": "Famous for Traditional Dosas",
    },
    {
        "id": "loc2",
        "name": "Vighnaharta Sweet & Snacks Corner",
        "address": "456 Park Avenue, Midtown",
        "highlights": "Best South Indian Sweets",
    },
    {
        "id": "loc3",
        "name": "Vighnaharta Snacks Corner",
        "address": "789 Oak Street, Uptown",
        "highlights": "Quick Bites & Snacks",
    },
]

# (location, name, price, category, is_veg)
MENU = [
    ("loc1", "Masala Dosa", 80, "Dosa", True),
    ("loc1", "Mysore Masala Dosa", 100, "Dosa", True),
    ("loc1", "Idli Sambar", 50, "Breakfast", True),
    ("loc2", "Kaju Katli (250g)", 220, "Sweets", True),
    ("loc2", "Samosa (2 pcs)", 30, "Snacks", True),
    ("loc3", "Vada Pav", 20, "Snacks", True),
    ("loc3", "Chicken Frankie", 90, "Rolls", False),
]


async def seed(session: AsyncSession) -> None:
    # ── Cities ──────────────────────────────────────────────────────────
    existing = set((await session.execute(select(ServiceableCity.name))).scalars())
    session.add_all(ServiceableCity(name=name) for name in CITIES if name not in existing)

    # ── Locations ───────────────────────────────────────────────────────
    for loc in LOCATIONS:
        await session.merge(Location(**loc))

    # ── Menu ────────────────────────────────────────────────────────────
    existing_items = set(
        (await session.execute(select(MenuItem.location_id, MenuItem.name))).tuples()
    )
    for location_id, name, price, category, is_veg in MENU:
        if (location_id, name) in existing_items:
            continue
        session.add(
            MenuItem(
                location_id=location_id,
                name=name,
                price=price,
                category=category,
                is_veg=is_veg,
                is_available=True,
            )
        )

    # ── Admin ───────────────────────────────────────────────────────────
    await session.merge(Admin(id=ADMIN_USER_ID, role="admin"))

    await session.commit()


async def main() -> None:
    async with async_session_maker() as session:
        await seed(session)

    print("=" * 60)
    print("  Catalog seed data created successfully!")
    print("=" * 60)
    print()
    print(f"  Cities:     {', '.join(CITIES)}")
    print(f"  Locations:  {', '.join(loc['id'] for loc in LOCATIONS)}")
    print(f"  Menu items: {len(MENU)}")
    print(f"  Admin:      {ADMIN_USER_ID}")
    print("=" * 60)


if __name__ == "__main__":
    asyncio.run(main())
