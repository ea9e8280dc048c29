#!/usr/bin/env python3
"""
Seed script to create a demo floor: tables, a join group and priorities
"""

import asyncio


DEMO_TABLES = [
    # label, seats, section, priority rank, online bookable
    ("T1", 2, "window", 1, True),
    ("T2", 2, "window", 2, True),
    ("T3", 4, "main", 3, True),
    ("T4", 4, "main", 4, True),
    ("T5", 6, "main", 5, True),
    ("B1", 8, "booth", 6, False),
]


async def seed_demo_data():
    """Seed demo data for development"""
    from seating.database import SessionLocal, engine, Base
    from seating.allocation.catalog import ResourceCatalog
    from seating.allocation.priorities import PriorityDirectory
    from seating.models import Table

    # Create tables
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    catalog = ResourceCatalog()
    priorities = PriorityDirectory(catalog)

    async with SessionLocal() as db:
        # Check if the demo floor already exists
        from sqlalchemy import select
        result = await db.execute(select(Table).where(Table.label == "T1"))
        existing = result.scalar_one_or_none()

        if existing:
            print("Demo data already exists. Skipping...")
            return

        print("Creating demo tables...")

        tables = {}
        for label, seats, section, rank, online in DEMO_TABLES:
            table = await catalog.add_table(
                db,
                label=label,
                seat_count=seats,
                section_id=section,
                priority_rank=rank,
                online_bookable=online,
            )
            tables[label] = table
            print(f"Created table: {label} ({seats} seats)")

        group = await catalog.add_join_group(
            db,
            name="T3+T4",
            member_table_ids=[tables["T3"].id, tables["T4"].id],
            min_party_size=5,
            max_party_size=8,
        )
        print(f"Created join group: {group.name}")

        await db.commit()

    async with SessionLocal() as db:
        for party_size in range(1, 9):
            created = await priorities.generate_missing_priorities(db, party_size)
            print(f"Party of {party_size}: {len(created)} priority entries")

    print("\nDemo data created successfully!")


if __name__ == "__main__":
    asyncio.run(seed_demo_data())
