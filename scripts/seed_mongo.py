from __future__ import annotations

import asyncio
import random
from datetime import timedelta

from timeledger.core.config import settings
from timeledger.core.security import hash_password
from timeledger.db.mongo import get_mongo_db, close_mongo_client
from timeledger.db.mongo_indexes import ensure_indexes
from timeledger.services.user_service import create_admin_if_missing
from timeledger.db.user_store import MongoUserStore
from timeledger.utils.timefmt import minutes_between, utcnow


EMPLOYEE_NAMES = ["Aman Mishra", "Neha Sharma", "Rohit Verma", "Priya Singh", "Karan Patel"]
DAYS = 7


async def seed_users(db):
    now = utcnow()
    await create_admin_if_missing(MongoUserStore(db), settings.DEFAULT_ADMIN_PASS)
    manager = {
        "username": "manager",
        "password_hash": hash_password("manager12345"),
        "role": "manager",
        "created_at": now,
    }
    await db["users"].update_one({"username": "manager"}, {"$setOnInsert": manager}, upsert=True)


async def seed_employees(db):
    now = utcnow()
    for name in EMPLOYEE_NAMES:
        doc = {
            "name": name,
            "email": None,
            "department": "Engineering",
            "position": "Developer",
            "created_at": now,
        }
        await db["employees"].update_one({"name": name}, {"$setOnInsert": doc}, upsert=True)
    return [e async for e in db["employees"].find({"name": {"$in": EMPLOYEE_NAMES}})]


async def seed_time_entries(db, employees):
    now = utcnow()
    inserted = 0
    for d in range(DAYS):
        for emp in employees:
            clock_in = now - timedelta(days=d, seconds=random.randint(0, 3 * 3600))
            clock_out = clock_in + timedelta(hours=7 + random.randint(0, 2), minutes=random.randint(0, 59))
            await db["time_entries"].insert_one({
                "employee_id": emp["_id"],
                "clock_in": clock_in,
                "clock_out": clock_out,
                "duration_minutes": minutes_between(clock_in, clock_out),
                "note": "seed",
                "source": "manual",
                "is_active": False,
                "created_at": clock_in,
            })
            inserted += 1
    return inserted


async def main():
    db = get_mongo_db()
    # Ensure indexes before inserting
    await ensure_indexes(db)

    await seed_users(db)
    employees = await seed_employees(db)
    count = await seed_time_entries(db, employees)

    print(f"MongoDB seed completed: {len(employees)} employees, {count} time entries.")
    close_mongo_client()


if __name__ == "__main__":
    asyncio.run(main())
