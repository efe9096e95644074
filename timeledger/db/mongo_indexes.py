from motor.motor_asyncio import AsyncIOMotorDatabase
from timeledger.db.mongo import get_mongo_db


async def ensure_indexes(db: AsyncIOMotorDatabase | None = None) -> None:
    """Create required MongoDB indexes (idempotent)."""
    if db is None:
        db = get_mongo_db()

    users = db["users"]
    # Unique index on username
    await users.create_index([("username", 1)], unique=True, name="uniq_username")

    employees = db["employees"]
    # Name lookups for search, newest-first listing
    await employees.create_index([("name", 1)], name="idx_employee_name")
    await employees.create_index([("created_at", -1)], name="idx_employee_created")

    time_entries = db["time_entries"]
    await time_entries.create_index([("employee_id", 1), ("created_at", -1)], name="idx_te_emp_created")
    await time_entries.create_index([("created_at", -1)], name="idx_te_created")
    # At most one open entry per employee
    await time_entries.create_index(
        [("employee_id", 1)],
        unique=True,
        partialFilterExpression={"is_active": True},
        name="uniq_open_entry_per_employee",
    )
