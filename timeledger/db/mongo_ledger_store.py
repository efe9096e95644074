from __future__ import annotations

import functools
import logging
import re
from datetime import datetime
from typing import Optional

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import ConnectionFailure, DuplicateKeyError

from timeledger.core.errors import ConflictError, ServerError
from timeledger.db.ledger_store import EntryFilter
from timeledger.utils.timefmt import utcnow


logger = logging.getLogger(__name__)

EMPLOYEE_FIELDS = ("name", "email", "department", "position")


def translate_store_errors(fn):
    """Surface lost connectivity as ServerError so callers can decide to retry."""

    @functools.wraps(fn)
    async def wrapper(*args, **kwargs):
        try:
            return await fn(*args, **kwargs)
        except ConnectionFailure as exc:
            logger.error("MongoDB unavailable during %s: %s", fn.__name__, exc)
            raise ServerError("Database unavailable") from exc

    return wrapper


def _employee_out(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "name": doc.get("name", ""),
        "email": doc.get("email"),
        "department": doc.get("department"),
        "position": doc.get("position"),
        "created_at": doc.get("created_at"),
    }


def _entry_out(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "employee_id": str(doc["employee_id"]),
        "clock_in": doc["clock_in"],
        "clock_out": doc.get("clock_out"),
        "duration_minutes": int(doc.get("duration_minutes", 0)),
        "note": doc.get("note"),
        "source": doc.get("source", "web"),
        "is_active": bool(doc.get("is_active", doc.get("clock_out") is None)),
        "created_at": doc.get("created_at"),
    }


def entry_query(flt: EntryFilter) -> dict:
    q: dict = {}
    if flt.employee_id:
        q["employee_id"] = ObjectId(flt.employee_id)
    if flt.from_time:
        q["created_at"] = {"$gte": flt.from_time}
    if flt.to_time:
        q.setdefault("created_at", {}).update({"$lte": flt.to_time})
    return q


class MongoLedgerStore:
    """Ledger backed by the ``employees`` and ``time_entries`` collections.

    The one-open-entry rule rests on the ``uniq_open_entry_per_employee``
    partial unique index (see ``ensure_indexes``).
    """

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.db = db
        self.employees = db["employees"]
        self.entries = db["time_entries"]

    # ---------------------- Employees ----------------------

    @translate_store_errors
    async def create_employee(self, data: dict) -> dict:
        doc = {k: data.get(k) for k in EMPLOYEE_FIELDS}
        doc["created_at"] = data.get("created_at") or utcnow()
        res = await self.employees.insert_one(doc)
        doc["_id"] = res.inserted_id
        return _employee_out(doc)

    @translate_store_errors
    async def get_employee(self, employee_id: str) -> Optional[dict]:
        doc = await self.employees.find_one({"_id": ObjectId(employee_id)})
        return _employee_out(doc) if doc else None

    @translate_store_errors
    async def get_employees(self, employee_ids: list[str]) -> dict[str, dict]:
        oids = [ObjectId(i) for i in set(employee_ids)]
        out: dict[str, dict] = {}
        if not oids:
            return out
        async for doc in self.employees.find({"_id": {"$in": oids}}):
            emp = _employee_out(doc)
            out[emp["id"]] = emp
        return out

    @translate_store_errors
    async def list_employees(self, search: Optional[str], skip: int, limit: int) -> tuple[list[dict], int]:
        q: dict = {}
        if search:
            q["name"] = {"$regex": re.escape(search), "$options": "i"}
        total = await self.employees.count_documents(q)
        cursor = self.employees.find(q).sort([("created_at", -1), ("_id", -1)]).skip(skip).limit(limit)
        items = [_employee_out(doc) async for doc in cursor]
        return items, total

    @translate_store_errors
    async def update_employee(self, employee_id: str, data: dict) -> Optional[dict]:
        update = {k: v for k, v in data.items() if k in EMPLOYEE_FIELDS}
        if not update:
            return await self.get_employee(employee_id)
        doc = await self.employees.find_one_and_update(
            {"_id": ObjectId(employee_id)},
            {"$set": update},
            return_document=ReturnDocument.AFTER,
        )
        return _employee_out(doc) if doc else None

    @translate_store_errors
    async def delete_employee(self, employee_id: str) -> bool:
        res = await self.employees.delete_one({"_id": ObjectId(employee_id)})
        return res.deleted_count > 0

    # ---------------------- Time entries ----------------------

    async def _open_entry_doc(self, employee_oid: ObjectId) -> Optional[dict]:
        cursor = self.entries.find({"employee_id": employee_oid, "is_active": True}).sort("clock_in", -1).limit(1)
        async for doc in cursor:
            return doc
        return None

    @translate_store_errors
    async def create_open_entry(self, entry: dict) -> dict:
        employee_oid = ObjectId(entry["employee_id"])
        doc = {
            "employee_id": employee_oid,
            "clock_in": entry["clock_in"],
            "clock_out": None,
            "duration_minutes": 0,
            "note": entry.get("note"),
            "source": entry.get("source", "web"),
            "is_active": True,
            "created_at": entry["created_at"],
        }
        try:
            res = await self.entries.insert_one(doc)
        except DuplicateKeyError:
            existing = await self._open_entry_doc(employee_oid)
            raise ConflictError("Already clocked in", entry=_entry_out(existing) if existing else None)
        doc["_id"] = res.inserted_id
        return _entry_out(doc)

    @translate_store_errors
    async def get_entry(self, entry_id: str) -> Optional[dict]:
        doc = await self.entries.find_one({"_id": ObjectId(entry_id)})
        return _entry_out(doc) if doc else None

    @translate_store_errors
    async def find_open_entry(self, employee_id: str) -> Optional[dict]:
        doc = await self._open_entry_doc(ObjectId(employee_id))
        return _entry_out(doc) if doc else None

    @translate_store_errors
    async def close_entry(self, entry_id: str, clock_out: datetime, duration_minutes: int) -> Optional[dict]:
        # only matches while the entry is still open
        doc = await self.entries.find_one_and_update(
            {"_id": ObjectId(entry_id), "is_active": True},
            {"$set": {"clock_out": clock_out, "duration_minutes": duration_minutes, "is_active": False}},
            return_document=ReturnDocument.AFTER,
        )
        return _entry_out(doc) if doc else None

    @translate_store_errors
    async def find_entries(self, flt: EntryFilter, skip: int = 0, limit: Optional[int] = None) -> list[dict]:
        cursor = self.entries.find(entry_query(flt)).sort([("created_at", -1), ("_id", -1)]).skip(skip)
        if limit is not None:
            cursor = cursor.limit(limit)
        return [_entry_out(doc) async for doc in cursor]

    @translate_store_errors
    async def count_entries(self, flt: EntryFilter) -> int:
        return await self.entries.count_documents(entry_query(flt))

    @translate_store_errors
    async def aggregate_minutes(self, flt: EntryFilter) -> list[dict]:
        pipeline = [
            {"$match": entry_query(flt)},
            {"$group": {
                "_id": "$employee_id",
                "total_minutes": {"$sum": "$duration_minutes"},
                "count": {"$sum": 1},
            }},
        ]
        out: list[dict] = []
        async for row in self.entries.aggregate(pipeline):
            out.append({
                "employee_id": str(row["_id"]),
                "total_minutes": int(row.get("total_minutes", 0)),
                "count": int(row.get("count", 0)),
            })
        return out
