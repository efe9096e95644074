from __future__ import annotations

import threading
from typing import Optional, Protocol

from bson import ObjectId
from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo.errors import DuplicateKeyError

from timeledger.core.errors import ConflictError
from timeledger.db.mongo_ledger_store import translate_store_errors
from timeledger.utils.timefmt import utcnow


class UserStore(Protocol):
    async def count_users(self) -> int: ...

    async def get_user(self, user_id: str) -> Optional[dict]: ...

    async def get_by_username(self, username: str) -> Optional[dict]: ...

    async def create_user(self, username: str, password_hash: str, role: str) -> dict: ...


def _user_out(doc: dict) -> dict:
    return {
        "id": str(doc["_id"]),
        "username": doc["username"],
        "password_hash": doc.get("password_hash", ""),
        "role": doc.get("role", "employee"),
        "created_at": doc.get("created_at"),
    }


class MongoUserStore:
    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.users = db["users"]

    @translate_store_errors
    async def count_users(self) -> int:
        return await self.users.count_documents({})

    @translate_store_errors
    async def get_user(self, user_id: str) -> Optional[dict]:
        if not ObjectId.is_valid(user_id):
            return None
        doc = await self.users.find_one({"_id": ObjectId(user_id)})
        return _user_out(doc) if doc else None

    @translate_store_errors
    async def get_by_username(self, username: str) -> Optional[dict]:
        doc = await self.users.find_one({"username": username})
        return _user_out(doc) if doc else None

    @translate_store_errors
    async def create_user(self, username: str, password_hash: str, role: str) -> dict:
        doc = {
            "username": username,
            "password_hash": password_hash,
            "role": role,
            "created_at": utcnow(),
        }
        try:
            res = await self.users.insert_one(doc)
        except DuplicateKeyError as exc:
            raise ConflictError("Username exists") from exc
        doc["_id"] = res.inserted_id
        return _user_out(doc)


class MemoryUserStore:
    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, dict] = {}

    async def count_users(self) -> int:
        return len(self._users)

    async def get_user(self, user_id: str) -> Optional[dict]:
        doc = self._users.get(user_id)
        return dict(doc) if doc else None

    async def get_by_username(self, username: str) -> Optional[dict]:
        with self._lock:
            for doc in self._users.values():
                if doc["username"] == username:
                    return dict(doc)
        return None

    async def create_user(self, username: str, password_hash: str, role: str) -> dict:
        with self._lock:
            if any(u["username"] == username for u in self._users.values()):
                raise ConflictError("Username exists")
            doc = {
                "id": str(ObjectId()),
                "username": username,
                "password_hash": password_hash,
                "role": role,
                "created_at": utcnow(),
            }
            self._users[doc["id"]] = doc
            return dict(doc)
