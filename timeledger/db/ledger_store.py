from __future__ import annotations

import copy
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Protocol

from bson import ObjectId

from timeledger.core.errors import ConflictError, ValidationError
from timeledger.utils.timefmt import parse_datetime, utcnow


def is_valid_id(value) -> bool:
    return isinstance(value, str) and ObjectId.is_valid(value)


@dataclass(frozen=True)
class EntryFilter:
    """Which time entries a listing, export or summary covers.

    Bounds apply to ``created_at`` and are inclusive.
    """

    employee_id: Optional[str] = None
    from_time: Optional[datetime] = None
    to_time: Optional[datetime] = None

    @classmethod
    def parse(
        cls,
        employee_id: Optional[str] = None,
        from_: Optional[str] = None,
        to: Optional[str] = None,
    ) -> "EntryFilter":
        if employee_id and not is_valid_id(employee_id):
            raise ValidationError("Invalid employeeId")
        try:
            start = parse_datetime(from_) if from_ else None
            end = parse_datetime(to) if to else None
        except ValueError as exc:
            raise ValidationError("Invalid date") from exc
        if start and end and start > end:
            raise ValidationError("Invalid date range")
        return cls(employee_id=employee_id or None, from_time=start, to_time=end)

    def matches(self, entry: dict) -> bool:
        if self.employee_id and entry["employee_id"] != self.employee_id:
            return False
        if self.from_time and entry["created_at"] < self.from_time:
            return False
        if self.to_time and entry["created_at"] > self.to_time:
            return False
        return True


class LedgerStore(Protocol):
    """Persistence for employees and time entries.

    Ids are ObjectId hex strings and records are plain dicts. Implementations
    must keep at most one open entry per employee: ``create_open_entry`` checks
    and inserts atomically, and ``close_entry`` only updates an entry that is
    still open.
    """

    async def create_employee(self, data: dict) -> dict: ...

    async def get_employee(self, employee_id: str) -> Optional[dict]: ...

    async def get_employees(self, employee_ids: list[str]) -> dict[str, dict]: ...

    async def list_employees(self, search: Optional[str], skip: int, limit: int) -> tuple[list[dict], int]: ...

    async def update_employee(self, employee_id: str, data: dict) -> Optional[dict]: ...

    async def delete_employee(self, employee_id: str) -> bool: ...

    async def create_open_entry(self, entry: dict) -> dict: ...

    async def get_entry(self, entry_id: str) -> Optional[dict]: ...

    async def find_open_entry(self, employee_id: str) -> Optional[dict]: ...

    async def close_entry(self, entry_id: str, clock_out: datetime, duration_minutes: int) -> Optional[dict]: ...

    async def find_entries(self, flt: EntryFilter, skip: int = 0, limit: Optional[int] = None) -> list[dict]: ...

    async def count_entries(self, flt: EntryFilter) -> int: ...

    async def aggregate_minutes(self, flt: EntryFilter) -> list[dict]: ...


def _newest_first(entry: dict):
    return (entry["created_at"], entry["id"])


class MemoryLedgerStore:
    """In-process ledger, used for local runs without MongoDB and in tests.

    A single lock guards every read-modify-write so the open-entry check and
    the insert happen as one step.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._employees: dict[str, dict] = {}
        self._entries: dict[str, dict] = {}

    # ---------------------- Employees ----------------------

    async def create_employee(self, data: dict) -> dict:
        doc = {
            "id": str(ObjectId()),
            "name": data["name"],
            "email": data.get("email"),
            "department": data.get("department"),
            "position": data.get("position"),
            "created_at": data.get("created_at") or utcnow(),
        }
        with self._lock:
            self._employees[doc["id"]] = doc
        return dict(doc)

    async def get_employee(self, employee_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._employees.get(employee_id)
            return dict(doc) if doc else None

    async def get_employees(self, employee_ids: list[str]) -> dict[str, dict]:
        with self._lock:
            return {i: dict(self._employees[i]) for i in set(employee_ids) if i in self._employees}

    async def list_employees(self, search: Optional[str], skip: int, limit: int) -> tuple[list[dict], int]:
        needle = (search or "").lower()
        with self._lock:
            matched = [e for e in self._employees.values() if needle in e["name"].lower()]
        matched.sort(key=_newest_first, reverse=True)
        return [dict(e) for e in matched[skip:skip + limit]], len(matched)

    async def update_employee(self, employee_id: str, data: dict) -> Optional[dict]:
        with self._lock:
            doc = self._employees.get(employee_id)
            if doc is None:
                return None
            doc.update({k: v for k, v in data.items() if k not in {"id", "created_at"}})
            return dict(doc)

    async def delete_employee(self, employee_id: str) -> bool:
        with self._lock:
            return self._employees.pop(employee_id, None) is not None

    # ---------------------- Time entries ----------------------

    def _open_entry(self, employee_id: str) -> Optional[dict]:
        open_entries = [
            e for e in self._entries.values()
            if e["employee_id"] == employee_id and e["is_active"]
        ]
        if not open_entries:
            return None
        return max(open_entries, key=lambda e: e["clock_in"])

    async def create_open_entry(self, entry: dict) -> dict:
        with self._lock:
            existing = self._open_entry(entry["employee_id"])
            if existing is not None:
                raise ConflictError("Already clocked in", entry=copy.deepcopy(existing))
            doc = {
                **entry,
                "id": str(ObjectId()),
                "clock_out": None,
                "duration_minutes": 0,
                "is_active": True,
            }
            self._entries[doc["id"]] = doc
            return copy.deepcopy(doc)

    async def get_entry(self, entry_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._entries.get(entry_id)
            return copy.deepcopy(doc) if doc else None

    async def find_open_entry(self, employee_id: str) -> Optional[dict]:
        with self._lock:
            doc = self._open_entry(employee_id)
            return copy.deepcopy(doc) if doc else None

    async def close_entry(self, entry_id: str, clock_out: datetime, duration_minutes: int) -> Optional[dict]:
        with self._lock:
            doc = self._entries.get(entry_id)
            if doc is None or not doc["is_active"]:
                return None
            doc.update({"clock_out": clock_out, "duration_minutes": duration_minutes, "is_active": False})
            return copy.deepcopy(doc)

    async def find_entries(self, flt: EntryFilter, skip: int = 0, limit: Optional[int] = None) -> list[dict]:
        with self._lock:
            matched = [e for e in self._entries.values() if flt.matches(e)]
        matched.sort(key=_newest_first, reverse=True)
        end = None if limit is None else skip + limit
        return [copy.deepcopy(e) for e in matched[skip:end]]

    async def count_entries(self, flt: EntryFilter) -> int:
        with self._lock:
            return sum(1 for e in self._entries.values() if flt.matches(e))

    async def aggregate_minutes(self, flt: EntryFilter) -> list[dict]:
        groups: dict[str, dict] = {}
        with self._lock:
            entries = list(self._entries.values())
        for e in entries:
            if not flt.matches(e):
                continue
            g = groups.setdefault(e["employee_id"], {"employee_id": e["employee_id"], "total_minutes": 0, "count": 0})
            g["total_minutes"] += int(e.get("duration_minutes") or 0)
            g["count"] += 1
        return list(groups.values())
