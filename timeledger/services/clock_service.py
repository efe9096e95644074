from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Optional

from timeledger.core.errors import ConflictError, NotFoundError, ValidationError
from timeledger.db.ledger_store import LedgerStore, is_valid_id
from timeledger.schemas.common import EntrySource
from timeledger.utils.timefmt import ONE_MS, minutes_between, utcnow


logger = logging.getLogger(__name__)

NOTE_MAX_LENGTH = 500


class ClockService:
    """Clock-in / clock-out lifecycle of time entries.

    An employee is either closed (no open entry) or open (exactly one entry
    without ``clock_out``). Clock-in moves closed -> open, clock-out moves
    open -> closed and fixes ``duration_minutes``. Every call re-reads the
    store; the store enforces the single open entry under concurrency.
    """

    def __init__(self, store: LedgerStore, now: Callable[[], datetime] = utcnow) -> None:
        self.store = store
        self.now = now

    async def clock_in(self, employee_id: str, note: Optional[str] = None, source: Optional[str] = None) -> dict:
        if not employee_id or not is_valid_id(employee_id):
            raise ValidationError("Invalid employeeId")
        try:
            src = EntrySource(source) if source else EntrySource.web
        except ValueError as exc:
            raise ValidationError("Invalid source") from exc
        if note is not None and len(note) > NOTE_MAX_LENGTH:
            raise ValidationError("Note too long")

        employee = await self.store.get_employee(employee_id)
        if not employee:
            raise NotFoundError("Employee not found")

        now = self.now()
        entry = await self.store.create_open_entry({
            "employee_id": employee_id,
            "clock_in": now,
            "note": note,
            "source": src.value,
            "created_at": now,
        })
        logger.info("Employee %s clocked in (entry %s)", employee_id, entry["id"])
        return entry

    async def clock_out(self, employee_id: Optional[str] = None, entry_id: Optional[str] = None) -> dict:
        if entry_id:
            if not is_valid_id(entry_id):
                raise ValidationError("Invalid entryId")
            entry = await self.store.get_entry(entry_id)
            if not entry:
                raise NotFoundError("Entry not found")
            if not entry["is_active"]:
                raise ConflictError("Already clocked out", entry=entry)
        elif employee_id:
            if not is_valid_id(employee_id):
                raise ValidationError("Invalid employeeId")
            entry = await self.store.find_open_entry(employee_id)
            if not entry:
                raise NotFoundError("No open entry found")
        else:
            raise ValidationError("employeeId or entryId is required")

        clock_out = self.now()
        if clock_out <= entry["clock_in"]:
            clock_out = entry["clock_in"] + ONE_MS
        duration = minutes_between(entry["clock_in"], clock_out)

        closed = await self.store.close_entry(entry["id"], clock_out, duration)
        if closed is None:
            # another clock-out won the race
            raise ConflictError("Already clocked out", entry=await self.store.get_entry(entry["id"]))
        logger.info(
            "Employee %s clocked out (entry %s, %d min)",
            closed["employee_id"], closed["id"], closed["duration_minutes"],
        )
        return closed
