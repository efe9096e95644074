from __future__ import annotations

import csv
import io

from timeledger.db.ledger_store import EntryFilter, LedgerStore
from timeledger.utils.timefmt import to_iso_z


MAX_PAGE_SIZE = 200
DEFAULT_PAGE_SIZE = 50

CSV_HEADER = ["id", "employee", "clockIn", "clockOut", "durationMinutes", "note", "source"]


def clamp_pagination(page: int, limit: int) -> tuple[int, int]:
    return max(1, int(page)), min(MAX_PAGE_SIZE, max(1, int(limit)))


def render_csv(rows: list[list]) -> str:
    buf = io.StringIO()
    writer = csv.writer(buf, lineterminator="\n")
    writer.writerows(rows)
    return buf.getvalue()


class ReportService:
    """Read side of the ledger: listings, CSV rows and per-employee totals."""

    def __init__(self, store: LedgerStore) -> None:
        self.store = store

    async def _with_names(self, entries: list[dict]) -> list[dict]:
        employees = await self.store.get_employees([e["employee_id"] for e in entries])
        for e in entries:
            emp = employees.get(e["employee_id"])
            e["employee_name"] = emp["name"] if emp else None
        return entries

    async def list_entries(self, flt: EntryFilter, page: int = 1, limit: int = DEFAULT_PAGE_SIZE) -> dict:
        page, limit = clamp_pagination(page, limit)
        total = await self.store.count_entries(flt)
        entries = await self.store.find_entries(flt, skip=(page - 1) * limit, limit=limit)
        return {
            "total": total,
            "page": page,
            "limit": limit,
            "entries": await self._with_names(entries),
        }

    async def export_rows(self, flt: EntryFilter) -> list[list]:
        """Header plus one row per matching entry, newest first."""
        entries = await self._with_names(await self.store.find_entries(flt))
        rows: list[list] = [list(CSV_HEADER)]
        for e in entries:
            rows.append([
                e["id"],
                e["employee_name"] or "",
                to_iso_z(e["clock_in"]),
                to_iso_z(e.get("clock_out")),
                e.get("duration_minutes", 0),
                e.get("note") or "",
                e.get("source") or "",
            ])
        return rows

    async def summarize(self, flt: EntryFilter) -> list[dict]:
        groups = await self.store.aggregate_minutes(flt)
        employees = await self.store.get_employees([g["employee_id"] for g in groups])
        summary = [
            {
                "employee_id": g["employee_id"],
                "name": employees[g["employee_id"]]["name"],
                "total_minutes": g["total_minutes"],
                "count": g["count"],
            }
            # entries of deleted employees are left out
            for g in groups if g["employee_id"] in employees
        ]
        summary.sort(key=lambda row: (-row["total_minutes"], row["employee_id"]))
        return summary
