from datetime import datetime
from typing import Optional
from pydantic import BaseModel

from .common import EntrySource


class ClockInPayload(BaseModel):
    employee_id: str
    # length is checked by ClockService so direct and HTTP callers get the same 400
    note: Optional[str] = None
    source: EntrySource = EntrySource.web


class ClockOutPayload(BaseModel):
    # entry_id takes precedence when both are sent
    employee_id: Optional[str] = None
    entry_id: Optional[str] = None


class TimeEntryOut(BaseModel):
    id: str
    employee_id: str
    employee_name: Optional[str] = None
    clock_in: datetime
    clock_out: Optional[datetime] = None
    duration_minutes: int = 0
    note: Optional[str] = None
    source: EntrySource = EntrySource.web
    is_active: bool
    created_at: datetime


class TimeEntryListOut(BaseModel):
    total: int
    page: int
    limit: int
    entries: list[TimeEntryOut]


class SummaryRow(BaseModel):
    employee_id: str
    name: str
    total_minutes: int
    count: int
