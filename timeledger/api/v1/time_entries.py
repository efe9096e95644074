from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import PlainTextResponse

from timeledger.api.deps import get_clock_service, get_report_service
from timeledger.core.rbac import authorize
from timeledger.core.security import get_current_user
from timeledger.db.ledger_store import EntryFilter
from timeledger.schemas.time_entry_schema import (
    ClockInPayload,
    ClockOutPayload,
    TimeEntryOut,
    TimeEntryListOut,
    SummaryRow,
)
from timeledger.services.clock_service import ClockService
from timeledger.services.report_service import ReportService, render_csv


router = APIRouter(prefix="/time", tags=["time"])


@router.post("/clock-in", response_model=TimeEntryOut, status_code=status.HTTP_201_CREATED)
async def clock_in(
    payload: ClockInPayload,
    clock: ClockService = Depends(get_clock_service),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "time:clock")
    return await clock.clock_in(payload.employee_id, note=payload.note, source=payload.source.value)


@router.post("/clock-out", response_model=TimeEntryOut)
async def clock_out(
    payload: ClockOutPayload,
    clock: ClockService = Depends(get_clock_service),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "time:clock")
    return await clock.clock_out(employee_id=payload.employee_id, entry_id=payload.entry_id)


@router.get("/entries", response_model=TimeEntryListOut)
async def list_entries(
    employee_id: Optional[str] = Query(None),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=200),
    reports: ReportService = Depends(get_report_service),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "time:list")
    flt = EntryFilter.parse(employee_id, from_, to)
    return await reports.list_entries(flt, page=page, limit=limit)


@router.get("/export/csv")
async def export_csv(
    employee_id: Optional[str] = Query(None),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    reports: ReportService = Depends(get_report_service),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "time:export")
    flt = EntryFilter.parse(employee_id, from_, to)
    rows = await reports.export_rows(flt)
    return PlainTextResponse(
        content=render_csv(rows),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": "attachment; filename=timesheet.csv"},
    )


@router.get("/summary", response_model=list[SummaryRow])
async def summary(
    employee_id: Optional[str] = Query(None),
    from_: Optional[str] = Query(None, alias="from"),
    to: Optional[str] = Query(None),
    reports: ReportService = Depends(get_report_service),
    current_user=Depends(get_current_user),
):
    authorize(current_user, "time:summary")
    flt = EntryFilter.parse(employee_id, from_, to)
    return await reports.summarize(flt)
