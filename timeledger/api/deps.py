from fastapi import Depends, Request

from timeledger.db.ledger_store import LedgerStore
from timeledger.db.user_store import UserStore
from timeledger.services.clock_service import ClockService
from timeledger.services.report_service import ReportService


def get_ledger_store(request: Request) -> LedgerStore:
    return request.app.state.ledger_store


def get_user_store(request: Request) -> UserStore:
    return request.app.state.user_store


def get_clock_service(store: LedgerStore = Depends(get_ledger_store)) -> ClockService:
    return ClockService(store)


def get_report_service(store: LedgerStore = Depends(get_ledger_store)) -> ReportService:
    return ReportService(store)
