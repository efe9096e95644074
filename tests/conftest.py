import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from timeledger.db.ledger_store import MemoryLedgerStore


T0 = datetime(2024, 3, 1, 9, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, start: datetime = T0) -> None:
        self.current = start

    def __call__(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class YieldingLedgerStore(MemoryLedgerStore):
    """Memory store that yields to the event loop after each read, so concurrent
    coroutines all observe the same state before any of them writes."""

    async def get_employee(self, employee_id):
        found = await super().get_employee(employee_id)
        await asyncio.sleep(0)
        return found

    async def get_entry(self, entry_id):
        found = await super().get_entry(entry_id)
        await asyncio.sleep(0)
        return found

    async def find_open_entry(self, employee_id):
        found = await super().find_open_entry(employee_id)
        await asyncio.sleep(0)
        return found


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return MemoryLedgerStore()


def run(coro):
    return asyncio.run(coro)
