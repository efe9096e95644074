import asyncio

import pytest

from timeledger.core.errors import ConflictError, NotFoundError, ValidationError
from timeledger.db.ledger_store import EntryFilter
from timeledger.services.clock_service import ClockService
from timeledger.utils.timefmt import ONE_MS

from conftest import YieldingLedgerStore, run


def _employee(store, name="Aman Mishra"):
    return run(store.create_employee({"name": name}))["id"]


def test_clock_in_then_out_scenario(store, clock):
    svc = ClockService(store, now=clock)
    emp_id = _employee(store)

    entry = run(svc.clock_in(emp_id))
    assert entry["clock_out"] is None
    assert entry["duration_minutes"] == 0
    assert entry["is_active"] is True
    assert entry["source"] == "web"
    assert entry["clock_in"] == clock()

    with pytest.raises(ConflictError) as exc:
        run(svc.clock_in(emp_id))
    assert exc.value.message == "Already clocked in"
    assert exc.value.entry["id"] == entry["id"]

    clock.advance(minutes=45)
    closed = run(svc.clock_out(employee_id=emp_id))
    assert closed["id"] == entry["id"]
    assert closed["duration_minutes"] == 45
    assert closed["is_active"] is False

    with pytest.raises(ConflictError) as exc:
        run(svc.clock_out(entry_id=entry["id"]))
    assert exc.value.message == "Already clocked out"
    with pytest.raises(NotFoundError):
        run(svc.clock_out(employee_id=emp_id))


def test_clock_in_after_clock_out_opens_new_entry(store, clock):
    svc = ClockService(store, now=clock)
    emp_id = _employee(store)
    first = run(svc.clock_in(emp_id))
    clock.advance(hours=1)
    run(svc.clock_out(employee_id=emp_id))
    clock.advance(minutes=5)
    second = run(svc.clock_in(emp_id, note="back from lunch", source="mobile"))
    assert second["id"] != first["id"]
    assert second["note"] == "back from lunch"
    assert second["source"] == "mobile"


def test_clock_in_validation(store, clock):
    svc = ClockService(store, now=clock)
    emp_id = _employee(store)
    with pytest.raises(ValidationError):
        run(svc.clock_in("not-an-id"))
    with pytest.raises(ValidationError):
        run(svc.clock_in(""))
    with pytest.raises(ValidationError):
        run(svc.clock_in(emp_id, source="fax"))
    with pytest.raises(ValidationError):
        run(svc.clock_in(emp_id, note="x" * 501))
    with pytest.raises(NotFoundError):
        run(svc.clock_in("65f000000000000000000000"))


def test_clock_out_addressing_errors(store, clock):
    svc = ClockService(store, now=clock)
    with pytest.raises(ValidationError):
        run(svc.clock_out())
    with pytest.raises(ValidationError):
        run(svc.clock_out(entry_id="bogus"))
    with pytest.raises(NotFoundError) as exc:
        run(svc.clock_out(entry_id="65f000000000000000000000"))
    assert exc.value.message == "Entry not found"
    with pytest.raises(NotFoundError) as exc:
        run(svc.clock_out(employee_id=_employee(store)))
    assert exc.value.message == "No open entry found"


def test_entry_id_wins_over_employee_id(store, clock):
    svc = ClockService(store, now=clock)
    a, b = _employee(store, "A"), _employee(store, "B")
    entry_a = run(svc.clock_in(a))
    run(svc.clock_in(b))
    clock.advance(minutes=10)
    closed = run(svc.clock_out(employee_id=b, entry_id=entry_a["id"]))
    assert closed["id"] == entry_a["id"]
    assert run(store.find_open_entry(b)) is not None


@pytest.mark.parametrize(
    "seconds, minutes",
    [(90, 2), (89, 1), (30, 1), (29, 0), (3600, 60), (5399, 90)],
)
def test_duration_rounds_half_up(store, clock, seconds, minutes):
    svc = ClockService(store, now=clock)
    emp_id = _employee(store)
    run(svc.clock_in(emp_id))
    clock.advance(seconds=seconds)
    assert run(svc.clock_out(employee_id=emp_id))["duration_minutes"] == minutes


def test_clock_out_never_precedes_clock_in(store, clock):
    svc = ClockService(store, now=clock)
    emp_id = _employee(store)
    entry = run(svc.clock_in(emp_id))
    # server clock did not move
    closed = run(svc.clock_out(employee_id=emp_id))
    assert closed["clock_out"] == entry["clock_in"] + ONE_MS
    assert closed["duration_minutes"] == 0

    run(svc.clock_in(emp_id))
    clock.advance(seconds=-30)
    closed = run(svc.clock_out(employee_id=emp_id))
    assert closed["clock_out"] > closed["clock_in"]
    assert closed["duration_minutes"] == 0


def test_double_clock_out_keeps_first_duration(store, clock):
    svc = ClockService(store, now=clock)
    emp_id = _employee(store)
    entry = run(svc.clock_in(emp_id))
    clock.advance(minutes=60)
    first = run(svc.clock_out(entry_id=entry["id"]))
    clock.advance(minutes=60)
    with pytest.raises(ConflictError) as exc:
        run(svc.clock_out(entry_id=entry["id"]))
    assert exc.value.entry["duration_minutes"] == first["duration_minutes"] == 60
    assert run(store.get_entry(entry["id"]))["duration_minutes"] == 60


def test_concurrent_clock_ins_allow_exactly_one(clock):
    store = YieldingLedgerStore()
    svc = ClockService(store, now=clock)
    emp_id = run(store.create_employee({"name": "Racer"}))["id"]

    async def attempt_all():
        return await asyncio.gather(*(svc.clock_in(emp_id) for _ in range(10)), return_exceptions=True)

    results = run(attempt_all())
    created = [r for r in results if isinstance(r, dict)]
    conflicts = [r for r in results if isinstance(r, ConflictError)]
    assert len(created) == 1
    assert len(conflicts) == 9
    assert all(c.entry["id"] == created[0]["id"] for c in conflicts)

    entries = run(store.find_entries(EntryFilter(employee_id=emp_id)))
    assert [e["is_active"] for e in entries] == [True]


def test_concurrent_clock_outs_close_once(clock):
    store = YieldingLedgerStore()
    svc = ClockService(store, now=clock)
    emp_id = run(store.create_employee({"name": "Racer"}))["id"]
    entry = run(svc.clock_in(emp_id))
    clock.advance(minutes=30)

    async def attempt_all():
        return await asyncio.gather(
            svc.clock_out(entry_id=entry["id"]),
            svc.clock_out(employee_id=emp_id),
            return_exceptions=True,
        )

    results = run(attempt_all())
    closed = [r for r in results if isinstance(r, dict)]
    assert len(closed) == 1
    assert isinstance([r for r in results if not isinstance(r, dict)][0], ConflictError)
    assert run(store.get_entry(entry["id"]))["duration_minutes"] == 30


class CountingLock:
    def __init__(self, lock) -> None:
        self.lock = lock
        self.entered = 0

    def __enter__(self):
        self.entered += 1
        return self.lock.__enter__()

    def __exit__(self, *exc):
        return self.lock.__exit__(*exc)


def test_memory_store_reads_take_the_lock(store, clock):
    emp_id = run(store.create_employee({"name": "Locked"}))["id"]
    entry = run(ClockService(store, now=clock).clock_in(emp_id))
    store._lock = CountingLock(store._lock)

    assert run(store.get_employee(emp_id))["name"] == "Locked"
    assert store._lock.entered == 1
    assert run(store.get_entry(entry["id"]))["id"] == entry["id"]
    assert store._lock.entered == 2
