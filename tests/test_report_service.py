from datetime import datetime, timedelta, timezone

import pytest

from timeledger.core.errors import ValidationError
from timeledger.db.ledger_store import EntryFilter
from timeledger.services.report_service import CSV_HEADER, ReportService, render_csv

from conftest import T0, run


def _add_entry(store, employee_id, created_at, minutes=None, note=None, source="web"):
    entry = run(store.create_open_entry({
        "employee_id": employee_id,
        "clock_in": created_at,
        "note": note,
        "source": source,
        "created_at": created_at,
    }))
    if minutes is None:
        return entry
    return run(store.close_entry(entry["id"], created_at + timedelta(minutes=minutes), minutes))


@pytest.fixture
def seeded(store):
    alice = run(store.create_employee({"name": "Alice"}))["id"]
    bob = run(store.create_employee({"name": "Bob"}))["id"]
    for h in range(5):
        _add_entry(store, alice, T0 + timedelta(hours=h), minutes=30)
    _add_entry(store, bob, T0 + timedelta(hours=1, minutes=30), minutes=60)
    _add_entry(store, bob, T0 + timedelta(hours=6), minutes=90)
    return {"alice": alice, "bob": bob}


def test_list_entries_inclusive_range(store, seeded):
    svc = ReportService(store)
    flt = EntryFilter(from_time=T0 + timedelta(hours=1), to_time=T0 + timedelta(hours=3))
    result = run(svc.list_entries(flt))
    created = [e["created_at"] for e in result["entries"]]
    assert result["total"] == 4
    assert created == sorted(created, reverse=True)
    assert created[0] == T0 + timedelta(hours=3)
    assert created[-1] == T0 + timedelta(hours=1)


def test_list_entries_employee_filter_and_join(store, seeded):
    svc = ReportService(store)
    result = run(svc.list_entries(EntryFilter(employee_id=seeded["bob"])))
    assert result["total"] == 2
    assert {e["employee_name"] for e in result["entries"]} == {"Bob"}


def test_pages_reconstruct_full_listing(store, seeded):
    svc = ReportService(store)
    everything = run(svc.list_entries(EntryFilter(), page=1, limit=200))
    assert everything["total"] == 7

    seen = []
    page = 1
    while True:
        chunk = run(svc.list_entries(EntryFilter(), page=page, limit=3))
        assert chunk["total"] == 7
        if not chunk["entries"]:
            break
        seen.extend(e["id"] for e in chunk["entries"])
        page += 1
    assert page == 4
    assert seen == [e["id"] for e in everything["entries"]]


def test_pagination_is_clamped(store, seeded):
    svc = ReportService(store)
    result = run(svc.list_entries(EntryFilter(), page=0, limit=1000))
    assert result["page"] == 1
    assert result["limit"] == 200
    assert run(svc.list_entries(EntryFilter(), limit=0))["limit"] == 1


def test_deleted_employee_has_no_name(store, seeded):
    run(store.delete_employee(seeded["bob"]))
    result = run(ReportService(store).list_entries(EntryFilter(employee_id=seeded["bob"])))
    assert [e["employee_name"] for e in result["entries"]] == [None, None]


def test_export_header_on_empty_result(store):
    rows = run(ReportService(store).export_rows(EntryFilter()))
    assert rows == [["id", "employee", "clockIn", "clockOut", "durationMinutes", "note", "source"]]
    assert render_csv(rows) == "id,employee,clockIn,clockOut,durationMinutes,note,source\n"


def test_export_row_format(store):
    emp = run(store.create_employee({"name": "Neha, Sharma"}))["id"]
    started = datetime(2024, 3, 1, 9, 0, 5, 123000, tzinfo=timezone.utc)
    closed = _add_entry(store, emp, started, minutes=90, note="standup")
    open_entry = _add_entry(store, emp, started + timedelta(hours=3), source="mobile")

    rows = run(ReportService(store).export_rows(EntryFilter()))
    assert rows[0] == CSV_HEADER
    assert rows[1] == [open_entry["id"], "Neha, Sharma", "2024-03-01T12:00:05Z", "", 0, "", "mobile"]
    assert rows[2] == [closed["id"], "Neha, Sharma", "2024-03-01T09:00:05Z", "2024-03-01T10:30:05Z", 90, "standup", "web"]

    text = render_csv(rows)
    assert text.splitlines()[2] == f'{closed["id"]},"Neha, Sharma",2024-03-01T09:00:05Z,2024-03-01T10:30:05Z,90,standup,web'


def test_summarize_totals_and_order(store, seeded):
    carol = run(store.create_employee({"name": "Carol"}))["id"]
    _add_entry(store, carol, T0 + timedelta(days=1), minutes=10)

    summary = run(ReportService(store).summarize(EntryFilter()))
    tied = sorted([
        {"employee_id": seeded["alice"], "name": "Alice", "total_minutes": 150, "count": 5},
        {"employee_id": seeded["bob"], "name": "Bob", "total_minutes": 150, "count": 2},
    ], key=lambda row: row["employee_id"])
    assert summary == tied + [{"employee_id": carol, "name": "Carol", "total_minutes": 10, "count": 1}]


def test_summarize_sixty_plus_ninety(store, seeded):
    flt = EntryFilter(employee_id=seeded["bob"])
    assert run(ReportService(store).summarize(flt)) == [
        {"employee_id": seeded["bob"], "name": "Bob", "total_minutes": 150, "count": 2},
    ]


def test_summarize_respects_range_and_drops_deleted(store, seeded):
    flt = EntryFilter(to_time=T0 + timedelta(hours=2))
    summary = run(ReportService(store).summarize(flt))
    assert [(r["name"], r["total_minutes"], r["count"]) for r in summary] == [("Alice", 90, 3), ("Bob", 60, 1)]

    run(store.delete_employee(seeded["alice"]))
    assert [r["name"] for r in run(ReportService(store).summarize(flt))] == ["Bob"]


def test_summarize_tie_breaks_on_employee_id(store):
    ids = [run(store.create_employee({"name": n}))["id"] for n in ("Zed", "Amy", "Kim")]
    for i, emp in enumerate(ids):
        _add_entry(store, emp, T0 + timedelta(minutes=i), minutes=45)
    summary = run(ReportService(store).summarize(EntryFilter()))
    assert [r["employee_id"] for r in summary] == sorted(ids)


def test_filter_parse():
    flt = EntryFilter.parse("65f000000000000000000000", "2024-03-01", "2024-03-02T10:00:00Z")
    assert flt.employee_id == "65f000000000000000000000"
    assert flt.from_time == datetime(2024, 3, 1, tzinfo=timezone.utc)
    assert flt.to_time == datetime(2024, 3, 2, 10, tzinfo=timezone.utc)
    assert EntryFilter.parse() == EntryFilter()

    with pytest.raises(ValidationError):
        EntryFilter.parse("123")
    with pytest.raises(ValidationError):
        EntryFilter.parse(from_="yesterday")
    with pytest.raises(ValidationError) as exc:
        EntryFilter.parse(from_="2024-03-02", to="2024-03-01")
    assert exc.value.message == "Invalid date range"
    # offsets that push the instant past the datetime range
    with pytest.raises(ValidationError) as exc:
        EntryFilter.parse(to="9999-12-31T23:00:00-05:00")
    assert exc.value.message == "Invalid date"
    with pytest.raises(ValidationError):
        EntryFilter.parse(from_="0001-01-01T00:00:00+01:00")
