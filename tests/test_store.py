"""
tests/test_store.py
===================

Integration‑style tests for the SQLModel-backed store: persistence
round-trips, the unit-of-work scope, and the orphan-report query.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy.exc import StatementError
from sqlmodel import Session

from scholarflow.db import CommunityServiceReportDB, ScholarshipProgramDB
from scholarflow.errors import EntityNotFound
from scholarflow.models import DocumentStatus
from scholarflow.store import Store


@pytest.mark.parametrize("status", list(DocumentStatus))
def test_status_round_trip(engine, seed, status):
    """What is written is exactly what is read back in a fresh session."""
    program = seed.program()
    req = seed.requirement(program)
    app = seed.application(program)
    reason = "blurry scan" if status.is_rejection else None
    doc = seed.document(app, req, status=status.value, rejection_reason=reason)

    with Store(Session(engine)) as other:
        fetched = other.get_document(doc.id)
        assert fetched.status == status.value
        assert fetched.to_entity().status is status


def test_program_converter_round_trip(engine, store):
    row = store.save(ScholarshipProgramDB(name="STEM", community_service_days=12, total_budget=Decimal("5000.00")))
    store.session.commit()

    with Store(Session(engine)) as other:
        program = other.get_program(row.id).to_entity()
    assert program.name == "STEM"
    assert program.community_service_days == 12
    assert program.total_budget == Decimal("5000.00")


def test_missing_row_raises_not_found(store):
    with pytest.raises(EntityNotFound):
        store.get_application(999)


def test_unit_of_work_rolls_back(engine, store, seed):
    program = seed.program()
    app = seed.application(program)

    with pytest.raises(RuntimeError):
        with store.unit_of_work():
            row = store.get_application(app.id, for_update=True)
            row.status = "enrolled"
            store.save(row)
            raise RuntimeError("boom")

    with Store(Session(engine)) as other:
        assert other.get_application(app.id).status == "draft"


def test_nested_unit_of_work_commits_once(engine, store, seed):
    program = seed.program()
    app = seed.application(program)

    with store.unit_of_work():
        with store.unit_of_work():
            row = store.get_application(app.id, for_update=True)
            row.status = "submitted"
            store.save(row)

    with Store(Session(engine)) as other:
        assert other.get_application(app.id).status == "submitted"


def test_children_listed_by_parent(store, seed):
    program = seed.program()
    first = seed.application(program, student_id=1)
    second = seed.application(program, student_id=2)
    seed.report(first, 2)
    seed.report(first, 3)
    seed.report(second, 1)

    assert [r.days_completed for r in store.reports_for(first.id)] == [2, 3]
    assert len(store.reports_for(second.id)) == 1


def test_orphan_reports(store, seed):
    program = seed.program()
    app = seed.application(program)
    kept = seed.report(app, 2)
    orphan = store.save(CommunityServiceReportDB(application_id=4242, days_completed=1, description="lost"))
    store.session.commit()

    ids = [r.id for r in store.orphan_reports()]
    assert ids == [orphan.id]
    assert kept.id not in ids


def test_timestamps_round_trip_as_aware_utc(engine, store, seed):
    program = seed.program()
    stamped = datetime(2025, 3, 1, 14, 30, tzinfo=timezone(timedelta(hours=5)))
    app = seed.application(program, reviewed_at=stamped)

    with Store(Session(engine)) as other:
        reviewed_at = other.get_application(app.id).reviewed_at
    assert reviewed_at == stamped
    assert reviewed_at.tzinfo == timezone.utc
    assert reviewed_at.hour == 9


def test_naive_timestamp_is_refused(store, seed):
    program = seed.program()
    with pytest.raises(StatementError):
        seed.application(program, reviewed_at=datetime(2025, 3, 1, 9, 0))
    store.session.rollback()
