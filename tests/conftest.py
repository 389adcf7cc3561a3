"""
Pytest configuration: make sure `import scholarflow` works regardless of
where pytest is invoked, and provide an in-memory database per test.

It prepends the project root (one directory above *tests/*) to
``sys.path`` **before** any tests are collected.
"""

import sys
from datetime import date, datetime, timedelta, timezone
from pathlib import Path

import pytest

# /path/to/project/tests -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, create_engine  # noqa: E402

from scholarflow.db import (  # noqa: E402
    CommunityServiceEntryDB,
    CommunityServiceReportDB,
    DocumentRequirementDB,
    DocumentUploadDB,
    ScholarshipApplicationDB,
    ScholarshipProgramDB,
    create_all,
)
from scholarflow.notifications import OutboxNotifier  # noqa: E402
from scholarflow.settings import Settings  # noqa: E402
from scholarflow.store import Store  # noqa: E402
from scholarflow.workflow import WorkflowService  # noqa: E402


class FakeClock:
    """Deterministic, timezone-aware "now" that tests can move forward."""

    def __init__(self, start: datetime = datetime(2025, 3, 1, 9, 0, 0, tzinfo=timezone.utc)) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


class Seeder:
    """Writes fixture rows straight through the store, bypassing the workflow."""

    def __init__(self, store: Store) -> None:
        self.store = store

    def _commit(self, row):
        self.store.save(row)
        self.store.session.commit()
        return row

    def program(self, quota: int = 10, **kwargs) -> ScholarshipProgramDB:
        kwargs.setdefault("name", "Community Scholars")
        kwargs.setdefault("application_deadline", date(2025, 12, 31))
        return self._commit(ScholarshipProgramDB(community_service_days=quota, **kwargs))

    def requirement(self, program, name: str = "Transcript", is_required: bool = True) -> DocumentRequirementDB:
        return self._commit(DocumentRequirementDB(program_id=program.id, name=name, is_required=is_required))

    def application(self, program, status: str = "draft", student_id: int = 7, **kwargs) -> ScholarshipApplicationDB:
        return self._commit(ScholarshipApplicationDB(
            student_id=student_id, program_id=program.id, status=status, **kwargs
        ))

    def document(self, app, requirement, status: str = "pending", rejection_reason=None) -> DocumentUploadDB:
        return self._commit(DocumentUploadDB(
            application_id=app.id,
            requirement_id=requirement.id,
            file_path=f"uploads/{app.id}/{requirement.id}.pdf",
            status=status,
            rejection_reason=rejection_reason,
        ))

    def report(self, app, days: int, status: str = "pending_review", rejection_reason=None) -> CommunityServiceReportDB:
        return self._commit(CommunityServiceReportDB(
            application_id=app.id,
            days_completed=days,
            description="Tutoring at the community library",
            status=status,
            rejection_reason=rejection_reason,
        ))

    def entry(self, app, hours: float, status: str = "pending_review") -> CommunityServiceEntryDB:
        return self._commit(CommunityServiceEntryDB(
            application_id=app.id,
            hours_completed=hours,
            description="Beach clean-up",
            status=status,
        ))


@pytest.fixture
def engine():
    eng = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    create_all(eng)
    yield eng
    eng.dispose()


@pytest.fixture
def store(engine):
    with Store(Session(engine)) as s:
        yield s


@pytest.fixture
def seed(store):
    return Seeder(store)


@pytest.fixture
def outbox():
    return OutboxNotifier()


@pytest.fixture
def config():
    return Settings(_env_file=None)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def wf(store, outbox, config, clock):
    return WorkflowService(store, notifier=outbox, config=config, clock=clock)
