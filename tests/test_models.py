"""
tests/test_models.py
====================

Unit tests for the status enums and dataclasses in scholarflow.models.

Run:  pytest -q
"""

from datetime import date

import pytest

from scholarflow.errors import InvalidStatus
from scholarflow.models import (
    ApplicationStatus,
    DocumentStatus,
    DocumentUpload,
    EntityKind,
    ScholarshipApplication,
    ScholarshipProgram,
    ServiceStatus,
    parse_status,
)


def test_default_status():
    """New application defaults to DRAFT."""
    app = ScholarshipApplication(None, student_id=1, program_id=2)
    assert app.status is ApplicationStatus.DRAFT


def test_str_on_status():
    """Enum __str__ returns the stored value."""
    assert str(ApplicationStatus.DOCUMENTS_APPROVED) == "documents_approved"


def test_vocabulary_sizes():
    assert len(ApplicationStatus) == 14
    assert len(DocumentStatus) == 7
    assert len(ServiceStatus) == 5


def test_parse_status_accepts_strings_and_members():
    assert parse_status(EntityKind.DOCUMENT, "approved") is DocumentStatus.APPROVED
    assert parse_status(EntityKind.SERVICE_ENTRY, ServiceStatus.APPROVED) is ServiceStatus.APPROVED


def test_parse_status_rejects_foreign_vocabulary():
    """'pending_review' belongs to service reports, not documents."""
    with pytest.raises(InvalidStatus):
        parse_status(EntityKind.DOCUMENT, "pending_review")


def test_record_coerces_raw_status():
    upload = DocumentUpload(1, application_id=1, requirement_id=1, status="rejected_unreadable")
    assert upload.status is DocumentStatus.REJECTED_UNREADABLE


def test_record_with_unknown_status_raises():
    with pytest.raises(InvalidStatus):
        ScholarshipApplication(1, student_id=1, program_id=1, status="approved")


@pytest.mark.parametrize("status", list(DocumentStatus))
def test_document_rejection_flag(status):
    assert status.is_rejection == status.value.startswith("rejected_")


def test_program_accepting_applications():
    program = ScholarshipProgram(1, "Merit", application_deadline=date(2025, 6, 30))
    assert program.accepting_applications(date(2025, 6, 30))
    assert not program.accepting_applications(date(2025, 7, 1))
    closed = ScholarshipProgram(2, "Old", active=False)
    assert not closed.accepting_applications(date(2020, 1, 1))
