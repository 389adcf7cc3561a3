"""
tests/test_aggregation.py
=========================

Unit tests for scholarflow.aggregation; no database involved.
"""

from decimal import Decimal

import pytest

from scholarflow.aggregation import (
    ServiceCountPolicy,
    all_documents_approved,
    check_report_days,
    claimable_days,
    completed_service_days,
    hours_to_days,
    missing_requirements,
    remaining_days,
    service_progress,
)
from scholarflow.errors import QuotaExceeded
from scholarflow.models import (
    CommunityServiceEntry,
    CommunityServiceReport,
    DocumentRequirement,
    DocumentUpload,
)

REQS = (
    DocumentRequirement(1, 3, "Transcript"),
    DocumentRequirement(2, 3, "Essay"),
    DocumentRequirement(3, 3, "Photo", is_required=False),
)


def _upload(uid, req, status="approved"):
    return DocumentUpload(uid, application_id=1, requirement_id=req, status=status)


def test_all_documents_approved():
    uploads = (_upload(1, 1), _upload(2, 2), _upload(3, 3, "pending"))
    assert all_documents_approved(uploads, REQS)


def test_one_pending_document_blocks():
    uploads = (_upload(1, 1), _upload(2, 2, "pending"))
    assert not all_documents_approved(uploads, REQS)


def test_missing_document_blocks():
    assert not all_documents_approved((_upload(1, 1),), REQS)
    assert missing_requirements((_upload(1, 1),), REQS) == {2}


def test_no_required_documents_is_complete():
    assert all_documents_approved((), (DocumentRequirement(9, 3, "Optional", is_required=False),))


def _report(rid, days, status="pending_review"):
    reason = "nope" if status.startswith("rejected") else None
    return CommunityServiceReport(rid, 1, days, status=status, rejection_reason=reason)


REPORTS = (
    _report(1, 3, "approved"),
    _report(2, 2, "pending_review"),
    _report(3, 4, "rejected_other"),
)


@pytest.mark.parametrize("policy, expected", [
    (ServiceCountPolicy.ALL, 9),
    (ServiceCountPolicy.NON_REJECTED, 5),
    (ServiceCountPolicy.APPROVED_ONLY, 3),
])
def test_counting_policies(policy, expected):
    assert completed_service_days(REPORTS, policy=policy) == expected


def test_repeated_report_is_counted_once():
    doubled = REPORTS + (REPORTS[0],)
    assert completed_service_days(doubled) == completed_service_days(REPORTS)


def test_entries_count_in_day_equivalents():
    entries = (CommunityServiceEntry(1, 1, hours_completed=12.0), CommunityServiceEntry(2, 1, hours_completed=4.0))
    assert completed_service_days((), entries, hours_per_day=8.0) == 2


def test_remaining_never_negative():
    assert remaining_days(10, 6) == 4
    assert remaining_days(10, 12) == 0


def test_exact_remainder_is_accepted():
    check_report_days(4, 4)


def test_one_day_over_raises_with_remainder():
    with pytest.raises(QuotaExceeded) as info:
        check_report_days(5, 4)
    assert info.value.remaining == 4
    assert "up to 4 days" in str(info.value)


def test_service_progress_summary():
    progress = service_progress(5, REPORTS)
    assert progress.completed == 5
    assert progress.remaining == 0
    assert progress.met


def test_fractional_entry_hours_add_up_exactly():
    entries = tuple(
        CommunityServiceEntry(i, 1, hours_completed=h) for i, h in enumerate((0.1, 4.1, 3.8), start=1)
    )
    progress = service_progress(1, (), entries)
    assert progress.completed == 1
    assert progress.met


def test_hours_to_days():
    assert hours_to_days(5.7) == Decimal("0.7125")
    assert hours_to_days(16, hours_per_day=8.0) == 2


def test_pending_items_hold_days_for_new_claims():
    # only the approved report counts toward progress, but the pending one still holds its 2 days
    assert service_progress(10, REPORTS, policy=ServiceCountPolicy.APPROVED_ONLY).remaining == 7
    assert claimable_days(10, REPORTS, policy=ServiceCountPolicy.APPROVED_ONLY) == 5
    assert claimable_days(10, REPORTS, policy=ServiceCountPolicy.ALL) == 1
