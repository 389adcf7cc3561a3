"""
scholarflow.lifecycle
=====================

Transition rules for the scholarship workflow.

Administrators are trusted: any application status in the vocabulary is a
legal admin target.  The guards here cover what is *not* left to admin
judgement: student-initiated actions, rejection reasons, disbursement
eligibility, and the automatic parent transitions ("cascades") that follow
a child review.

Every function is pure.  Guards raise a
:class:`~scholarflow.errors.WorkflowError` subclass; cascade helpers return
the parent's next status or ``None``.
"""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

from .aggregation import missing_requirements
from .errors import (
    IllegalTransition,
    IneligibleForDisbursement,
    MissingDocuments,
    MissingRejectionReason,
)
from .models import (
    AnyStatus,
    ApplicationStatus,
    DisbursementStatus,
    DocumentRequirement,
    DocumentUpload,
    EntityKind,
    ScholarshipApplication,
    parse_status,
)

A = ApplicationStatus

# ---------------------------------------------------------------------
# Status subsets
# ---------------------------------------------------------------------
DISBURSEMENT_ELIGIBLE = frozenset({
    A.DOCUMENTS_APPROVED,
    A.ELIGIBILITY_VERIFIED,
    A.ENROLLED,
    A.SERVICE_COMPLETED,
    A.DISBURSEMENT_PENDING,
})
SERVICE_REPORTING = frozenset({A.ENROLLED, A.SERVICE_PENDING})
DOCUMENT_UPLOAD = frozenset({A.DRAFT, A.DOCUMENTS_PENDING, A.DOCUMENTS_REJECTED})
# parent states in which document reviews may cascade
DOCUMENT_REVIEW = frozenset({A.SUBMITTED, A.DOCUMENTS_PENDING, A.DOCUMENTS_UNDER_REVIEW})
# open applications block a second one for the same program
CLOSED = frozenset({A.COMPLETED, A.REJECTED})

REVIEWABLE = frozenset({EntityKind.DOCUMENT, EntityKind.SERVICE_REPORT, EntityKind.SERVICE_ENTRY})


class Transition(Enum):
    """Outcome of a successful :func:`can_transition` check."""
    CHANGED = "changed"
    UNCHANGED = "unchanged"


def can_transition(
    kind: EntityKind,
    current: object,
    requested: object,
    rejection_reason: Optional[str] = None,
) -> Transition:
    """
    Validate an admin-initiated status change.

    Raises ``InvalidStatus`` if either status is outside *kind*'s
    vocabulary and ``MissingRejectionReason`` if a rejection variant of a
    document, report or entry comes without a non-blank reason.

    Examples
    --------
    >>> can_transition(EntityKind.DOCUMENT, "pending", "approved")
    <Transition.CHANGED: 'changed'>
    >>> can_transition(EntityKind.APPLICATION, "enrolled", "enrolled")
    <Transition.UNCHANGED: 'unchanged'>
    """
    current_status = parse_status(kind, current)
    new_status = parse_status(kind, requested)

    if kind in REVIEWABLE and new_status.is_rejection:
        if not (rejection_reason or "").strip():
            raise MissingRejectionReason(new_status.value)

    if new_status == current_status:
        return Transition.UNCHANGED
    return Transition.CHANGED


# ---------------------------------------------------------------------
# Student-initiated guards
# ---------------------------------------------------------------------
def check_submission(
    application: ScholarshipApplication,
    uploads: Sequence[DocumentUpload],
    requirements: Sequence[DocumentRequirement],
) -> None:
    """Submission is only allowed from ``draft`` with every required document uploaded."""
    if application.status is not A.DRAFT:
        raise IllegalTransition(
            f"application {application.id} is '{application.status}'; only drafts can be submitted"
        )
    missing = missing_requirements(uploads, requirements)
    if missing:
        raise MissingDocuments(missing)


def check_document_upload(application: ScholarshipApplication) -> None:
    if application.status not in DOCUMENT_UPLOAD:
        raise IllegalTransition(
            f"documents cannot be uploaded while application {application.id} is '{application.status}'"
        )


def check_service_eligibility(application: ScholarshipApplication) -> None:
    if application.status not in SERVICE_REPORTING:
        raise IllegalTransition(
            f"application {application.id} is not eligible for community service reporting"
        )


def check_disbursement_eligibility(application: ScholarshipApplication) -> None:
    if application.status not in DISBURSEMENT_ELIGIBLE:
        raise IneligibleForDisbursement(application.id, application.status.value)


# ---------------------------------------------------------------------
# Cascades: parent status implied by a child change
# ---------------------------------------------------------------------
def document_cascade(
    app_status: ApplicationStatus,
    all_approved: bool,
    reviewed: AnyStatus,
) -> Optional[ApplicationStatus]:
    """
    Parent status after a document review.

    Every required document approved moves an application under document
    review to ``documents_approved``; a rejection sends it back to
    ``documents_pending`` so the student can re-upload.
    """
    if app_status not in DOCUMENT_REVIEW:
        return None
    if all_approved:
        return A.DOCUMENTS_APPROVED
    if reviewed.is_rejection and app_status is not A.DOCUMENTS_PENDING:
        return A.DOCUMENTS_PENDING
    return None


def service_submission_target(
    app_status: ApplicationStatus,
    quota_met: bool,
) -> Optional[ApplicationStatus]:
    """Parent status right after the student reports service."""
    if quota_met:
        return A.SERVICE_COMPLETED
    if app_status is A.ENROLLED:
        return A.SERVICE_PENDING
    return None


def service_cascade(
    app_status: ApplicationStatus,
    quota_met: bool,
) -> Optional[ApplicationStatus]:
    """Parent status after a report or entry review."""
    if quota_met and app_status in SERVICE_REPORTING:
        return A.SERVICE_COMPLETED
    if not quota_met and app_status is A.SERVICE_COMPLETED:
        return A.SERVICE_PENDING
    return None


def disbursement_cascade(
    app_status: ApplicationStatus,
    disbursement_status: DisbursementStatus,
) -> Optional[ApplicationStatus]:
    if disbursement_status is DisbursementStatus.PROCESSED and app_status is A.DISBURSEMENT_PENDING:
        return A.DISBURSEMENT_PROCESSED
    return None
