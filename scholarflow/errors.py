"""
scholarflow.errors
==================

Exception taxonomy raised by the workflow core.

Every expected, caller-correctable failure derives from
:class:`WorkflowError` and carries a short machine ``code`` plus the HTTP
status the transport layer should answer with.  Persistence failures are
*not* wrapped: SQLAlchemy exceptions propagate unchanged after the unit of
work has rolled back.
"""

from __future__ import annotations

from decimal import Decimal
from typing import Iterable, List


class WorkflowError(Exception):
    """Base class for validation errors surfaced to the caller."""

    code = "workflow_error"
    http_status = 400


class InvalidStatus(WorkflowError):
    """Requested status is not part of the entity's vocabulary."""

    code = "invalid_status"
    http_status = 422

    def __init__(self, kind: str, value: object) -> None:
        self.kind = kind
        self.value = value
        super().__init__(f"'{value}' is not a valid {kind} status")


class MissingRejectionReason(WorkflowError):
    """A rejection status was requested without a reason."""

    code = "missing_rejection_reason"
    http_status = 422

    def __init__(self, status: str) -> None:
        self.status = status
        super().__init__(f"a rejection reason is required for status '{status}'")


class IneligibleForDisbursement(WorkflowError):
    """The parent application is not in a status that allows disbursements."""

    code = "ineligible_for_disbursement"
    http_status = 409

    def __init__(self, application_id: int, status: str) -> None:
        self.application_id = application_id
        self.status = status
        super().__init__(
            f"application {application_id} is '{status}' and cannot receive a disbursement"
        )


class QuotaExceeded(WorkflowError):
    """More service days were reported than remain on the quota."""

    code = "quota_exceeded"
    http_status = 422

    def __init__(self, requested: Decimal, remaining: Decimal) -> None:
        self.requested = requested
        self.remaining = remaining
        super().__init__(f"You can only report up to {remaining:g} days.")


class IllegalTransition(WorkflowError):
    """The action is not allowed from the application's current status."""

    code = "illegal_transition"
    http_status = 409


class MissingDocuments(IllegalTransition):
    """Submission attempted before every required document was uploaded."""

    code = "missing_documents"

    def __init__(self, requirement_ids: Iterable[int]) -> None:
        self.requirement_ids: List[int] = sorted(requirement_ids)
        ids = ", ".join(str(i) for i in self.requirement_ids)
        super().__init__(f"required documents missing for requirement(s): {ids}")


class InvalidSubmission(WorkflowError):
    """Malformed student or admin input (days, hours, amounts, text)."""

    code = "invalid_submission"
    http_status = 422


class EntityNotFound(WorkflowError):
    """Read-one lookup found nothing."""

    code = "not_found"
    http_status = 404

    def __init__(self, kind: str, entity_id: object) -> None:
        self.kind = kind
        self.entity_id = entity_id
        super().__init__(f"{kind} {entity_id} not found")
