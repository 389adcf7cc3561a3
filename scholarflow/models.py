"""
scholarflow.models
==================

Status vocabularies and plain dataclass records for the scholarship
workflow.  These objects carry **no** persistence dependencies: the rule
modules (:pymod:`scholarflow.lifecycle`, :pymod:`scholarflow.aggregation`)
operate on them directly, and :pymod:`scholarflow.db` converts table rows
to and from them.

Every status enum is ``str``-valued with the exact stored string as its
value, so a status written to the database reads back unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Optional, Type, Union

from .errors import InvalidStatus


class EntityKind(str, Enum):
    """The entities whose status the workflow drives."""
    APPLICATION = "application"
    DOCUMENT = "document"
    SERVICE_REPORT = "service_report"
    SERVICE_ENTRY = "service_entry"
    DISBURSEMENT = "disbursement"

    def __str__(self) -> str:
        return self.value


class ApplicationStatus(str, Enum):
    """Lifecycle of a scholarship application."""
    DRAFT = "draft"
    SUBMITTED = "submitted"
    DOCUMENTS_PENDING = "documents_pending"
    DOCUMENTS_UNDER_REVIEW = "documents_under_review"
    DOCUMENTS_APPROVED = "documents_approved"
    DOCUMENTS_REJECTED = "documents_rejected"
    ELIGIBILITY_VERIFIED = "eligibility_verified"
    ENROLLED = "enrolled"
    SERVICE_PENDING = "service_pending"
    SERVICE_COMPLETED = "service_completed"
    DISBURSEMENT_PENDING = "disbursement_pending"
    DISBURSEMENT_PROCESSED = "disbursement_processed"
    COMPLETED = "completed"
    REJECTED = "rejected"

    def __str__(self) -> str:
        return self.value


class DocumentStatus(str, Enum):
    """Review outcome of a single uploaded document."""
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED_INVALID = "rejected_invalid"
    REJECTED_INCOMPLETE = "rejected_incomplete"
    REJECTED_INCORRECT_FORMAT = "rejected_incorrect_format"
    REJECTED_UNREADABLE = "rejected_unreadable"
    REJECTED_OTHER = "rejected_other"

    def __str__(self) -> str:
        return self.value

    @property
    def is_rejection(self) -> bool:
        return self.value.startswith("rejected_")


class ServiceStatus(str, Enum):
    """Review outcome of a community-service report or entry."""
    PENDING_REVIEW = "pending_review"
    APPROVED = "approved"
    REJECTED_INSUFFICIENT_HOURS = "rejected_insufficient_hours"
    REJECTED_INCOMPLETE_DOCUMENTATION = "rejected_incomplete_documentation"
    REJECTED_OTHER = "rejected_other"

    def __str__(self) -> str:
        return self.value

    @property
    def is_rejection(self) -> bool:
        return self.value.startswith("rejected_")


class DisbursementStatus(str, Enum):
    """Payment state of a disbursement."""
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"
    CANCELLED = "cancelled"

    def __str__(self) -> str:
        return self.value


AnyStatus = Union[ApplicationStatus, DocumentStatus, ServiceStatus, DisbursementStatus]

STATUS_TYPES: dict[EntityKind, Type[Enum]] = {
    EntityKind.APPLICATION: ApplicationStatus,
    EntityKind.DOCUMENT: DocumentStatus,
    EntityKind.SERVICE_REPORT: ServiceStatus,
    EntityKind.SERVICE_ENTRY: ServiceStatus,
    EntityKind.DISBURSEMENT: DisbursementStatus,
}


def parse_status(kind: EntityKind, value: object) -> AnyStatus:
    """
    Return the member of *kind*'s vocabulary matching *value*.

    Accepts either a raw string or an enum member; raises
    :class:`~scholarflow.errors.InvalidStatus` for anything else.

    >>> parse_status(EntityKind.DOCUMENT, "approved")
    <DocumentStatus.APPROVED: 'approved'>
    """
    enum_cls = STATUS_TYPES[kind]
    raw = value.value if isinstance(value, Enum) else value
    try:
        return enum_cls(raw)
    except ValueError:
        raise InvalidStatus(kind.value, raw) from None


# ---------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------
@dataclass(frozen=True)
class ScholarshipProgram:
    """
    A scholarship offering and its eligibility filters.

    Parameters
    ----------
    community_service_days : int
        Service quota every enrolled student has to complete.
    application_deadline : datetime.date | None
        Last day new applications may be started.
    """
    id: Optional[int]
    name: str
    community_service_days: int = 0
    total_budget: Decimal = Decimal("0")
    per_student_budget: Decimal = Decimal("0")
    school_type: str = "both"
    min_gpa: Optional[float] = None
    min_units: Optional[int] = None
    application_deadline: Optional[date] = None
    active: bool = True

    def accepting_applications(self, today: Optional[date] = None) -> bool:
        """Active and not past its deadline."""
        today = today or date.today()
        if not self.active:
            return False
        return self.application_deadline is None or today <= self.application_deadline


@dataclass(frozen=True)
class DocumentRequirement:
    id: Optional[int]
    program_id: int
    name: str
    description: Optional[str] = None
    is_required: bool = True


@dataclass(frozen=True)
class ScholarshipApplication:
    """One student's application to one program."""
    id: Optional[int]
    student_id: int
    program_id: int
    status: ApplicationStatus = ApplicationStatus.DRAFT
    admin_notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(EntityKind.APPLICATION, self.status))


@dataclass(frozen=True)
class DocumentUpload:
    id: Optional[int]
    application_id: int
    requirement_id: int
    file_path: str = ""
    original_filename: Optional[str] = None
    status: DocumentStatus = DocumentStatus.PENDING
    rejection_reason: Optional[str] = None
    uploaded_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(EntityKind.DOCUMENT, self.status))


@dataclass(frozen=True)
class CommunityServiceReport:
    """A batch of whole service days reported by the student."""
    id: Optional[int]
    application_id: int
    days_completed: int
    description: str = ""
    status: ServiceStatus = ServiceStatus.PENDING_REVIEW
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(EntityKind.SERVICE_REPORT, self.status))


@dataclass(frozen=True)
class CommunityServiceEntry:
    """A single dated service activity measured in hours."""
    id: Optional[int]
    application_id: int
    hours_completed: float
    description: str = ""
    service_date: Optional[date] = None
    status: ServiceStatus = ServiceStatus.PENDING_REVIEW
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    submitted_at: Optional[datetime] = None
    reviewed_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(EntityKind.SERVICE_ENTRY, self.status))


@dataclass(frozen=True)
class Disbursement:
    id: Optional[int]
    application_id: int
    amount: Decimal
    payment_method: str
    disbursement_date: date
    status: DisbursementStatus = DisbursementStatus.PENDING
    reference_number: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    def __post_init__(self):
        object.__setattr__(self, "status", parse_status(EntityKind.DISBURSEMENT, self.status))
