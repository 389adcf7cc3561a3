"""
scholarflow.db
==============

SQLModel persistence layer.

This module exposes:

* ``engine`` – a global SQLModel engine pointing at ``settings.DB_URL``
* ``SessionLocal`` – a session factory used via ``with SessionLocal() as s:``
* one ``*DB`` table per record in :pymod:`scholarflow.models`, each with
  ``from_entity()`` / ``to_entity()`` converters
* ``create_all()`` – helper to create tables at first run

Statuses are stored as their plain string values (not SQL enums) so what
the workflow writes is byte-for-byte what it reads back.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, TypeDecorator
from sqlalchemy.engine import Engine
from sqlmodel import Field, Session, SQLModel, create_engine

from .models import (
    ApplicationStatus,
    CommunityServiceEntry,
    CommunityServiceReport,
    Disbursement,
    DisbursementStatus,
    DocumentRequirement,
    DocumentStatus,
    DocumentUpload,
    ScholarshipApplication,
    ScholarshipProgram,
    ServiceStatus,
)
from .settings import DB_ECHO, DB_URL


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------
engine = create_engine(DB_URL, echo=DB_ECHO)


# ---------------------------------------------------------------------------
# Session factory
# ---------------------------------------------------------------------------
def SessionLocal(bind: Optional[Engine] = None) -> Session:  # noqa: N802
    """Return a new Session bound to the global engine (or *bind*)."""
    return Session(bind or engine)


# ---------------------------------------------------------------------------
# Column types
# ---------------------------------------------------------------------------
class UTCDateTime(TypeDecorator):
    """
    Timestamp column that always holds aware UTC datetimes.

    Values are converted to UTC before they are written.  SQLite drops the
    offset on storage, so UTC is re-attached to anything read back naive.
    """

    impl = DateTime
    cache_ok = True

    def __init__(self) -> None:
        super().__init__(timezone=True)

    def process_bind_param(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is None:
            return None
        if value.tzinfo is None:
            raise ValueError(f"naive datetime {value!r}; pass an aware UTC timestamp")
        return value.astimezone(timezone.utc)

    def process_result_value(self, value: Optional[datetime], dialect) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


# ---------------------------------------------------------------------------
# Tables
# ---------------------------------------------------------------------------
class ScholarshipProgramDB(SQLModel, table=True):
    __tablename__ = "scholarship_programs"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    community_service_days: int = 0
    total_budget: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    per_student_budget: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    school_type: str = "both"
    min_gpa: Optional[float] = None
    min_units: Optional[int] = None
    application_deadline: Optional[date] = None
    active: bool = True

    @classmethod
    def from_entity(cls, ent: ScholarshipProgram) -> "ScholarshipProgramDB":
        return cls(
            id=ent.id,
            name=ent.name,
            community_service_days=ent.community_service_days,
            total_budget=ent.total_budget,
            per_student_budget=ent.per_student_budget,
            school_type=ent.school_type,
            min_gpa=ent.min_gpa,
            min_units=ent.min_units,
            application_deadline=ent.application_deadline,
            active=ent.active,
        )

    def to_entity(self) -> ScholarshipProgram:
        return ScholarshipProgram(
            id=self.id,
            name=self.name,
            community_service_days=self.community_service_days,
            total_budget=self.total_budget,
            per_student_budget=self.per_student_budget,
            school_type=self.school_type,
            min_gpa=self.min_gpa,
            min_units=self.min_units,
            application_deadline=self.application_deadline,
            active=self.active,
        )


class DocumentRequirementDB(SQLModel, table=True):
    __tablename__ = "document_requirements"

    id: Optional[int] = Field(default=None, primary_key=True)
    program_id: int = Field(foreign_key="scholarship_programs.id", index=True)
    name: str
    description: Optional[str] = None
    is_required: bool = True

    @classmethod
    def from_entity(cls, ent: DocumentRequirement) -> "DocumentRequirementDB":
        return cls(
            id=ent.id,
            program_id=ent.program_id,
            name=ent.name,
            description=ent.description,
            is_required=ent.is_required,
        )

    def to_entity(self) -> DocumentRequirement:
        return DocumentRequirement(
            id=self.id,
            program_id=self.program_id,
            name=self.name,
            description=self.description,
            is_required=self.is_required,
        )


class ScholarshipApplicationDB(SQLModel, table=True):
    __tablename__ = "scholarship_applications"

    id: Optional[int] = Field(default=None, primary_key=True)
    student_id: int = Field(index=True)
    program_id: int = Field(foreign_key="scholarship_programs.id", index=True)
    status: str = Field(default=ApplicationStatus.DRAFT.value, index=True)
    admin_notes: Optional[str] = None
    submitted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    created_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @classmethod
    def from_entity(cls, ent: ScholarshipApplication) -> "ScholarshipApplicationDB":
        return cls(
            id=ent.id,
            student_id=ent.student_id,
            program_id=ent.program_id,
            status=ent.status.value,
            admin_notes=ent.admin_notes,
            submitted_at=ent.submitted_at,
            reviewed_at=ent.reviewed_at,
            created_at=ent.created_at,
        )

    def to_entity(self) -> ScholarshipApplication:
        return ScholarshipApplication(
            id=self.id,
            student_id=self.student_id,
            program_id=self.program_id,
            status=self.status,
            admin_notes=self.admin_notes,
            submitted_at=self.submitted_at,
            reviewed_at=self.reviewed_at,
            created_at=self.created_at,
        )


class DocumentUploadDB(SQLModel, table=True):
    __tablename__ = "document_uploads"

    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key="scholarship_applications.id", index=True)
    requirement_id: int = Field(foreign_key="document_requirements.id", index=True)
    file_path: str = ""
    original_filename: Optional[str] = None
    status: str = DocumentStatus.PENDING.value
    rejection_reason: Optional[str] = None
    uploaded_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @classmethod
    def from_entity(cls, ent: DocumentUpload) -> "DocumentUploadDB":
        return cls(
            id=ent.id,
            application_id=ent.application_id,
            requirement_id=ent.requirement_id,
            file_path=ent.file_path,
            original_filename=ent.original_filename,
            status=ent.status.value,
            rejection_reason=ent.rejection_reason,
            uploaded_at=ent.uploaded_at,
            reviewed_at=ent.reviewed_at,
        )

    def to_entity(self) -> DocumentUpload:
        return DocumentUpload(
            id=self.id,
            application_id=self.application_id,
            requirement_id=self.requirement_id,
            file_path=self.file_path,
            original_filename=self.original_filename,
            status=self.status,
            rejection_reason=self.rejection_reason,
            uploaded_at=self.uploaded_at,
            reviewed_at=self.reviewed_at,
        )


class CommunityServiceReportDB(SQLModel, table=True):
    __tablename__ = "community_service_reports"

    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key="scholarship_applications.id", index=True)
    description: str = ""
    days_completed: int
    status: str = ServiceStatus.PENDING_REVIEW.value
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    submitted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @classmethod
    def from_entity(cls, ent: CommunityServiceReport) -> "CommunityServiceReportDB":
        return cls(
            id=ent.id,
            application_id=ent.application_id,
            description=ent.description,
            days_completed=ent.days_completed,
            status=ent.status.value,
            rejection_reason=ent.rejection_reason,
            admin_notes=ent.admin_notes,
            submitted_at=ent.submitted_at,
            reviewed_at=ent.reviewed_at,
        )

    def to_entity(self) -> CommunityServiceReport:
        return CommunityServiceReport(
            id=self.id,
            application_id=self.application_id,
            description=self.description,
            days_completed=self.days_completed,
            status=self.status,
            rejection_reason=self.rejection_reason,
            admin_notes=self.admin_notes,
            submitted_at=self.submitted_at,
            reviewed_at=self.reviewed_at,
        )


class CommunityServiceEntryDB(SQLModel, table=True):
    __tablename__ = "community_service_entries"

    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key="scholarship_applications.id", index=True)
    service_date: Optional[date] = None
    description: str = ""
    hours_completed: float
    status: str = ServiceStatus.PENDING_REVIEW.value
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    submitted_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)
    reviewed_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @classmethod
    def from_entity(cls, ent: CommunityServiceEntry) -> "CommunityServiceEntryDB":
        return cls(
            id=ent.id,
            application_id=ent.application_id,
            service_date=ent.service_date,
            description=ent.description,
            hours_completed=ent.hours_completed,
            status=ent.status.value,
            rejection_reason=ent.rejection_reason,
            admin_notes=ent.admin_notes,
            submitted_at=ent.submitted_at,
            reviewed_at=ent.reviewed_at,
        )

    def to_entity(self) -> CommunityServiceEntry:
        return CommunityServiceEntry(
            id=self.id,
            application_id=self.application_id,
            service_date=self.service_date,
            description=self.description,
            hours_completed=self.hours_completed,
            status=self.status,
            rejection_reason=self.rejection_reason,
            admin_notes=self.admin_notes,
            submitted_at=self.submitted_at,
            reviewed_at=self.reviewed_at,
        )


class DisbursementDB(SQLModel, table=True):
    __tablename__ = "disbursements"

    id: Optional[int] = Field(default=None, primary_key=True)
    application_id: int = Field(foreign_key="scholarship_applications.id", index=True)
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    payment_method: str
    reference_number: Optional[str] = None
    disbursement_date: date
    status: str = DisbursementStatus.PENDING.value
    notes: Optional[str] = None
    created_at: Optional[datetime] = Field(default=None, sa_type=UTCDateTime)

    @classmethod
    def from_entity(cls, ent: Disbursement) -> "DisbursementDB":
        return cls(
            id=ent.id,
            application_id=ent.application_id,
            amount=ent.amount,
            payment_method=ent.payment_method,
            reference_number=ent.reference_number,
            disbursement_date=ent.disbursement_date,
            status=ent.status.value,
            notes=ent.notes,
            created_at=ent.created_at,
        )

    def to_entity(self) -> Disbursement:
        return Disbursement(
            id=self.id,
            application_id=self.application_id,
            amount=self.amount,
            payment_method=self.payment_method,
            reference_number=self.reference_number,
            disbursement_date=self.disbursement_date,
            status=self.status,
            notes=self.notes,
            created_at=self.created_at,
        )


# ---------------------------------------------------------------------------
# Utility: create tables
# ---------------------------------------------------------------------------
def create_all(bind: Optional[Engine] = None) -> None:
    """Create all tables for the workflow (safe if they already exist)."""
    SQLModel.metadata.create_all(bind or engine)
