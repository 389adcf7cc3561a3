"""
scholarflow.workflow
====================

The orchestrator: one method per status-changing request.

Each request runs the same pipeline inside a single
:meth:`~scholarflow.store.Store.unit_of_work`:

1. **validate** with :pymod:`scholarflow.lifecycle`; nothing is written if
   a guard raises;
2. **persist** the child (or application) status, stamping ``reviewed_at``
   on admin reviews;
3. **cascade**: reload the siblings under the parent application's row
   lock, evaluate the :pymod:`scholarflow.aggregation` rule and, if the
   parent's next status changes, apply it through the same update path;
4. **notify**: intents decided along the way are queued and dispatched only
   after the commit.

A failure in steps 2–3 rolls back both the child and the parent write.
A failing notifier is logged and ignored; the committed status stands.

Lock order is always *application first, then child* so concurrent reviews
of two documents of one application serialise on the application row.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal, InvalidOperation
from typing import Callable, Dict, Iterable, Iterator, List, Optional

from sqlalchemy.exc import SQLAlchemyError

from .aggregation import (
    ServiceProgress,
    all_documents_approved,
    check_report_days,
    claimable_days,
    hours_to_days,
    service_progress,
)
from .db import (
    CommunityServiceEntryDB,
    CommunityServiceReportDB,
    DisbursementDB,
    DocumentUploadDB,
    ScholarshipApplicationDB,
    ScholarshipProgramDB,
)
from .errors import (
    EntityNotFound,
    IllegalTransition,
    InvalidSubmission,
    MissingRejectionReason,
    WorkflowError,
)
from .lifecycle import (
    CLOSED,
    Transition,
    can_transition,
    check_disbursement_eligibility,
    check_document_upload,
    check_service_eligibility,
    check_submission,
    disbursement_cascade,
    document_cascade,
    service_cascade,
    service_submission_target,
)
from .models import (
    ApplicationStatus,
    CommunityServiceEntry,
    CommunityServiceReport,
    Disbursement,
    DisbursementStatus,
    DocumentStatus,
    DocumentUpload,
    EntityKind,
    ScholarshipApplication,
    ServiceStatus,
    parse_status,
)
from .notifications import LogNotifier, NotificationIntent, Notifier, decide_notification
from .settings import Settings, settings
from .store import Store

logger = logging.getLogger(__name__)


def utcnow() -> datetime:
    """Aware UTC timestamp (what the timestamp columns store)."""
    return datetime.now(timezone.utc)


@dataclass
class BulkResult:
    """Per-item outcome of a bulk review: ids that went through, and why the rest did not."""
    succeeded: List[int] = field(default_factory=list)
    failed: Dict[int, str] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return not self.failed


class WorkflowService:
    """
    Status-update operations for applications and their children.

    Parameters
    ----------
    store : Store
        Repository bound to the request's session.
    notifier : Notifier, optional
        Delivery channel for notification intents (defaults to
        :class:`~scholarflow.notifications.LogNotifier`).
    config : Settings, optional
        Policy switches; defaults to the module-level ``settings``.
    clock : callable, optional
        Returns "now"; injectable for tests.
    """

    def __init__(
        self,
        store: Store,
        notifier: Notifier | None = None,
        config: Settings | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.notifier = notifier if notifier is not None else LogNotifier()
        self.config = config if config is not None else settings
        self.clock = clock
        self._outbox: List[NotificationIntent] = []

    # ------------------------------------------------------------------
    # Request scope
    # ------------------------------------------------------------------
    @contextmanager
    def _request(self) -> Iterator[None]:
        self._outbox = []
        try:
            with self.store.unit_of_work():
                yield
        except Exception:
            self._outbox = []
            raise
        intents, self._outbox = self._outbox, []
        self._dispatch(intents)

    def _dispatch(self, intents: Iterable[NotificationIntent]) -> None:
        if not self.config.notifications_enabled:
            return
        for intent in intents:
            try:
                self.notifier.send(intent)
            except Exception:
                logger.exception(
                    "notification '%s' to student %s failed", intent.title, intent.recipient_id
                )

    def _notify(self, kind: EntityKind, old, new, **context) -> None:
        intent = decide_notification(kind, old, new, context)
        if intent is not None:
            self._outbox.append(intent)

    # ------------------------------------------------------------------
    # Shared steps
    # ------------------------------------------------------------------
    def _set_application_status(
        self,
        app: ScholarshipApplicationDB,
        requested,
        admin_notes: Optional[str] = None,
        reviewed: bool = False,
    ) -> Transition:
        """Validate and persist an application status; queue its notification."""
        transition = can_transition(EntityKind.APPLICATION, app.status, requested)
        old = parse_status(EntityKind.APPLICATION, app.status)
        new = parse_status(EntityKind.APPLICATION, requested)

        if admin_notes is not None:
            app.admin_notes = admin_notes
        if transition is Transition.UNCHANGED:
            if reviewed and self.config.refresh_reviewed_at_on_noop:
                app.reviewed_at = self.clock()
            self.store.save(app)
            return transition

        app.status = new.value
        if reviewed:
            app.reviewed_at = self.clock()
        self.store.save(app)
        logger.info("application %s: %s -> %s", app.id, old, new)
        self._notify(
            EntityKind.APPLICATION, old, new,
            recipient_id=app.student_id, admin_notes=admin_notes, entity_id=app.id,
        )
        return transition

    def _cascade(self, app: ScholarshipApplicationDB, target: Optional[ApplicationStatus], reason: str) -> None:
        if target is None or target.value == app.status:
            return
        logger.info("application %s: %s cascade to %s", app.id, reason, target)
        self._set_application_status(app, target)

    def _lock_parent(self, application_id: int) -> ScholarshipApplicationDB:
        return self.store.get_application(application_id, for_update=True)

    def _service_snapshot(self, app: ScholarshipApplicationDB, program: ScholarshipProgramDB | None):
        program = program or self.store.get_program(app.program_id)
        reports = tuple(r.to_entity() for r in self.store.reports_for(app.id))
        entries = tuple(e.to_entity() for e in self.store.entries_for(app.id))
        return program.community_service_days, reports, entries

    def _progress(
        self,
        app: ScholarshipApplicationDB,
        program: ScholarshipProgramDB | None = None,
    ) -> ServiceProgress:
        return service_progress(
            *self._service_snapshot(app, program),
            policy=self.config.service_count_policy,
            hours_per_day=self.config.hours_per_service_day,
        )

    def _claimable(self, app: ScholarshipApplicationDB, program: ScholarshipProgramDB | None = None) -> Decimal:
        """Days a new report or entry may still claim, pending items included."""
        return claimable_days(
            *self._service_snapshot(app, program),
            policy=self.config.service_count_policy,
            hours_per_day=self.config.hours_per_service_day,
        )

    def _cascade_documents(self, app: ScholarshipApplicationDB, reviewed: DocumentStatus) -> None:
        uploads = tuple(d.to_entity() for d in self.store.documents_for(app.id))
        requirements = tuple(r.to_entity() for r in self.store.requirements_for(app.program_id))
        current = parse_status(EntityKind.APPLICATION, app.status)
        target = document_cascade(current, all_documents_approved(uploads, requirements), reviewed)
        self._cascade(app, target, "document")

    def _cascade_service(self, app: ScholarshipApplicationDB) -> None:
        current = parse_status(EntityKind.APPLICATION, app.status)
        target = service_cascade(current, self._progress(app).met)
        self._cascade(app, target, "service")

    def _cascade_disbursement(self, app: ScholarshipApplicationDB, status: DisbursementStatus) -> None:
        current = parse_status(EntityKind.APPLICATION, app.status)
        self._cascade(app, disbursement_cascade(current, status), "disbursement")

    def _stamp_noop(self, row) -> None:
        if self.config.refresh_reviewed_at_on_noop:
            row.reviewed_at = self.clock()
            self.store.save(row)

    # ------------------------------------------------------------------
    # Applications
    # ------------------------------------------------------------------
    def start_application(self, student_id: int, program_id: int) -> ScholarshipApplication:
        """Open a ``draft`` application for *student_id* on *program_id*."""
        with self._request():
            program = self.store.get_program(program_id).to_entity()
            today = self.clock().date()
            if not program.active:
                raise IllegalTransition(f"program {program_id} is not active")
            if self.config.enforce_deadline and not program.accepting_applications(today):
                raise IllegalTransition(f"the application deadline for program {program_id} has passed")
            for existing in self.store.applications_for(student_id, program_id):
                if parse_status(EntityKind.APPLICATION, existing.status) not in CLOSED:
                    raise IllegalTransition(
                        f"student {student_id} already has application {existing.id} for program {program_id}"
                    )
            row = self.store.save(ScholarshipApplicationDB.from_entity(ScholarshipApplication(
                id=None,
                student_id=student_id,
                program_id=program_id,
                created_at=self.clock(),
            )))
            logger.info("student %s started application %s", student_id, row.id)
            result = row.to_entity()
        return result

    def submit_application(self, app_id: int) -> ScholarshipApplication:
        """Student submission: ``draft`` → ``submitted`` once every required document is uploaded."""
        with self._request():
            app = self._lock_parent(app_id)
            uploads = tuple(d.to_entity() for d in self.store.documents_for(app.id))
            requirements = tuple(r.to_entity() for r in self.store.requirements_for(app.program_id))
            check_submission(app.to_entity(), uploads, requirements)
            app.submitted_at = self.clock()
            self._set_application_status(app, ApplicationStatus.SUBMITTED)
            result = app.to_entity()
        return result

    def update_application_status(
        self,
        app_id: int,
        status,
        admin_notes: Optional[str] = None,
        recompute: bool = False,
    ) -> ScholarshipApplication:
        """
        Admin status change.

        Any status in the vocabulary is accepted.  With *recompute* the
        forward cascades are re-checked afterwards, so moving an application
        into document review with every document already approved lands it
        on ``documents_approved``.
        """
        with self._request():
            app = self._lock_parent(app_id)
            self._set_application_status(app, status, admin_notes=admin_notes, reviewed=True)
            if recompute:
                current = parse_status(EntityKind.APPLICATION, app.status)
                uploads = tuple(d.to_entity() for d in self.store.documents_for(app.id))
                requirements = tuple(r.to_entity() for r in self.store.requirements_for(app.program_id))
                target = document_cascade(
                    current, all_documents_approved(uploads, requirements), DocumentStatus.APPROVED
                )
                if target is None and self._progress(app).met:
                    target = service_cascade(current, True)
                self._cascade(app, target, "recompute")
            result = app.to_entity()
        return result

    # ------------------------------------------------------------------
    # Documents
    # ------------------------------------------------------------------
    def upload_document(
        self,
        app_id: int,
        requirement_id: int,
        file_path: str,
        original_filename: Optional[str] = None,
    ) -> DocumentUpload:
        """Store (or replace) the student's upload for one requirement; it goes back to ``pending``."""
        if not (file_path or "").strip():
            raise InvalidSubmission("file_path is required")
        with self._request():
            app = self._lock_parent(app_id)
            check_document_upload(app.to_entity())
            requirement = self.store.get_requirement(requirement_id)
            if requirement.program_id != app.program_id:
                raise InvalidSubmission(
                    f"requirement {requirement_id} does not belong to program {app.program_id}"
                )
            doc = self.store.find_document(app.id, requirement_id)
            if doc is None:
                doc = DocumentUploadDB(application_id=app.id, requirement_id=requirement_id)
            doc.file_path = file_path
            doc.original_filename = original_filename
            doc.status = DocumentStatus.PENDING.value
            doc.rejection_reason = None
            doc.reviewed_at = None
            doc.uploaded_at = self.clock()
            self.store.save(doc)
            result = doc.to_entity()
        return result

    def review_document(
        self,
        doc_id: int,
        status,
        rejection_reason: Optional[str] = None,
        recompute: bool = False,
    ) -> DocumentUpload:
        """Admin review of one upload, followed by the all-documents-approved cascade."""
        with self._request():
            parent_id = self.store.get_document(doc_id).application_id
            app = self._lock_parent(parent_id)
            doc = self.store.get_document(doc_id, for_update=True)

            transition = can_transition(EntityKind.DOCUMENT, doc.status, status, rejection_reason)
            old = parse_status(EntityKind.DOCUMENT, doc.status)
            new = parse_status(EntityKind.DOCUMENT, status)

            if transition is Transition.CHANGED:
                doc.status = new.value
                doc.rejection_reason = rejection_reason.strip() if new.is_rejection else None
                doc.reviewed_at = self.clock()
                self.store.save(doc)
                logger.info("document %s: %s -> %s", doc.id, old, new)
                self._notify(
                    EntityKind.DOCUMENT, old, new,
                    recipient_id=app.student_id,
                    rejection_reason=doc.rejection_reason,
                    label=self._requirement_name(doc.requirement_id),
                    entity_id=doc.id,
                )
            else:
                self._stamp_noop(doc)

            if transition is Transition.CHANGED or recompute:
                self._cascade_documents(app, new)
            result = doc.to_entity()
        return result

    def _requirement_name(self, requirement_id: int) -> Optional[str]:
        try:
            return self.store.get_requirement(requirement_id).name
        except EntityNotFound:
            return None

    # ------------------------------------------------------------------
    # Community service
    # ------------------------------------------------------------------
    def service_progress(self, app_id: int) -> ServiceProgress:
        """Required, completed and remaining service days for an application."""
        return self._progress(self.store.get_application(app_id))

    def submit_service_report(self, app_id: int, days_completed: int, description: str) -> CommunityServiceReport:
        """
        Student reports whole service days.

        Refused with ``QuotaExceeded`` when *days_completed* is larger than
        what remains on the quota; otherwise the report is stored as
        ``pending_review`` and the application moves to ``service_pending``
        or, if the quota is now met, ``service_completed``.
        """
        if isinstance(days_completed, bool) or not isinstance(days_completed, int) or days_completed < 1:
            raise InvalidSubmission("days_completed must be a whole number of at least 1")
        description = self._check_description(description)

        with self._request():
            app = self._lock_parent(app_id)
            check_service_eligibility(app.to_entity())
            program = self.store.get_program(app.program_id)
            check_report_days(days_completed, self._claimable(app, program))

            report = self.store.save(CommunityServiceReportDB.from_entity(CommunityServiceReport(
                id=None,
                application_id=app.id,
                days_completed=days_completed,
                description=description,
                submitted_at=self.clock(),
            )))
            logger.info("application %s: service report %s for %s day(s)", app.id, report.id, days_completed)
            self._after_service_submission(app, program)
            result = report.to_entity()
        return result

    def log_service_entry(
        self,
        app_id: int,
        hours_completed: float,
        description: str,
        service_date: Optional[date] = None,
    ) -> CommunityServiceEntry:
        """Student logs a dated activity in hours; counted as hours / ``hours_per_service_day`` days."""
        try:
            hours = float(hours_completed)
        except (TypeError, ValueError):
            raise InvalidSubmission("hours_completed must be a number") from None
        if hours <= 0:
            raise InvalidSubmission("hours_completed must be positive")
        description = self._check_description(description)

        with self._request():
            app = self._lock_parent(app_id)
            check_service_eligibility(app.to_entity())
            program = self.store.get_program(app.program_id)
            check_report_days(
                hours_to_days(hours, self.config.hours_per_service_day),
                self._claimable(app, program),
            )
            entry = self.store.save(CommunityServiceEntryDB.from_entity(CommunityServiceEntry(
                id=None,
                application_id=app.id,
                hours_completed=hours,
                description=description,
                service_date=service_date or self.clock().date(),
                submitted_at=self.clock(),
            )))
            logger.info("application %s: service entry %s for %s hour(s)", app.id, entry.id, hours)
            self._after_service_submission(app, program)
            result = entry.to_entity()
        return result

    def _check_description(self, description: str) -> str:
        description = (description or "").strip()
        if len(description) < self.config.min_report_description:
            raise InvalidSubmission(
                f"description must be at least {self.config.min_report_description} character(s)"
            )
        return description

    def _after_service_submission(self, app: ScholarshipApplicationDB, program: ScholarshipProgramDB) -> None:
        current = parse_status(EntityKind.APPLICATION, app.status)
        target = service_submission_target(current, self._progress(app, program).met)
        self._cascade(app, target, "service")

    def review_service_report(
        self,
        report_id: int,
        status,
        rejection_reason: Optional[str] = None,
        admin_notes: Optional[str] = None,
        recompute: bool = False,
    ) -> CommunityServiceReport:
        """Admin review of a service report, followed by the quota cascade."""
        with self._request():
            row = self._review_service_item(
                EntityKind.SERVICE_REPORT, self.store.get_report,
                report_id, status, rejection_reason, admin_notes, recompute,
            )
            result = row.to_entity()
        return result

    def review_service_entry(
        self,
        entry_id: int,
        status,
        rejection_reason: Optional[str] = None,
        admin_notes: Optional[str] = None,
        recompute: bool = False,
    ) -> CommunityServiceEntry:
        """Admin review of a service entry, followed by the quota cascade."""
        with self._request():
            row = self._review_service_item(
                EntityKind.SERVICE_ENTRY, self.store.get_entry,
                entry_id, status, rejection_reason, admin_notes, recompute,
            )
            result = row.to_entity()
        return result

    def _review_service_item(self, kind, getter, item_id, status, rejection_reason, admin_notes, recompute):
        parent_id = getter(item_id).application_id
        app = self._lock_parent(parent_id)
        row = getter(item_id, for_update=True)

        transition = can_transition(kind, row.status, status, rejection_reason)
        old = parse_status(kind, row.status)
        new = parse_status(kind, status)

        if transition is Transition.CHANGED:
            row.status = new.value
            row.rejection_reason = rejection_reason.strip() if new.is_rejection else None
            if admin_notes is not None:
                row.admin_notes = admin_notes
            row.reviewed_at = self.clock()
            self.store.save(row)
            logger.info("%s %s: %s -> %s", kind, row.id, old, new)
            self._notify(
                kind, old, new,
                recipient_id=app.student_id,
                rejection_reason=row.rejection_reason,
                admin_notes=admin_notes,
                entity_id=row.id,
            )
        else:
            self._stamp_noop(row)

        if transition is Transition.CHANGED or recompute:
            self._cascade_service(app)
        return row

    def bulk_review_service_reports(
        self,
        report_ids: Iterable[int],
        action: str,
        rejection_reason: Optional[str] = None,
        admin_notes: Optional[str] = None,
    ) -> BulkResult:
        """
        Approve or reject many reports, one full pipeline per report.

        Not atomic as a whole: a failing report is recorded in
        ``BulkResult.failed`` and the remaining ones are still processed.
        """
        if action == "approve":
            status = ServiceStatus.APPROVED
        elif action == "reject":
            status = ServiceStatus.REJECTED_OTHER
            if not (rejection_reason or "").strip():
                raise MissingRejectionReason(status.value)
        else:
            raise InvalidSubmission(f"unknown bulk action '{action}'")

        result = BulkResult()
        for report_id in dict.fromkeys(report_ids):
            try:
                self.review_service_report(report_id, status, rejection_reason, admin_notes)
            except WorkflowError as exc:
                logger.warning("bulk %s: report %s skipped: %s", action, report_id, exc)
                result.failed[report_id] = str(exc)
            except SQLAlchemyError as exc:
                logger.exception("bulk %s: report %s failed", action, report_id)
                result.failed[report_id] = str(exc)
            else:
                result.succeeded.append(report_id)
        return result

    # ------------------------------------------------------------------
    # Disbursements
    # ------------------------------------------------------------------
    @staticmethod
    def _check_payment(amount, payment_method) -> Decimal:
        try:
            value = Decimal(str(amount))
        except (InvalidOperation, ValueError):
            raise InvalidSubmission("amount must be a number") from None
        if not value.is_finite() or value < 1:
            raise InvalidSubmission("amount must be at least 1")
        if not (payment_method or "").strip():
            raise InvalidSubmission("payment_method is required")
        return value

    def create_disbursement(
        self,
        app_id: int,
        amount,
        payment_method: str,
        disbursement_date: date,
        status=DisbursementStatus.PENDING,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Disbursement:
        """Record a payment; refused with ``IneligibleForDisbursement`` outside the eligible statuses."""
        value = self._check_payment(amount, payment_method)
        disb_status = parse_status(EntityKind.DISBURSEMENT, status)

        with self._request():
            app = self._lock_parent(app_id)
            check_disbursement_eligibility(app.to_entity())
            row = self.store.save(DisbursementDB.from_entity(Disbursement(
                id=None,
                application_id=app.id,
                amount=value,
                payment_method=payment_method.strip(),
                disbursement_date=disbursement_date,
                status=disb_status,
                reference_number=reference_number,
                notes=notes,
                created_at=self.clock(),
            )))
            logger.info("application %s: disbursement %s of %s (%s)", app.id, row.id, value, disb_status)
            self._cascade_disbursement(app, disb_status)
            result = row.to_entity()
        return result

    def update_disbursement(
        self,
        disb_id: int,
        status=None,
        amount=None,
        payment_method: Optional[str] = None,
        disbursement_date: Optional[date] = None,
        reference_number: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> Disbursement:
        """Edit a disbursement; marking it ``processed`` can complete the parent's payout."""
        with self._request():
            parent_id = self.store.get_disbursement(disb_id).application_id
            app = self._lock_parent(parent_id)
            row = self.store.get_disbursement(disb_id, for_update=True)

            requested = row.status if status is None else status
            transition = can_transition(EntityKind.DISBURSEMENT, row.status, requested)
            old = parse_status(EntityKind.DISBURSEMENT, row.status)
            new = parse_status(EntityKind.DISBURSEMENT, requested)

            if amount is not None or payment_method is not None:
                row.amount = self._check_payment(
                    row.amount if amount is None else amount,
                    row.payment_method if payment_method is None else payment_method,
                )
                if payment_method is not None:
                    row.payment_method = payment_method.strip()
            if disbursement_date is not None:
                row.disbursement_date = disbursement_date
            if reference_number is not None:
                row.reference_number = reference_number
            if notes is not None:
                row.notes = notes
            row.status = new.value
            self.store.save(row)

            if transition is Transition.CHANGED:
                logger.info("disbursement %s: %s -> %s", row.id, old, new)
                self._notify(
                    EntityKind.DISBURSEMENT, old, new,
                    recipient_id=app.student_id, admin_notes=notes, entity_id=row.id,
                )
                self._cascade_disbursement(app, new)
            result = row.to_entity()
        return result
