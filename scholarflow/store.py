"""
scholarflow.store
=================

Session-backed repository used by the workflow.

The :class:`Store` wraps one SQLModel ``Session`` and offers the four
primitives the workflow needs: read-one, read-collection-by-parent,
write-one, and a transactional :meth:`Store.unit_of_work` scope.  Reads
meant for mutation pass ``for_update=True`` so the row is locked
(``SELECT … FOR UPDATE``) on databases that support it.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator, List, Optional, Type, TypeVar

from sqlmodel import Session, SQLModel, select

from .db import (
    CommunityServiceEntryDB,
    CommunityServiceReportDB,
    DisbursementDB,
    DocumentRequirementDB,
    DocumentUploadDB,
    ScholarshipApplicationDB,
    ScholarshipProgramDB,
    SessionLocal,
)
from .errors import EntityNotFound

logger = logging.getLogger(__name__)

Row = TypeVar("Row", bound=SQLModel)


class Store:
    """
    Repository over a single session.

    Usage
    -----
    >>> with Store() as store, store.unit_of_work():
    ...     app = store.get_application(1, for_update=True)
    ...     app.status = "enrolled"
    ...     store.save(app)
    """

    def __init__(self, session: Session | None = None) -> None:
        self._session: Session = session if session is not None else SessionLocal()
        self._depth = 0

    @property
    def session(self) -> Session:
        return self._session

    # ------------------------------------------------------------ transaction
    @contextmanager
    def unit_of_work(self) -> Iterator["Store"]:
        """
        Commit everything written inside the block, or roll all of it back.

        Nested scopes join the outermost one; only the outermost commits.
        """
        self._depth += 1
        try:
            yield self
            if self._depth == 1:
                self._session.commit()
        except Exception:
            if self._depth == 1:
                logger.warning("rolling back unit of work")
                self._session.rollback()
            raise
        finally:
            self._depth -= 1

    # ------------------------------------------------------------ read-one
    def _get(self, model: Type[Row], kind: str, entity_id: int, for_update: bool) -> Row:
        stmt = select(model).where(model.id == entity_id)
        if for_update:
            stmt = stmt.with_for_update().execution_options(populate_existing=True)
        row = self._session.exec(stmt).first()
        if row is None:
            raise EntityNotFound(kind, entity_id)
        return row

    def get_program(self, program_id: int) -> ScholarshipProgramDB:
        return self._get(ScholarshipProgramDB, "program", program_id, False)

    def get_requirement(self, requirement_id: int) -> DocumentRequirementDB:
        return self._get(DocumentRequirementDB, "document requirement", requirement_id, False)

    def get_application(self, app_id: int, for_update: bool = False) -> ScholarshipApplicationDB:
        return self._get(ScholarshipApplicationDB, "application", app_id, for_update)

    def get_document(self, doc_id: int, for_update: bool = False) -> DocumentUploadDB:
        return self._get(DocumentUploadDB, "document", doc_id, for_update)

    def get_report(self, report_id: int, for_update: bool = False) -> CommunityServiceReportDB:
        return self._get(CommunityServiceReportDB, "service report", report_id, for_update)

    def get_entry(self, entry_id: int, for_update: bool = False) -> CommunityServiceEntryDB:
        return self._get(CommunityServiceEntryDB, "service entry", entry_id, for_update)

    def get_disbursement(self, disb_id: int, for_update: bool = False) -> DisbursementDB:
        return self._get(DisbursementDB, "disbursement", disb_id, for_update)

    # ------------------------------------------------ read-collection-by-parent
    def requirements_for(self, program_id: int) -> List[DocumentRequirementDB]:
        stmt = select(DocumentRequirementDB).where(DocumentRequirementDB.program_id == program_id)
        return list(self._session.exec(stmt).all())

    def documents_for(self, app_id: int) -> List[DocumentUploadDB]:
        stmt = (
            select(DocumentUploadDB)
            .where(DocumentUploadDB.application_id == app_id)
            .order_by(DocumentUploadDB.id)
        )
        return list(self._session.exec(stmt).all())

    def reports_for(self, app_id: int) -> List[CommunityServiceReportDB]:
        stmt = (
            select(CommunityServiceReportDB)
            .where(CommunityServiceReportDB.application_id == app_id)
            .order_by(CommunityServiceReportDB.id)
        )
        return list(self._session.exec(stmt).all())

    def entries_for(self, app_id: int) -> List[CommunityServiceEntryDB]:
        stmt = (
            select(CommunityServiceEntryDB)
            .where(CommunityServiceEntryDB.application_id == app_id)
            .order_by(CommunityServiceEntryDB.id)
        )
        return list(self._session.exec(stmt).all())

    def disbursements_for(self, app_id: int) -> List[DisbursementDB]:
        stmt = (
            select(DisbursementDB)
            .where(DisbursementDB.application_id == app_id)
            .order_by(DisbursementDB.id)
        )
        return list(self._session.exec(stmt).all())

    def applications_for(self, student_id: int, program_id: int) -> List[ScholarshipApplicationDB]:
        stmt = select(ScholarshipApplicationDB).where(
            ScholarshipApplicationDB.student_id == student_id,
            ScholarshipApplicationDB.program_id == program_id,
        )
        return list(self._session.exec(stmt).all())

    def find_document(self, app_id: int, requirement_id: int) -> Optional[DocumentUploadDB]:
        stmt = select(DocumentUploadDB).where(
            DocumentUploadDB.application_id == app_id,
            DocumentUploadDB.requirement_id == requirement_id,
        )
        return self._session.exec(stmt).first()

    # ------------------------------------------------------------ write-one
    def save(self, row: Row) -> Row:
        """Stage *row* and flush so it gets its primary key."""
        self._session.add(row)
        self._session.flush()
        return row

    def delete(self, row: SQLModel) -> None:
        self._session.delete(row)
        self._session.flush()

    # ------------------------------------------------------------ maintenance
    def orphan_reports(self) -> List[CommunityServiceReportDB]:
        """Service reports whose application, or whose application's program, is gone."""
        stmt = (
            select(CommunityServiceReportDB)
            .outerjoin(
                ScholarshipApplicationDB,
                CommunityServiceReportDB.application_id == ScholarshipApplicationDB.id,
            )
            .outerjoin(
                ScholarshipProgramDB,
                ScholarshipApplicationDB.program_id == ScholarshipProgramDB.id,
            )
            .where((ScholarshipApplicationDB.id == None) | (ScholarshipProgramDB.id == None))  # noqa: E711
            .order_by(CommunityServiceReportDB.id)
        )
        return list(self._session.exec(stmt).all())

    # ----------------------------------------------------- context manager
    def close(self) -> None:
        self._session.close()

    def __enter__(self) -> "Store":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()
