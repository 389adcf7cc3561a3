"""
api.main
========

Thin HTTP layer over :class:`scholarflow.workflow.WorkflowService`.

Handlers only parse the body, call one workflow operation and return the
resulting record.  Every :class:`~scholarflow.errors.WorkflowError` is turned
into a JSON error with the status code the error class carries.
"""

from datetime import date
from decimal import Decimal
from typing import List, Literal, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from scholarflow.errors import QuotaExceeded, WorkflowError
from scholarflow.settings import API_DEBUG, configure_logging
from scholarflow.workflow import WorkflowService

from .deps import get_workflow

configure_logging()

app = FastAPI(
    title="Scholarflow API",
    version="0.1.0",
    description="Status workflow for scholarship applications, documents, service reports and disbursements.",
    debug=API_DEBUG,
)

# --- CORS ----------------------------------------------------------
origins = [
    "http://localhost:5173",    # Vite dev server default port
    "http://127.0.0.1:5173",
    "http://localhost:3000",
    "http://127.0.0.1:3000",
]

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization", "Accept"],
)


@app.exception_handler(WorkflowError)
async def workflow_error_handler(request: Request, exc: WorkflowError) -> JSONResponse:
    body = {"error": exc.code, "detail": str(exc)}
    if isinstance(exc, QuotaExceeded):
        body["remaining"] = exc.remaining
    return JSONResponse(status_code=exc.http_status, content=jsonable_encoder(body))


# ---------- request bodies ----------
class StatusUpdate(BaseModel):
    status: str
    admin_notes: Optional[str] = None
    recompute: bool = False


class ReviewRequest(BaseModel):
    status: str
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None
    recompute: bool = False


class BulkReviewRequest(BaseModel):
    report_ids: List[int] = Field(..., min_length=1)
    action: Literal["approve", "reject"]
    rejection_reason: Optional[str] = None
    admin_notes: Optional[str] = None


class DisbursementCreate(BaseModel):
    amount: Decimal
    payment_method: str
    disbursement_date: date
    status: str = "pending"
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class DisbursementUpdate(BaseModel):
    amount: Optional[Decimal] = None
    payment_method: Optional[str] = None
    disbursement_date: Optional[date] = None
    status: Optional[str] = None
    reference_number: Optional[str] = None
    notes: Optional[str] = None


class ApplicationCreate(BaseModel):
    student_id: int
    program_id: int


class DocumentUploadRequest(BaseModel):
    requirement_id: int
    file_path: str
    original_filename: Optional[str] = None


class ServiceReportRequest(BaseModel):
    days_completed: int
    description: str


class ServiceEntryRequest(BaseModel):
    hours_completed: float
    description: str
    service_date: Optional[date] = None


# ---------- health-check ----------
@app.get("/")
def root():
    return {"status": "ok", "msg": "Scholarflow API is alive"}


# ---------- admin ----------
@app.patch("/admin/applications/{app_id}/status")
def update_application_status(app_id: int, body: StatusUpdate,
                              wf: WorkflowService = Depends(get_workflow)):
    return wf.update_application_status(app_id, body.status, body.admin_notes, body.recompute)


@app.patch("/admin/documents/{doc_id}/review")
def review_document(doc_id: int, body: ReviewRequest,
                    wf: WorkflowService = Depends(get_workflow)):
    return wf.review_document(doc_id, body.status, body.rejection_reason, body.recompute)


@app.patch("/admin/service-reports/{report_id}/review")
def review_service_report(report_id: int, body: ReviewRequest,
                          wf: WorkflowService = Depends(get_workflow)):
    return wf.review_service_report(
        report_id, body.status, body.rejection_reason, body.admin_notes, body.recompute
    )


@app.post("/admin/service-reports/bulk-review")
def bulk_review_service_reports(body: BulkReviewRequest,
                                wf: WorkflowService = Depends(get_workflow)):
    result = wf.bulk_review_service_reports(
        body.report_ids, body.action, body.rejection_reason, body.admin_notes
    )
    return {"succeeded": result.succeeded, "failed": result.failed}


@app.patch("/admin/service-entries/{entry_id}/review")
def review_service_entry(entry_id: int, body: ReviewRequest,
                         wf: WorkflowService = Depends(get_workflow)):
    return wf.review_service_entry(
        entry_id, body.status, body.rejection_reason, body.admin_notes, body.recompute
    )


@app.post("/admin/applications/{app_id}/disbursements", status_code=201)
def create_disbursement(app_id: int, body: DisbursementCreate,
                        wf: WorkflowService = Depends(get_workflow)):
    return wf.create_disbursement(
        app_id,
        amount=body.amount,
        payment_method=body.payment_method,
        disbursement_date=body.disbursement_date,
        status=body.status,
        reference_number=body.reference_number,
        notes=body.notes,
    )


@app.put("/admin/disbursements/{disb_id}")
def update_disbursement(disb_id: int, body: DisbursementUpdate,
                        wf: WorkflowService = Depends(get_workflow)):
    return wf.update_disbursement(disb_id, **body.model_dump())


# ---------- student ----------
@app.post("/student/applications", status_code=201)
def start_application(body: ApplicationCreate,
                      wf: WorkflowService = Depends(get_workflow)):
    return wf.start_application(body.student_id, body.program_id)


@app.post("/student/applications/{app_id}/documents", status_code=201)
def upload_document(app_id: int, body: DocumentUploadRequest,
                    wf: WorkflowService = Depends(get_workflow)):
    return wf.upload_document(app_id, body.requirement_id, body.file_path, body.original_filename)


@app.post("/student/applications/{app_id}/submit")
def submit_application(app_id: int, wf: WorkflowService = Depends(get_workflow)):
    return wf.submit_application(app_id)


@app.post("/student/applications/{app_id}/service-reports", status_code=201)
def submit_service_report(app_id: int, body: ServiceReportRequest,
                          wf: WorkflowService = Depends(get_workflow)):
    return wf.submit_service_report(app_id, body.days_completed, body.description)


@app.post("/student/applications/{app_id}/service-entries", status_code=201)
def log_service_entry(app_id: int, body: ServiceEntryRequest,
                      wf: WorkflowService = Depends(get_workflow)):
    return wf.log_service_entry(app_id, body.hours_completed, body.description, body.service_date)


@app.get("/student/applications/{app_id}/service-progress")
def service_progress(app_id: int, wf: WorkflowService = Depends(get_workflow)):
    progress = wf.service_progress(app_id)
    return {
        "required": progress.required,
        "completed": progress.completed,
        "remaining": progress.remaining,
        "met": progress.met,
    }
