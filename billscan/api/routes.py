"""
BillScan API endpoints.

GET  /api/health            liveness
POST /api/upload            accept one image, start processing
GET  /api/records           list record projections
GET  /api/records/{id}      one full record
PUT  /api/records/{id}      correct extracted fields
GET  /api/export/status     counts per status
POST /api/export            download completed records as .xlsx
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, File, Request, Response, UploadFile

from billscan.utils.logger import get_logger
from billscan.utils.helpers import utc_now
from billscan.output_handler import ExcelExporter
from billscan.pipeline import ProcessingOrchestrator
from .schemas import (
    ExportStatus,
    HealthResponse,
    RecordDetail,
    RecordSummary,
    RecordUpdate,
    UploadResponse,
)

logger = get_logger(__name__)
router = APIRouter()

XLSX_MEDIA_TYPE = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


def get_orchestrator(request: Request) -> ProcessingOrchestrator:
    return request.app.state.orchestrator


def get_exporter(request: Request) -> ExcelExporter:
    return request.app.state.exporter


# ── GET /api/health ──────────────────────────────────────────────────────
@router.get("/health", response_model=HealthResponse)
def health():
    return HealthResponse(message="BillScan backend is running", timestamp=utc_now())


# ── POST /api/upload ─────────────────────────────────────────────────────
@router.post("/upload", response_model=UploadResponse)
def upload(
    image: Optional[UploadFile] = File(None),
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    if image is None:
        record = orchestrator.submit_upload(None, None, None)
    else:
        data = image.file.read()
        record = orchestrator.submit_upload(image.filename, image.content_type, data)

    return UploadResponse(
        id=record.id,
        status=record.status.value,
        message="Image uploaded successfully. Processing started.",
    )


# ── GET /api/records ─────────────────────────────────────────────────────
@router.get("/records", response_model=List[RecordSummary])
def list_records(orchestrator: ProcessingOrchestrator = Depends(get_orchestrator)):
    records = orchestrator.store.list()
    logger.debug(f"Listing {len(records)} records")
    return [RecordSummary.from_record(record) for record in records]


# ── GET /api/records/{record_id} ─────────────────────────────────────────
@router.get("/records/{record_id}", response_model=RecordDetail)
def get_record(record_id: str, orchestrator: ProcessingOrchestrator = Depends(get_orchestrator)):
    return RecordDetail.from_record(orchestrator.store.get(record_id))


# ── PUT /api/records/{record_id} ─────────────────────────────────────────
@router.put("/records/{record_id}", response_model=RecordDetail)
def update_record(
    record_id: str,
    body: RecordUpdate,
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
):
    record = orchestrator.store.update(record_id, **body.changes())
    return RecordDetail.from_record(record)


# ── GET /api/export/status ───────────────────────────────────────────────
@router.get("/export/status", response_model=ExportStatus)
def export_status(orchestrator: ProcessingOrchestrator = Depends(get_orchestrator)):
    counts = orchestrator.store.counts()
    return ExportStatus(
        total=counts['total'],
        completed=counts['completed'],
        processing=counts['processing'],
        error=counts['error'],
        can_export=counts['completed'] > 0,
    )


# ── POST /api/export ─────────────────────────────────────────────────────
@router.post("/export")
def export(
    orchestrator: ProcessingOrchestrator = Depends(get_orchestrator),
    exporter: ExcelExporter = Depends(get_exporter),
):
    content = exporter.export(orchestrator.store.list())
    filename = exporter.get_default_filename()
    logger.info(f"Export {filename} ({len(content)} bytes)")
    return Response(
        content=content,
        media_type=XLSX_MEDIA_TYPE,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )
