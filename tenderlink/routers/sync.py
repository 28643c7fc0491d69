"""
routers/sync.py — Ingestion endpoints: crawler webhook, manual upload, job history

Business Rules:
- 400 for missing tenantId or an empty/missing opportunities list
- 200 whenever processing ran, even if every record failed (success=false)
- Upload rows go through the same alias mapping as webhook payloads
- is_syncing is true while the tenant's latest job is still running

Called by: main.py (router mount)
Depends on: services/sync_service.py, services/upload_parser.py
"""

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Request, UploadFile
from loguru import logger
from sqlalchemy.orm import Session

from ..config import settings
from ..database import get_db
from ..dependencies import require_api_key, require_webhook_secret
from ..exceptions import InvalidInput
from ..rate_limit import limiter
from ..schemas.sync import (
    SyncJobListResponse,
    SyncJobOut,
    SyncStatsOut,
    SyncWebhookPayload,
    SyncWebhookResponse,
)
from ..services.sync_service import SyncReport, recent_jobs, run_sync
from ..services.upload_parser import parse_upload

router = APIRouter(tags=["sync"])


def _report_response(report: SyncReport) -> SyncWebhookResponse:
    return SyncWebhookResponse(
        success=report.success,
        stats=SyncStatsOut(**report.stats.to_response()),
        sync_job_id=report.sync_job_id,
        status=report.status,
        error_messages=list(report.stats.errors),
    )


@router.post(
    "/api/sync/webhook",
    response_model=SyncWebhookResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_webhook_secret)],
)
@limiter.limit(settings.rate_limit_webhook)
def sync_webhook(
    payload: SyncWebhookPayload,
    request: Request,
    db: Session = Depends(get_db),
):
    """Receive a scraped batch from the crawler and ingest it."""
    if not payload.tenant_id:
        raise HTTPException(400, "tenantId is required")
    if not payload.opportunities:
        raise HTTPException(400, "No opportunities provided")

    logger.info(
        f"Webhook batch: tenant={payload.tenant_id} records={len(payload.opportunities)} "
        f"scraped_at={payload.scraped_at} total_count={payload.total_count}"
    )
    try:
        report = run_sync(
            db,
            payload.tenant_id,
            payload.opportunities,
            sync_type=payload.sync_type,
            created_by="crawler",
        )
    except InvalidInput as e:
        raise HTTPException(400, str(e))
    return _report_response(report)


@router.post(
    "/api/sync/upload",
    response_model=SyncWebhookResponse,
    response_model_by_alias=True,
    dependencies=[Depends(require_api_key)],
)
def sync_upload(
    tenant_id: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
):
    """Ingest a CSV/XLSX export uploaded by a user."""
    content = file.file.read()
    try:
        rows = parse_upload(content, file.filename)
        report = run_sync(db, tenant_id, rows, sync_type="upload", created_by="upload")
    except InvalidInput as e:
        raise HTTPException(400, str(e))
    return _report_response(report)


@router.get(
    "/api/tenants/{tenant_id}/sync-jobs",
    response_model=SyncJobListResponse,
    dependencies=[Depends(require_api_key)],
)
def list_sync_jobs(
    tenant_id: str,
    limit: int = Query(10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    jobs = recent_jobs(db, tenant_id, limit=limit)
    return SyncJobListResponse(
        jobs=[SyncJobOut.model_validate(j) for j in jobs],
        is_syncing=bool(jobs) and jobs[0].status == "running",
    )
