"""
routers/contacts.py — Contact directory and CSV export

Business Rules:
- Contacts ordered by last_seen_at, most recent first
- Each contact lists its linked opportunities and per-source provenance
- Export columns: Email, Name, Departments, Opportunity Count,
  Linked Opportunities, First Seen, Last Seen

Called by: main.py (router mount)
Depends on: services/query_service.py
"""

import io
from datetime import date

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from loguru import logger
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_api_key
from ..schemas.opportunities import ContactListResponse
from ..services.query_service import export_contacts_csv, list_contacts

router = APIRouter(tags=["contacts"], dependencies=[Depends(require_api_key)])


@router.get("/api/tenants/{tenant_id}/contacts", response_model=ContactListResponse)
def contacts_list(
    tenant_id: str,
    search: str | None = None,
    min_opportunities: int | None = Query(None, ge=0),
    department: str | None = None,
    limit: int = Query(500, ge=1, le=5000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    rows = list_contacts(
        db, tenant_id, search=search, min_opportunities=min_opportunities, department=department
    )
    return {
        "contacts": rows[offset : offset + limit],
        "total": len(rows),
        "limit": limit,
        "offset": offset,
    }


@router.get("/api/tenants/{tenant_id}/contacts/export")
def contacts_export(
    tenant_id: str,
    search: str | None = None,
    min_opportunities: int | None = Query(None, ge=0),
    department: str | None = None,
    db: Session = Depends(get_db),
):
    """Download the filtered contact directory as CSV."""
    text = export_contacts_csv(
        db, tenant_id, search=search, min_opportunities=min_opportunities, department=department
    )
    filename = f"contacts-{date.today().isoformat()}.csv"
    logger.info(f"Contact export for tenant {tenant_id}: {filename}")
    return StreamingResponse(
        io.BytesIO(text.encode("utf-8")),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )
