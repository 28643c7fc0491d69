"""
routers/organisations.py — Buying organisations aggregated from opportunities

Business Rules:
- One organisation per trimmed raw buyer entity, computed on every read
- Default order is most opportunities first
- 404 when the tenant has no opportunities from that buyer

Called by: main.py (router mount)
Depends on: services/query_service.py
"""

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_api_key
from ..schemas.organisations import OrganisationDetail, OrganisationListResponse, OrganisationSort
from ..services.query_service import get_organisation, list_organisations

router = APIRouter(tags=["organisations"], dependencies=[Depends(require_api_key)])


@router.get("/api/tenants/{tenant_id}/organisations", response_model=OrganisationListResponse)
def organisations_list(
    tenant_id: str,
    search: str | None = None,
    sort: OrganisationSort = "opportunity_count",
    order: str = "desc",
    db: Session = Depends(get_db),
):
    rows = list_organisations(db, tenant_id, search=search, sort=sort, descending=order.lower() != "asc")
    return {"organisations": rows, "total": len(rows)}


@router.get("/api/tenants/{tenant_id}/organisations/{name:path}", response_model=OrganisationDetail)
def organisation_detail(tenant_id: str, name: str, db: Session = Depends(get_db)):
    row = get_organisation(db, tenant_id, name)
    if not row:
        raise HTTPException(404, "Organisation not found")
    return row
