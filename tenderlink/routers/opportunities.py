"""
routers/opportunities.py — Opportunity reads with query-time department resolution

Business Rules:
- Every row carries canonical_department/agency resolved from current rules
- Ordered by closing_date ascending, undated last
- 404 when the opportunity does not belong to the tenant

Called by: main.py (router mount)
Depends on: services/query_service.py
"""

from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_api_key
from ..schemas.opportunities import OpportunityDetail, OpportunityListResponse
from ..services.query_service import get_opportunity, list_opportunities

router = APIRouter(tags=["opportunities"], dependencies=[Depends(require_api_key)])


@router.get("/api/tenants/{tenant_id}/opportunities", response_model=OpportunityListResponse)
def opportunities_list(
    tenant_id: str,
    status: str | None = None,
    search: str | None = None,
    department: str | None = None,
    has_contacts: bool | None = None,
    closing_from: datetime | None = None,
    closing_to: datetime | None = None,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    rows = list_opportunities(
        db,
        tenant_id,
        status=status,
        search=search,
        department=department,
        has_contacts=has_contacts,
        closing_from=closing_from,
        closing_to=closing_to,
    )
    return {
        "opportunities": rows[offset : offset + limit],
        "total": len(rows),
        "limit": limit,
        "offset": offset,
    }


@router.get(
    "/api/tenants/{tenant_id}/opportunities/{opportunity_id}",
    response_model=OpportunityDetail,
)
def opportunity_detail(tenant_id: str, opportunity_id: int, db: Session = Depends(get_db)):
    row = get_opportunity(db, tenant_id, opportunity_id)
    if not row:
        raise HTTPException(404, "Opportunity not found")
    return row
