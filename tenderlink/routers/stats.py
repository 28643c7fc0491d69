"""
routers/stats.py — Dashboard counters and health check

Called by: main.py (router mount)
Depends on: services/query_service.py
"""

from fastapi import APIRouter, Depends
from loguru import logger
from sqlalchemy import text
from sqlalchemy.orm import Session

from ..database import get_db
from ..dependencies import require_api_key
from ..schemas.opportunities import DashboardStats
from ..schemas.responses import HealthResponse
from ..services.query_service import dashboard_stats

router = APIRouter(tags=["stats"])


@router.get(
    "/api/tenants/{tenant_id}/stats",
    response_model=DashboardStats,
    dependencies=[Depends(require_api_key)],
)
def tenant_stats(tenant_id: str, db: Session = Depends(get_db)):
    return dashboard_stats(db, tenant_id)


@router.get("/health", response_model=HealthResponse)
def health(db: Session = Depends(get_db)):
    try:
        db.execute(text("SELECT 1"))
        return {"status": "ok", "database": "ok"}
    except Exception as e:
        logger.error(f"Health check database error: {e}")
        return {"status": "degraded", "database": "error"}
