"""
FastAPI router for the organization dashboard.
"""

from fastapi import APIRouter, Depends

from dashboard_service import compute_dashboard_stats
from db import get_db
from fleet_models import DashboardStats
from org_scope import require_org

router = APIRouter(prefix="/api/orgs/{org_id}/dashboard", tags=["dashboard"])


@router.get("/stats", response_model=DashboardStats)
async def get_dashboard_stats(org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return await compute_dashboard_stats(db, org_id)
    finally:
        await db.close()
