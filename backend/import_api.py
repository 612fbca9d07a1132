"""
FastAPI router for bulk import jobs.
"""

from fastapi import APIRouter, Depends

from db import fetch_all, get_db, unit_of_work
from import_models import ImportJobCreate, ImportJobResponse
from import_service import run_import
from org_scope import get_scoped_row, require_org

router = APIRouter(prefix="/api/orgs/{org_id}/import-jobs", tags=["import"])


@router.get("", response_model=list[ImportJobResponse])
async def list_import_jobs(org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        rows = await fetch_all(
            db,
            "SELECT * FROM import_jobs WHERE org_id = ? ORDER BY created_at DESC, id DESC",
            (org_id,),
        )
        return [ImportJobResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@router.post("", response_model=ImportJobResponse, status_code=201)
async def create_import_job(payload: ImportJobCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await run_import(db, org_id, payload.model_dump())
    return ImportJobResponse(**dict(row))


@router.get("/{job_id}", response_model=ImportJobResponse)
async def get_import_job(job_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return ImportJobResponse(**dict(await get_scoped_row(db, "import_jobs", org_id, job_id, "Import job")))
    finally:
        await db.close()
