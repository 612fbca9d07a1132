"""
FastAPI router for repair estimates.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from config import DEFAULT_PAGE_LIMIT
from db import fetch_all, get_db, unit_of_work
from errors import ValidationFailed
import estimate_service as service
from estimate_models import (
    EstimateConversion,
    EstimateCreate,
    EstimateLineCreate,
    EstimateLineResponse,
    EstimateLineUpdate,
    EstimateResponse,
    EstimateStatus,
    EstimateUpdate,
)
from org_scope import get_organization_row, require_org
from workflow import conversion_blocker

router = APIRouter(prefix="/api/orgs/{org_id}/estimates", tags=["estimates"])


async def _to_response(db, org_id: int, row: Any) -> EstimateResponse:
    return EstimateResponse(**dict(row), can_convert=await service.estimate_can_convert(db, org_id, row))


@router.get("", response_model=list[EstimateResponse])
async def list_estimates(
    org_id: int = Depends(require_org),
    status: EstimateStatus | None = None,
    asset_id: int | None = None,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM estimates WHERE org_id = ?"
    params: list[Any] = [org_id]
    if status:
        query += " AND status = ?"
        params.append(status)
    if asset_id is not None:
        query += " AND asset_id = ?"
        params.append(asset_id)
    query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    db = await get_db()
    try:
        rows = await fetch_all(db, query, params)
        organization = await get_organization_row(db, org_id)
        responses = []
        for row in rows:
            lines = await service.list_estimate_lines(db, int(row["id"]))
            responses.append(
                EstimateResponse(**dict(row), can_convert=conversion_blocker(row, organization, lines) is None)
            )
        return responses
    finally:
        await db.close()


@router.post("", response_model=EstimateResponse, status_code=201)
async def create_estimate(payload: EstimateCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.create_estimate(db, org_id, payload.model_dump())
        return await _to_response(db, org_id, row)


@router.get("/{est_id}", response_model=EstimateResponse)
async def get_estimate(est_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return await _to_response(db, org_id, await service.get_estimate(db, org_id, est_id))
    finally:
        await db.close()


@router.patch("/{est_id}", response_model=EstimateResponse)
async def update_estimate(est_id: int, payload: EstimateUpdate, org_id: int = Depends(require_org)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    async with unit_of_work() as db:
        row = await service.update_estimate(db, org_id, est_id, changes)
        return await _to_response(db, org_id, row)


async def _change_status(org_id: int, est_id: int, target: str) -> EstimateResponse:
    async with unit_of_work() as db:
        row = await service.change_estimate_status(db, org_id, est_id, target)
        return await _to_response(db, org_id, row)


@router.post("/{est_id}/submit", response_model=EstimateResponse)
async def submit_estimate(est_id: int, org_id: int = Depends(require_org)):
    return await _change_status(org_id, est_id, "pending_approval")


@router.post("/{est_id}/approve", response_model=EstimateResponse)
async def approve_estimate(est_id: int, org_id: int = Depends(require_org)):
    return await _change_status(org_id, est_id, "approved")


@router.post("/{est_id}/reject", response_model=EstimateResponse)
async def reject_estimate(est_id: int, org_id: int = Depends(require_org)):
    return await _change_status(org_id, est_id, "rejected")


@router.post("/{est_id}/convert", response_model=EstimateConversion, status_code=201)
async def convert_estimate(est_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        result = await service.convert_estimate_to_work_order(db, org_id, est_id)
    return EstimateConversion(**result)


@router.get("/{est_id}/lines", response_model=list[EstimateLineResponse])
async def list_estimate_lines(est_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        await service.get_estimate(db, org_id, est_id)
        rows = await service.list_estimate_lines(db, est_id)
        return [EstimateLineResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@router.get("/{est_id}/unfulfilled-lines", response_model=list[EstimateLineResponse])
async def list_unfulfilled_lines(est_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        rows = await service.list_unfulfilled_lines(db, org_id, est_id)
        return [EstimateLineResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@router.post("/{est_id}/lines", response_model=EstimateLineResponse, status_code=201)
async def add_estimate_line(est_id: int, payload: EstimateLineCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.add_estimate_line(db, org_id, est_id, payload.model_dump())
    return EstimateLineResponse(**dict(row))


@router.patch("/{est_id}/lines/{line_id}", response_model=EstimateLineResponse)
async def update_estimate_line(
    est_id: int,
    line_id: int,
    payload: EstimateLineUpdate,
    org_id: int = Depends(require_org),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    async with unit_of_work() as db:
        row = await service.update_estimate_line(db, org_id, est_id, line_id, changes)
    return EstimateLineResponse(**dict(row))


@router.delete("/{est_id}/lines/{line_id}")
async def delete_estimate_line(est_id: int, line_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        totals = await service.delete_estimate_line(db, org_id, est_id, line_id)
    return {"status": "deleted", "id": line_id, **totals}
