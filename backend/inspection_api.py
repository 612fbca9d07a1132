"""
FastAPI routers for PM schedules, DVIRs and user feedback.
"""

from __future__ import annotations

import json
from typing import Any

from fastapi import APIRouter, Depends

from db import fetch_all, get_db, insert_row, unit_of_work, update_row, utc_now_iso
from errors import ValidationFailed
import inspection_service as service
from inspection_models import (
    DefectResponse,
    DvirCreate,
    DvirResponse,
    DvirStatus,
    FeedbackCreate,
    FeedbackResponse,
    FeedbackStatus,
    FeedbackType,
    PmScheduleCreate,
    PmScheduleResponse,
    PmScheduleUpdate,
)
from org_scope import get_scoped_row, require_org
from work_order_models import WOResponse

pm_router = APIRouter(prefix="/api/orgs/{org_id}/pm-schedules", tags=["pm-schedules"])
dvir_router = APIRouter(prefix="/api/orgs/{org_id}/dvirs", tags=["dvirs"])
feedback_router = APIRouter(prefix="/api/orgs/{org_id}/feedback", tags=["feedback"])


async def _dvir_response(db, row: Any) -> DvirResponse:
    defects = await service.list_defects(db, int(row["id"]))
    return DvirResponse(**dict(row), defects=[DefectResponse(**dict(defect)) for defect in defects])


@pm_router.get("", response_model=list[PmScheduleResponse])
async def list_pm_schedules(org_id: int = Depends(require_org), active_only: bool = False):
    query = "SELECT * FROM pm_schedules WHERE org_id = ?"
    if active_only:
        query += " AND is_active = 1"
    query += " ORDER BY name COLLATE NOCASE ASC, id ASC"

    db = await get_db()
    try:
        return [PmScheduleResponse(**dict(row)) for row in await fetch_all(db, query, (org_id,))]
    finally:
        await db.close()


@pm_router.post("", response_model=PmScheduleResponse, status_code=201)
async def create_pm_schedule(payload: PmScheduleCreate, org_id: int = Depends(require_org)):
    now = utc_now_iso()
    values = payload.model_dump()
    values["task_checklist"] = json.dumps(values["task_checklist"])
    async with unit_of_work() as db:
        schedule_id = await insert_row(
            db,
            "pm_schedules",
            {**values, "org_id": org_id, "created_at": now, "updated_at": now},
        )
        row = await get_scoped_row(db, "pm_schedules", org_id, schedule_id, "PM schedule")
    return PmScheduleResponse(**dict(row))


@pm_router.get("/{schedule_id}", response_model=PmScheduleResponse)
async def get_pm_schedule(schedule_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return PmScheduleResponse(
            **dict(await get_scoped_row(db, "pm_schedules", org_id, schedule_id, "PM schedule"))
        )
    finally:
        await db.close()


@pm_router.patch("/{schedule_id}", response_model=PmScheduleResponse)
async def update_pm_schedule(
    schedule_id: int,
    payload: PmScheduleUpdate,
    org_id: int = Depends(require_org),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    if "task_checklist" in changes:
        changes["task_checklist"] = json.dumps(changes["task_checklist"] or [])
    if "is_active" in changes:
        changes["is_active"] = int(bool(changes["is_active"]))
    changes["updated_at"] = utc_now_iso()

    async with unit_of_work() as db:
        await get_scoped_row(db, "pm_schedules", org_id, schedule_id, "PM schedule")
        await update_row(db, "pm_schedules", schedule_id, changes)
        row = await get_scoped_row(db, "pm_schedules", org_id, schedule_id, "PM schedule")
    return PmScheduleResponse(**dict(row))


@pm_router.delete("/{schedule_id}")
async def delete_pm_schedule(schedule_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        await get_scoped_row(db, "pm_schedules", org_id, schedule_id, "PM schedule")
        await db.execute("DELETE FROM pm_schedules WHERE id = ?", (schedule_id,))
    return {"status": "deleted", "id": schedule_id}


@dvir_router.get("", response_model=list[DvirResponse])
async def list_dvirs(
    org_id: int = Depends(require_org),
    asset_id: int | None = None,
    status: DvirStatus | None = None,
):
    query = "SELECT * FROM dvirs WHERE org_id = ?"
    params: list[Any] = [org_id]
    if asset_id is not None:
        query += " AND asset_id = ?"
        params.append(asset_id)
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY inspection_date DESC, id DESC"

    db = await get_db()
    try:
        return [await _dvir_response(db, row) for row in await fetch_all(db, query, params)]
    finally:
        await db.close()


@dvir_router.post("", response_model=DvirResponse, status_code=201)
async def create_dvir(payload: DvirCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.create_dvir(db, org_id, payload.model_dump())
        return await _dvir_response(db, row)


@dvir_router.get("/{dvir_id}", response_model=DvirResponse)
async def get_dvir(dvir_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return await _dvir_response(db, await service.get_dvir(db, org_id, dvir_id))
    finally:
        await db.close()


@dvir_router.post("/defects/{defect_id}/resolve", response_model=DefectResponse)
async def resolve_defect(defect_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.resolve_defect(db, org_id, defect_id)
    return DefectResponse(**dict(row))


@dvir_router.post("/defects/{defect_id}/work-order", response_model=WOResponse, status_code=201)
async def create_work_order_from_defect(defect_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row, warnings = await service.create_work_order_from_defect(db, org_id, defect_id)
    return WOResponse(**dict(row), warnings=warnings)


@feedback_router.get("", response_model=list[FeedbackResponse])
async def list_feedback(
    org_id: int = Depends(require_org),
    type: FeedbackType | None = None,
    status: FeedbackStatus | None = None,
):
    query = "SELECT * FROM feedback WHERE org_id = ?"
    params: list[Any] = [org_id]
    if type:
        query += " AND type = ?"
        params.append(type)
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY votes DESC, created_at DESC, id DESC"

    db = await get_db()
    try:
        return [FeedbackResponse(**dict(row)) for row in await fetch_all(db, query, params)]
    finally:
        await db.close()


@feedback_router.post("", response_model=FeedbackResponse, status_code=201)
async def create_feedback(payload: FeedbackCreate, org_id: int = Depends(require_org)):
    now = utc_now_iso()
    async with unit_of_work() as db:
        feedback_id = await insert_row(
            db,
            "feedback",
            {**payload.model_dump(), "org_id": org_id, "created_at": now, "updated_at": now},
        )
        row = await get_scoped_row(db, "feedback", org_id, feedback_id, "Feedback")
    return FeedbackResponse(**dict(row))


@feedback_router.post("/{feedback_id}/vote", response_model=FeedbackResponse)
async def vote_feedback(feedback_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        await get_scoped_row(db, "feedback", org_id, feedback_id, "Feedback")
        await db.execute(
            "UPDATE feedback SET votes = votes + 1, updated_at = ? WHERE id = ?",
            (utc_now_iso(), feedback_id),
        )
        row = await get_scoped_row(db, "feedback", org_id, feedback_id, "Feedback")
    return FeedbackResponse(**dict(row))
