"""
FastAPI router for fleet work orders and their lines.
"""

from __future__ import annotations

import csv
import logging
import io
from typing import Any, Literal

import aiosqlite
from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse, Response

from config import DEFAULT_PAGE_LIMIT
from db import fetch_all, get_db, unit_of_work
from errors import StorageFailure, ValidationFailed
from org_scope import require_org
import work_order_service as service
from work_order_models import (
    SortBy,
    SortOrder,
    WOCreate,
    WOLineCreate,
    WOLineResponse,
    WOLineUpdate,
    WOPriority,
    WOResponse,
    WOStatus,
    WOType,
    WOUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/orgs/{org_id}/work-orders", tags=["work-orders"])

STATUS_ORDER_EXPR = """
CASE status
    WHEN 'open' THEN 1
    WHEN 'in_progress' THEN 2
    WHEN 'on_hold' THEN 3
    WHEN 'ready_for_review' THEN 4
    WHEN 'completed' THEN 5
    WHEN 'cancelled' THEN 6
    ELSE 99
END
"""

PRIORITY_ORDER_EXPR = """
CASE priority
    WHEN 'critical' THEN 1
    WHEN 'high' THEN 2
    WHEN 'medium' THEN 3
    WHEN 'low' THEN 4
    ELSE 99
END
"""

SORT_COLUMN_MAP = {
    "updated_at": "updated_at",
    "created_at": "created_at",
    "due_date": "due_date",
    "work_order_number": "work_order_number",
    "status": STATUS_ORDER_EXPR,
    "priority": PRIORITY_ORDER_EXPR,
}

EXPORT_COLUMNS = [
    "work_order_number",
    "title",
    "type",
    "status",
    "priority",
    "asset_number",
    "assigned_to",
    "due_date",
    "completed_date",
    "estimated_cost",
    "actual_cost",
    "created_at",
    "updated_at",
]


def _to_response(row: Any, warnings: list[str] | None = None) -> WOResponse:
    return WOResponse(**dict(row), warnings=warnings or [])


def _to_export_row(row: Any) -> dict[str, Any]:
    return {column: "" if row[column] is None else row[column] for column in EXPORT_COLUMNS}


@router.get("", response_model=list[WOResponse])
async def list_work_orders(
    org_id: int = Depends(require_org),
    status: WOStatus | None = None,
    priority: WOPriority | None = None,
    type: WOType | None = None,
    asset_id: int | None = None,
    assigned_to: str | None = None,
    search: str | None = None,
    sort_by: SortBy = "updated_at",
    sort_order: SortOrder = "desc",
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM work_orders WHERE org_id = ?"
    params: list[Any] = [org_id]

    if status:
        query += " AND status = ?"
        params.append(status)
    if priority:
        query += " AND priority = ?"
        params.append(priority)
    if type:
        query += " AND type = ?"
        params.append(type)
    if asset_id is not None:
        query += " AND asset_id = ?"
        params.append(asset_id)
    if assigned_to:
        query += " AND assigned_to = ?"
        params.append(assigned_to)
    if search:
        pattern = f"%{search.strip()}%"
        query += " AND (title LIKE ? OR description LIKE ? OR work_order_number LIKE ?)"
        params.extend([pattern, pattern, pattern])

    direction = "ASC" if sort_order == "asc" else "DESC"
    order_expression = SORT_COLUMN_MAP.get(sort_by, "updated_at")
    query += f" ORDER BY {order_expression} {direction}, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    db = await get_db()
    try:
        rows = await fetch_all(db, query, params)
        return [_to_response(row) for row in rows]
    finally:
        await db.close()


@router.get("/export")
async def export_work_orders(
    org_id: int = Depends(require_org),
    format: Literal["csv", "json"] = Query(default="csv"),
):
    db = await get_db()
    try:
        rows = await fetch_all(
            db,
            """
            SELECT w.*, a.asset_number
            FROM work_orders AS w
            LEFT JOIN assets AS a ON a.id = w.asset_id
            WHERE w.org_id = ?
            ORDER BY w.created_at ASC, w.id ASC
            """,
            (org_id,),
        )
    finally:
        await db.close()

    export_rows = [_to_export_row(row) for row in rows]
    filename = f"work-orders-{org_id}.{format}"
    headers = {"Content-Disposition": f'attachment; filename="{filename}"'}

    if format == "json":
        return JSONResponse(
            content={
                "org_id": org_id,
                "count": len(export_rows),
                "columns": EXPORT_COLUMNS,
                "rows": export_rows,
            },
            headers=headers,
        )

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=EXPORT_COLUMNS)
    writer.writeheader()
    writer.writerows(export_rows)
    return Response(
        content=output.getvalue(),
        media_type="text/csv; charset=utf-8",
        headers=headers,
    )


@router.get("/{wo_id}", response_model=WOResponse)
async def get_work_order(wo_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return _to_response(await service.get_work_order(db, org_id, wo_id))
    finally:
        await db.close()


@router.post("", response_model=WOResponse, status_code=201)
async def create_work_order(payload: WOCreate, org_id: int = Depends(require_org)):
    try:
        async with unit_of_work() as db:
            row, warnings = await service.create_work_order(db, org_id, payload.model_dump())
    except aiosqlite.Error as exc:
        logger.exception("Failed to create work order for organization %s", org_id)
        raise StorageFailure(f"Failed to create work order: {exc}") from exc
    return _to_response(row, warnings)


@router.patch("/{wo_id}", response_model=WOResponse)
async def update_work_order(wo_id: int, payload: WOUpdate, org_id: int = Depends(require_org)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")

    async with unit_of_work() as db:
        row, warnings = await service.update_work_order(db, org_id, wo_id, changes)
    return _to_response(row, warnings)


@router.get("/{wo_id}/lines", response_model=list[WOLineResponse])
async def list_work_order_lines(wo_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        await service.get_work_order(db, org_id, wo_id)
        rows = await service.list_lines(db, wo_id)
        return [WOLineResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@router.post("/{wo_id}/lines", response_model=WOLineResponse, status_code=201)
async def add_work_order_line(wo_id: int, payload: WOLineCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.add_line(db, org_id, wo_id, payload.model_dump())
    return WOLineResponse(**dict(row))


@router.patch("/{wo_id}/lines/{line_id}", response_model=WOLineResponse)
async def update_work_order_line(
    wo_id: int,
    line_id: int,
    payload: WOLineUpdate,
    org_id: int = Depends(require_org),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")

    async with unit_of_work() as db:
        row = await service.update_line(db, org_id, wo_id, line_id, changes)
    return WOLineResponse(**dict(row))


@router.delete("/{wo_id}/lines/{line_id}")
async def delete_work_order_line(wo_id: int, line_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        actual_cost = await service.delete_line(db, org_id, wo_id, line_id)
    return {"status": "deleted", "id": line_id, "actual_cost": actual_cost}
