"""
FastAPI routers for purchase requisitions and purchase orders.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from config import DEFAULT_PAGE_LIMIT
from db import fetch_all, get_db, unit_of_work
from errors import ValidationFailed
from org_scope import require_org
import procurement_service as service
from procurement_models import (
    POLineReceive,
    POLineResponse,
    POReceiptResponse,
    POResponse,
    POStatus,
    POStatusChange,
    RequisitionCreate,
    RequisitionLineCreate,
    RequisitionLineResponse,
    RequisitionLineUpdate,
    RequisitionResponse,
    RequisitionStatus,
    RequisitionUpdate,
)

requisition_router = APIRouter(prefix="/api/orgs/{org_id}/requisitions", tags=["requisitions"])
purchase_order_router = APIRouter(prefix="/api/orgs/{org_id}/purchase-orders", tags=["purchase-orders"])


@requisition_router.get("", response_model=list[RequisitionResponse])
async def list_requisitions(
    org_id: int = Depends(require_org),
    status: RequisitionStatus | None = None,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM purchase_requisitions WHERE org_id = ?"
    params: list[Any] = [org_id]
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    db = await get_db()
    try:
        rows = await fetch_all(db, query, params)
        return [RequisitionResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@requisition_router.post("", response_model=RequisitionResponse, status_code=201)
async def create_requisition(payload: RequisitionCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.create_requisition(db, org_id, payload.model_dump())
    return RequisitionResponse(**dict(row))


@requisition_router.get("/{req_id}", response_model=RequisitionResponse)
async def get_requisition(req_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return RequisitionResponse(**dict(await service.get_requisition(db, org_id, req_id)))
    finally:
        await db.close()


@requisition_router.patch("/{req_id}", response_model=RequisitionResponse)
async def update_requisition(req_id: int, payload: RequisitionUpdate, org_id: int = Depends(require_org)):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    async with unit_of_work() as db:
        row = await service.update_requisition(db, org_id, req_id, changes)
    return RequisitionResponse(**dict(row))


async def _change_requisition_status(org_id: int, req_id: int, target: str) -> RequisitionResponse:
    async with unit_of_work() as db:
        row = await service.change_requisition_status(db, org_id, req_id, target)
    return RequisitionResponse(**dict(row))


@requisition_router.post("/{req_id}/submit", response_model=RequisitionResponse)
async def submit_requisition(req_id: int, org_id: int = Depends(require_org)):
    return await _change_requisition_status(org_id, req_id, "pending_approval")


@requisition_router.post("/{req_id}/approve", response_model=RequisitionResponse)
async def approve_requisition(req_id: int, org_id: int = Depends(require_org)):
    return await _change_requisition_status(org_id, req_id, "approved")


@requisition_router.post("/{req_id}/reject", response_model=RequisitionResponse)
async def reject_requisition(req_id: int, org_id: int = Depends(require_org)):
    return await _change_requisition_status(org_id, req_id, "rejected")


@requisition_router.post("/{req_id}/convert", response_model=POResponse, status_code=201)
async def convert_requisition(req_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.convert_requisition_to_po(db, org_id, req_id)
    return POResponse(**dict(row))


@requisition_router.get("/{req_id}/lines", response_model=list[RequisitionLineResponse])
async def list_requisition_lines(req_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        await service.get_requisition(db, org_id, req_id)
        rows = await service.list_requisition_lines(db, req_id)
        return [RequisitionLineResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@requisition_router.post("/{req_id}/lines", response_model=RequisitionLineResponse, status_code=201)
async def add_requisition_line(
    req_id: int,
    payload: RequisitionLineCreate,
    org_id: int = Depends(require_org),
):
    async with unit_of_work() as db:
        row = await service.add_requisition_line(db, org_id, req_id, payload.model_dump())
    return RequisitionLineResponse(**dict(row))


@requisition_router.patch("/{req_id}/lines/{line_id}", response_model=RequisitionLineResponse)
async def update_requisition_line(
    req_id: int,
    line_id: int,
    payload: RequisitionLineUpdate,
    org_id: int = Depends(require_org),
):
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    async with unit_of_work() as db:
        row = await service.update_requisition_line(db, org_id, req_id, line_id, changes)
    return RequisitionLineResponse(**dict(row))


@requisition_router.delete("/{req_id}/lines/{line_id}")
async def delete_requisition_line(req_id: int, line_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        total_amount = await service.delete_requisition_line(db, org_id, req_id, line_id)
    return {"status": "deleted", "id": line_id, "total_amount": total_amount}


@purchase_order_router.get("", response_model=list[POResponse])
async def list_purchase_orders(
    org_id: int = Depends(require_org),
    status: POStatus | None = None,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM purchase_orders WHERE org_id = ?"
    params: list[Any] = [org_id]
    if status:
        query += " AND status = ?"
        params.append(status)
    query += " ORDER BY created_at DESC, id DESC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    db = await get_db()
    try:
        rows = await fetch_all(db, query, params)
        return [POResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@purchase_order_router.get("/{po_id}", response_model=POResponse)
async def get_purchase_order(po_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return POResponse(**dict(await service.get_purchase_order(db, org_id, po_id)))
    finally:
        await db.close()


@purchase_order_router.get("/{po_id}/lines", response_model=list[POLineResponse])
async def list_purchase_order_lines(po_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        await service.get_purchase_order(db, org_id, po_id)
        rows = await service.list_po_lines(db, po_id)
        return [POLineResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@purchase_order_router.post("/{po_id}/status", response_model=POResponse)
async def change_purchase_order_status(
    po_id: int,
    payload: POStatusChange,
    org_id: int = Depends(require_org),
):
    async with unit_of_work() as db:
        row = await service.change_po_status(db, org_id, po_id, payload.status)
    return POResponse(**dict(row))


@purchase_order_router.post("/{po_id}/lines/{line_id}/receive", response_model=POReceiptResponse)
async def receive_purchase_order_line(
    po_id: int,
    line_id: int,
    payload: POLineReceive,
    org_id: int = Depends(require_org),
):
    async with unit_of_work() as db:
        line, purchase_order = await service.receive_po_line(db, org_id, po_id, line_id, payload.quantity)
    return POReceiptResponse(
        line=POLineResponse(**dict(line)),
        purchase_order=POResponse(**dict(purchase_order)),
    )
