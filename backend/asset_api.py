"""
FastAPI routers for assets, vendors, parts inventory and part classification.
"""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query

from config import DEFAULT_PAGE_LIMIT
from db import fetch_all, get_db, unit_of_work
from errors import ValidationFailed
import classification_service
import fleet_service as service
from fleet_models import (
    AssetCreate,
    AssetResponse,
    AssetStatus,
    AssetType,
    AssetUpdate,
    ClassificationOverride,
    ClassificationRunRequest,
    ClassificationRunResponse,
    PartCreate,
    PartResponse,
    PartUpdate,
    VendorCreate,
    VendorResponse,
    VendorUpdate,
)
from org_scope import get_scoped_row, require_org

asset_router = APIRouter(prefix="/api/orgs/{org_id}/assets", tags=["assets"])
vendor_router = APIRouter(prefix="/api/orgs/{org_id}/vendors", tags=["vendors"])
part_router = APIRouter(prefix="/api/orgs/{org_id}/parts", tags=["parts"])


def _changes_or_fail(payload) -> dict[str, Any]:
    changes = payload.model_dump(exclude_unset=True)
    if not changes:
        raise ValidationFailed("No update fields provided")
    return changes


@asset_router.get("", response_model=list[AssetResponse])
async def list_assets(
    org_id: int = Depends(require_org),
    status: AssetStatus | None = None,
    type: AssetType | None = None,
    search: str | None = None,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM assets WHERE org_id = ?"
    params: list[Any] = [org_id]
    if status:
        query += " AND status = ?"
        params.append(status)
    if type:
        query += " AND type = ?"
        params.append(type)
    if search:
        pattern = f"%{search.strip()}%"
        query += " AND (asset_number LIKE ? OR name LIKE ? OR serial_number LIKE ?)"
        params.extend([pattern, pattern, pattern])
    query += " ORDER BY asset_number COLLATE NOCASE ASC, id ASC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    db = await get_db()
    try:
        return [AssetResponse(**dict(row)) for row in await fetch_all(db, query, params)]
    finally:
        await db.close()


@asset_router.post("", response_model=AssetResponse, status_code=201)
async def create_asset(payload: AssetCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.create_asset(db, org_id, payload.model_dump())
    return AssetResponse(**dict(row))


@asset_router.get("/{asset_id}", response_model=AssetResponse)
async def get_asset(asset_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return AssetResponse(**dict(await get_scoped_row(db, "assets", org_id, asset_id, "Asset")))
    finally:
        await db.close()


@asset_router.patch("/{asset_id}", response_model=AssetResponse)
async def update_asset(asset_id: int, payload: AssetUpdate, org_id: int = Depends(require_org)):
    changes = _changes_or_fail(payload)
    async with unit_of_work() as db:
        row = await service.update_asset(db, org_id, asset_id, changes)
    return AssetResponse(**dict(row))


@vendor_router.get("", response_model=list[VendorResponse])
async def list_vendors(
    org_id: int = Depends(require_org),
    active_only: bool = False,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM vendors WHERE org_id = ?"
    if active_only:
        query += " AND is_active = 1"
    query += " ORDER BY name COLLATE NOCASE ASC, id ASC LIMIT ? OFFSET ?"

    db = await get_db()
    try:
        rows = await fetch_all(db, query, (org_id, limit, offset))
        return [VendorResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@vendor_router.post("", response_model=VendorResponse, status_code=201)
async def create_vendor(payload: VendorCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.create_vendor(db, org_id, payload.model_dump())
    return VendorResponse(**dict(row))


@vendor_router.get("/{vendor_id}", response_model=VendorResponse)
async def get_vendor(vendor_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return VendorResponse(**dict(await get_scoped_row(db, "vendors", org_id, vendor_id, "Vendor")))
    finally:
        await db.close()


@vendor_router.patch("/{vendor_id}", response_model=VendorResponse)
async def update_vendor(vendor_id: int, payload: VendorUpdate, org_id: int = Depends(require_org)):
    changes = _changes_or_fail(payload)
    async with unit_of_work() as db:
        row = await service.update_vendor(db, org_id, vendor_id, changes)
    return VendorResponse(**dict(row))


@part_router.get("", response_model=list[PartResponse])
async def list_parts(
    org_id: int = Depends(require_org),
    category: str | None = None,
    search: str | None = None,
    limit: int = Query(default=DEFAULT_PAGE_LIMIT, ge=1, le=500),
    offset: int = Query(default=0, ge=0),
):
    query = "SELECT * FROM parts WHERE org_id = ?"
    params: list[Any] = [org_id]
    if category:
        query += " AND category = ?"
        params.append(category)
    if search:
        pattern = f"%{search.strip()}%"
        query += " AND (part_number LIKE ? OR name LIKE ? OR barcode LIKE ?)"
        params.extend([pattern, pattern, pattern])
    query += " ORDER BY part_number COLLATE NOCASE ASC, id ASC LIMIT ? OFFSET ?"
    params.extend([limit, offset])

    db = await get_db()
    try:
        return [PartResponse(**dict(row)) for row in await fetch_all(db, query, params)]
    finally:
        await db.close()


@part_router.get("/low-stock", response_model=list[PartResponse])
async def list_low_stock_parts(org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        rows = await fetch_all(
            db,
            """
            SELECT *
            FROM parts
            WHERE org_id = ?
              AND is_active = 1
              AND COALESCE(quantity_on_hand, 0) <= COALESCE(reorder_point, 0)
            ORDER BY part_number COLLATE NOCASE ASC, id ASC
            """,
            (org_id,),
        )
        return [PartResponse(**dict(row)) for row in rows]
    finally:
        await db.close()


@part_router.post("", response_model=PartResponse, status_code=201)
async def create_part(payload: PartCreate, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await service.create_part(db, org_id, payload.model_dump())
    return PartResponse(**dict(row))


@part_router.get("/{part_id}", response_model=PartResponse)
async def get_part(part_id: int, org_id: int = Depends(require_org)):
    db = await get_db()
    try:
        return PartResponse(**dict(await get_scoped_row(db, "parts", org_id, part_id, "Part")))
    finally:
        await db.close()


@part_router.patch("/{part_id}", response_model=PartResponse)
async def update_part(part_id: int, payload: PartUpdate, org_id: int = Depends(require_org)):
    changes = _changes_or_fail(payload)
    async with unit_of_work() as db:
        row = await service.update_part(db, org_id, part_id, changes)
    return PartResponse(**dict(row))


@part_router.post("/classify", response_model=ClassificationRunResponse)
async def classify_parts(
    payload: ClassificationRunRequest | None = None,
    org_id: int = Depends(require_org),
):
    request = payload or ClassificationRunRequest()
    async with unit_of_work() as db:
        return await classification_service.run_classification(db, org_id, request.window_months)


@part_router.put("/{part_id}/classification", response_model=PartResponse)
async def override_part_classification(
    part_id: int,
    payload: ClassificationOverride,
    org_id: int = Depends(require_org),
):
    async with unit_of_work() as db:
        row = await classification_service.override_classification(
            db, org_id, part_id, payload.smart_class, payload.xyz_class
        )
    return PartResponse(**dict(row))


@part_router.post("/{part_id}/classification/unlock", response_model=PartResponse)
async def unlock_part_classification(part_id: int, org_id: int = Depends(require_org)):
    async with unit_of_work() as db:
        row = await classification_service.unlock_classification(db, org_id, part_id)
    return PartResponse(**dict(row))
